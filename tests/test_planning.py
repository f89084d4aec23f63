"""Tests for backup planning."""

import logging
from unittest.mock import MagicMock

import pytest

from dir_backup import __util__
from dir_backup.core.fingerprint import ContentComparator
from dir_backup.core.inventory import EntryKind, Inventory, InventoryEntry
from dir_backup.core.planning import (
    BackupPlan,
    BackupPlanner,
    normalize_link_target,
    partition,
    rewrite_link_target,
)

SRC = "/src"
DST = "/dst"


def file_entry(path: str, size: int = 4) -> InventoryEntry:
    return InventoryEntry(path, EntryKind.FILE, size)


def dir_entry(path: str) -> InventoryEntry:
    return InventoryEntry(path, EntryKind.DIRECTORY)


def link_entry(path: str) -> InventoryEntry:
    return InventoryEntry(path, EntryKind.SYMLINK)


def inventory(root: str, *entries: InventoryEntry) -> Inventory:
    return Inventory.from_entries(root, entries)


def fake_links(targets: dict[str, str]):
    """read_link replacement backed by a dict of absolute path -> target."""

    def read_link(path):
        try:
            return targets[path]
        except KeyError:
            raise __util__.LinkResolutionError(f"Cannot read link {path}")

    return read_link


def make_planner(same_content=True, links=None, log=None, **kwargs) -> BackupPlanner:
    comparator = MagicMock(spec=ContentComparator)
    comparator.same_content.return_value = same_content
    return BackupPlanner(
        comparator=comparator,
        read_link=fake_links(links or {}),
        log=log,
        **kwargs,
    )


class TestPartition:
    """Tests for partition function."""

    def test_contiguous_shares(self):
        shares = partition(list(range(250)), 100)
        assert [len(s) for s in shares] == [100, 100, 50]
        assert shares[0][0] == 0
        assert shares[1][0] == 100
        assert shares[2][-1] == 249

    def test_exact_multiple(self):
        assert len(partition(list(range(200)), 100)) == 2

    def test_empty_input_has_one_share(self):
        assert partition([], 100) == [[]]

    def test_share_size_one(self):
        assert partition(["a", "b", "c"], 1) == [["a"], ["b"], ["c"]]

    def test_rejects_non_positive_share_size(self):
        with pytest.raises(ValueError):
            partition([1, 2], 0)


class TestLinkTargets:
    """Tests for link target normalization and rewriting."""

    def test_rewrite_inside_source(self):
        assert rewrite_link_target("/src/target", SRC, DST) == "/dst/target"

    def test_rewrite_nested_inside_source(self):
        assert rewrite_link_target("/src/a/b/c", SRC, DST) == "/dst/a/b/c"

    def test_rewrite_source_root_itself(self):
        assert rewrite_link_target("/src", SRC, DST) == "/dst"

    def test_keep_outside_source(self):
        assert rewrite_link_target("/external/target", SRC, DST) == "/external/target"

    def test_keep_sibling_with_common_prefix(self):
        assert rewrite_link_target("/srcfoo/target", SRC, DST) == "/srcfoo/target"

    def test_keep_relative_target(self):
        assert rewrite_link_target("../target", SRC, DST) == "../target"

    def test_normalize_inside_roots_match(self):
        assert normalize_link_target("/src/a", SRC) == normalize_link_target(
            "/dst/a", DST
        )

    def test_normalize_relative_differs_from_inside(self):
        assert normalize_link_target("a", SRC) != normalize_link_target("/dst/a", DST)


class TestBackupPlan:
    """Tests for BackupPlan dataclass."""

    def test_empty_plan(self):
        plan = BackupPlan()
        assert plan.is_empty
        assert plan.total == 0
        assert plan.paths() == set()

    def test_merge(self):
        plan = BackupPlan(["a"], ["b"], {"c": "/t"})
        plan.merge(BackupPlan(["d"], ["e"], {"f": "/u"}))
        assert plan.directories_to_create == ["a", "d"]
        assert plan.files_to_copy == ["b", "e"]
        assert plan.symlinks_to_materialize == {"c": "/t", "f": "/u"}
        assert plan.total == 6
        assert plan.paths() == {"a", "b", "c", "d", "e", "f"}


class TestDestinationMissing:
    """Entries with no destination counterpart."""

    def test_directory_is_created(self):
        planner = make_planner()
        plan = planner.plan(inventory(SRC, dir_entry("dir1")), inventory(DST), SRC, DST)
        assert plan.directories_to_create == ["dir1"]
        assert plan.files_to_copy == []
        assert plan.symlinks_to_materialize == {}

    def test_file_is_copied(self):
        planner = make_planner()
        plan = planner.plan(inventory(SRC, file_entry("file1")), inventory(DST), SRC, DST)
        assert plan.files_to_copy == ["file1"]
        assert plan.directories_to_create == []
        planner.comparator.same_content.assert_not_called()

    def test_symlink_into_source_is_rewritten(self):
        planner = make_planner(links={"/src/link1": "/src/target"})
        plan = planner.plan(inventory(SRC, link_entry("link1")), inventory(DST), SRC, DST)
        assert plan.symlinks_to_materialize == {"link1": "/dst/target"}

    def test_symlink_outside_source_is_kept(self):
        planner = make_planner(links={"/src/link1": "/external/target"})
        plan = planner.plan(inventory(SRC, link_entry("link1")), inventory(DST), SRC, DST)
        assert plan.symlinks_to_materialize == {"link1": "/external/target"}

    def test_unreadable_symlink_is_skipped_with_warning(self):
        log = MagicMock(spec=logging.Logger)
        planner = make_planner(links={}, log=log)
        plan = planner.plan(inventory(SRC, link_entry("link1")), inventory(DST), SRC, DST)
        assert plan.is_empty
        log.warning.assert_called_once()

    def test_nested_paths_use_roots(self):
        planner = make_planner(links={"/src/a/b/link": "/src/a/file"})
        plan = planner.plan(
            inventory(SRC, dir_entry("a"), dir_entry("a/b"), link_entry("a/b/link")),
            inventory(DST),
            SRC,
            DST,
        )
        assert sorted(plan.directories_to_create) == ["a", "a/b"]
        assert plan.symlinks_to_materialize == {"a/b/link": "/dst/a/file"}


class TestDestinationPresent:
    """Entries that exist on both sides."""

    def test_existing_directory_is_noop(self):
        planner = make_planner()
        plan = planner.plan(
            inventory(SRC, dir_entry("dir1")), inventory(DST, dir_entry("dir1")), SRC, DST
        )
        assert plan.is_empty

    def test_size_mismatch_is_copied_without_hashing(self):
        for skip in (False, True):
            planner = make_planner(same_content=True)
            plan = planner.plan(
                inventory(SRC, file_entry("file1", 4)),
                inventory(DST, file_entry("file1", 2)),
                SRC,
                DST,
                skip_content_check=skip,
            )
            assert plan.files_to_copy == ["file1"]
            planner.comparator.same_content.assert_not_called()

    def test_same_size_different_content_is_copied(self):
        planner = make_planner(same_content=False)
        plan = planner.plan(
            inventory(SRC, file_entry("file1")),
            inventory(DST, file_entry("file1")),
            SRC,
            DST,
        )
        assert plan.files_to_copy == ["file1"]
        planner.comparator.same_content.assert_called_once_with(
            "/src/file1", "/dst/file1"
        )

    def test_skip_content_check_never_copies_same_size(self):
        planner = make_planner(same_content=False)
        plan = planner.plan(
            inventory(SRC, file_entry("file1")),
            inventory(DST, file_entry("file1")),
            SRC,
            DST,
            skip_content_check=True,
        )
        assert plan.files_to_copy == []
        planner.comparator.same_content.assert_not_called()

    def test_same_content_is_noop(self):
        planner = make_planner(same_content=True)
        plan = planner.plan(
            inventory(SRC, file_entry("file1")),
            inventory(DST, file_entry("file1")),
            SRC,
            DST,
        )
        assert plan.is_empty

    def test_matching_symlink_is_noop(self):
        planner = make_planner(
            links={"/src/link1": "/src/target", "/dst/link1": "/dst/target"}
        )
        plan = planner.plan(
            inventory(SRC, link_entry("link1")),
            inventory(DST, link_entry("link1")),
            SRC,
            DST,
        )
        assert plan.is_empty

    def test_matching_external_symlink_is_noop(self):
        planner = make_planner(
            links={"/src/link1": "/external/t", "/dst/link1": "/external/t"}
        )
        plan = planner.plan(
            inventory(SRC, link_entry("link1")),
            inventory(DST, link_entry("link1")),
            SRC,
            DST,
        )
        assert plan.is_empty

    def test_symlink_into_destination_is_noop(self):
        planner = make_planner(
            links={"/src/link1": "/dst/target", "/dst/link1": "/dst/target"}
        )
        plan = planner.plan(
            inventory(SRC, link_entry("link1")),
            inventory(DST, link_entry("link1")),
            SRC,
            DST,
        )
        assert plan.is_empty

    def test_changed_symlink_is_rewritten(self):
        planner = make_planner(
            links={"/src/link1": "/src/new", "/dst/link1": "/dst/old"}
        )
        plan = planner.plan(
            inventory(SRC, link_entry("link1")),
            inventory(DST, link_entry("link1")),
            SRC,
            DST,
        )
        assert plan.symlinks_to_materialize == {"link1": "/dst/new"}

    def test_unreadable_destination_link_is_changed(self):
        planner = make_planner(links={"/src/link1": "/external/target"})
        plan = planner.plan(
            inventory(SRC, link_entry("link1")),
            inventory(DST, link_entry("link1")),
            SRC,
            DST,
        )
        assert plan.symlinks_to_materialize == {"link1": "/external/target"}

    def test_unreadable_source_link_is_skipped(self):
        log = MagicMock(spec=logging.Logger)
        planner = make_planner(links={"/dst/link1": "/dst/target"}, log=log)
        plan = planner.plan(
            inventory(SRC, link_entry("link1")),
            inventory(DST, link_entry("link1")),
            SRC,
            DST,
        )
        assert plan.is_empty
        log.warning.assert_called_once()

    def test_source_directory_over_destination_file_is_noop(self):
        planner = make_planner()
        plan = planner.plan(
            inventory(SRC, dir_entry("x")), inventory(DST, file_entry("x")), SRC, DST
        )
        assert plan.is_empty

    def test_source_file_over_destination_directory_compares_size(self):
        planner = make_planner()
        plan = planner.plan(
            inventory(SRC, file_entry("x", 4)), inventory(DST, dir_entry("x")), SRC, DST
        )
        assert plan.files_to_copy == ["x"]


def _large_inventories(count: int = 250) -> tuple[Inventory, Inventory]:
    src_entries = []
    dst_entries = []
    for i in range(count):
        if i % 5 == 0:
            src_entries.append(dir_entry(f"d{i}"))
            if i % 10 == 0:
                dst_entries.append(dir_entry(f"d{i}"))
        else:
            src_entries.append(file_entry(f"f{i}", i))
            if i % 3 == 0:
                dst_entries.append(file_entry(f"f{i}", i))
            elif i % 3 == 1:
                dst_entries.append(file_entry(f"f{i}", i + 1))
    return inventory(SRC, *src_entries), inventory(DST, *dst_entries)


class TestConcurrency:
    """Properties of the partitioned worker pool."""

    @pytest.mark.parametrize("share_size", [1, 7, 100, 1000])
    def test_partition_completeness(self, share_size):
        """Any share size gives the same membership as one worker."""
        src, dst = _large_inventories()
        reference = make_planner(share_size=10_000).plan(src, dst, SRC, DST)
        plan = make_planner(share_size=share_size).plan(src, dst, SRC, DST)

        assert sorted(plan.files_to_copy) == sorted(reference.files_to_copy)
        assert sorted(plan.directories_to_create) == sorted(
            reference.directories_to_create
        )
        assert plan.symlinks_to_materialize == reference.symlinks_to_materialize

    def test_single_worker_preserves_source_order(self):
        src, dst = _large_inventories()
        plan = make_planner(share_size=10_000).plan(src, dst, SRC, DST)
        source_order = list(src)
        positions = [source_order.index(p) for p in plan.files_to_copy]
        assert positions == sorted(positions)

    def test_mutual_exclusivity(self):
        links = {f"/src/l{i}": f"/src/f{i}" for i in range(20)}
        src_entries = (
            [file_entry(f"f{i}") for i in range(20)]
            + [dir_entry(f"d{i}") for i in range(20)]
            + [link_entry(f"l{i}") for i in range(20)]
        )
        planner = make_planner(links=links, share_size=3)
        plan = planner.plan(inventory(SRC, *src_entries), inventory(DST), SRC, DST)

        dirs = set(plan.directories_to_create)
        files = set(plan.files_to_copy)
        symlinks = set(plan.symlinks_to_materialize)
        assert not dirs & files
        assert not dirs & symlinks
        assert not files & symlinks
        assert len(dirs) + len(files) + len(symlinks) == 60

    def test_progress_reports_every_entry(self):
        src, dst = _large_inventories(120)
        calls = []
        planner = make_planner(share_size=25, on_progress=lambda d, t: calls.append((d, t)))
        planner.plan(src, dst, SRC, DST)

        assert len(calls) == 120
        assert max(done for done, _ in calls) == 120
        assert all(total == 120 for _, total in calls)

    def test_empty_source(self):
        plan = make_planner().plan(inventory(SRC), inventory(DST, file_entry("x")), SRC, DST)
        assert plan.is_empty

    def test_rejects_invalid_share_size(self):
        with pytest.raises(ValueError):
            BackupPlanner(share_size=0)
