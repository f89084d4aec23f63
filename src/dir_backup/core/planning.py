"""Backup planning: decide per path what has to be created, copied or linked.

The source inventory is split into contiguous shares, one worker thread per
share. Each worker classifies its own entries into a private partial plan and
the partial plans are merged as the workers finish. Both inventories are
read-only for the whole planning phase, so workers need no locking beyond the
progress counter.
"""

import logging
import math
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Sequence, TypeVar

from .. import __util__
from .fingerprint import ContentComparator
from .inventory import EntryKind, Inventory, InventoryEntry, read_link_target

logger = logging.getLogger(__name__)

DEFAULT_SHARE_SIZE = 100

T = TypeVar("T")


@dataclass
class BackupPlan:
    """Actions needed to bring a destination up to date with its source.

    Attributes:
        directories_to_create: directories present in source but not destination
        files_to_copy: regular files that are missing or differ
        symlinks_to_materialize: link path -> target to (re)create
    """

    directories_to_create: list[str] = field(default_factory=list)
    files_to_copy: list[str] = field(default_factory=list)
    symlinks_to_materialize: dict[str, str] = field(default_factory=dict)

    def merge(self, other: "BackupPlan") -> None:
        """Append another (partial) plan to this one."""
        self.directories_to_create.extend(other.directories_to_create)
        self.files_to_copy.extend(other.files_to_copy)
        self.symlinks_to_materialize.update(other.symlinks_to_materialize)

    @property
    def total(self) -> int:
        return (
            len(self.directories_to_create)
            + len(self.files_to_copy)
            + len(self.symlinks_to_materialize)
        )

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    def paths(self) -> set[str]:
        """Every path the plan touches."""
        return (
            set(self.directories_to_create)
            | set(self.files_to_copy)
            | set(self.symlinks_to_materialize)
        )


def partition(
    items: Sequence[T], share_size: int = DEFAULT_SHARE_SIZE
) -> list[list[T]]:
    """Split ``items`` into contiguous shares of at most ``share_size``.

    Always returns at least one share, even for empty input.
    """
    if share_size < 1:
        raise ValueError("share_size must be at least 1")
    count = max(1, math.ceil(len(items) / share_size))
    return [list(items[i * share_size : (i + 1) * share_size]) for i in range(count)]


def _inside_root(target: str, root: str) -> str | None:
    """Relative path of an absolute ``target`` below ``root``, else None."""
    if not os.path.isabs(target):
        return None
    target = os.path.normpath(target)
    if target == root:
        return ""
    prefix = root if root.endswith(os.sep) else root + os.sep
    if target.startswith(prefix):
        return target[len(prefix) :]
    return None


def normalize_link_target(target: str, root: str) -> tuple[bool, str]:
    """Key used to compare link targets living under different roots."""
    relative = _inside_root(target, root)
    if relative is None:
        return False, target
    return True, relative


def rewrite_link_target(target: str, source_root: str, dest_root: str) -> str:
    """Point a link into the destination tree if it points into the source."""
    relative = _inside_root(target, source_root)
    if relative is None:
        return target
    return os.path.join(dest_root, relative) if relative else dest_root


class _ProgressCounter:
    """Thread-safe count of classified entries."""

    def __init__(self, total: int, callback: Callable[[int, int], None] | None):
        self.total = total
        self.done = 0
        self._callback = callback
        self._lock = threading.Lock()

    def advance(self) -> None:
        if self._callback is None:
            return
        with self._lock:
            self.done += 1
            done = self.done
        self._callback(done, self.total)


class BackupPlanner:
    """Compare two inventories and produce a BackupPlan.

    Args:
        comparator: content comparator for same-size files
        read_link: callable returning a link's raw target, raising
            LinkResolutionError on failure
        log: logger receiving per-entry decisions and warnings
        share_size: source entries per worker
        on_progress: optional ``(done, total)`` callback, called from workers
    """

    def __init__(
        self,
        comparator: ContentComparator | None = None,
        read_link: Callable[[str], str] = read_link_target,
        log: logging.Logger | None = None,
        share_size: int = DEFAULT_SHARE_SIZE,
        on_progress: Callable[[int, int], None] | None = None,
    ) -> None:
        if share_size < 1:
            raise ValueError("share_size must be at least 1")
        self.log = log or logger
        self.comparator = comparator or ContentComparator(log=self.log)
        self.read_link = read_link
        self.share_size = share_size
        self.on_progress = on_progress

    def plan(
        self,
        source_inventory: Inventory,
        dest_inventory: Inventory,
        source_root,
        dest_root,
        skip_content_check: bool = False,
    ) -> BackupPlan:
        """Compute the plan for bringing ``dest_root`` in line with ``source_root``.

        Per-entry read, hash and link failures are logged and resolved
        conservatively; this method does not raise for them.
        """
        source_root = os.path.abspath(os.fspath(source_root))
        dest_root = os.path.abspath(os.fspath(dest_root))

        items = list(source_inventory.items())
        shares = partition(items, self.share_size)
        progress = _ProgressCounter(len(items), self.on_progress)
        self.log.debug(
            "Planning %d source entries with %d worker(s)", len(items), len(shares)
        )

        result = BackupPlan()
        with ThreadPoolExecutor(
            max_workers=len(shares), thread_name_prefix="plan"
        ) as executor:
            futures = [
                executor.submit(
                    self._classify_share,
                    share,
                    dest_inventory,
                    source_root,
                    dest_root,
                    skip_content_check,
                    progress,
                )
                for share in shares
            ]
            for future in as_completed(futures):
                result.merge(future.result())

        self.log.debug(
            "Plan: %d directories, %d files, %d symlinks",
            len(result.directories_to_create),
            len(result.files_to_copy),
            len(result.symlinks_to_materialize),
        )
        return result

    def _classify_share(
        self,
        share: list[tuple[str, InventoryEntry]],
        dest_inventory: Inventory,
        source_root: str,
        dest_root: str,
        skip_content_check: bool,
        progress: _ProgressCounter,
    ) -> BackupPlan:
        partial = BackupPlan()
        for relative_path, entry in share:
            self._classify(
                partial,
                relative_path,
                entry,
                dest_inventory.get(relative_path),
                source_root,
                dest_root,
                skip_content_check,
            )
            progress.advance()
        return partial

    def _classify(
        self,
        partial: BackupPlan,
        path: str,
        entry: InventoryEntry,
        dest_entry: InventoryEntry | None,
        source_root: str,
        dest_root: str,
        skip_content_check: bool,
    ) -> None:
        source_path = _join(source_root, path)
        dest_path = _join(dest_root, path)

        if dest_entry is None:
            if entry.kind is EntryKind.DIRECTORY:
                self.log.debug("Marking %s for creation as directory is missing", path)
                partial.directories_to_create.append(path)
            elif entry.kind is EntryKind.SYMLINK:
                target = self._read_source_link(path, source_path)
                if target is not None:
                    self.log.debug("Marking symlink at %s for backup", path)
                    partial.symlinks_to_materialize[path] = rewrite_link_target(
                        target, source_root, dest_root
                    )
            else:
                self.log.debug("Marking %s for backup as file is missing", path)
                partial.files_to_copy.append(path)
            return

        # Branches strictly on the source kind; a kind mismatch at the
        # destination is not detected here.
        if entry.kind is EntryKind.DIRECTORY:
            self.log.debug("Skipping %s as directory already exists", path)
            return

        if entry.kind is EntryKind.SYMLINK:
            target = self._read_source_link(path, source_path)
            if target is None:
                return
            # compared in destination terms, so a target that already points
            # into dest_root matches the link a previous run created
            expected = rewrite_link_target(target, source_root, dest_root)
            try:
                dest_target = self.read_link(dest_path)
            except __util__.LinkResolutionError as e:
                self.log.debug("%s; treating link as changed", e)
                changed = True
            else:
                changed = normalize_link_target(
                    expected, dest_root
                ) != normalize_link_target(dest_target, dest_root)
            if changed:
                self.log.debug("Marking symlink at %s for backup", path)
                partial.symlinks_to_materialize[path] = expected
            else:
                self.log.debug("Skipping symlink %s as target is unchanged", path)
            return

        if entry.size != dest_entry.size:
            self.log.debug("Marking %s for backup as file size differs", path)
            partial.files_to_copy.append(path)
        elif skip_content_check:
            self.log.debug("Skipping %s as size is unchanged and hashing is off", path)
        elif not self.comparator.same_content(source_path, dest_path):
            self.log.debug("Marking %s for backup as file content differs", path)
            partial.files_to_copy.append(path)
        else:
            self.log.debug("Skipping %s as the file has not changed", path)

    def _read_source_link(self, path: str, source_path: str) -> str | None:
        try:
            return self.read_link(source_path)
        except __util__.LinkResolutionError as e:
            self.log.warning("Skipping symlink %s: %s", path, e)
            return None


def _join(root: str, relative_path: str) -> str:
    return os.path.join(root, *relative_path.split("/"))
