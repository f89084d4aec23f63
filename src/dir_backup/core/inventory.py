"""Tree inventories: the scanner and the read-only mapping it produces.

An inventory maps each path below a root (relative, '/'-separated) to the
kind and size of the filesystem object found there. It is built once per run
and shared read-only by every planner worker.
"""

import logging
import os
import stat
from collections.abc import Iterable, Iterator, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType

from .. import __util__

logger = logging.getLogger(__name__)


class EntryKind(Enum):
    """Classification of a filesystem object."""

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"


@dataclass(frozen=True)
class InventoryEntry:
    """One filesystem object, keyed by its path relative to the tree root.

    ``size`` is only meaningful for files.
    """

    relative_path: str
    kind: EntryKind
    size: int = 0

    @property
    def is_dir(self) -> bool:
        return self.kind is EntryKind.DIRECTORY

    @property
    def is_symlink(self) -> bool:
        return self.kind is EntryKind.SYMLINK


class Inventory(Mapping):
    """Immutable mapping of relative path -> InventoryEntry for one root."""

    def __init__(self, root, entries: Mapping[str, InventoryEntry] | None = None):
        self.root = os.path.abspath(os.fspath(root))
        self._entries = MappingProxyType(dict(entries or {}))

    @classmethod
    def from_entries(cls, root, entries: Iterable[InventoryEntry]) -> "Inventory":
        """Build an inventory, refusing duplicate paths."""
        collected: dict[str, InventoryEntry] = {}
        for entry in entries:
            if entry.relative_path in collected:
                raise ValueError(f"Duplicate inventory path: {entry.relative_path}")
            collected[entry.relative_path] = entry
        return cls(root, collected)

    def __getitem__(self, key: str) -> InventoryEntry:
        return self._entries[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"Inventory({self.root!r}, {len(self)} entries)"

    def count(self, kind: EntryKind) -> int:
        return sum(1 for e in self._entries.values() if e.kind is kind)

    def total_size(self) -> int:
        return sum(
            e.size for e in self._entries.values() if e.kind is EntryKind.FILE
        )


def _is_excluded(rel: str, exclude: frozenset[str]) -> bool:
    if rel in exclude:
        return True
    return any(rel.startswith(prefix + "/") for prefix in exclude)


def scan_tree(
    root,
    follow_symlinks: bool = False,
    exclude: Iterable[str] = (),
    log: logging.Logger | None = None,
) -> Inventory:
    """Recursively inventory everything below ``root``.

    Symlinks are recorded as SYMLINK entries and never followed unless
    ``follow_symlinks`` is set, in which case they are classified by their
    target (dangling links are skipped, directory cycles are broken).

    Raises:
        ScanError: if the root or any directory below it cannot be listed
    """
    log = log or logger
    root = os.path.abspath(os.fspath(root))
    excluded = frozenset(p.strip("/") for p in exclude)
    entries: dict[str, InventoryEntry] = {}

    try:
        root_stat = os.stat(root)
    except OSError as e:
        raise __util__.ScanError(f"Cannot scan {root}: {e}") from e
    if not stat.S_ISDIR(root_stat.st_mode):
        raise __util__.ScanError(f"Cannot scan {root}: not a directory")
    root_key = (root_stat.st_dev, root_stat.st_ino)

    # (directory, identities of it and its ancestors) for cycle detection
    pending = [(root, frozenset([root_key]))]
    while pending:
        current, ancestors = pending.pop()
        try:
            with os.scandir(current) as it:
                children = list(it)
        except OSError as e:
            raise __util__.ScanError(f"Cannot scan {current}: {e}") from e

        for child in children:
            rel = __util__.to_relative(child.path, root)
            if _is_excluded(rel, excluded):
                continue
            try:
                if child.is_symlink() and not follow_symlinks:
                    entries[rel] = InventoryEntry(rel, EntryKind.SYMLINK)
                    continue
                try:
                    st = child.stat(follow_symlinks=True)
                except FileNotFoundError:
                    log.warning("Skipping dangling symlink %s", child.path)
                    continue
            except OSError as e:
                raise __util__.ScanError(f"Cannot stat {child.path}: {e}") from e

            if stat.S_ISDIR(st.st_mode):
                key = (st.st_dev, st.st_ino)
                if key in ancestors:
                    log.warning("Skipping directory cycle at %s", child.path)
                    continue
                entries[rel] = InventoryEntry(rel, EntryKind.DIRECTORY)
                pending.append((child.path, ancestors | {key}))
            elif stat.S_ISREG(st.st_mode):
                entries[rel] = InventoryEntry(rel, EntryKind.FILE, st.st_size)
            else:
                log.warning("Skipping special file %s", child.path)

    log.debug("Scanned %s: %d entries", root, len(entries))
    return Inventory(root, entries)


def read_link_target(path) -> str:
    """Return the raw target of the symbolic link at ``path``."""
    try:
        return os.readlink(path)
    except OSError as e:
        raise __util__.LinkResolutionError(f"Cannot read link {path}: {e}") from e


def scan_trees(
    source_root,
    dest_root,
    follow_symlinks: bool = False,
    dest_exclude: Iterable[str] = (),
    log: logging.Logger | None = None,
) -> tuple[Inventory, Inventory]:
    """Scan source and destination concurrently; return once both are complete.

    Only the source honours ``follow_symlinks``; the destination is always
    inventoried as it is on disk.
    """
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="scan") as executor:
        source_future = executor.submit(
            scan_tree, source_root, follow_symlinks, (), log
        )
        dest_future = executor.submit(
            scan_tree, dest_root, False, tuple(dest_exclude), log
        )
        return source_future.result(), dest_future.result()
