"""Apply a BackupPlan to the destination tree.

Each action is independent: a failure is logged and recorded, and the rest of
the plan still runs.
"""

import logging
import os
import shutil
from dataclasses import dataclass, field

from .. import __util__
from .inventory import EntryKind, Inventory
from .planning import BackupPlan

logger = logging.getLogger(__name__)

COPY_BUFFER_SIZE = 1024 * 1024


@dataclass
class ApplyReport:
    """Outcome of applying a plan."""

    directories_created: int = 0
    files_copied: int = 0
    bytes_copied: int = 0
    symlinks_created: int = 0
    deleted: int = 0
    errors: list[__util__.ApplyError] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.errors


def copy_file(source_path, dest_path) -> int:
    """Copy file content and permission bits, syncing before returning.

    An existing symlink at ``dest_path`` is replaced rather than written
    through. Returns the number of bytes copied.
    """
    if os.path.islink(dest_path):
        os.unlink(dest_path)
    copied = 0
    with open(source_path, "rb") as src, open(dest_path, "wb") as dst:
        while chunk := src.read(COPY_BUFFER_SIZE):
            dst.write(chunk)
            copied += len(chunk)
        dst.flush()
        os.fsync(dst.fileno())
    shutil.copymode(source_path, dest_path)
    return copied


def materialize_symlink(target: str, link_path) -> None:
    """Create ``link_path`` -> ``target``, replacing a non-directory entry."""
    if os.path.lexists(link_path):
        os.unlink(link_path)
    os.symlink(target, link_path)


def _depth(relative_path: str) -> int:
    return relative_path.count("/")


def _join(root: str, relative_path: str) -> str:
    return os.path.join(root, *relative_path.split("/"))


def _dest_path(dest_root: str, relative_path: str) -> str:
    """Absolute destination path, refusing to go through a symlinked parent.

    A link left by an earlier run that preserved symlinks could otherwise
    redirect writes outside the destination tree.
    """
    parts = relative_path.split("/")
    current = dest_root
    for part in parts[:-1]:
        current = os.path.join(current, part)
        if os.path.islink(current):
            raise NotADirectoryError(
                f"parent {__util__.to_relative(current, dest_root)} is a symbolic link"
            )
    return os.path.join(current, parts[-1])


def stale_paths(source_inventory: Inventory, dest_inventory: Inventory) -> list[str]:
    """Destination paths with no source counterpart, deepest first."""
    stale = [p for p in dest_inventory if p not in source_inventory]
    return sorted(stale, key=lambda p: (-_depth(p), p))


def apply_plan(
    plan: BackupPlan,
    source_inventory: Inventory,
    dest_inventory: Inventory,
    source_root,
    dest_root,
    mirror: bool = False,
    log: logging.Logger | None = None,
) -> ApplyReport:
    """Execute ``plan`` against ``dest_root``.

    Directories are created parents first, then files are copied, then
    symlinks are created. In mirror mode destination entries that are absent
    from the source inventory are removed last.
    """
    log = log or logger
    source_root = os.path.abspath(os.fspath(source_root))
    dest_root = os.path.abspath(os.fspath(dest_root))
    report = ApplyReport()

    def failed(action: str, path: str, error: OSError) -> None:
        err = __util__.ApplyError(action, path, str(error))
        log.error("Failed to %s", err)
        report.errors.append(err)

    for path in sorted(plan.directories_to_create, key=lambda p: (_depth(p), p)):
        try:
            os.makedirs(_dest_path(dest_root, path), exist_ok=True)
        except OSError as e:
            failed("create directory", path, e)
            continue
        log.debug("Created directory %s", path)
        report.directories_created += 1

    for path in plan.files_to_copy:
        try:
            copied = copy_file(_join(source_root, path), _dest_path(dest_root, path))
        except OSError as e:
            failed("copy", path, e)
            continue
        log.debug("Copied %s (%s)", path, __util__.format_size(copied))
        report.files_copied += 1
        report.bytes_copied += copied

    for path, target in plan.symlinks_to_materialize.items():
        try:
            materialize_symlink(target, _dest_path(dest_root, path))
        except OSError as e:
            failed("link", path, e)
            continue
        log.debug("Linked %s -> %s", path, target)
        report.symlinks_created += 1

    if mirror:
        for path in stale_paths(source_inventory, dest_inventory):
            full_path = _join(dest_root, path)
            try:
                if dest_inventory[path].kind is EntryKind.DIRECTORY:
                    os.rmdir(full_path)
                else:
                    os.unlink(full_path)
            except OSError as e:
                failed("delete", path, e)
                continue
            log.debug("Deleted %s", path)
            report.deleted += 1

    return report
