"""dir-backup: dir_backup/__util__.py
Common errors and small helpers shared by all modules.
"""

import hashlib
import os
from pathlib import Path


class BackupError(Exception):
    """Base class for all dir-backup errors."""


class ScanError(BackupError):
    """A tree root could not be walked; the inventory is unusable."""


class ContentReadError(BackupError):
    """A file could not be opened or read while computing its fingerprint."""


class LinkResolutionError(BackupError):
    """The target of a symbolic link could not be read."""


class ApplyError(BackupError):
    """A single create/copy/link/delete action failed during plan execution."""

    def __init__(self, action: str, path: str, reason: str) -> None:
        super().__init__(f"{action} {path}: {reason}")
        self.action = action
        self.path = path
        self.reason = reason


class AbortError(BackupError):
    """A backup job cannot continue."""


def log_heading(caption: str) -> str:
    """Formatted heading for logging output sections."""
    return f"{'-' * 10} {caption} {'-' * 10}"


def format_size(size_bytes) -> str:
    """Format a byte count as a human-readable string."""
    if size_bytes is None:
        return "unknown"
    if size_bytes < 1024:
        return f"{int(size_bytes)} B"
    size = float(size_bytes)
    for unit in ("KiB", "MiB", "GiB", "TiB"):
        size /= 1024
        if size < 1024 or unit == "TiB":
            return f"{size:.2f} {unit}"
    return f"{size:.2f} TiB"


def to_relative(path: str | Path, root: str | Path) -> str:
    """Return ``path`` relative to ``root`` using '/' as separator."""
    rel = os.path.relpath(os.fspath(path), os.fspath(root))
    return rel.replace(os.sep, "/")


def is_fixed_length_hash(name: str) -> bool:
    """True if ``name`` is a hashlib algorithm with a fixed digest size.

    Variable-length algorithms (shake_128, shake_256) report a digest size of
    0 and need an explicit length, so they cannot be used for fingerprints.
    """
    try:
        return hashlib.new(name).digest_size > 0
    except (ValueError, TypeError):
        return False


def hash_algorithms() -> list[str]:
    """Guaranteed hashlib algorithms usable for fingerprints, sorted."""
    return sorted(a for a in hashlib.algorithms_guaranteed if is_fixed_length_hash(a))
