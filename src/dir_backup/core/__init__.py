"""Core backup operations for dir-backup.

Scanning, planning and plan execution, organized into focused modules.
"""

from .execution import ApplyReport, apply_plan
from .fingerprint import ContentComparator
from .inventory import EntryKind, Inventory, InventoryEntry, scan_tree, scan_trees
from .operations import BackupResult, run_backup
from .planning import BackupPlan, BackupPlanner

__all__ = [
    "EntryKind",
    "Inventory",
    "InventoryEntry",
    "scan_tree",
    "scan_trees",
    "ContentComparator",
    "BackupPlan",
    "BackupPlanner",
    "ApplyReport",
    "apply_plan",
    "BackupResult",
    "run_backup",
]
