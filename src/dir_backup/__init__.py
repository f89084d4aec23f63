"""dir-backup: dir_backup/__init__.py."""

__version__ = "0.3.0"
