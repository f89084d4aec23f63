"""Command line interface for dir-backup."""

from .dispatcher import main

__all__ = ["main"]
