"""Aggregate application use cases."""

from .backups import export_backup, read_backup, restore_backup

__all__ = [
    "export_backup",
    "read_backup",
    "restore_backup",
]
