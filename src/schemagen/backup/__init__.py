"""Safe file output: atomic writes with backup and restore.

Usage:
    from schemagen.backup import FileWriter, BackupManager, FileWriteRecord
"""

from schemagen.backup.models import FileWriteRecord
from schemagen.backup.writer import (
    BackupManager,
    FileWriter,
    atomic_write_bytes,
)

__all__ = [
    "FileWriteRecord",
    "FileWriter",
    "BackupManager",
    "atomic_write_bytes",
]
