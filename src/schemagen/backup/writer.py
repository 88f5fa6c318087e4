"""Atomic file output with backup-before-overwrite and restore.

Ordering contract for an overwrite:
1. The prior content is copied into the run's backup directory and
   flushed to disk
2. Only then is the new content written, via a temp file in the target
   directory and ``os.replace``

A crash at any point leaves either the original file or the complete new
file in place, and never a target without its backup.

Usage:
    from schemagen.backup import BackupManager, FileWriter

    backups = BackupManager(".schemagen/backups", run_id="20240101-120000-ab12cd34")
    writer = FileWriter(".", backups)
    record = writer.write("app/Models/Post.php", content, overwrite=True)

    # Later, on failure
    backups.restore(record)
"""

import fnmatch
import hashlib
import logging
import os
import shutil
import tempfile
import time
from datetime import datetime
from pathlib import Path

from schemagen.backup.models import FileWriteRecord
from schemagen.errors import BackupCorruptedError, FileConflictError

logger = logging.getLogger(__name__)


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write ``data`` to ``path`` through a flushed temp file and ``os.replace``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


class BackupManager:
    """Stores pre-overwrite copies for one run and restores them.

    Backups live under ``{backup_dir}/{run_id}/`` mirroring the target's
    path relative to ``base_path``.

    Args:
        backup_dir: Root directory for all runs' backups
        run_id: Identifier of the run owning new backups
        base_path: Root that target paths are made relative to
        exclude_patterns: Globs of paths that are never backed up or restored
    """

    def __init__(
        self,
        backup_dir: str | Path,
        run_id: str,
        base_path: str | Path = ".",
        exclude_patterns: tuple[str, ...] | list[str] = (),
    ):
        self._backup_dir = Path(backup_dir)
        self._run_id = run_id
        self._base_path = Path(base_path).resolve()
        self._exclude_patterns = tuple(exclude_patterns)

    @property
    def run_dir(self) -> Path:
        return self._backup_dir / self._run_id

    def is_excluded(self, target: str | Path) -> bool:
        target = Path(target)
        candidates = {target.name, target.as_posix(), self._relative(target).as_posix()}
        return any(
            fnmatch.fnmatch(candidate, pattern)
            for pattern in self._exclude_patterns
            for candidate in candidates
        )

    def _relative(self, target: Path) -> Path:
        resolved = target.resolve()
        try:
            return resolved.relative_to(self._base_path)
        except ValueError:
            return Path(*resolved.parts[1:])

    def backup(self, target: str | Path) -> tuple[str, str] | None:
        """Copy ``target`` into the run's backup directory.

        Returns:
            ``(backup_path, checksum)``, or None when the target does not
            exist or is excluded
        """
        target = Path(target)
        if not target.exists() or self.is_excluded(target):
            return None

        destination = self.run_dir / self._relative(target)
        # A second overwrite of the same file in one run keeps the first backup
        counter = 1
        while destination.exists():
            destination = destination.with_name(f"{destination.name}.{counter}")
            counter += 1

        data = target.read_bytes()
        atomic_write_bytes(destination, data)
        checksum = hashlib.sha256(data).hexdigest()
        logger.debug("Backed up %s to %s", target, destination)
        return str(destination), checksum

    def restore(self, record: FileWriteRecord) -> bool:
        """Revert one write.

        The target gets its backed-up content back, or is deleted when the
        write had created it.

        Returns:
            False if the target is excluded from restore or was overwritten
            without a backup, True otherwise

        Raises:
            BackupCorruptedError: If the backup is missing or its checksum
                does not match
        """
        target = Path(record.target_path)
        if self.is_excluded(target):
            logger.info("Not restoring excluded path %s", target)
            return False

        if record.created:
            target.unlink(missing_ok=True)
            logger.info("Restored %s (removed created file)", target)
            return True
        if record.backup_path is None:
            logger.warning("No backup of overwritten %s, leaving it in place", target)
            return False

        backup = Path(record.backup_path)
        if not backup.exists():
            raise BackupCorruptedError(
                f"Backup missing for {target}: {backup}", entity=str(target)
            )
        data = backup.read_bytes()
        if record.checksum and hashlib.sha256(data).hexdigest() != record.checksum:
            raise BackupCorruptedError(
                f"Backup checksum mismatch for {target}: {backup}", entity=str(target)
            )

        atomic_write_bytes(target, data)
        logger.info("Restored %s from backup", target)
        return True

    def restore_all(self, records: list[FileWriteRecord]) -> list[FileWriteRecord]:
        """Revert ``records`` in reverse chronological order.

        Returns:
            Records that were actually restored
        """
        restored = []
        for record in reversed(records):
            if self.restore(record):
                restored.append(record)
        return restored

    def prune(self, max_age_days: float, now: float | None = None) -> list[Path]:
        """Delete run backup directories older than ``max_age_days``.

        Best-effort: directories that cannot be removed are logged and left.

        Returns:
            Run directories that were removed
        """
        if not self._backup_dir.is_dir():
            return []

        cutoff = (now if now is not None else time.time()) - max_age_days * 86400
        removed = []
        for run_dir in sorted(self._backup_dir.iterdir()):
            if not run_dir.is_dir() or run_dir.name == self._run_id:
                continue
            try:
                if run_dir.stat().st_mtime > cutoff:
                    continue
                shutil.rmtree(run_dir)
                removed.append(run_dir)
            except OSError as e:
                logger.warning("Could not prune backup %s: %s", run_dir, e)

        if removed:
            logger.info("Pruned %d backup run(s) older than %g days", len(removed), max_age_days)
        return removed


class FileWriter:
    """Conflict-checked, backed-up, atomic file writer.

    Args:
        base_path: Root for relative target paths
        backups: Backup manager; None disables backups (overwrites are
            then not restorable)
    """

    def __init__(self, base_path: str | Path = ".", backups: BackupManager | None = None):
        self._base_path = Path(base_path)
        self._backups = backups

    def resolve(self, path: str | Path) -> Path:
        path = Path(path)
        if not path.is_absolute():
            path = self._base_path / path
        return path.resolve()

    def conflicts(self, paths: list[str], overwrite: bool) -> list[str]:
        """Target paths that exist and may not be overwritten."""
        if overwrite:
            return []
        return [str(self.resolve(p)) for p in paths if self.resolve(p).exists()]

    def write(
        self,
        path: str | Path,
        content: str,
        overwrite: bool = False,
        package: str | None = None,
    ) -> FileWriteRecord:
        """Write ``content`` to ``path``.

        Parent directories are created as needed.

        Raises:
            FileConflictError: If the target exists and ``overwrite`` is False
        """
        target = self.resolve(path)
        existed = target.exists()
        if existed and not overwrite:
            raise FileConflictError([str(target)])

        backup_path = checksum = None
        if self._backups is not None:
            stored = self._backups.backup(target)
            if stored is not None:
                backup_path, checksum = stored

        atomic_write_bytes(target, content.encode("utf-8"))
        logger.debug("Wrote %s", target)
        return FileWriteRecord(
            target_path=str(target),
            backup_path=backup_path,
            existed=existed,
            written_at=datetime.now(),
            checksum=checksum,
            package=package,
        )
