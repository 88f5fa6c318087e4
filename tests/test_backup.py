"""Tests for FileWriter and BackupManager."""

import time
from pathlib import Path

import pytest

from schemagen.backup import BackupManager, FileWriter, atomic_write_bytes
from schemagen.errors import BackupCorruptedError, FileConflictError


@pytest.fixture
def backups(tmp_path) -> BackupManager:
    return BackupManager(
        tmp_path / "backups",
        run_id="run-1",
        base_path=tmp_path / "out",
        exclude_patterns=("*.log",),
    )


@pytest.fixture
def writer(tmp_path, backups) -> FileWriter:
    return FileWriter(tmp_path / "out", backups)


# ============================================================
# Test: Writing
# ============================================================


class TestFileWriter:
    """Writes are conflict-checked and recorded."""

    def test_creates_file_and_parents(self, writer, tmp_path) -> None:
        record = writer.write("app/Models/Post.php", "<?php", package="model")

        target = tmp_path / "out" / "app" / "Models" / "Post.php"
        assert target.read_text() == "<?php"
        assert record.target_path == str(target.resolve())
        assert record.created is True
        assert record.backup_path is None
        assert record.package == "model"

    def test_conflict_without_overwrite(self, writer, tmp_path) -> None:
        writer.write("Post.php", "first")
        with pytest.raises(FileConflictError) as exc_info:
            writer.write("Post.php", "second")

        assert exc_info.value.paths == [str((tmp_path / "out" / "Post.php").resolve())]
        assert (tmp_path / "out" / "Post.php").read_text() == "first"

    def test_overwrite_backs_up_first(self, writer, tmp_path) -> None:
        writer.write("Post.php", "first")
        record = writer.write("Post.php", "second", overwrite=True)

        assert record.existed is True
        assert Path(record.backup_path).read_text() == "first"
        assert record.checksum is not None
        assert (tmp_path / "out" / "Post.php").read_text() == "second"

    def test_conflicts_listing(self, writer, tmp_path) -> None:
        writer.write("a.php", "")
        assert writer.conflicts(["a.php", "b.php"], overwrite=False) == [
            str((tmp_path / "out" / "a.php").resolve())
        ]
        assert writer.conflicts(["a.php"], overwrite=True) == []

    def test_without_backup_manager(self, tmp_path) -> None:
        writer = FileWriter(tmp_path)
        writer.write("a.txt", "one")
        record = writer.write("a.txt", "two", overwrite=True)
        assert record.existed is True
        assert record.backup_path is None

    def test_atomic_write_leaves_no_temp_files(self, tmp_path) -> None:
        target = tmp_path / "dir" / "file.txt"
        atomic_write_bytes(target, b"data")
        assert target.read_bytes() == b"data"
        assert [p.name for p in target.parent.iterdir()] == ["file.txt"]


# ============================================================
# Test: Backup and restore
# ============================================================


class TestRestore:
    """Restore undoes writes: overwritten files come back, created files go."""

    def test_restore_overwritten_file(self, writer, backups, tmp_path) -> None:
        writer.write("Post.php", "original")
        record = writer.write("Post.php", "generated", overwrite=True)

        assert backups.restore(record) is True
        assert (tmp_path / "out" / "Post.php").read_text() == "original"

    def test_restore_created_file_deletes_it(self, writer, backups, tmp_path) -> None:
        record = writer.write("New.php", "generated")
        assert backups.restore(record) is True
        assert not (tmp_path / "out" / "New.php").exists()

    def test_restore_all_in_reverse_order(self, writer, backups, tmp_path) -> None:
        writer.write("Post.php", "v1")
        first = writer.write("Post.php", "v2", overwrite=True)
        second = writer.write("Post.php", "v3", overwrite=True)

        # Second backup of the same file in one run gets a numbered name
        assert second.backup_path == first.backup_path + ".1"

        restored = backups.restore_all([first, second])
        assert restored == [second, first]
        assert (tmp_path / "out" / "Post.php").read_text() == "v1"

    def test_corrupted_backup(self, writer, backups) -> None:
        writer.write("Post.php", "original")
        record = writer.write("Post.php", "generated", overwrite=True)
        Path(record.backup_path).write_text("tampered")

        with pytest.raises(BackupCorruptedError) as exc_info:
            backups.restore(record)
        assert exc_info.value.kind == "backup_corrupted"

    def test_missing_backup(self, writer, backups) -> None:
        writer.write("Post.php", "original")
        record = writer.write("Post.php", "generated", overwrite=True)
        Path(record.backup_path).unlink()

        with pytest.raises(BackupCorruptedError):
            backups.restore(record)

    def test_overwrite_without_backup_is_left_in_place(self, tmp_path, backups) -> None:
        plain = FileWriter(tmp_path / "out")
        plain.write("Post.php", "original")
        record = plain.write("Post.php", "generated", overwrite=True)

        assert backups.restore(record) is False
        assert (tmp_path / "out" / "Post.php").read_text() == "generated"

    def test_excluded_paths(self, writer, backups, tmp_path) -> None:
        writer.write("debug.log", "old")
        record = writer.write("debug.log", "new", overwrite=True)

        assert backups.is_excluded(tmp_path / "out" / "debug.log") is True
        assert record.backup_path is None
        assert backups.restore(record) is False
        assert (tmp_path / "out" / "debug.log").read_text() == "new"


# ============================================================
# Test: Pruning
# ============================================================


class TestPrune:
    def test_prune_old_runs_only(self, tmp_path, backups) -> None:
        old = tmp_path / "backups" / "run-0"
        old.mkdir(parents=True)
        (old / "Post.php").write_text("x")
        backups.run_dir.mkdir(parents=True)

        assert backups.prune(30) == []

        later = time.time() + 31 * 86400
        assert backups.prune(30, now=later) == [old]
        assert not old.exists()
        # The owning run's directory is never pruned
        assert backups.run_dir.exists()

    def test_prune_without_directory(self, tmp_path) -> None:
        assert BackupManager(tmp_path / "none", run_id="").prune(1) == []
