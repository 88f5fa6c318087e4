"""File write records shared by the writer, the pipeline and run history.

Usage:
    from schemagen.backup.models import FileWriteRecord

    record = writer.write("app/Models/Post.php", content, overwrite=True)
    if record.created:
        print("file did not exist before this run")
"""

from datetime import datetime

from pydantic import BaseModel


class FileWriteRecord(BaseModel):
    """One committed file write, enough to undo it."""

    target_path: str                   # absolute path that was written
    backup_path: str | None = None     # prior content, if it was backed up
    existed: bool = False              # target existed before the write
    written_at: datetime
    checksum: str | None = None        # sha256 of the backup content
    package: str | None = None         # package that produced the file

    @property
    def created(self) -> bool:
        """True if the write created a new file."""
        return not self.existed
