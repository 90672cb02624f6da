"""
Archive creation for monthly backups.

Selected files are copied into a uniquely named staging directory under the
destination, mirroring their paths relative to the source root, then the
staging tree is compressed into a single zip archive:

    {YYYY}-{MM}_backup_{YYYYMMDDHHMMSS}.zip

The filename is the only record of an archive's creation time, so
format_archive_name() and parse_archive_name() are the one place where the
naming contract lives.
"""

import os
import re
import shutil
import uuid
import zipfile
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

from datpatch.models import BackupMonth


ARCHIVE_TIMESTAMP_FORMAT = '%Y%m%d%H%M%S'
ARCHIVE_NAME_PATTERN = re.compile(r'^(\d{4})-(\d{2})_backup_(\d{14})\.zip$')


class CompressionError(Exception):
    """Raised when archive creation fails."""
    pass


class InvalidInputError(CompressionError):
    """Raised when a file to archive lies outside the source root."""
    pass


def format_archive_name(month: BackupMonth, created: datetime) -> str:
    """
    Generate the archive filename for a month.

    Format: {YYYY}-{MM}_backup_{YYYYMMDDHHMMSS}.zip

    Args:
        month: Month the archive covers
        created: Local wall-clock creation time

    Returns:
        Filename (without path)
    """
    return f"{month.year:04d}-{month.month:02d}_backup_{created.strftime(ARCHIVE_TIMESTAMP_FORMAT)}.zip"


def parse_archive_name(filename: str) -> Optional[Tuple[BackupMonth, datetime]]:
    """
    Parse a filename produced by format_archive_name().

    Args:
        filename: Archive filename (without path)

    Returns:
        (month, creation time) or None if the name does not match
    """
    match = ARCHIVE_NAME_PATTERN.match(filename)
    if not match:
        return None

    try:
        month = BackupMonth(int(match.group(1)), int(match.group(2)))
        created = datetime.strptime(match.group(3), ARCHIVE_TIMESTAMP_FORMAT)
    except ValueError:
        return None

    return month, created


def parse_archive_timestamp(filename: str) -> Optional[datetime]:
    """
    Extract only the creation time from an archive filename.

    The YYYY-MM prefix is matched by shape only, not validated as a month.
    """
    match = ARCHIVE_NAME_PATTERN.match(filename)
    if not match:
        return None

    try:
        return datetime.strptime(match.group(3), ARCHIVE_TIMESTAMP_FORMAT)
    except ValueError:
        return None


def create_archive(
    source_root: str,
    files: List[str],
    destination_dir: str,
    month: BackupMonth,
    created: Optional[datetime] = None
) -> str:
    """
    Package files into a dated zip archive in the destination directory.

    Args:
        source_root: Root the file paths are made relative to
        files: Absolute paths of files to include
        destination_dir: Directory receiving the archive
        month: Month the archive covers (used for naming)
        created: Creation time for the name (defaults to local now)

    Returns:
        Full path to the created archive file

    Raises:
        InvalidInputError: If a file is not under source_root
        CompressionError: If copying or compression fails
    """
    root = Path(os.path.abspath(source_root))
    destination = Path(destination_dir)
    staging_dir = destination / uuid.uuid4().hex

    if created is None:
        created = datetime.now()

    archive_path = destination / format_archive_name(month, created)

    try:
        staging_dir.mkdir(parents=True)
        _stage_files(root, files, staging_dir)
        _create_zip(staging_dir, archive_path)
    except Exception as e:
        # Best-effort cleanup, the next run stages into a fresh directory
        shutil.rmtree(staging_dir, ignore_errors=True)
        if archive_path.exists():
            try:
                archive_path.unlink()
            except OSError:
                pass
        if isinstance(e, CompressionError):
            raise
        raise CompressionError(f"Failed to create archive for {month.label}: {e}")

    try:
        shutil.rmtree(staging_dir)
    except OSError as e:
        raise CompressionError(f"Failed to remove staging directory {staging_dir}: {e}")

    return str(archive_path)


def _stage_files(root: Path, files: List[str], staging_dir: Path):
    """
    Copy files into the staging directory, keeping their relative layout.

    Args:
        root: Absolute source root
        files: Files to copy
        staging_dir: Staging directory
    """
    for file_path in files:
        try:
            relative_path = Path(os.path.abspath(file_path)).relative_to(root)
        except ValueError:
            raise InvalidInputError(f"File path not in source root {root}: {file_path}")

        dest_path = staging_dir / relative_path
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(file_path, dest_path)


def _create_zip(staging_dir: Path, archive_path: Path):
    """
    Create a ZIP archive from the staging tree.

    Directories are stored as directory entries, files with deflate.

    Args:
        staging_dir: Tree to compress
        archive_path: Output archive path
    """
    with zipfile.ZipFile(archive_path, 'w', zipfile.ZIP_DEFLATED) as zipf:
        for item in sorted(staging_dir.rglob('*')):
            arcname = item.relative_to(staging_dir).as_posix()
            if not arcname:
                continue
            # ZipFile.write() stores directories as "name/" entries
            zipf.write(item, arcname)


def get_archive_size(archive_path: str) -> int:
    """
    Get the size of an archive file in bytes.

    Args:
        archive_path: Path to the archive file

    Returns:
        File size in bytes

    Raises:
        CompressionError: If file doesn't exist or cannot be accessed
    """
    try:
        return os.path.getsize(archive_path)
    except FileNotFoundError:
        raise CompressionError(f"Archive not found: {archive_path}")
    except OSError as e:
        raise CompressionError(f"Failed to get archive size: {e}")
