"""
File selection for incremental backups.

Walks a source tree and picks the regular files that changed after the last
successful backup and whose modification time falls inside a target month.
"""

import os
import stat
from datetime import datetime, timezone
from typing import List, Tuple

from datpatch.models import BackupMonth
from .months import next_month


class ScanError(Exception):
    """Raised when a month scan cannot be completed."""
    pass


def month_range_utc(month: BackupMonth) -> Tuple[datetime, datetime]:
    """
    Get the UTC half-open interval [start, end) covering a month.

    Boundaries are local midnight on the 1st of the month and of the
    following month.

    Args:
        month: Target month

    Returns:
        Tuple of aware UTC datetimes (start, end)
    """
    following = next_month(month)

    # Naive datetimes are interpreted as local time by astimezone()
    start = datetime(month.year, month.month, 1).astimezone(timezone.utc)
    end = datetime(following.year, following.month, 1).astimezone(timezone.utc)

    return start, end


def find_files(source_root: str, cutoff_time: datetime, month: BackupMonth) -> List[str]:
    """
    Find files to include in a month's backup.

    A file is selected when it was modified strictly after `cutoff_time` and
    within the month's UTC window. Sub-directories that cannot be listed are
    skipped; failing to list the root or to read a file's metadata aborts the
    whole scan.

    Args:
        source_root: Directory to scan
        cutoff_time: Aware datetime of the last successful backup
        month: Target month

    Returns:
        Absolute file paths in traversal order

    Raises:
        ScanError: If the root cannot be read or a file's metadata is unreadable
    """
    root = os.path.abspath(source_root)
    month_start, month_end = month_range_utc(month)

    if not os.path.isdir(root):
        raise ScanError(f"Source directory not found: {source_root}")

    def on_walk_error(error: OSError):
        if error.filename and os.path.abspath(error.filename) == root:
            raise ScanError(f"Failed to read source directory {root}: {error}")

    selected = []

    for directory, dirnames, filenames in os.walk(root, onerror=on_walk_error):
        dirnames.sort()

        for name in sorted(filenames):
            path = os.path.join(directory, name)

            try:
                file_stat = os.lstat(path)
            except OSError as e:
                raise ScanError(f"Failed to read metadata of {path}: {e}")

            # Symlinks and special files are not backed up
            if not stat.S_ISREG(file_stat.st_mode):
                continue

            modified = datetime.fromtimestamp(file_stat.st_mtime, tz=timezone.utc)

            if modified > cutoff_time and month_start <= modified < month_end:
                selected.append(path)

    return selected
