"""
Run cache for incremental backups.

The cache is a JSON array of completed runs stored at
{destination}/.cache/backupEvents.json:

    [
      {
        "StartTime": "2025-01-01T00:00:00Z",
        "EndTime": "2025-01-01T00:05:12Z",
        "BackupInfo": "Backup for 2024-12, 2025-01"
      }
    ]

Records are kept in insertion order and the file is always rewritten in full.
"""

import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import List

from datpatch.models import CacheRecord


CACHE_DIR_NAME = '.cache'
CACHE_FILE_NAME = 'backupEvents.json'

# Cutoff used when no backup has ever completed
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class CacheError(Exception):
    """Raised when the cache file cannot be read or written."""
    pass


def cache_file_path(destination: str) -> str:
    """Return the cache file location for a backup destination."""
    return os.path.join(destination, CACHE_DIR_NAME, CACHE_FILE_NAME)


def read_cache_records(cache_path: str) -> List[CacheRecord]:
    """
    Read and parse the cache file.

    Args:
        cache_path: Path to the cache file

    Returns:
        Records in stored order (empty if the file is missing or blank)

    Raises:
        CacheError: If the file cannot be read or its content is malformed
    """
    if not os.path.exists(cache_path):
        return []

    try:
        with open(cache_path, 'r', encoding='utf-8') as f:
            content = f.read()
    except UnicodeDecodeError as e:
        raise CacheError(f"Malformed cache file {cache_path}: {e}")
    except OSError as e:
        raise CacheError(f"Failed to read cache file {cache_path}: {e}")

    if not content.strip():
        return []

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise CacheError(f"Malformed cache file {cache_path}: {e}")

    if not isinstance(data, list):
        raise CacheError(f"Malformed cache file {cache_path}: expected a JSON array")

    records = []
    for index, item in enumerate(data):
        try:
            records.append(CacheRecord.from_dict(item))
        except ValueError as e:
            raise CacheError(f"Malformed cache record #{index} in {cache_path}: {e}")

    return records


def write_cache_records(cache_path: str, records: List[CacheRecord]):
    """
    Write the complete record list to the cache file.

    The content is written to a temporary file next to the cache and then
    moved into place.

    Args:
        cache_path: Path to the cache file
        records: All records to store

    Raises:
        CacheError: If the file cannot be written
    """
    content = json.dumps([record.to_dict() for record in records], indent=2)
    cache_dir = Path(cache_path).parent

    try:
        cache_dir.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=cache_dir, prefix='.backupEvents-', suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                f.write(content)
            os.replace(temp_path, cache_path)
        except BaseException:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise
    except OSError as e:
        raise CacheError(f"Failed to write cache file {cache_path}: {e}")


def get_last_backup_time(records: List[CacheRecord]) -> datetime:
    """
    Get the end time of the latest completed backup.

    Args:
        records: Cache records in any order

    Returns:
        Maximum end_time, or EPOCH if there are no records
    """
    if not records:
        return EPOCH
    return max(record.end_time for record in records)
