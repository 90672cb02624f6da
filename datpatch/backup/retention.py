"""
Retention policy enforcement for backups.

Deletes archives in the destination directory whose filename-encoded
creation time is older than the retention window. A month is counted as a
fixed 30 days, not as a calendar month.
"""

import logging
import os
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from .compression import parse_archive_timestamp


logger = logging.getLogger(__name__)

DAYS_PER_MONTH = 30


class RetentionError(Exception):
    """Raised when the destination directory cannot be scanned."""
    pass


class RetentionManager:
    """
    Manages retention policy enforcement for a backup destination.

    Only top-level files named like archives are considered; anything else
    in the destination (the cache directory, staging leftovers, user files)
    is left alone.
    """

    def __init__(self, destination_dir: str, keep_months: int, silent: bool = False):
        """
        Initialize retention manager.

        Args:
            destination_dir: Directory holding the archives
            keep_months: Number of 30-day months to keep (0 disables pruning)
            silent: Suppress informational output
        """
        self.destination_dir = destination_dir
        self.keep_months = keep_months
        self.silent = silent
        self.logs = []

    def deadline(self, now: Optional[datetime] = None) -> datetime:
        """
        Compute the retention deadline as a naive local datetime.

        Args:
            now: Reference time (defaults to local now)
        """
        if now is None:
            now = datetime.now()
        elif now.tzinfo is not None:
            now = now.astimezone().replace(tzinfo=None)
        return now - timedelta(days=DAYS_PER_MONTH * self.keep_months)

    def enforce(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Delete archives older than the retention deadline.

        Args:
            now: Reference time (defaults to local now)

        Returns:
            Dict with summary of cleanup operations:
            {
                'deadline': datetime or None,
                'deleted': List[str],
                'errors': List[str],
                'logs': List[str]
            }

        Raises:
            RetentionError: If the destination directory cannot be listed
        """
        summary = {
            'deadline': None,
            'deleted': [],
            'errors': []
        }

        if self.keep_months == 0:
            summary['logs'] = self.logs
            return summary

        deadline = self.deadline(now)
        summary['deadline'] = deadline
        self._log(
            f"Removing backups older than {self.keep_months} months "
            f"(before {deadline.strftime('%Y-%m-%d %H:%M:%S')})"
        )

        try:
            with os.scandir(self.destination_dir) as entries:
                candidates = sorted(
                    (entry for entry in entries if entry.is_file()),
                    key=lambda entry: entry.name
                )
        except OSError as e:
            raise RetentionError(f"Failed to list {self.destination_dir}: {e}")

        for entry in candidates:
            created = parse_archive_timestamp(entry.name)
            if created is None:
                continue

            if created >= deadline:
                continue

            try:
                os.remove(entry.path)
                summary['deleted'].append(entry.name)
                self._log(f"Removed old backup: {entry.name}")
            except OSError as e:
                error_msg = f"Failed to remove {entry.name}: {e}"
                summary['errors'].append(error_msg)
                self._log(error_msg, level=logging.ERROR)

        summary['logs'] = self.logs
        return summary

    def _log(self, message: str, level: int = logging.INFO):
        """
        Record a log message and emit it unless running silently.

        Args:
            message: Log message
            level: Logging level
        """
        self.logs.append(message)
        if not self.silent:
            logger.log(level, message)


def cleanup_old_backups(
    destination_dir: str,
    keep_months: int,
    silent: bool = False,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Prune archives older than keep_months * 30 days.

    Returns:
        Summary dict from RetentionManager.enforce()
    """
    manager = RetentionManager(destination_dir, keep_months, silent=silent)
    return manager.enforce(now)
