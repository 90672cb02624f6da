"""
Backup executor - orchestrates the complete backup workflow.

Workflow:
1. Check preconditions (source exists, destination and cache dir created)
2. Select target months from the backup mode
3. Read the cache and derive the last backup time
4. For each month: find changed files and create an archive
5. Prune archives past the retention window
6. Append a cache record (only if an archive was created)
"""

import logging
import os
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Optional

from datpatch.models import BackupOptions, CacheRecord
from .months import select_months
from .scanner import find_files, ScanError
from .compression import create_archive, get_archive_size, CompressionError
from .retention import cleanup_old_backups, RetentionError
from .cache import (
    cache_file_path,
    read_cache_records,
    write_cache_records,
    get_last_backup_time,
    CacheError
)


logger = logging.getLogger(__name__)


class PreconditionError(Exception):
    """Raised when a run cannot start."""
    pass


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BackupExecutor:
    """
    Orchestrates the complete backup workflow for one run.
    """

    def __init__(
        self,
        options: BackupOptions,
        clock: Optional[Callable[[], datetime]] = None,
        today: Optional[date] = None
    ):
        """
        Initialize backup executor.

        Args:
            options: Run configuration
            clock: Returns the current aware datetime (defaults to UTC now)
            today: Reference date for month selection (defaults to the local
                date of the run start)
        """
        self.options = options
        self.clock = clock or _utc_now
        self.today = today
        self.cache_path = cache_file_path(options.destination)
        self.logs = []

    def execute(self) -> Dict[str, Any]:
        """
        Execute the backup run.

        Per-month scan and archive failures, pruning failures and cache write
        failures are reported in the summary and do not abort the run.

        Returns:
            Dict with run summary:
            {
                'months': List[str],
                'last_backup_time': datetime,
                'archives': List[str],
                'errors': List[str],
                'pruned': List[str],
                'cache_updated': bool,
                'logs': List[str]
            }

        Raises:
            PreconditionError: If the source is missing or the destination
                cannot be prepared
            CacheError: If the existing cache cannot be read
        """
        start_time = self.clock()

        self._check_preconditions()

        today = self.today or start_time.astimezone().date()
        months = select_months(self.options.mode, today)

        records = read_cache_records(self.cache_path)
        last_backup_time = get_last_backup_time(records)

        summary = {
            'months': [month.label for month in months],
            'last_backup_time': last_backup_time,
            'archives': [],
            'errors': [],
            'pruned': [],
            'cache_updated': False
        }

        self._log(f"Selected backup mode: {self.options.mode.value}")
        self._log(f"Months to be backed up: {', '.join(summary['months'])}")
        self._log(f"Last backup time from cache: {last_backup_time.astimezone().isoformat()}")

        for month in months:
            self._log(f"Scanning for new/updated files for month: {month.label}")

            try:
                files = find_files(self.options.source, last_backup_time, month)
            except ScanError as e:
                error_msg = f"Error scanning files for {month.label}: {e}"
                summary['errors'].append(error_msg)
                self._log(error_msg, level=logging.ERROR)
                continue

            if not files:
                self._log(f"No new or updated files found for {month.label}. Skipping.")
                continue

            self._log(f"Found {len(files)} files to backup for {month.label}. Archiving...")

            try:
                archive_path = create_archive(
                    self.options.source,
                    files,
                    self.options.destination,
                    month,
                    created=self.clock().astimezone().replace(tzinfo=None)
                )
                archive_size = get_archive_size(archive_path)
            except CompressionError as e:
                error_msg = f"Error creating archive for {month.label}: {e}"
                summary['errors'].append(error_msg)
                self._log(error_msg, level=logging.ERROR)
                continue

            summary['archives'].append(archive_path)
            self._log(
                f"Successfully created archive: {archive_path} "
                f"({archive_size / 1024 / 1024:.2f} MB)"
            )

        if self.options.keep_months > 0:
            try:
                result = cleanup_old_backups(
                    self.options.destination,
                    self.options.keep_months,
                    silent=self.options.silent,
                    now=self.clock()
                )
                summary['pruned'] = result['deleted']
                summary['errors'].extend(result['errors'])
                self.logs.extend(result['logs'])
            except RetentionError as e:
                error_msg = f"An error occurred during cleanup: {e}"
                summary['errors'].append(error_msg)
                self._log(error_msg, level=logging.ERROR)

        if not summary['archives']:
            self._log("No new backup archives were created. Cache will not be updated.")
            summary['logs'] = self.logs
            return summary

        records.append(CacheRecord(
            start_time=start_time,
            end_time=self.clock(),
            backup_info=f"Backup for {', '.join(summary['months'])}"
        ))

        try:
            write_cache_records(self.cache_path, records)
            summary['cache_updated'] = True
            self._log(f"Successfully updated cache file: {self.cache_path}")
        except CacheError as e:
            error_msg = f"Error writing to cache file: {e}"
            summary['errors'].append(error_msg)
            self._log(error_msg, level=logging.ERROR)

        summary['logs'] = self.logs
        return summary

    def _check_preconditions(self):
        """Verify the source and prepare the destination and cache directories."""
        if not os.path.exists(self.options.source):
            raise PreconditionError(f"The source path '{self.options.source}' does not exist.")

        if not os.path.exists(self.options.destination):
            self._log(
                f"The destination path '{self.options.destination}' does not exist. Creating...",
                level=logging.WARNING
            )

        try:
            os.makedirs(os.path.dirname(self.cache_path), exist_ok=True)
        except OSError as e:
            raise PreconditionError(f"Failed to create destination directory: {e}")

    def _log(self, message: str, level: int = logging.INFO):
        """
        Record a log message and emit it unless running silently.

        Args:
            message: Log message
            level: Logging level
        """
        self.logs.append(message)
        if not self.options.silent:
            logger.log(level, message)


def execute_backup(
    options: BackupOptions,
    clock: Optional[Callable[[], datetime]] = None,
    today: Optional[date] = None
) -> Dict[str, Any]:
    """
    Run one backup with the given options.

    Returns:
        Summary dict from BackupExecutor.execute()
    """
    executor = BackupExecutor(options, clock=clock, today=today)
    return executor.execute()
