"""
Unit tests for retention policy management (datpatch/backup/retention.py).

Tests RetentionManager for cleaning up old archives.
"""

import os
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from freezegun import freeze_time

from datpatch.backup.compression import format_archive_name
from datpatch.backup.retention import (
    RetentionManager,
    RetentionError,
    cleanup_old_backups,
    DAYS_PER_MONTH
)
from datpatch.models import BackupMonth


NOW = datetime(2024, 6, 25, 12, 0, 0)


def _archive(destination_dir, created, month=BackupMonth(2024, 1)):
    path = destination_dir / format_archive_name(month, created)
    path.write_bytes(b'zip')
    return path


class TestRetentionManager:
    """Test RetentionManager basic functionality."""

    def test_retention_manager_initialization(self, destination_dir):
        manager = RetentionManager(str(destination_dir), 3)

        assert manager.keep_months == 3
        assert manager.silent is False
        assert manager.logs == []

    def test_deadline_uses_thirty_day_months(self, destination_dir):
        manager = RetentionManager(str(destination_dir), 3)

        assert manager.deadline(NOW) == NOW - timedelta(days=90)
        assert DAYS_PER_MONTH == 30

    def test_deadline_accepts_aware_now(self, destination_dir):
        manager = RetentionManager(str(destination_dir), 1)
        aware = NOW.astimezone(timezone.utc)

        assert manager.deadline(aware) == NOW - timedelta(days=30)

    def test_keeps_recent_and_deletes_old(self, destination_dir):
        """Archives at now-4*30d are removed, now-2*30d are kept with keep_months=3."""
        old = _archive(destination_dir, NOW - timedelta(days=4 * 30))
        recent = _archive(destination_dir, NOW - timedelta(days=2 * 30))

        summary = RetentionManager(str(destination_dir), 3).enforce(NOW)

        assert not old.exists()
        assert recent.exists()
        assert summary['deleted'] == [old.name]
        assert summary['errors'] == []
        assert summary['deadline'] == NOW - timedelta(days=90)

    def test_archive_exactly_at_deadline_is_kept(self, destination_dir):
        at_deadline = _archive(destination_dir, NOW - timedelta(days=90))

        summary = RetentionManager(str(destination_dir), 3).enforce(NOW)

        assert at_deadline.exists()
        assert summary['deleted'] == []

    def test_zero_keep_months_is_noop(self, destination_dir):
        ancient = _archive(destination_dir, datetime(2000, 1, 1))

        summary = RetentionManager(str(destination_dir), 0).enforce(NOW)

        assert ancient.exists()
        assert summary['deadline'] is None
        assert summary['deleted'] == []

    def test_ignores_non_archive_entries(self, destination_dir):
        (destination_dir / '.cache').mkdir()
        (destination_dir / '.cache' / 'backupEvents.json').write_text('[]')
        (destination_dir / 'notes.txt').write_text('keep me')
        (destination_dir / '2024-01_backup_20000101000000.zip.bak').write_text('keep me')
        # Directory named like an archive is not a regular file
        (destination_dir / '2024-01_backup_20000101000000.zip').mkdir()

        summary = RetentionManager(str(destination_dir), 1).enforce(NOW)

        assert summary['deleted'] == []
        assert (destination_dir / 'notes.txt').exists()
        assert (destination_dir / '2024-01_backup_20000101000000.zip').is_dir()

    def test_unparsable_timestamp_is_skipped(self, destination_dir):
        bogus = destination_dir / '2024-01_backup_20001399000000.zip'
        bogus.write_bytes(b'zip')

        summary = RetentionManager(str(destination_dir), 1).enforce(NOW)

        assert bogus.exists()
        assert summary['errors'] == []

    def test_invalid_month_prefix_still_ages_out(self, destination_dir):
        odd = destination_dir / '2024-13_backup_20000101000000.zip'
        odd.write_bytes(b'zip')

        summary = RetentionManager(str(destination_dir), 1).enforce(NOW)

        assert not odd.exists()
        assert summary['deleted'] == [odd.name]

    def test_deletion_failure_is_reported_and_scan_continues(self, destination_dir):
        first = _archive(destination_dir, datetime(2023, 1, 1), BackupMonth(2023, 1))
        second = _archive(destination_dir, datetime(2023, 2, 1), BackupMonth(2023, 2))
        real_remove = os.remove

        def failing_remove(path, *args, **kwargs):
            if os.path.basename(path) == first.name:
                raise PermissionError(13, 'Permission denied')
            return real_remove(path, *args, **kwargs)

        with patch('datpatch.backup.retention.os.remove', side_effect=failing_remove):
            summary = RetentionManager(str(destination_dir), 1).enforce(NOW)

        assert first.exists()
        assert not second.exists()
        assert summary['deleted'] == [second.name]
        assert len(summary['errors']) == 1
        assert first.name in summary['errors'][0]

    def test_missing_destination_raises(self, tmp_path):
        manager = RetentionManager(str(tmp_path / 'missing'), 1)

        with pytest.raises(RetentionError, match="Failed to list"):
            manager.enforce(NOW)

    def test_logs_are_recorded(self, destination_dir):
        old = _archive(destination_dir, datetime(2020, 1, 1))

        summary = RetentionManager(str(destination_dir), 1, silent=True).enforce(NOW)

        assert any('Removing backups older than 1 months' in log for log in summary['logs'])
        assert any(old.name in log for log in summary['logs'])

    @patch('datpatch.backup.retention.logger')
    def test_silent_suppresses_output(self, mock_logger, destination_dir):
        _archive(destination_dir, datetime(2020, 1, 1))

        RetentionManager(str(destination_dir), 1, silent=True).enforce(NOW)

        mock_logger.log.assert_not_called()

    @patch('datpatch.backup.retention.logger')
    def test_not_silent_emits_output(self, mock_logger, destination_dir):
        _archive(destination_dir, datetime(2020, 1, 1))

        RetentionManager(str(destination_dir), 1).enforce(NOW)

        assert mock_logger.log.called


class TestCleanupOldBackups:
    """Test the cleanup_old_backups entry point."""

    @freeze_time("2024-06-25 12:00:00")
    def test_defaults_to_current_time(self, destination_dir):
        old = _archive(destination_dir, datetime.now() - timedelta(days=4 * 30))
        recent = _archive(destination_dir, datetime.now() - timedelta(days=2 * 30), BackupMonth(2024, 4))

        summary = cleanup_old_backups(str(destination_dir), 3)

        assert not old.exists()
        assert recent.exists()
        assert summary['deleted'] == [old.name]

    def test_zero_keep_months(self, destination_dir):
        ancient = _archive(destination_dir, datetime(2000, 1, 1))

        summary = cleanup_old_backups(str(destination_dir), 0, now=NOW)

        assert ancient.exists()
        assert summary['deleted'] == []
