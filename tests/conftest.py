"""
Shared pytest fixtures for datpatch tests.

This module provides fixtures for:
- Flask app and test client configured against temporary directories
- Source and destination directories
- Files with controlled modification times
- A fixed clock for deterministic runs
- Mock fixtures for APScheduler
"""

import os
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from datpatch import create_app


# Reference "now" for deterministic runs: 25 June 2024, 12:00 local time
FIXED_LOCAL_NOW = datetime(2024, 6, 25, 12, 0, 0)


def set_mtime(path, when: datetime):
    """Set a file's modification time (naive datetimes are local time)."""
    timestamp = when.timestamp()
    os.utime(path, (timestamp, timestamp))


@pytest.fixture(scope='function')
def source_dir(tmp_path):
    """Empty source directory."""
    path = tmp_path / 'in'
    path.mkdir()
    return path


@pytest.fixture(scope='function')
def destination_dir(tmp_path):
    """Empty destination directory."""
    path = tmp_path / 'out'
    path.mkdir()
    return path


@pytest.fixture
def make_file(source_dir):
    """
    Factory creating a file under the source directory with a given mtime.

    Usage: make_file('nested/a.txt', datetime(2024, 6, 15), content='data')
    """
    def _make(relative_path, modified: datetime, content='content'):
        path = source_dir / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        set_mtime(path, modified)
        return path

    return _make


@pytest.fixture
def fixed_now():
    """Naive local reference time used by fixed_clock."""
    return FIXED_LOCAL_NOW


@pytest.fixture
def touch():
    """Function setting a file's modification time."""
    return set_mtime


@pytest.fixture
def fixed_clock():
    """Clock returning FIXED_LOCAL_NOW as an aware UTC datetime."""
    now = FIXED_LOCAL_NOW.astimezone(timezone.utc)
    return lambda: now


@pytest.fixture(scope='function')
def app(source_dir, destination_dir):
    """
    Create Flask app with test configuration.

    The backup run points at the source/destination fixtures.
    """
    app = create_app('testing')

    app.config.update({
        'BACKUP_SOURCE': str(source_dir),
        'BACKUP_DESTINATION': str(destination_dir),
        'BACKUP_MODE': 'current',
        'BACKUP_KEEP_MONTHS': 6,
        'BACKUP_SILENT': True,
    })

    return app


@pytest.fixture(scope='function')
def client(app):
    """Flask test client for making HTTP requests."""
    return app.test_client()


@pytest.fixture(scope='function')
def cli_runner():
    """click runner for the datpatch command line."""
    return CliRunner()


@pytest.fixture(scope='function')
def mock_scheduler():
    """
    Mock APScheduler for testing scheduler functionality.
    """
    with patch('datpatch.scheduler.BackgroundScheduler') as mock_sched:
        scheduler_instance = MagicMock()
        mock_sched.return_value = scheduler_instance

        # Mock scheduler methods
        scheduler_instance.running = False
        scheduler_instance.state = 0
        scheduler_instance.get_jobs.return_value = []

        yield scheduler_instance
