import os
import tempfile

from datpatch.models import BackupMode, BackupOptions


def _env_flag(name, default='false'):
    return os.environ.get(name, default).lower() in ('1', 'true', 'yes')


class Config:
    """Base configuration"""

    # Backup run
    BACKUP_SOURCE = os.environ.get('BACKUP_SOURCE')
    BACKUP_DESTINATION = os.environ.get('BACKUP_DESTINATION')
    BACKUP_MODE = os.environ.get('BACKUP_MODE') or BackupMode.DYNAMIC.value
    BACKUP_KEEP_MONTHS = int(os.environ.get('BACKUP_KEEP_MONTHS', 6))
    BACKUP_SILENT = _env_flag('BACKUP_SILENT')

    # Logging
    LOG_DIR = os.environ.get('LOG_DIR') or os.path.join(os.path.expanduser('~'), '.datpatch', 'logs')

    # Scheduler
    BACKUP_SCHEDULE_CRON = os.environ.get('BACKUP_SCHEDULE_CRON') or '0 3 * * *'
    SCHEDULER_TIMEZONE = os.environ.get('SCHEDULER_TIMEZONE') or 'UTC'


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True

    # Use local data directory for development
    BASE_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    DATA_DIR = os.path.join(BASE_DIR, 'data')
    LOG_DIR = os.path.join(DATA_DIR, 'logs')


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    DEBUG = False
    BACKUP_SOURCE = None
    BACKUP_DESTINATION = None
    LOG_DIR = os.path.join(tempfile.gettempdir(), 'datpatch-tests', 'logs')


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': ProductionConfig
}


def options_from_config(settings) -> BackupOptions:
    """
    Build run options from a configuration mapping (e.g. app.config).

    Raises:
        ValueError: If source or destination is not configured, or the mode is invalid
    """
    source = settings.get('BACKUP_SOURCE')
    destination = settings.get('BACKUP_DESTINATION')

    if not source or not destination:
        raise ValueError("BACKUP_SOURCE and BACKUP_DESTINATION must be configured")

    return BackupOptions(
        source=source,
        destination=destination,
        mode=BackupMode(settings.get('BACKUP_MODE', BackupMode.DYNAMIC.value)),
        silent=bool(settings.get('BACKUP_SILENT', False)),
        keep_months=int(settings.get('BACKUP_KEEP_MONTHS', 6))
    )
