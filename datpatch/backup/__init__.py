"""
Backup module for datpatch.

This module handles the core backup functionality including:
- Month selection
- Incremental file selection
- Compression
- Retention policy enforcement
- Run cache
- Execution orchestration
"""

from .executor import BackupExecutor, execute_backup, PreconditionError
from .months import select_months
from .scanner import find_files, ScanError
from .compression import create_archive, CompressionError, InvalidInputError
from .retention import RetentionManager, cleanup_old_backups, RetentionError
from .cache import read_cache_records, write_cache_records, get_last_backup_time, CacheError

__all__ = [
    'BackupExecutor',
    'execute_backup',
    'PreconditionError',
    'select_months',
    'find_files',
    'ScanError',
    'create_archive',
    'CompressionError',
    'InvalidInputError',
    'RetentionManager',
    'cleanup_old_backups',
    'RetentionError',
    'read_cache_records',
    'write_cache_records',
    'get_last_backup_time',
    'CacheError'
]
