"""
Backup history routes - Read-only view of past runs and stored archives.
"""

import os

from flask import Blueprint, current_app, jsonify, request

from datpatch.backup.cache import cache_file_path, read_cache_records, get_last_backup_time, CacheError, EPOCH
from datpatch.backup.compression import parse_archive_name
from datpatch.models import format_timestamp
from datpatch.scheduler import get_scheduled_jobs, is_scheduler_running


bp = Blueprint('history', __name__, url_prefix='/api/history')


def _destination():
    return current_app.config.get('BACKUP_DESTINATION')


def _not_configured():
    return jsonify({'error': 'Backup destination is not configured'}), 503


def _list_archives(destination):
    """Collect archive files in the destination, newest first."""
    if not os.path.isdir(destination):
        return []

    archives = []
    with os.scandir(destination) as entries:
        for entry in entries:
            if not entry.is_file():
                continue
            parsed = parse_archive_name(entry.name)
            if parsed is None:
                continue
            month, created = parsed
            archives.append({
                'name': entry.name,
                'month': month.label,
                'created_at': created.isoformat(),
                'size_bytes': entry.stat().st_size
            })

    archives.sort(key=lambda archive: archive['created_at'], reverse=True)
    return archives


@bp.route('/', methods=['GET'])
def list_history():
    """
    Get backup run history with pagination.

    Query params:
        - limit: Max number of records (default: 50, max: 200)
        - offset: Number of records to skip (default: 0)

    Returns:
        JSON with run records (newest first) and metadata
    """
    destination = _destination()
    if not destination:
        return _not_configured()

    limit = request.args.get('limit', 50, type=int)
    offset = request.args.get('offset', 0, type=int)

    # Enforce limits
    if limit > 200:
        limit = 200
    if limit < 1:
        limit = 50
    if offset < 0:
        offset = 0

    try:
        records = read_cache_records(cache_file_path(destination))
    except CacheError as e:
        return jsonify({'error': str(e)}), 500

    records.sort(key=lambda record: record.end_time, reverse=True)
    page = records[offset:offset + limit]

    history_data = []
    for record in page:
        history_data.append({
            'start_time': format_timestamp(record.start_time),
            'end_time': format_timestamp(record.end_time),
            'duration_seconds': int((record.end_time - record.start_time).total_seconds()),
            'backup_info': record.backup_info
        })

    return jsonify({
        'records': history_data,
        'total': len(records),
        'limit': limit,
        'offset': offset
    })


@bp.route('/archives', methods=['GET'])
def list_archives():
    """
    Get archives currently stored in the backup destination.

    Returns:
        JSON array of archives (newest first)
    """
    destination = _destination()
    if not destination:
        return _not_configured()

    archives = _list_archives(destination)
    return jsonify({
        'archives': archives,
        'total': len(archives)
    })


@bp.route('/summary', methods=['GET'])
def get_history_summary():
    """
    Get summary statistics for the backup destination.

    Returns:
        JSON with run count, last backup time, archive totals and scheduler status
    """
    destination = _destination()
    if not destination:
        return _not_configured()

    try:
        records = read_cache_records(cache_file_path(destination))
    except CacheError as e:
        return jsonify({'error': str(e)}), 500

    last_backup_time = get_last_backup_time(records)
    archives = _list_archives(destination)
    total_size = sum(archive['size_bytes'] for archive in archives)

    return jsonify({
        'total_runs': len(records),
        'last_backup_time': format_timestamp(last_backup_time) if last_backup_time != EPOCH else None,
        'archive_count': len(archives),
        'archive_size_mb': round(total_size / 1024 / 1024, 2),
        'scheduler_status': 'running' if is_scheduler_running() else 'stopped',
        'scheduled_jobs': get_scheduled_jobs()
    })
