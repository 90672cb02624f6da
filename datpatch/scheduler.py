"""
APScheduler configuration for recurring backup runs.

Manages:
- The scheduled backup run (based on a cron expression)
- Scheduler lifecycle and status reporting
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.executors.pool import ThreadPoolExecutor

from datpatch.config import options_from_config
from datpatch.backup.executor import execute_backup


logger = logging.getLogger(__name__)

BACKUP_JOB_ID = 'scheduled_backup'

# Global scheduler instance and Flask app reference
scheduler = None
flask_app = None


def init_scheduler(app):
    """
    Initialize and configure APScheduler.

    Args:
        app: Flask app instance

    Raises:
        ValueError: If the backup run or cron expression is not configured correctly
    """
    global scheduler, flask_app

    if scheduler is not None:
        return scheduler

    # Fail early on incomplete configuration
    options_from_config(app.config)
    trigger = CronTrigger.from_crontab(
        app.config['BACKUP_SCHEDULE_CRON'],
        timezone=app.config['SCHEDULER_TIMEZONE']
    )

    # Store Flask app reference for use in background threads
    flask_app = app

    # A single worker and one instance per job: runs never overlap
    executors = {
        'default': ThreadPoolExecutor(max_workers=1)
    }

    job_defaults = {
        'coalesce': True,  # Combine multiple pending instances into one
        'max_instances': 1,  # Only one instance of a job at a time
        'misfire_grace_time': 300  # 5 minutes grace period for misfires
    }

    scheduler = BackgroundScheduler(
        executors=executors,
        job_defaults=job_defaults,
        timezone=app.config['SCHEDULER_TIMEZONE']
    )

    scheduler.add_job(
        func=_execute_backup_wrapper,
        trigger=trigger,
        id=BACKUP_JOB_ID,
        name='Scheduled Backup',
        replace_existing=True
    )

    logger.info(f"Scheduled backup run ({app.config['BACKUP_SCHEDULE_CRON']})")

    return scheduler


def start_scheduler():
    """
    Start the APScheduler.

    Should be called after Flask app is initialized.
    """
    if scheduler is None:
        raise RuntimeError("Scheduler not initialized. Call init_scheduler() first.")

    if not scheduler.running:
        scheduler.start()
        logger.info(f"APScheduler started successfully (state={scheduler.state})")

        for job in scheduler.get_jobs():
            next_run = job.next_run_time.isoformat() if getattr(job, 'next_run_time', None) else 'N/A'
            logger.info(f"  - {job.id}: {job.name} (next run: {next_run})")
    else:
        logger.info(f"Scheduler already running (state={scheduler.state})")


def stop_scheduler():
    """Stop the APScheduler."""
    if scheduler and scheduler.running:
        scheduler.shutdown()
        logger.info("APScheduler stopped")


def _execute_backup_wrapper():
    """
    Run the configured backup inside the Flask app context.

    Failures are logged; the scheduler keeps running.
    """
    with flask_app.app_context():
        try:
            options = options_from_config(flask_app.config)
            summary = execute_backup(options)
            logger.info(
                f"Scheduled backup completed: {len(summary['archives'])} archives, "
                f"{len(summary['errors'])} errors"
            )
        except Exception as e:
            logger.critical(f"Scheduled backup failed: {e}")


def get_scheduled_jobs() -> list:
    """
    Get list of all scheduled jobs.

    Returns:
        List of dicts with job information
    """
    if scheduler is None:
        return []

    jobs = []

    for job in scheduler.get_jobs():
        jobs.append({
            'id': job.id,
            'name': job.name,
            'next_run': job.next_run_time.isoformat() if getattr(job, 'next_run_time', None) else None,
            'trigger': str(job.trigger)
        })

    return jobs


def is_scheduler_running() -> bool:
    """Check if scheduler is running."""
    return scheduler is not None and scheduler.running
