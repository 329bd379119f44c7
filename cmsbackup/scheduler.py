"""
APScheduler configuration and job scheduling for cms-backup.

Manages:
- The "backup" job (uploads archive and database dump, on cron_schedule)
- The "cleanup" job (retention sweep, on cleanup_cron_schedule or cron_schedule)
"""

import os
from datetime import datetime

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.executors.pool import ThreadPoolExecutor
from flask import current_app

from cmsbackup.backup.executor import BackupExecutor
from cmsbackup.backup.utils import create_backup_filename
from cmsbackup.log import BackupLog


# Global scheduler instance and Flask app reference
scheduler = None
flask_app = None

BACKUP_JOB_ID = 'backup'
CLEANUP_JOB_ID = 'cleanup'


def get_scratch_dir(app) -> str:
    return os.path.join(app.config['TEMP_DIR'], 'cms-backup')


def create_executor(app) -> BackupExecutor:
    """Build a BackupExecutor from the app configuration."""
    return BackupExecutor(
        config=app.config['BACKUP'],
        db_config=app.config['DATABASE'],
        scratch_dir=get_scratch_dir(app),
        log=BackupLog(app.logger)
    )


def _backup_filename(app, hook_key: str, prefix: str, date: datetime) -> str:
    hook = app.config['BACKUP'].get(hook_key)
    if callable(hook):
        return hook(app)
    return create_backup_filename(prefix, date)


def backup_task():
    """
    Back up the uploads directory and the database, one after the other.

    Must run inside an app context.
    """
    app = current_app._get_current_object()
    backup_config = app.config['BACKUP']
    log = BackupLog(app.logger)
    date = datetime.now()

    executor = create_executor(app)

    if not backup_config.get('disable_uploads_backup'):
        backup_filename = _backup_filename(app, 'custom_uploads_backup_filename', 'uploads', date)
        executor.backup_file(app.config['UPLOADS_DIR'], backup_filename)
        log.info(f"backup: {backup_filename}")

    if not backup_config.get('disable_database_backup'):
        backup_filename = _backup_filename(app, 'custom_database_backup_filename', 'database', date)
        executor.backup_database(backup_filename)
        log.info(f"backup: {backup_filename}")


def cleanup_task():
    """
    Delete expired backups when cleanup is allowed.

    Must run inside an app context.
    """
    app = current_app._get_current_object()

    if not app.config['BACKUP'].get('allow_cleanup'):
        return

    create_executor(app).cleanup()
    BackupLog(app.logger).info('cleanup')


def _run_in_app_context(task, name: str):
    global flask_app

    with flask_app.app_context():
        try:
            task()
        except Exception as e:
            BackupLog(flask_app.logger).error(f"{name} failed: {e}")
            raise


def run_backup_task():
    """Scheduler entry point of the backup job."""
    _run_in_app_context(backup_task, BACKUP_JOB_ID)


def run_cleanup_task():
    """Scheduler entry point of the cleanup job."""
    _run_in_app_context(cleanup_task, CLEANUP_JOB_ID)


def init_scheduler(app):
    """
    Initialize APScheduler with the backup and cleanup jobs.

    Args:
        app: Flask app instance
    """
    global scheduler, flask_app

    if scheduler is not None:
        return scheduler

    # Store Flask app reference for use in background threads
    flask_app = app
    backup_config = app.config['BACKUP']
    timezone = app.config.get('SCHEDULER_TIMEZONE', 'UTC')

    executors = {
        'default': ThreadPoolExecutor(max_workers=2)
    }

    job_defaults = {
        'coalesce': True,  # Combine multiple pending instances into one
        'max_instances': 1,  # Only one instance of a job at a time
        'misfire_grace_time': 300  # 5 minutes grace period for misfires
    }

    scheduler = BackgroundScheduler(
        executors=executors,
        job_defaults=job_defaults,
        timezone=timezone
    )

    scheduler.add_job(
        func=run_backup_task,
        trigger=CronTrigger.from_crontab(backup_config['cron_schedule'], timezone=timezone),
        id=BACKUP_JOB_ID,
        name='Backup',
        replace_existing=True
    )

    cleanup_schedule = backup_config.get('cleanup_cron_schedule') or backup_config['cron_schedule']
    scheduler.add_job(
        func=run_cleanup_task,
        trigger=CronTrigger.from_crontab(cleanup_schedule, timezone=timezone),
        id=CLEANUP_JOB_ID,
        name='Backup Cleanup',
        replace_existing=True
    )

    return scheduler


def start_scheduler():
    """
    Start the APScheduler.

    Should be called after Flask app is initialized.
    """
    global scheduler

    if scheduler is None:
        raise RuntimeError("Scheduler not initialized. Call init_scheduler() first.")

    if not scheduler.running:
        scheduler.start()
        for job in scheduler.get_jobs():
            next_run = job.next_run_time.isoformat() if job.next_run_time else 'N/A'
            flask_app.logger.info(f"Scheduled {job.id}: {job.name} (next run: {next_run})")


def stop_scheduler():
    """Stop the APScheduler and forget it."""
    global scheduler, flask_app

    if scheduler and scheduler.running:
        scheduler.shutdown()

    scheduler = None
    flask_app = None


def is_scheduler_owner(app) -> bool:
    """Whether the current scheduler was initialized for this app."""
    return scheduler is not None and flask_app is app


def get_scheduled_jobs() -> list:
    """
    Get list of all scheduled jobs.

    Returns:
        List of dicts with job information
    """
    global scheduler

    if scheduler is None:
        return []

    jobs = []

    for job in scheduler.get_jobs():
        jobs.append({
            'id': job.id,
            'name': job.name,
            'next_run': job.next_run_time.isoformat() if job.next_run_time else None,
            'trigger': str(job.trigger)
        })

    return jobs
