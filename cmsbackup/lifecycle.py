"""
Startup and shutdown hooks.

bootstrap creates the scratch directory, starts the scheduler and registers
destroy to run at interpreter exit. destroy releases all of it again.
"""

import atexit
import functools
import os

from cmsbackup.log import BackupLog
from cmsbackup.scheduler import (
    get_scratch_dir,
    init_scheduler,
    is_scheduler_owner,
    start_scheduler,
    stop_scheduler
)


EXIT_HOOK_KEY = 'cms_backup_exit_hook'


def bootstrap(app):
    """
    Prepare the backup plugin for this process.

    Args:
        app: Flask app instance
    """
    os.makedirs(get_scratch_dir(app), exist_ok=True)

    if app.config.get('SCHEDULER_ENABLED', True):
        init_scheduler(app)
        start_scheduler()

    if EXIT_HOOK_KEY not in app.extensions:
        exit_hook = functools.partial(destroy, app)
        app.extensions[EXIT_HOOK_KEY] = exit_hook
        atexit.register(exit_hook)

    BackupLog(app.logger).info('bootstrap')


def destroy(app):
    """
    Release what bootstrap acquired.

    The scheduler is only stopped when it was started for this app, and the
    scratch directory is only removed when empty: other workers may share it.

    Args:
        app: Flask app instance
    """
    log = BackupLog(app.logger)

    exit_hook = app.extensions.pop(EXIT_HOOK_KEY, None)
    if exit_hook is not None:
        atexit.unregister(exit_hook)

    if is_scheduler_owner(app):
        stop_scheduler()

    scratch_dir = get_scratch_dir(app)
    try:
        os.rmdir(scratch_dir)
    except FileNotFoundError:
        pass
    except OSError as e:
        log.debug(f"keeping scratch directory {scratch_dir}: {e}")

    log.info('destroy')
