import os
import logging
from logging.handlers import RotatingFileHandler
from flask import Flask


LOG_FORMAT = '[%(asctime)s] %(levelname)s in %(module)s: %(message)s'
FILE_LOG_FORMAT = '[%(asctime)s] %(levelname)s [%(name)s.%(funcName)s:%(lineno)d] %(message)s'


def _log_level(app) -> int:
    level_name = app.config.get('LOG_LEVEL')
    if level_name:
        return logging.getLevelName(str(level_name).upper())
    return logging.DEBUG if app.config.get('DEBUG', False) else logging.INFO


def configure_logging(app):
    """
    Attach console and, when LOG_DIR is set, rotating file handlers to the
    app logger.

    Handlers installed by a previous call are replaced, so building several
    apps in one process does not duplicate log lines.
    """
    log_level = _log_level(app)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handlers = [console_handler]

    log_dir = app.config.get('LOG_DIR')
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, 'cms-backup.log'),
            maxBytes=10485760,  # 10MB
            backupCount=10
        )
        file_handler.setFormatter(logging.Formatter(FILE_LOG_FORMAT))
        handlers.append(file_handler)

    for handler in list(app.logger.handlers):
        if getattr(handler, '_cmsbackup', False):
            app.logger.removeHandler(handler)
            handler.close()

    app.logger.setLevel(log_level)
    for handler in handlers:
        handler.setLevel(log_level)
        handler._cmsbackup = True
        app.logger.addHandler(handler)

    app.logger.debug(f"Logging configured (level: {logging.getLevelName(log_level)})")


def create_app(config_name=None, config_overrides=None):
    """
    Flask application factory.

    Args:
        config_name: Key of cmsbackup.config.config, defaults to FLASK_ENV
        config_overrides: Values applied over the loaded configuration; a
            'BACKUP' dict is merged into the backup configuration
    """
    app = Flask(__name__)

    # Load configuration
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'production')

    from cmsbackup.config import config, validate_backup_config
    app.config.from_object(config[config_name])

    # Class-level dicts are shared, each app gets its own copies
    app.config['BACKUP'] = dict(app.config['BACKUP'])
    app.config['DATABASE'] = dict(app.config['DATABASE'])

    if config_overrides:
        overrides = dict(config_overrides)
        app.config['BACKUP'].update(overrides.pop('BACKUP', {}))
        app.config.update(overrides)

    # Configure logging
    configure_logging(app)

    validate_backup_config(app.config['BACKUP'])

    if app.config.get('BACKUP_CHECK_STORAGE'):
        from cmsbackup.backup.storage import create_storage_from_config
        create_storage_from_config(app.config['BACKUP']).test_connection()

    # Health check endpoint
    from cmsbackup.scheduler import get_scheduled_jobs

    @app.route('/health')
    def health():
        return {'status': 'healthy', 'jobs': get_scheduled_jobs()}, 200

    # Scratch directory, scheduler and exit hook
    from cmsbackup.lifecycle import bootstrap

    bootstrap(app)

    return app
