import os
import tempfile

from cmsbackup.exceptions import ConfigError, invalid_config_value
from cmsbackup.backup.dumpers import DatabaseDriver
from cmsbackup.backup.storage import StorageService


def _env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.lower() in ('1', 'true', 'yes', 'on')


def _env_list(name):
    # Comma separated, since option values may contain spaces
    value = os.environ.get(name, '')
    return [item.strip() for item in value.split(',') if item.strip()]


def _env_number(name):
    value = os.environ.get(name)
    if value is None or value == '':
        return None
    return float(value) if '.' in value else int(value)


def backup_config_from_env():
    """Build the backup configuration dict from environment variables."""
    return {
        'database_driver': os.environ.get('DATABASE_CLIENT'),
        'storage_service': os.environ.get('STORAGE_SERVICE'),

        'mysqldump_executable': os.environ.get('MYSQLDUMP_EXECUTABLE', 'mysqldump'),
        'mysqldump_options': _env_list('MYSQLDUMP_OPTIONS'),
        'pg_dump_executable': os.environ.get('PG_DUMP_EXECUTABLE', 'pg_dump'),
        'pg_dump_options': _env_list('PG_DUMP_OPTIONS'),
        'sqlite3_executable': os.environ.get('SQLITE3_EXECUTABLE', 'sqlite3'),
        'dump_timeout_seconds': _env_number('DUMP_TIMEOUT_SECONDS'),

        'aws_access_key_id': os.environ.get('AWS_ACCESS_KEY_ID'),
        'aws_secret_access_key': os.environ.get('AWS_SECRET_ACCESS_KEY'),
        'aws_region': os.environ.get('AWS_REGION'),
        'aws_s3_endpoint': os.environ.get('AWS_S3_ENDPOINT'),
        'aws_s3_bucket': os.environ.get('AWS_S3_BUCKET'),

        'azure_storage_account_name': os.environ.get('AZURE_STORAGE_ACCOUNT_NAME'),
        'azure_storage_account_key': os.environ.get('AZURE_STORAGE_ACCOUNT_KEY'),
        'azure_storage_container_name': os.environ.get('AZURE_STORAGE_CONTAINER_NAME'),

        'gcs_key_filename': os.environ.get('GCS_KEY_FILENAME'),
        'gcs_bucket_name': os.environ.get('GCS_BUCKET_NAME'),

        'disable_uploads_backup': _env_bool('DISABLE_UPLOADS_BACKUP'),
        'disable_database_backup': _env_bool('DISABLE_DATABASE_BACKUP'),
        'allow_cleanup': _env_bool('BACKUP_ALLOW_CLEANUP'),
        'time_to_keep_backups_in_seconds': _env_number('TIME_TO_KEEP_BACKUPS_IN_SECONDS'),
        'cron_schedule': os.environ.get('BACKUP_CRON_SCHEDULE', '0 3 * * *'),
        'cleanup_cron_schedule': os.environ.get('BACKUP_CLEANUP_CRON_SCHEDULE'),

        # Callables taking the Flask app and returning a backup name
        'custom_uploads_backup_filename': None,
        'custom_database_backup_filename': None,
    }


def database_config_from_env():
    """Build the host database descriptor ('client' and 'connection')."""
    connection = {}

    if os.environ.get('DATABASE_URL'):
        connection['connection_string'] = os.environ['DATABASE_URL']
    elif os.environ.get('DATABASE_FILENAME'):
        connection['filename'] = os.environ['DATABASE_FILENAME']
    else:
        connection.update({
            'user': os.environ.get('DATABASE_USERNAME'),
            'password': os.environ.get('DATABASE_PASSWORD'),
            'host': os.environ.get('DATABASE_HOST', '127.0.0.1'),
            'port': os.environ.get('DATABASE_PORT'),
            'database': os.environ.get('DATABASE_NAME'),
        })

    return {
        'client': os.environ.get('DATABASE_CLIENT'),
        'connection': connection
    }


def _require_string(config, key):
    if not isinstance(config.get(key), str):
        raise invalid_config_value(key, config.get(key))


def validate_backup_config(config):
    """
    Validate a backup configuration dict.

    Storage credentials are only checked for the selected storage service and
    dump executables only for the selected driver.

    Raises:
        ConfigError: On the first invalid value
    """
    if config.get('database_driver') not in DatabaseDriver.values():
        raise invalid_config_value('database_driver', config.get('database_driver'), DatabaseDriver.values())

    storage_service = config.get('storage_service')
    if storage_service not in StorageService.values():
        raise invalid_config_value('storage_service', storage_service, StorageService.values())

    if storage_service == StorageService.AWS_S3:
        for key in ('aws_access_key_id', 'aws_secret_access_key', 'aws_s3_bucket'):
            _require_string(config, key)
        if config.get('aws_region') is None and config.get('aws_s3_endpoint') is None:
            raise ConfigError('One of "aws_region" or "aws_s3_endpoint" must be set for aws-s3 storage.')
        for key in ('aws_region', 'aws_s3_endpoint'):
            if config.get(key) is not None:
                _require_string(config, key)
    elif storage_service == StorageService.AZURE_BLOB_STORAGE:
        for key in ('azure_storage_account_name', 'azure_storage_account_key', 'azure_storage_container_name'):
            _require_string(config, key)
    elif storage_service == StorageService.GCS:
        for key in ('gcs_key_filename', 'gcs_bucket_name'):
            _require_string(config, key)

    if not config.get('disable_database_backup'):
        executable_key = {
            DatabaseDriver.MYSQL.value: 'mysqldump_executable',
            DatabaseDriver.POSTGRES.value: 'pg_dump_executable',
            DatabaseDriver.SQLITE.value: 'sqlite3_executable',
        }[config['database_driver']]
        _require_string(config, executable_key)

    _require_string(config, 'cron_schedule')

    if config.get('allow_cleanup'):
        retention = config.get('time_to_keep_backups_in_seconds')
        if isinstance(retention, bool) or not isinstance(retention, (int, float)):
            raise invalid_config_value('time_to_keep_backups_in_seconds', retention)

    for key in ('custom_uploads_backup_filename', 'custom_database_backup_filename'):
        if config.get(key) is not None and not callable(config[key]):
            raise invalid_config_value(key, config[key])


class Config:
    """Base configuration"""

    # Scratch files live in TEMP_DIR/cms-backup
    TEMP_DIR = os.environ.get('TEMP_DIR') or tempfile.gettempdir()
    UPLOADS_DIR = os.environ.get('UPLOADS_DIR') or '/data/public/uploads'
    LOG_DIR = os.environ.get('LOG_DIR')
    LOG_LEVEL = os.environ.get('LOG_LEVEL')

    DATABASE = database_config_from_env()
    BACKUP = backup_config_from_env()

    # Scheduler
    SCHEDULER_ENABLED = _env_bool('SCHEDULER_ENABLED', True)
    SCHEDULER_TIMEZONE = 'UTC'

    # Check bucket/container access at startup
    BACKUP_CHECK_STORAGE = _env_bool('BACKUP_CHECK_STORAGE')


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True

    BASE_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    DATA_DIR = os.path.join(BASE_DIR, 'data')
    TEMP_DIR = os.path.join(DATA_DIR, 'temp')
    UPLOADS_DIR = os.path.join(DATA_DIR, 'uploads')
    LOG_DIR = os.path.join(DATA_DIR, 'logs')


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SCHEDULER_ENABLED = False
    LOG_DIR = None


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
    'default': ProductionConfig
}
