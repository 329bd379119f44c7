"""
Unit tests for configuration (cmsbackup/config.py) and the app factory.
"""

import logging
import os

import pytest

from cmsbackup import configure_logging, create_app
from cmsbackup.config import (
    backup_config_from_env,
    database_config_from_env,
    validate_backup_config
)
from cmsbackup.exceptions import ConfigError
from cmsbackup.lifecycle import destroy
from cmsbackup.scheduler import get_scratch_dir


class TestValidateBackupConfig:
    """Test validate_backup_config."""

    def test_valid_config(self, backup_config):
        validate_backup_config(backup_config)

    def test_invalid_database_driver(self, backup_config):
        backup_config['database_driver'] = 'oracle'

        with pytest.raises(ConfigError) as exc_info:
            validate_backup_config(backup_config)

        assert str(exc_info.value) == (
            '"oracle" is not a valid cms-backup config "database_driver" value. '
            'Available values are : mysql, postgres, sqlite.'
        )

    def test_invalid_storage_service(self, backup_config):
        backup_config['storage_service'] = 'dropbox'

        with pytest.raises(ConfigError) as exc_info:
            validate_backup_config(backup_config)

        assert str(exc_info.value) == (
            '"dropbox" is not a valid cms-backup config "storage_service" value. '
            'Available values are : aws-s3, azure-blob-storage, gcs.'
        )

    def test_config_error_is_value_error(self, backup_config):
        backup_config['database_driver'] = None

        with pytest.raises(ValueError):
            validate_backup_config(backup_config)

    def test_missing_s3_bucket(self, backup_config):
        backup_config['aws_s3_bucket'] = None

        with pytest.raises(ConfigError, match='aws_s3_bucket'):
            validate_backup_config(backup_config)

    def test_s3_endpoint_without_region(self, backup_config):
        backup_config['aws_region'] = None
        backup_config['aws_s3_endpoint'] = 'http://minio:9000'

        validate_backup_config(backup_config)

    def test_s3_requires_region_or_endpoint(self, backup_config):
        backup_config['aws_region'] = None

        with pytest.raises(ConfigError, match='aws_region'):
            validate_backup_config(backup_config)

    def test_azure_requires_account_key(self, backup_config):
        backup_config.update({
            'storage_service': 'azure-blob-storage',
            'azure_storage_account_name': 'account',
            'azure_storage_container_name': 'backups',
        })

        with pytest.raises(ConfigError, match='azure_storage_account_key'):
            validate_backup_config(backup_config)

    def test_valid_gcs(self, backup_config):
        backup_config.update({
            'storage_service': 'gcs',
            'gcs_key_filename': '/secrets/key.json',
            'gcs_bucket_name': 'backups',
        })

        validate_backup_config(backup_config)

    def test_gcs_requires_bucket(self, backup_config):
        backup_config.update({'storage_service': 'gcs', 'gcs_key_filename': '/secrets/key.json'})

        with pytest.raises(ConfigError, match='gcs_bucket_name'):
            validate_backup_config(backup_config)

    def test_missing_executable(self, backup_config):
        backup_config['sqlite3_executable'] = None

        with pytest.raises(ConfigError, match='sqlite3_executable'):
            validate_backup_config(backup_config)

    def test_missing_executable_with_database_backup_disabled(self, backup_config):
        backup_config['sqlite3_executable'] = None
        backup_config['disable_database_backup'] = True

        validate_backup_config(backup_config)

    def test_only_selected_driver_executable_is_checked(self, backup_config):
        backup_config['mysqldump_executable'] = None

        validate_backup_config(backup_config)

    def test_missing_cron_schedule(self, backup_config):
        backup_config['cron_schedule'] = None

        with pytest.raises(ConfigError, match='cron_schedule'):
            validate_backup_config(backup_config)

    @pytest.mark.parametrize('retention', [None, '3600', True])
    def test_retention_must_be_a_number(self, backup_config, retention):
        backup_config['time_to_keep_backups_in_seconds'] = retention

        with pytest.raises(ConfigError, match='time_to_keep_backups_in_seconds'):
            validate_backup_config(backup_config)

    def test_retention_ignored_without_cleanup(self, backup_config):
        backup_config['allow_cleanup'] = False
        backup_config['time_to_keep_backups_in_seconds'] = None

        validate_backup_config(backup_config)

    def test_filename_hook_must_be_callable(self, backup_config):
        backup_config['custom_uploads_backup_filename'] = 'uploads'

        with pytest.raises(ConfigError, match='custom_uploads_backup_filename'):
            validate_backup_config(backup_config)


class TestConfigFromEnv:
    """Test environment variable parsing."""

    def test_backup_config(self, monkeypatch):
        monkeypatch.setenv('DATABASE_CLIENT', 'mysql')
        monkeypatch.setenv('STORAGE_SERVICE', 'aws-s3')
        monkeypatch.setenv('MYSQLDUMP_OPTIONS', '--single-transaction, --quick')
        monkeypatch.setenv('BACKUP_ALLOW_CLEANUP', 'true')
        monkeypatch.setenv('TIME_TO_KEEP_BACKUPS_IN_SECONDS', '86400')
        monkeypatch.setenv('DUMP_TIMEOUT_SECONDS', '90.5')
        monkeypatch.delenv('DISABLE_UPLOADS_BACKUP', raising=False)

        config = backup_config_from_env()

        assert config['database_driver'] == 'mysql'
        assert config['storage_service'] == 'aws-s3'
        assert config['mysqldump_options'] == ['--single-transaction', '--quick']
        assert config['allow_cleanup'] is True
        assert config['time_to_keep_backups_in_seconds'] == 86400
        assert config['dump_timeout_seconds'] == 90.5
        assert config['disable_uploads_backup'] is False

    def test_database_url(self, monkeypatch):
        monkeypatch.setenv('DATABASE_CLIENT', 'postgres')
        monkeypatch.setenv('DATABASE_URL', 'postgresql://u:p@h:5432/d')

        assert database_config_from_env() == {
            'client': 'postgres',
            'connection': {'connection_string': 'postgresql://u:p@h:5432/d'}
        }

    def test_database_filename(self, monkeypatch):
        monkeypatch.setenv('DATABASE_CLIENT', 'sqlite')
        monkeypatch.delenv('DATABASE_URL', raising=False)
        monkeypatch.setenv('DATABASE_FILENAME', '/data/app.db')

        assert database_config_from_env()['connection'] == {'filename': '/data/app.db'}


class TestCreateApp:
    """Test the application factory."""

    def test_creates_scratch_dir(self, app):
        assert os.path.isdir(get_scratch_dir(app))

    def test_health(self, app):
        response = app.test_client().get('/health')

        assert response.status_code == 200
        assert response.get_json() == {'status': 'healthy', 'jobs': []}

    def test_invalid_config(self, tmp_path, backup_config):
        backup_config['database_driver'] = 'oracle'

        with pytest.raises(ConfigError):
            create_app('testing', {'TEMP_DIR': str(tmp_path), 'BACKUP': backup_config})

    def test_overrides_do_not_leak_between_apps(self, app, backup_config):
        assert app.config['BACKUP'] is not backup_config
        assert app.config['BACKUP']['storage_service'] == 'aws-s3'

    def test_logging_handlers_are_replaced(self, app):
        configure_logging(app)
        configure_logging(app)

        own_handlers = [h for h in app.logger.handlers if getattr(h, '_cmsbackup', False)]
        assert len(own_handlers) == 1

    def test_log_level_from_config(self, app):
        app.config['LOG_LEVEL'] = 'warning'

        configure_logging(app)

        assert app.logger.level == logging.WARNING

    def test_destroy_removes_scratch_dir(self, app):
        destroy(app)

        assert not os.path.exists(get_scratch_dir(app))
