"""
Shared pytest fixtures for cms-backup tests.

This module provides fixtures for:
- Flask app with a valid backup configuration
- Backup configuration dicts
- Mock fixtures for external services (S3, storage handlers)
- Temporary file fixtures
"""

import os
from unittest.mock import MagicMock, patch

import pytest
import boto3
from moto import mock_aws

# Fake credentials so boto3 never picks up real ones
os.environ.setdefault('AWS_ACCESS_KEY_ID', 'testing')
os.environ.setdefault('AWS_SECRET_ACCESS_KEY', 'testing')
os.environ.setdefault('AWS_DEFAULT_REGION', 'us-east-1')

from cmsbackup import create_app
from cmsbackup.backup.storage import BaseStorage
from cmsbackup.lifecycle import destroy


@pytest.fixture
def backup_config():
    """A valid backup configuration using SQLite and S3."""
    return {
        'database_driver': 'sqlite',
        'storage_service': 'aws-s3',
        'mysqldump_executable': '/usr/bin/mysqldump',
        'mysqldump_options': [],
        'pg_dump_executable': '/usr/bin/pg_dump',
        'pg_dump_options': [],
        'sqlite3_executable': '/usr/bin/sqlite3',
        'dump_timeout_seconds': None,
        'aws_access_key_id': 'test_access_key',
        'aws_secret_access_key': 'test_secret_key',
        'aws_region': 'us-east-1',
        'aws_s3_endpoint': None,
        'aws_s3_bucket': 'test-bucket',
        'azure_storage_account_name': None,
        'azure_storage_account_key': None,
        'azure_storage_container_name': None,
        'gcs_key_filename': None,
        'gcs_bucket_name': None,
        'disable_uploads_backup': False,
        'disable_database_backup': False,
        'allow_cleanup': True,
        'time_to_keep_backups_in_seconds': 3600,
        'cron_schedule': '0 3 * * *',
        'cleanup_cron_schedule': None,
        'custom_uploads_backup_filename': None,
        'custom_database_backup_filename': None,
    }


@pytest.fixture
def app(tmp_path, backup_config):
    """
    Create Flask app with test configuration.

    Scratch and uploads directories live under tmp_path.
    """
    uploads_dir = tmp_path / 'uploads'
    uploads_dir.mkdir()
    (uploads_dir / 'image.png').write_bytes(b'\x89PNG fake image')

    app = create_app('testing', {
        'TEMP_DIR': str(tmp_path / 'temp'),
        'UPLOADS_DIR': str(uploads_dir),
        'DATABASE': {
            'client': 'sqlite',
            'connection': {'filename': str(tmp_path / 'data.db')}
        },
        'BACKUP': backup_config,
    })

    yield app

    destroy(app)


@pytest.fixture
def scratch_dir(tmp_path):
    """Empty scratch directory."""
    path = tmp_path / 'scratch'
    path.mkdir()
    return path


@pytest.fixture
def mock_storage():
    """Storage handler double recording put/list/delete calls."""
    storage = MagicMock(spec=BaseStorage)
    storage.list.return_value = []
    return storage


@pytest.fixture
def mock_s3():
    """
    Mock AWS S3 service using moto.

    Creates a test bucket 'test-bucket' in us-east-1 region.
    """
    with mock_aws():
        s3 = boto3.resource('s3', region_name='us-east-1')
        s3.create_bucket(Bucket='test-bucket')

        yield s3


@pytest.fixture
def temp_files(tmp_path):
    """
    Create temporary test files and directories.

    Creates:
    - source/test_file1.txt
    - source/test_file2.log
    - source/nested/test_file3.txt
    """
    source = tmp_path / 'source'
    source.mkdir()
    (source / 'test_file1.txt').write_text('Test content 1')
    (source / 'test_file2.log').write_text('Test log content')

    nested_dir = source / 'nested'
    nested_dir.mkdir()
    (nested_dir / 'test_file3.txt').write_text('Nested test content')

    return source


@pytest.fixture
def mock_scheduler():
    """
    Mock APScheduler for testing scheduler functionality.
    """
    with patch('cmsbackup.scheduler.BackgroundScheduler') as mock_sched:
        scheduler_instance = MagicMock()
        mock_sched.return_value = scheduler_instance

        scheduler_instance.running = False
        scheduler_instance.get_jobs.return_value = []

        yield mock_sched
