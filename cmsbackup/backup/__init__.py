"""
Backup module for cms-backup.

This module handles the core backup functionality including:
- Dump command construction and execution (MySQL, PostgreSQL, SQLite)
- Compression
- Storage (S3, Azure Blob Storage, Google Cloud Storage)
- Execution orchestration and retention cleanup
"""

from .command import CommandBuilder, parse_command_option_string
from .dumpers import DatabaseDriver, create_database_dumper
from .storage import StorageService, create_storage_from_config
from .compression import create_archive
from .executor import BackupExecutor

__all__ = [
    'BackupExecutor',
    'CommandBuilder',
    'DatabaseDriver',
    'StorageService',
    'create_archive',
    'create_database_dumper',
    'create_storage_from_config',
    'parse_command_option_string'
]
