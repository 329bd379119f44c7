"""
Backup executor - orchestrates the backup and cleanup workflows.

Backup workflow:
1. Dump the database to a scratch file (database backups only)
2. Create a compressed archive in the scratch directory
3. Upload the archive to the configured storage
4. Remove scratch files

Cleanup workflow:
1. List stored backups
2. Select those older than the retention window
3. Delete them in one batch
"""

import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from cmsbackup.log import BackupLog
from .compression import ARCHIVE_EXTENSION, create_archive, create_tmp_filename, get_archive_size
from .dumpers import create_database_dumper
from .storage import BaseStorage, create_storage_from_config
from .utils import create_connection_from_host_db_config, date_diff_in_seconds


class BackupExecutor:
    """
    Runs backups and retention cleanup against one storage backend.

    Each call is a one-shot sequential pipeline; errors propagate to the caller.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        db_config: Dict[str, Any],
        scratch_dir: str,
        log: Optional[BackupLog] = None,
        storage: Optional[BaseStorage] = None
    ):
        """
        Initialize backup executor.

        Args:
            config: Backup configuration dict
            db_config: Host database configuration ('client' and 'connection')
            scratch_dir: Directory for temporary dump and archive files
            log: Log service, defaults to the 'cmsbackup' logger
            storage: Storage handler, built from config when omitted
        """
        self.config = config
        self.db_config = db_config
        self.scratch_dir = scratch_dir
        self.log = log or BackupLog()
        self.storage = storage or create_storage_from_config(config)

    def backup_file(self, file_path: str, backup_filename: str) -> str:
        """
        Archive a file or directory and upload it.

        Args:
            file_path: File or directory to back up
            backup_filename: Name of the backup, without extension

        Returns:
            Storage key of the uploaded archive

        Raises:
            CompressionError: If the archive cannot be created
            StorageError: If the upload fails
        """
        archive_path = create_tmp_filename(self.scratch_dir)
        key = f"{backup_filename}.{ARCHIVE_EXTENSION}"

        try:
            self._log(f"Creating archive of {file_path}")
            create_archive(file_path, archive_path)
            size = get_archive_size(archive_path)
            self._log(f"Archive created ({size / 1024 / 1024:.2f} MB), uploading as {key}")

            with open(archive_path, 'rb') as content:
                self.storage.put(content, key)
        finally:
            self._remove_scratch_file(archive_path)

        return key

    def backup_database(self, backup_filename: str) -> str:
        """
        Dump the host database, then archive and upload the dump.

        Args:
            backup_filename: Name of the backup, without extension

        Returns:
            Storage key of the uploaded archive

        Raises:
            ConfigError: If the database client is not supported
            DumpError: If the dump tool fails
            CompressionError, StorageError: As for backup_file
        """
        connection = create_connection_from_host_db_config(self.db_config)
        dumper = create_database_dumper(self.config, connection)
        dump_path = create_tmp_filename(self.scratch_dir)

        try:
            self._log(f"Dumping {connection.driver} database")
            dumper.dump(dump_path)
            return self.backup_file(dump_path, backup_filename)
        finally:
            self._remove_scratch_file(dump_path)

    def cleanup(self, now: Optional[datetime] = None) -> List[str]:
        """
        Delete stored backups older than the retention window.

        A backup whose age equals the window is deleted.

        Args:
            now: Reference time, defaults to the current UTC time

        Returns:
            Names of the deleted backups

        Raises:
            StorageError: If listing or deleting fails
        """
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        time_to_keep = self.config['time_to_keep_backups_in_seconds']

        backups = self.storage.list()
        names_to_delete = [
            backup.name for backup in backups
            if date_diff_in_seconds(backup.date, now) >= time_to_keep
        ]

        self._log(f"Deleting {len(names_to_delete)} of {len(backups)} backups")
        self.storage.delete(names_to_delete)

        return names_to_delete

    def _remove_scratch_file(self, path: str):
        if os.path.exists(path):
            os.remove(path)

    def _log(self, message: str):
        self.log.debug(message)
