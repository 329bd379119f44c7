"""
Compression handlers for backup archives.

Archives are gzip compressed tarballs (.tar.gz).
"""

import os
import secrets
import tarfile
import time
from pathlib import Path


ARCHIVE_EXTENSION = 'tar.gz'


class CompressionError(Exception):
    """Raised when archive creation fails."""
    pass


def create_archive(source_path: str, archive_path: str) -> str:
    """
    Create a gzip compressed tar archive from a file or a directory.

    A directory is archived as its entries, so extracted paths are relative
    to it. A single file is archived by its name alone.

    Args:
        source_path: File or directory to archive
        archive_path: Full path of the archive to write

    Returns:
        archive_path

    Raises:
        CompressionError: If the source is missing or the archive cannot be written
    """
    source = Path(source_path)

    try:
        if source.is_dir():
            root = source
            entries = sorted(os.listdir(source))
        elif source.exists():
            root = source.parent
            entries = [source.name]
        else:
            raise FileNotFoundError(f"Path does not exist: {source_path}")

        with tarfile.open(archive_path, 'w:gz') as tar:
            for entry in entries:
                tar.add(root / entry, arcname=entry, recursive=True)

        return archive_path

    except Exception as e:
        # Clean up partial archive on failure
        if os.path.exists(archive_path):
            try:
                os.remove(archive_path)
            except OSError:
                pass
        raise CompressionError(f"Failed to create archive: {e}") from e


def create_tmp_filename(scratch_dir: str) -> str:
    """
    Generate a unique path inside the scratch directory.

    Format: {scratch_dir}/{epoch_millis}-{32 hex chars}
    """
    return os.path.join(scratch_dir, f"{int(time.time() * 1000)}-{secrets.token_hex(16)}")


def get_archive_size(archive_path: str) -> int:
    """
    Get the size of an archive file in bytes.

    Raises:
        CompressionError: If file doesn't exist or cannot be accessed
    """
    try:
        return os.path.getsize(archive_path)
    except FileNotFoundError as e:
        raise CompressionError(f"Archive not found: {archive_path}") from e
    except OSError as e:
        raise CompressionError(f"Failed to get archive size: {e}") from e
