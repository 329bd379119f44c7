"""
Unit tests for compression module (cmsbackup/backup/compression.py).
"""

import os
import re
import tarfile

import pytest

from cmsbackup.backup.compression import (
    CompressionError,
    create_archive,
    create_tmp_filename,
    get_archive_size
)


class TestCreateArchive:
    """Test create_archive for directories and single files."""

    def test_directory_entries_are_relative_to_directory(self, temp_files, tmp_path):
        archive_path = str(tmp_path / 'dir_archive')

        result = create_archive(str(temp_files), archive_path)

        assert result == archive_path
        with tarfile.open(archive_path, 'r:gz') as tar:
            names = sorted(tar.getnames())
        assert names == ['nested', 'nested/test_file3.txt', 'test_file1.txt', 'test_file2.log']

    def test_single_file_is_archived_by_name(self, temp_files, tmp_path):
        archive_path = str(tmp_path / 'file_archive')

        create_archive(str(temp_files / 'test_file1.txt'), archive_path)

        with tarfile.open(archive_path, 'r:gz') as tar:
            members = tar.getmembers()
            assert [member.name for member in members] == ['test_file1.txt']
            assert tar.extractfile(members[0]).read() == b'Test content 1'

    def test_empty_directory(self, tmp_path):
        source = tmp_path / 'empty'
        source.mkdir()
        archive_path = str(tmp_path / 'empty_archive')

        create_archive(str(source), archive_path)

        with tarfile.open(archive_path, 'r:gz') as tar:
            assert tar.getnames() == []

    def test_missing_source_raises(self, tmp_path):
        archive_path = tmp_path / 'archive'

        with pytest.raises(CompressionError) as exc_info:
            create_archive(str(tmp_path / 'missing'), str(archive_path))

        assert isinstance(exc_info.value.__cause__, FileNotFoundError)
        assert not archive_path.exists()

    def test_unwritable_destination_raises(self, temp_files, tmp_path):
        with pytest.raises(CompressionError):
            create_archive(str(temp_files), str(tmp_path / 'missing_dir' / 'archive'))


class TestCreateTmpFilename:
    """Test scratch filename generation."""

    def test_inside_scratch_dir(self, scratch_dir):
        path = create_tmp_filename(str(scratch_dir))

        assert os.path.dirname(path) == str(scratch_dir)
        assert re.fullmatch(r'\d+-[0-9a-f]{32}', os.path.basename(path))

    def test_unique(self, scratch_dir):
        paths = {create_tmp_filename(str(scratch_dir)) for _ in range(100)}

        assert len(paths) == 100


class TestGetArchiveSize:
    """Test get_archive_size."""

    def test_size(self, tmp_path):
        archive = tmp_path / 'archive.tar.gz'
        archive.write_bytes(b'x' * 1234)

        assert get_archive_size(str(archive)) == 1234

    def test_missing_archive(self, tmp_path):
        with pytest.raises(CompressionError):
            get_archive_size(str(tmp_path / 'missing.tar.gz'))
