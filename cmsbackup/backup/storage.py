"""
Storage handlers for backup archives.

Supports:
- S3Storage: AWS S3 and S3-compatible endpoints
- AzureBlobStorage: Azure Blob Storage container
- GCSStorage: Google Cloud Storage bucket

Every handler exposes put/list/delete. Deleting a batch always attempts every
name and raises StorageError afterwards if any of them failed.
"""

from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, BinaryIO, Dict, List, Optional

import boto3
from botocore.exceptions import ClientError, BotoCoreError
from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.storage.blob import BlobServiceClient
from google.api_core.exceptions import GoogleAPIError, NotFound
from google.cloud import storage as gcs

from cmsbackup.exceptions import invalid_config_value


class StorageService(str, Enum):
    AWS_S3 = 'aws-s3'
    AZURE_BLOB_STORAGE = 'azure-blob-storage'
    GCS = 'gcs'

    @classmethod
    def values(cls) -> List[str]:
        return [service.value for service in cls]


class StorageError(Exception):
    """Raised when storage operation fails."""
    pass


@dataclass(frozen=True)
class BackupObject:
    """A stored backup archive and its last-modified time (UTC)."""

    name: str
    date: datetime

    @classmethod
    def create(cls, name: str, date: datetime) -> 'BackupObject':
        if date.tzinfo is None:
            date = date.replace(tzinfo=timezone.utc)
        return cls(name=name, date=date.astimezone(timezone.utc))


def _raise_for_failed_deletes(failures: Dict[str, str]):
    if failures:
        details = '; '.join(f"{name}: {error}" for name, error in failures.items())
        raise StorageError(f"Failed to delete {len(failures)} backup(s): {details}")


class BaseStorage(ABC):
    """Common interface of the storage handlers."""

    @abstractmethod
    def put(self, content: BinaryIO, name: str):
        """
        Upload content under the given name, overwriting any existing object.

        Args:
            content: Readable binary stream
            name: Object key / blob name
        """

    @abstractmethod
    def list(self) -> List[BackupObject]:
        """List every stored object, following pagination to the end."""

    @abstractmethod
    def delete(self, names: List[str]):
        """Delete a batch of objects. An empty batch is a no-op."""

    @abstractmethod
    def test_connection(self) -> bool:
        """Check that the bucket or container is reachable."""


class S3Storage(BaseStorage):
    """
    Handler for AWS S3 and S3-compatible object storage.

    Either a region or a custom endpoint (MinIO, Scaleway, ...) may be given.
    """

    PAGE_SIZE = 1000
    DELETE_BATCH_SIZE = 1000

    def __init__(self, bucket_name: str, access_key: str, secret_key: str,
                 region: Optional[str] = None, endpoint: Optional[str] = None):
        """
        Initialize S3 storage handler.

        Args:
            bucket_name: S3 bucket name
            access_key: AWS access key ID
            secret_key: AWS secret access key
            region: AWS region
            endpoint: Custom endpoint URL for S3-compatible services
        """
        self.bucket_name = bucket_name
        self.region = region
        self.endpoint = endpoint

        try:
            self.s3_client = boto3.client(
                's3',
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                region_name=region,
                endpoint_url=endpoint
            )
        except Exception as e:
            raise StorageError(f"Failed to initialize S3 client: {e}") from e

    def put(self, content: BinaryIO, name: str):
        try:
            self.s3_client.put_object(
                Bucket=self.bucket_name,
                Key=name,
                Body=content
            )
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            raise StorageError(f"S3 upload failed ({error_code}): {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"S3 upload failed: {e}") from e

    def list(self) -> List[BackupObject]:
        try:
            objects = []
            paginator = self.s3_client.get_paginator('list_objects_v2')
            pages = paginator.paginate(
                Bucket=self.bucket_name,
                PaginationConfig={'PageSize': self.PAGE_SIZE}
            )

            for page in pages:
                for obj in page.get('Contents', []):
                    objects.append(BackupObject.create(obj['Key'], obj['LastModified']))

            return objects

        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            raise StorageError(f"S3 list failed ({error_code}): {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"S3 list failed: {e}") from e

    def delete(self, names: List[str]):
        failures = {}

        for start in range(0, len(names), self.DELETE_BATCH_SIZE):
            batch = names[start:start + self.DELETE_BATCH_SIZE]

            try:
                response = self.s3_client.delete_objects(
                    Bucket=self.bucket_name,
                    Delete={'Objects': [{'Key': name} for name in batch]}
                )
            except (ClientError, BotoCoreError) as e:
                for name in batch:
                    failures[name] = str(e)
                continue

            for error in response.get('Errors', []):
                failures[error.get('Key', '?')] = f"{error.get('Code')}: {error.get('Message')}"

        _raise_for_failed_deletes(failures)

    def test_connection(self) -> bool:
        try:
            self.s3_client.head_bucket(Bucket=self.bucket_name)
            return True
        except ClientError as e:
            error_code = e.response.get('Error', {}).get('Code', 'Unknown')
            if error_code == '404':
                raise StorageError(f"Bucket does not exist: {self.bucket_name}") from e
            elif error_code == '403':
                raise StorageError(f"Access denied to bucket: {self.bucket_name}") from e
            else:
                raise StorageError(f"S3 connection test failed ({error_code}): {e}") from e
        except BotoCoreError as e:
            raise StorageError(f"Failed to connect to S3: {e}") from e


class AzureBlobStorage(BaseStorage):
    """
    Handler for an Azure Blob Storage container, authenticated with a shared key.
    """

    # Blob batch requests accept at most 256 sub-requests
    DELETE_BATCH_SIZE = 256

    def __init__(self, account_name: str, account_key: str, container_name: str):
        """
        Initialize Azure Blob storage handler.

        Args:
            account_name: Storage account name
            account_key: Storage account shared key
            container_name: Container holding the backups
        """
        self.account_name = account_name
        self.container_name = container_name

        try:
            service_client = BlobServiceClient(
                account_url=f"https://{account_name}.blob.core.windows.net",
                credential={'account_name': account_name, 'account_key': account_key}
            )
            self.container_client = service_client.get_container_client(container_name)
        except Exception as e:
            raise StorageError(f"Failed to initialize Azure Blob client: {e}") from e

    def put(self, content: BinaryIO, name: str):
        try:
            self.container_client.upload_blob(name, content, overwrite=True)
        except AzureError as e:
            raise StorageError(f"Azure upload failed: {e}") from e

    def list(self) -> List[BackupObject]:
        try:
            blobs = []

            for page in self.container_client.list_blobs().by_page():
                for blob in page:
                    blobs.append(BackupObject.create(blob.name, blob.last_modified))

            return blobs

        except AzureError as e:
            raise StorageError(f"Azure list failed: {e}") from e

    def delete(self, names: List[str]):
        failures = {}

        for start in range(0, len(names), self.DELETE_BATCH_SIZE):
            batch = names[start:start + self.DELETE_BATCH_SIZE]

            try:
                responses = self.container_client.delete_blobs(*batch, raise_on_any_failure=False)
            except AzureError as e:
                for name in batch:
                    failures[name] = str(e)
                continue

            for name, response in zip(batch, responses):
                # 404: already gone
                if response.status_code not in (202, 404):
                    failures[name] = f"HTTP {response.status_code} {response.reason}"

        _raise_for_failed_deletes(failures)

    def test_connection(self) -> bool:
        try:
            self.container_client.get_container_properties()
            return True
        except ResourceNotFoundError as e:
            raise StorageError(f"Container does not exist: {self.container_name}") from e
        except AzureError as e:
            raise StorageError(f"Azure connection test failed: {e}") from e


class GCSStorage(BaseStorage):
    """
    Handler for a Google Cloud Storage bucket, authenticated with a service
    account key file.

    GCS has no batch delete in its object API: deletes are issued one per
    name on a thread pool and joined before returning.
    """

    PAGE_SIZE = 1000
    DELETE_WORKERS = 8

    def __init__(self, key_filename: str, bucket_name: str):
        """
        Initialize GCS storage handler.

        Args:
            key_filename: Path to the service account JSON key
            bucket_name: GCS bucket name
        """
        self.bucket_name = bucket_name

        try:
            self.client = gcs.Client.from_service_account_json(key_filename)
            self.bucket = self.client.bucket(bucket_name)
        except Exception as e:
            raise StorageError(f"Failed to initialize GCS client: {e}") from e

    def put(self, content: BinaryIO, name: str):
        try:
            self.bucket.blob(name).upload_from_file(content)
        except GoogleAPIError as e:
            raise StorageError(f"GCS upload failed: {e}") from e

    def list(self) -> List[BackupObject]:
        try:
            blobs = []
            iterator = self.client.list_blobs(self.bucket_name, page_size=self.PAGE_SIZE)

            for page in iterator.pages:
                for blob in page:
                    blobs.append(BackupObject.create(blob.name, blob.updated))

            return blobs

        except GoogleAPIError as e:
            raise StorageError(f"GCS list failed: {e}") from e

    def _delete_one(self, name: str) -> Optional[str]:
        try:
            self.bucket.blob(name).delete()
        except NotFound:
            return None
        except GoogleAPIError as e:
            return str(e)
        return None

    def delete(self, names: List[str]):
        if not names:
            return

        with ThreadPoolExecutor(max_workers=min(self.DELETE_WORKERS, len(names))) as pool:
            results = list(pool.map(self._delete_one, names))

        failures = {name: error for name, error in zip(names, results) if error}
        _raise_for_failed_deletes(failures)

    def test_connection(self) -> bool:
        try:
            self.bucket.reload()
            return True
        except NotFound as e:
            raise StorageError(f"Bucket does not exist: {self.bucket_name}") from e
        except GoogleAPIError as e:
            raise StorageError(f"GCS connection test failed: {e}") from e


def create_storage_from_config(config: Dict[str, Any]) -> BaseStorage:
    """
    Factory function to create the storage handler selected in configuration.

    Args:
        config: Backup configuration dict

    Returns:
        S3Storage, AzureBlobStorage or GCSStorage instance

    Raises:
        ConfigError: If storage_service is not supported
    """
    storage_service = config.get('storage_service')

    if storage_service == StorageService.AWS_S3:
        return S3Storage(
            bucket_name=config.get('aws_s3_bucket'),
            access_key=config.get('aws_access_key_id'),
            secret_key=config.get('aws_secret_access_key'),
            region=config.get('aws_region'),
            endpoint=config.get('aws_s3_endpoint')
        )
    elif storage_service == StorageService.AZURE_BLOB_STORAGE:
        return AzureBlobStorage(
            account_name=config.get('azure_storage_account_name'),
            account_key=config.get('azure_storage_account_key'),
            container_name=config.get('azure_storage_container_name')
        )
    elif storage_service == StorageService.GCS:
        return GCSStorage(
            key_filename=config.get('gcs_key_filename'),
            bucket_name=config.get('gcs_bucket_name')
        )

    raise invalid_config_value('storage_service', storage_service, StorageService.values())
