import logging
from typing import Iterable, List, Optional, Union

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.identity import DefaultAzureCredential
from azure.storage.blob import BlobServiceClient, ContentSettings
from azure.storage.blob.aio import BlobClient as AsyncBlobClient

from ...core.config import AppConfig
from ...core.errors import BlobDeleteError, BlobUploadError


class StorageService:
    """Object store for reward images, backed by one Azure Blob container."""

    def __init__(self, config: AppConfig):
        self.config = config
        self.logger = logging.getLogger(__name__)
        self.container_name = config.azure_storage_images_container

        # Prefer key-based authentication for local development
        # Falls back to managed identity for cloud deployment
        if config.azure_storage_key:
            self.logger.info("Using Azure Storage key-based authentication")
            self.credential: Union[str, DefaultAzureCredential] = config.azure_storage_key
        else:
            self.logger.info("Using Azure Storage managed identity authentication")
            self.credential = DefaultAzureCredential()

        self.blob_service_client = BlobServiceClient(
            account_url=self.config.azure_storage_account_url, credential=self.credential
        )

    def _async_blob_client(self, object_path: str) -> AsyncBlobClient:
        return AsyncBlobClient(
            account_url=self.config.azure_storage_account_url,
            container_name=self.container_name,
            blob_name=object_path,
            credential=self.credential,
        )

    async def upload_bytes(self, object_path: str, data: bytes, content_type: Optional[str] = None) -> str:
        """
        Write ``data`` under ``object_path`` without overwriting.

        The write runs on the async client so the awaiting task can be
        cancelled before the blob commits.

        Returns:
            str: The stored object path.

        Raises:
            BlobUploadError: If the store rejects the write.
        """
        self.logger.info(f"Uploading image to blob storage: {object_path}")
        try:
            async with self._async_blob_client(object_path) as blob_client:
                await blob_client.upload_blob(
                    data,
                    overwrite=False,
                    content_settings=ContentSettings(content_type=content_type, cache_control="max-age=3600"),
                )
        except AzureError as e:
            self.logger.error(f"Azure storage error: {str(e)}")
            raise BlobUploadError(object_path, getattr(e, "message", None) or str(e)) from e
        return object_path

    def get_public_url(self, object_path: str) -> str:
        """Resolve the public URL of a stored object."""
        container_client = self.blob_service_client.get_container_client(self.container_name)
        return container_client.get_blob_client(object_path).url

    async def remove(self, object_paths: Iterable[str]) -> None:
        """
        Delete objects. Missing objects count as already removed.

        Raises:
            BlobDeleteError: If any delete fails for another reason.
        """
        paths: List[str] = [p for p in object_paths if p]
        failed: List[str] = []
        reason = None
        for path in paths:
            try:
                async with self._async_blob_client(path) as blob_client:
                    await blob_client.delete_blob()
            except ResourceNotFoundError:
                self.logger.debug(f"Blob already gone: {path}")
            except AzureError as e:
                self.logger.error(f"Failed to delete blob {path}: {str(e)}")
                failed.append(path)
                reason = str(e)
        if failed:
            raise BlobDeleteError(failed, reason)

    def is_available(self) -> bool:
        """Lightweight health probe for the images container."""
        try:
            self.blob_service_client.get_container_client(self.container_name).get_container_properties()
            return True
        except AzureError as e:
            self.logger.warning(f"Blob storage health check failed: {str(e)}")
            return False
