"""
Unit tests for StorageService.

Tests cover credential selection, non-overwriting uploads, idempotent
removal and the container health probe, with the Azure clients mocked.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock, Mock, patch

from azure.core.exceptions import AzureError, ResourceNotFoundError

from smile_cms.core.errors import BlobDeleteError, BlobUploadError
from smile_cms.services.storage.blob_service import StorageService

ASYNC_CLIENT = "smile_cms.services.storage.blob_service.AsyncBlobClient"


@pytest.fixture
def storage_config(test_config):
    return test_config.model_copy(update={"azure_storage_key": "dGVzdC1zdG9yYWdlLWtleQ=="})


def async_blob_client(**methods) -> MagicMock:
    """A mocked aio BlobClient usable as ``async with``."""
    client = MagicMock()
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    for name, method in methods.items():
        setattr(client, name, method)
    return client


# ============================================================================
# Test StorageService Initialization
# ============================================================================

@pytest.mark.unit
class TestStorageServiceInitialization:

    def test_init_with_storage_key(self, storage_config):
        service = StorageService(storage_config)

        assert service.credential == storage_config.azure_storage_key
        assert service.container_name == "unit-images"

    def test_init_with_managed_identity(self, test_config):
        with patch("smile_cms.services.storage.blob_service.DefaultAzureCredential") as mock_cred:
            mock_cred.return_value = Mock()
            service = StorageService(test_config)

            assert isinstance(service.credential, Mock)
            mock_cred.assert_called_once()

    def test_public_url_points_into_images_container(self, storage_config):
        service = StorageService(storage_config)

        url = service.get_public_url("unit-1/small_prize/abc.jpg")

        assert url == "https://teststorage.blob.core.windows.net/unit-images/unit-1/small_prize/abc.jpg"


# ============================================================================
# Test Uploads
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestUploadBytes:

    async def test_upload_never_overwrites(self, storage_config):
        service = StorageService(storage_config)
        client = async_blob_client(upload_blob=AsyncMock())

        with patch(ASYNC_CLIENT, return_value=client) as mock_client_cls:
            path = await service.upload_bytes("unit-1/top_prize/a.png", b"data", "image/png")

        assert path == "unit-1/top_prize/a.png"
        assert mock_client_cls.call_args.kwargs["blob_name"] == "unit-1/top_prize/a.png"
        args, kwargs = client.upload_blob.call_args
        assert args == (b"data",)
        assert kwargs["overwrite"] is False
        assert kwargs["content_settings"].content_type == "image/png"

    async def test_azure_error_becomes_upload_error(self, storage_config):
        service = StorageService(storage_config)
        client = async_blob_client(upload_blob=AsyncMock(side_effect=AzureError("BlobAlreadyExists")))

        with patch(ASYNC_CLIENT, return_value=client):
            with pytest.raises(BlobUploadError) as exc_info:
                await service.upload_bytes("unit-1/top_prize/a.png", b"data", "image/png")

        assert "BlobAlreadyExists" in exc_info.value.message
        assert exc_info.value.details["blob_name"] == "unit-1/top_prize/a.png"


# ============================================================================
# Test Removal
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestRemove:

    async def test_missing_objects_count_as_removed(self, storage_config):
        service = StorageService(storage_config)
        client = async_blob_client(delete_blob=AsyncMock(side_effect=ResourceNotFoundError("gone")))

        with patch(ASYNC_CLIENT, return_value=client):
            await service.remove(["a.jpg", "b.jpg"])

        assert client.delete_blob.await_count == 2

    async def test_empty_paths_are_skipped(self, storage_config):
        service = StorageService(storage_config)

        with patch(ASYNC_CLIENT) as mock_client_cls:
            await service.remove(["", None])

        mock_client_cls.assert_not_called()

    async def test_failures_are_collected_after_trying_every_path(self, storage_config):
        service = StorageService(storage_config)
        ok = async_blob_client(delete_blob=AsyncMock())
        broken = async_blob_client(delete_blob=AsyncMock(side_effect=AzureError("denied")))

        with patch(ASYNC_CLIENT, side_effect=[broken, ok]):
            with pytest.raises(BlobDeleteError) as exc_info:
                await service.remove(["a.jpg", "b.jpg"])

        assert exc_info.value.details["blob_names"] == ["a.jpg"]
        ok.delete_blob.assert_awaited_once()


# ============================================================================
# Test Health Probe
# ============================================================================

@pytest.mark.unit
class TestIsAvailable:

    def test_reachable_container(self, storage_config):
        service = StorageService(storage_config)
        service.blob_service_client = Mock()

        assert service.is_available() is True
        service.blob_service_client.get_container_client.assert_called_once_with("unit-images")

    def test_unreachable_container(self, storage_config):
        service = StorageService(storage_config)
        service.blob_service_client = Mock()
        service.blob_service_client.get_container_client.return_value.get_container_properties.side_effect = (
            AzureError("connection refused")
        )

        assert service.is_available() is False
