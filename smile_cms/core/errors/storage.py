"""
Azure Blob Storage failures for reward image objects.
"""
from typing import Any, Dict, List, Optional

from .domain import ApplicationError, ErrorCode, merge_details


class StorageError(ApplicationError):
    default_code = ErrorCode.EXTERNAL_SERVICE_ERROR
    default_status = 500


class BlobUploadError(StorageError):
    def __init__(self, blob_name: str, reason: Optional[str] = None, details: Optional[Dict[str, Any]] = None) -> None:
        message = f"Failed to upload blob '{blob_name}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, details=merge_details({"blob_name": blob_name}, details))


class BlobDeleteError(StorageError):
    """One or more objects could not be removed; ``blob_names`` lists them."""

    def __init__(
        self, blob_names: List[str], reason: Optional[str] = None, details: Optional[Dict[str, Any]] = None
    ) -> None:
        message = f"Failed to delete {len(blob_names)} blob(s)"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, details=merge_details({"blob_names": list(blob_names)}, details))
