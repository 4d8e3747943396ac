"""
Storage Services

Azure Blob storage for reward image objects.
"""

from .blob_service import StorageService

__all__ = [
    'StorageService',
]
