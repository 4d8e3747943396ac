"""
Error types raised across the API, and the JSON body they render to.
"""
from .database import DatabaseError, DocumentConflictError, DocumentNotFoundError, QueryError
from .domain import (
    AdminRequiredError,
    ApplicationError,
    AuthenticationError,
    ConflictError,
    ErrorCode,
    PermissionError,
    RateLimitError,
    ResourceNotFoundError,
    ValidationError,
)
from .handler import OperationErrorHandler
from .http import application_error_response
from .storage import BlobDeleteError, BlobUploadError, StorageError

__all__ = [
    "AdminRequiredError",
    "ApplicationError",
    "AuthenticationError",
    "BlobDeleteError",
    "BlobUploadError",
    "ConflictError",
    "DatabaseError",
    "DocumentConflictError",
    "DocumentNotFoundError",
    "ErrorCode",
    "OperationErrorHandler",
    "PermissionError",
    "QueryError",
    "RateLimitError",
    "ResourceNotFoundError",
    "StorageError",
    "ValidationError",
    "application_error_response",
]
