"""
Cosmos DB failures, raised by ``CosmosService`` in place of SDK exceptions.

Callers can tell "no such record" apart from "the backend failed" without
importing anything from ``azure.cosmos``.
"""
from typing import Any, Dict, Optional

from .domain import ApplicationError, ErrorCode, merge_details


class DatabaseError(ApplicationError):
    default_code = ErrorCode.EXTERNAL_SERVICE_ERROR
    default_status = 500


class DocumentNotFoundError(DatabaseError):
    default_code = ErrorCode.RESOURCE_NOT_FOUND
    default_status = 404

    def __init__(self, container: str, document_id: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            f"Document '{document_id}' not found in '{container}'",
            details=merge_details({"container": container, "document_id": document_id}, details),
        )


class DocumentConflictError(DatabaseError):
    """A create collided with an existing document id."""

    default_code = ErrorCode.RESOURCE_CONFLICT
    default_status = 409

    def __init__(
        self, container: str, document_id: Optional[str] = None, details: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(
            f"Document already exists in '{container}'",
            details=merge_details({"container": container, "document_id": document_id}, details),
        )


class QueryError(DatabaseError):
    """The backend rejected or failed a request. ``reason`` is its own message."""

    def __init__(
        self,
        container: str,
        reason: str,
        backend_status: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            reason,
            details=merge_details({"container": container, "backend_status": backend_status}, details),
        )
