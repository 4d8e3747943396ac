"""
Turns unexpected exceptions into ``ApplicationError`` for the operation boundary.

Anything that is already an ``ApplicationError`` passes through untouched.
Everything else is logged once, with the action that hit it, and becomes a
500 that keeps the backend's own message.
"""
import logging
from typing import Any, Dict, Optional

from .domain import ApplicationError, ErrorCode


class OperationErrorHandler:
    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        *,
        base_context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.logger = logger or logging.getLogger("smile_cms.errors")
        self.base_context = dict(base_context or {})

    def convert(
        self,
        action: str,
        exc: Exception,
        *,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        extra: Optional[Dict[str, Any]] = None,
    ) -> ApplicationError:
        """Return ``exc`` as an ``ApplicationError``, logging it if it was unexpected."""
        if isinstance(exc, ApplicationError):
            return exc

        context: Dict[str, Any] = {"action": action, "error_type": type(exc).__name__}
        context.update(self.base_context)
        if extra:
            context.update(extra)

        self.logger.error("Unexpected failure during %s", action, exc_info=exc, extra={"context": context})
        return ApplicationError(str(exc) or f"Failed to {action}", error_code, 500, context)
