"""
Uniform result shape for service operations.

Every public service operation is wrapped with :func:`operation`, so callers
always receive an :class:`OperationResult` and never an exception.
"""
import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from .errors import ApplicationError, ErrorCode, OperationErrorHandler

logger = logging.getLogger(__name__)
_error_handler = OperationErrorHandler(logger)


@dataclass
class OperationResult:
    success: bool
    data: Any = None
    error: Optional[str] = None
    status_code: int = 200
    error_code: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, data: Any = None, status_code: int = 200) -> "OperationResult":
        return cls(success=True, data=data, status_code=status_code)

    @classmethod
    def failed(cls, error: ApplicationError) -> "OperationResult":
        return cls(
            success=False,
            error=error.message,
            status_code=error.status_code,
            error_code=error.error_code.value,
            details=error.details,
        )

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success}
        if self.success:
            payload["data"] = self.data
        else:
            payload["error"] = self.error
        return payload


def operation(action: str, *, success_status: int = 200):
    """Wrap an async service method so it returns an ``OperationResult``.

    ``ApplicationError`` is converted as-is. Anything else is logged through
    ``OperationErrorHandler`` and surfaced as a 500 carrying the backend message.
    """

    def decorator(func: Callable[..., Awaitable[Any]]):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> OperationResult:
            try:
                data = await func(*args, **kwargs)
            except ApplicationError as exc:
                logger.info(
                    "Operation '%s' failed: %s",
                    action,
                    exc.message,
                    extra={"status_code": exc.status_code, "error_code": exc.error_code.value},
                )
                return OperationResult.failed(exc)
            except Exception as exc:
                return OperationResult.failed(_error_handler.convert(action, exc))
            if isinstance(data, OperationResult):
                return data
            return OperationResult.ok(data, status_code=success_status)

        return wrapper

    return decorator


def operation_response(result: OperationResult, *, envelope: bool = False) -> JSONResponse:
    """Translate an ``OperationResult`` into the HTTP response shape.

    Success returns the raw resource, or ``{success, data}`` when ``envelope``
    is set. Failure always returns ``{error, error_code, details}``.
    """
    if not result.success:
        return JSONResponse(
            status_code=result.status_code,
            content={
                "error": result.error,
                "error_code": result.error_code or ErrorCode.INTERNAL_ERROR.value,
                "details": jsonable_encoder(result.details),
            },
        )
    content = result.as_dict() if envelope else result.data
    return JSONResponse(status_code=result.status_code, content=jsonable_encoder(content))
