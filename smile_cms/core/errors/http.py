from typing import Dict, Optional

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from .domain import ApplicationError


def application_error_response(error: ApplicationError, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    """Render ``{error, error_code, details}`` with the error's own status."""
    return JSONResponse(status_code=error.status_code, content=jsonable_encoder(error.as_dict()), headers=headers)
