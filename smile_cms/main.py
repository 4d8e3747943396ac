import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from dotenv import load_dotenv

# Load environment variables early
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException

from .core.config import get_config
from .core.errors import (
    ApplicationError,
    AuthenticationError,
    ErrorCode,
    PermissionError,
    RateLimitError,
    ResourceNotFoundError,
    ValidationError,
    application_error_response,
)
from .middleware.rate_limit_middleware import RateLimitMiddleware
from .routers.auth import auth_router
from .routers.dashboard import overview_router
from .routers.schedule import scheduling_router
from .routers.stock import inventory_router
from .routers.system import system_router
from .routers.units import unit_router
from .routers.users import user_router
from .utils.logging_config import setup_application_logging

config = get_config()
logger = setup_application_logging(level=config.log_level, force_flush=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "Starting %s %s",
        config.app_name,
        config.app_version,
        extra={"environment": config.environment},
    )

    from .core.dependencies import get_authentication_service, get_cosmos_service

    cosmos_service = get_cosmos_service()
    if not cosmos_service.is_available():
        logger.warning("AZURE_COSMOS_ENDPOINT is not set; every data request will fail until it is configured")
    else:
        # Warm the cached providers so the first request does not pay for client setup
        get_authentication_service()
        logger.info("Core services warmed")

    yield

    logger.info("Shutting down %s", config.app_name)


app = FastAPI(
    title=config.app_name,
    version=config.app_version,
    lifespan=lifespan,
)

def resolve_cors(origins: List[str], environment: str) -> Tuple[List[str], Optional[str]]:
    """
    Return ``(allow_origins, allow_origin_regex)`` for the dashboard.

    Credentials are allowed, so a literal ``*`` can never be sent back. In
    development a wildcard echoes the caller's Origin instead; in production
    it is a fatal misconfiguration.
    """
    if "*" not in origins:
        return origins, None
    if environment.lower() in ("production", "prod"):
        logger.critical("CORS_ORIGINS contains '*' in production; set it to the dashboard domain(s)")
        sys.exit(1)
    logger.warning("CORS_ORIGINS contains '*'; echoing any Origin (development only)")
    return [], r".*"


cors_origins, cors_origin_regex = resolve_cors(config.cors_origins_list, config.environment)

# Rate limiting sits inside CORS so 429 responses still carry CORS headers
app.add_middleware(RateLimitMiddleware, config=config)
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_origin_regex=cors_origin_regex,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Requested-With"],
)

# Include routers
app.include_router(auth_router)
app.include_router(unit_router)
app.include_router(overview_router)
app.include_router(user_router)
app.include_router(scheduling_router)
app.include_router(inventory_router)
app.include_router(system_router)


@app.exception_handler(ApplicationError)
async def handle_application_error(request: Request, exc: ApplicationError):
    headers = None
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.retry_after)}
    return application_error_response(exc, headers=headers)


@app.exception_handler(RequestValidationError)
async def handle_request_validation_error(request: Request, exc: RequestValidationError):
    fields = [
        {
            "field": ".".join(str(part) for part in err.get("loc", ()) if part != "body"),
            "message": err.get("msg"),
        }
        for err in exc.errors()
    ]
    logger.info("Request validation failed", extra={"path": request.url.path, "fields": fields})
    return application_error_response(
        ValidationError("Request validation failed", details={"fields": fields})
    )


@app.exception_handler(HTTPException)
async def handle_http_exception(request: Request, exc: HTTPException):
    """Starlette and FastAPI HTTP errors (unknown route, wrong method) in the API error shape."""
    logger.info("HTTP error", extra={"path": request.url.path, "status_code": exc.status_code})

    if exc.status_code == 401:
        error: ApplicationError = AuthenticationError()
    elif exc.status_code == 403:
        error = PermissionError()
    elif exc.status_code == 404:
        error = ResourceNotFoundError("Route", request.url.path)
    elif exc.status_code < 500:
        error = ApplicationError(str(exc.detail or "Bad request"), ErrorCode.INVALID_INPUT, exc.status_code)
    else:
        error = ApplicationError("Internal server error", ErrorCode.INTERNAL_ERROR, exc.status_code)
    return application_error_response(error, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
async def handle_unexpected_exception(request: Request, exc: Exception):
    logger.exception(
        "Unhandled exception",
        extra={"path": str(request.url)},
    )

    error = ApplicationError(
        "Internal server error",
        ErrorCode.INTERNAL_ERROR,
        status_code=500,
        details={"path": request.url.path},
    )
    return application_error_response(error)


@app.get("/")
async def root():
    """Service banner and route index."""
    return {
        "name": config.app_name,
        "description": "Reward image and prize stock management for Smile Meter units",
        "version": config.app_version,
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": config.environment,
        "endpoints": {
            "authentication": {
                "login": "POST /api/auth/login",
                "me": "GET /api/auth/me",
            },
            "units": {
                "list": "GET /api/units",
                "get": "GET /api/units/{unit_id}",
                "images": "GET /api/units/{unit_id}/images",
                "upload": "POST /api/units/{unit_id}/images",
                "cancel_upload": "POST /api/uploads/{upload_id}/cancel",
                "stock": "GET /api/units/{unit_id}/stock",
            },
            "dashboard": {
                "overview": "GET /api/dashboard",
            },
            "users": {
                "list": "GET /api/users",
            },
            "schedule": {
                "list": "GET /api/schedule",
            },
            "device": {
                "status": "GET /api/unit/{unit_id}/status",
            },
            "system": {
                "health": "GET /api/system/health",
            },
        },
        "documentation": "/docs",
        "health_check": "/api/system/health",
    }
