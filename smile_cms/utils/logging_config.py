"""
Process-wide logging setup for the API.
"""
import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# SDK loggers that log every HTTP round trip at INFO
QUIET_LOGGERS = {
    "azure": logging.WARNING,
    "azure.core.pipeline.policies.http_logging_policy": logging.WARNING,
    "azure.identity": logging.WARNING,
    "urllib3": logging.WARNING,
    "passlib": logging.ERROR,
}


def _level(name: Optional[str], default: int = logging.INFO) -> int:
    if not name:
        return default
    return getattr(logging, name.upper(), default)


def setup_application_logging(level: str = "INFO", force_flush: bool = True) -> logging.Logger:
    """
    Send every log record to stdout in one format and quieten the Azure SDKs.

    ``force_flush`` switches stdout to line buffering so container log
    collectors see records as they are written.
    """
    logging.basicConfig(
        level=_level(level),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(quiet_level)

    if force_flush and hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(line_buffering=True)

    logger = logging.getLogger("smile_cms")
    logger.info("Logging configured at %s", level.upper())
    return logger


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    logger = logging.getLogger(name)
    if level:
        logger.setLevel(_level(level))
    return logger
