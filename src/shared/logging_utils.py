"""
Structured event logging for the caption pipeline.

Every event is a short ``area:event`` name plus ``custom_dimensions``, which
Application Insights stores as queryable properties. Dimensions that are None
are dropped so optional context does not show up as empty columns.
"""
import logging
import os
from typing import Any, Dict, Optional


LOGGER_NAME = "autocaption"

# Loggers of the client libraries the pipeline calls into
SDK_LOGGERS = ("azure", "openai", "httpx", "urllib3")

_LOGGER = logging.getLogger(LOGGER_NAME)


def _dimensions(request_id: Optional[str], dimensions: Dict[str, Any]) -> Dict[str, Any]:
    dims = {k: v for k, v in dimensions.items() if v is not None}
    if request_id:
        dims["requestId"] = request_id
    return dims


def log(level: int, request_id: Optional[str], event: str, **dimensions: Any) -> None:
    if _LOGGER.isEnabledFor(level):
        _LOGGER.log(level, event, extra={"custom_dimensions": _dimensions(request_id, dimensions)})


def info(request_id: Optional[str], event: str, **dimensions: Any) -> None:
    log(logging.INFO, request_id, event, **dimensions)


def warning(request_id: Optional[str], event: str, **dimensions: Any) -> None:
    log(logging.WARNING, request_id, event, **dimensions)


def error(request_id: Optional[str], event: str, **dimensions: Any) -> None:
    log(logging.ERROR, request_id, event, **dimensions)


def _level(name: Optional[str], default: int) -> int:
    level = getattr(logging, (name or "").upper(), None)
    return level if isinstance(level, int) else default


def configure_logging() -> None:
    """Apply log levels from AZURE_SDK_LOG_LEVEL and AUTOCAPTION_LOG_LEVEL."""
    sdk_level = os.getenv("AZURE_SDK_LOG_LEVEL")
    if sdk_level:
        for name in SDK_LOGGERS:
            logging.getLogger(name).setLevel(_level(sdk_level, logging.INFO))
    _LOGGER.setLevel(_level(os.getenv("AUTOCAPTION_LOG_LEVEL"), logging.INFO))
