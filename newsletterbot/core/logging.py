"""Logging setup: console lines in development, JSON records in production."""
import logging
import logging.config
import sys
from typing import Any, Dict, Optional

from .settings import Settings, get_settings

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are noisy at INFO (httpx logs every request)
QUIET_LOGGERS = {
    "httpx": "WARNING",
    "uvicorn.access": "WARNING",
}


def _formatters(service_name: Optional[str]) -> Dict[str, Dict[str, str]]:
    service = f" {service_name}" if service_name else ""
    return {
        "json": {
            "class": "pythonjsonlogger.json.JsonFormatter",
            "format": f"%(asctime)s %(levelname)s{service} %(name)s %(message)s",
            "datefmt": DATE_FORMAT,
        },
        "console": {
            "format": f"%(asctime)s [%(levelname)s]{service} %(name)s: %(message)s",
            "datefmt": DATE_FORMAT,
        },
    }


def get_logging_config(service_name: Optional[str] = None, settings: Optional[Settings] = None) -> Dict[str, Any]:
    """
    Build the dictConfig for the service.

    Everything propagates to the root logger, which owns the single stdout
    handler; only the verbosity of chatty libraries is adjusted.
    """
    settings = settings or get_settings()
    formatter = "json" if settings.environment == "production" else "console"

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": _formatters(service_name),
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": formatter,
                "stream": sys.stdout,
            },
        },
        "loggers": {name: {"level": level} for name, level in QUIET_LOGGERS.items()},
        "root": {"level": settings.log_level, "handlers": ["console"]},
    }


def setup_logging(service_name: Optional[str] = None, settings: Optional[Settings] = None) -> None:
    logging.config.dictConfig(get_logging_config(service_name, settings))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
