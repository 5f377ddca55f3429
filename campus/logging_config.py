"""
Logging setup for the session API.

Uvicorn and the ``campus`` package log to stdout through ``dictConfig``.
Access-log lines for health probes are dropped since orchestrators poll them
every few seconds.
"""

import logging
import logging.config
from typing import Any, Dict, Iterable

# "/health" also covers "/healthz"
PROBE_PATHS = ("/health",)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class HealthCheckFilter(logging.Filter):
    """Drops uvicorn access-log lines for GET requests to probe paths."""

    def __init__(self, paths: Iterable[str] = PROBE_PATHS):
        super().__init__()
        self.paths = tuple(paths)

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name != "uvicorn.access":
            return True
        message = record.getMessage()
        return not ("GET" in message and any(path in message for path in self.paths))


def _stdout_handler(formatter: str, *filters: str) -> Dict[str, Any]:
    handler: Dict[str, Any] = {
        "class": "logging.StreamHandler",
        "formatter": formatter,
        "stream": "ext://sys.stdout",
    }
    if filters:
        handler["filters"] = list(filters)
    return handler


def _isolated(handler: str, level: str) -> Dict[str, Any]:
    return {"handlers": [handler], "level": level, "propagate": False}


def get_logging_config(level: str = "INFO") -> Dict[str, Any]:
    """
    Build the ``dictConfig`` mapping.

    Args:
        level: Level applied to uvicorn, the ``campus`` package and the root logger

    Returns:
        Mapping accepted by ``logging.config.dictConfig`` and uvicorn's ``log_config``
    """
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"probes": {"()": HealthCheckFilter}},
        "formatters": {
            "default": {"format": LOG_FORMAT},
            "access": {"format": "%(message)s"},
        },
        "handlers": {
            "default": _stdout_handler("default"),
            "access": _stdout_handler("access", "probes"),
        },
        "loggers": {
            "uvicorn": _isolated("default", level),
            "uvicorn.error": _isolated("default", level),
            "uvicorn.access": _isolated("access", level),
            "campus": _isolated("default", level),
        },
        "root": {"level": level, "handlers": ["default"]},
    }


def configure_logging(level: str = "INFO") -> None:
    logging.config.dictConfig(get_logging_config(level))
