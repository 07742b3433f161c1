"""
Structured logging configuration.

structlog processes events and hands the event dict to the standard library
record; python-json-logger encodes each line once. Records from third-party
loggers (uvicorn, sqlalchemy) go through the same JSON formatter.
"""
import logging
import sys
from typing import Any, Optional

import structlog
from pythonjsonlogger import jsonlogger

from honey_store.config import Settings, get_settings


def _app_context_processor(settings: Settings, service_name: str) -> Any:
    def add_app_context(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        """Add application context to log events."""
        event_dict["app_name"] = settings.app_name
        event_dict["app_env"] = settings.app_env
        event_dict["service"] = service_name
        return event_dict

    return add_app_context


def build_json_formatter() -> logging.Formatter:
    """JSON formatter shared by structlog events and plain stdlib records."""
    return jsonlogger.JsonFormatter(
        "%(asctime)s %(levelname)s %(name)s %(message)s",
        rename_fields={
            "asctime": "@timestamp",
            "levelname": "level",
            "name": "logger",
        },
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )


def setup_logging(settings: Optional[Settings] = None, service_name: str = "backend") -> None:
    """
    Configure structured logging with JSON formatter.

    Sets up:
    - One JSON object per line, with structlog keys as top-level fields
    - Request ID tracking through contextvars
    - Application and service names on every structlog event
    """
    settings = settings or get_settings()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            _app_context_processor(settings, service_name),
            structlog.stdlib.render_to_log_kwargs,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    json_handler = logging.StreamHandler(sys.stdout)
    json_handler.setFormatter(build_json_formatter())
    root_logger.addHandler(json_handler)

    # Suppress noisy loggers
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)

    logger = structlog.get_logger(__name__)
    logger.info(
        "logging_configured",
        log_level=settings.log_level,
        app_env=settings.app_env,
    )
