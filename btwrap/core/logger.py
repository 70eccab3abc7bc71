# btwrap/core/logger.py
from __future__ import annotations
import logging
import sys
import structlog
from btwrap.core.settings import settings, Settings


def setup_logging(cfg: Settings = settings) -> None:
    level = getattr(logging, cfg.LOG_LEVEL.upper(), logging.INFO)

    # Standard logging config
    logging.basicConfig(
        level=level,
        format="%(message)s",
        stream=sys.stdout,
    )

    # Structlog processors
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if cfg.DEV_MODE:
        processors.append(structlog.processors.ExceptionRenderer())
        processors.append(structlog.processors.KeyValueRenderer(sort_keys=True))
    else:
        processors.append(structlog.processors.dict_tracebacks)
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )
    # every gateway event carries the service and the vendor backend it hit
    structlog.contextvars.bind_contextvars(service=cfg.APP_NAME, backend=cfg.PAYMENTS_BACKEND)
