"""Structured logging configuration.

Supports two modes via LOG_FORMAT:
- "json" (default): one JSON object per line with request_id and job_id
- "text": human-readable lines for local development
"""

import logging
import sys

from pythonjsonlogger.json import JsonFormatter

from pagescope.middleware.request_id import get_job_id, get_request_id

TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s [%(request_id)s|%(job_id)s] %(message)s"


class ContextFilter(logging.Filter):
    """Inject request_id and job_id into every log record."""

    def filter(self, record):
        record.request_id = get_request_id()
        record.job_id = get_job_id()
        return True


class PlaywrightPipeFilter(logging.Filter):
    """Drop Playwright's 'pipe closed by peer' warnings.

    A browser closed while a write is pending logs this once per pending
    write; after a timeout-triggered close that can be hundreds of lines.
    """

    def filter(self, record):
        msg = record.getMessage() if hasattr(record, "getMessage") else str(record.msg)
        return "pipe closed by peer" not in msg


def configure_logging(
    log_format: str = "json", log_level: str = "INFO", stream=sys.stdout
) -> None:
    root = logging.getLogger()
    root.handlers.clear()

    handler = logging.StreamHandler(stream)
    handler.addFilter(ContextFilter())
    handler.addFilter(PlaywrightPipeFilter())

    if log_format == "json":
        formatter = JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s %(request_id)s %(job_id)s",
            rename_fields={
                "levelname": "level",
                "name": "logger",
                "asctime": "timestamp",
            },
        )
    else:
        formatter = logging.Formatter(TEXT_FORMAT)

    handler.setFormatter(formatter)
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    logging.getLogger("playwright").setLevel(logging.ERROR)
