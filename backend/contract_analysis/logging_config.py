"""
Centralized logging configuration for the contract analysis backend.

Provides JSON-structured logging output to stderr for all modules.
Call setup_logging() once at application startup (in main.py).

Outside development, log messages pass through PIIScrubbingFilter so that
e-mail addresses, phone numbers, card numbers, IPs and tokens never reach
the log sink.
"""

import json
import logging
import logging.config
from datetime import datetime, timezone

from contract_analysis.utils.security import get_request_context, scrub_pii


class JSONFormatter(logging.Formatter):
    """Format log records as single-line JSON for structured log ingestion."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        request_id = get_request_context().get("request_id")
        if request_id:
            log_entry["request_id"] = request_id
        if record.exc_info and record.exc_info[0]:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, ensure_ascii=False)


class PIIScrubbingFilter(logging.Filter):
    """Redact PII from the rendered message of every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        scrubbed = scrub_pii(message)
        if scrubbed != message:
            record.msg = scrubbed
            record.args = None
        return True


def build_logging_config(level: str = "INFO", scrub: bool = True) -> dict:
    handler = {
        "class": "logging.StreamHandler",
        "formatter": "json",
        "stream": "ext://sys.stderr",
    }
    if scrub:
        handler["filters"] = ["pii"]

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "pii": {
                "()": PIIScrubbingFilter,
            },
        },
        "formatters": {
            "json": {
                "()": JSONFormatter,
            },
            "standard": {
                "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            },
        },
        "handlers": {
            "console": handler,
        },
        "root": {
            "level": level,
            "handlers": ["console"],
        },
        "loggers": {
            "contract_analysis": {"level": level},
            "uvicorn": {"level": "WARNING"},
            "uvicorn.access": {"level": "WARNING"},
            "httpx": {"level": "WARNING"},
            "openai": {"level": "WARNING"},
        },
    }


def setup_logging(level: str = "INFO", scrub: bool = True) -> None:
    """
    Apply the centralized logging configuration.

    Args:
        level: Root log level name
        scrub: Whether to redact PII from log messages
    """
    logging.config.dictConfig(build_logging_config(level=level, scrub=scrub))
