"""Structured logging configuration for the WhatsApp assistant."""

import json
import logging
import logging.config
from datetime import datetime, timezone
from pathlib import Path

from .config import Settings

SERVICE_NAME = "wa-assistant"

# Client libraries log every request at INFO; keep them to warnings.
NOISY_LOGGERS = ("httpx", "httpcore", "anthropic", "aiosqlite")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with the caller's context lifted alongside."""

    def __init__(self, service: str = SERVICE_NAME):
        super().__init__()
        self._service = service

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": self._service,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        context = getattr(record, "context", None)
        if context:
            log_data["context"] = context
            # Correlate every line of a conversation by its WhatsApp user.
            if "user_id" in context:
                log_data["user_id"] = context["user_id"]

        return json.dumps(log_data, default=str, ensure_ascii=False)


def build_logging_config(settings: Settings) -> dict:
    """dictConfig for the service: JSON to a rotating file and to stdout."""
    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "stream": "ext://sys.stdout",
        },
    }
    if settings.log_file:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": str(settings.log_file),
            "maxBytes": settings.log_max_bytes,
            "backupCount": settings.log_backup_count,
            "formatter": "json",
            "encoding": "utf-8",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {"()": JSONFormatter},
        },
        "handlers": handlers,
        "loggers": {name: {"level": "WARNING"} for name in NOISY_LOGGERS},
        "root": {
            "level": settings.log_level.upper(),
            "handlers": list(handlers),
        },
    }


def setup_logging(settings: Settings | None = None) -> None:
    """Configure logging from settings (environment defaults when omitted)."""
    if settings is None:
        settings = Settings.from_env()

    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(build_logging_config(settings))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def preview(text: str | None, limit: int = 50) -> str:
    """Shorten text for log context."""
    if not text:
        return ""
    return text if len(text) <= limit else f"{text[:limit]}..."
