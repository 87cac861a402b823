"""
Structured Logging Configuration
Configures structlog on top of stdlib logging, rendering console or JSON output.
"""
import logging
import os
import sys
from logging.handlers import RotatingFileHandler

import structlog
from structlog import dev as structlog_dev

SERVICE_NAME = "mirai-voice"

SENSITIVE_KEYS = {
    "api_key", "apikey", "token", "access_token", "authorization",
    "password", "password_hash", "secret", "x_api_key", "audio_data",
}


def add_service_context(logger, method_name, event_dict):
    """Add service context to the log record."""
    event_dict["service"] = SERVICE_NAME
    return event_dict


def redact_value(value):
    if value is None or isinstance(value, bool):
        return value
    if isinstance(value, str) and len(value) > 4:
        return f"{value[:2]}***REDACTED***"
    return "***REDACTED***"


def sanitize_secrets(logger, method_name, event_dict):
    """
    Redact sensitive values from log events.

    Keys are compared case-insensitively with separators removed, so
    ``apiKey``, ``api-key`` and ``api_key`` are all caught.
    """
    normalized = {key.replace("_", "") for key in SENSITIVE_KEYS}

    def sanitize(d):
        cleaned = {}
        for key, value in d.items():
            key_normalized = str(key).lower().replace("_", "").replace("-", "")
            if key_normalized in normalized:
                cleaned[key] = redact_value(value)
            elif isinstance(value, dict):
                cleaned[key] = sanitize(value)
            else:
                cleaned[key] = value
        return cleaned

    return sanitize(event_dict)


def configure_logging(log_level="INFO", log_file="", log_format="console"):
    """
    Set up structured logging for the whole process.

    ``log_format`` is ``console`` or ``json``. When ``log_file`` is set, a
    rotating file handler is added next to the stdout handler.
    """
    level_value = getattr(logging, str(log_level).upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_service_context,
            sanitize_secrets,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if str(log_format).strip().lower() == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog_dev.ConsoleRenderer(colors=sys.stdout.isatty())

    processor_formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=[
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
        ],
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level_value)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(processor_formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        file_handler = RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5)
        file_handler.setFormatter(processor_formatter)
        root_logger.addHandler(file_handler)

    # uvicorn installs its own handlers; route them through ours instead
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = True


def get_logger(name=None):
    """Get a structlog logger bound to ``name``."""
    return structlog.get_logger(name)
