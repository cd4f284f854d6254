"""Structured logging: structlog rendering for stdlib and structlog loggers alike."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import structlog

# Third-party loggers that are chatty at INFO (polling, HTTP requests).
NOISY_LOGGERS = ("httpx", "httpcore", "telegram.ext", "apscheduler")

_PRE_CHAIN = (
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
)


def _formatter(json_output: bool) -> structlog.stdlib.ProcessorFormatter:
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=list(_PRE_CHAIN),
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )


def _rotating_file(file_path: str, max_mb: int, backups: int) -> logging.Handler | None:
    path = Path(file_path).resolve()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        return RotatingFileHandler(path, maxBytes=max_mb * 1024 * 1024, backupCount=backups, encoding="utf-8")
    except OSError as e:
        sys.stderr.write(f"Log file disabled: could not open {path}: {e}\n")
        return None


def setup_logging(
    level: str = "INFO",
    file_path: str = "",
    rotation_max_mb: int = 5,
    rotation_backups: int = 3,
) -> None:
    """Route ``structlog.get_logger()`` and ``logging.getLogger()`` into one set of handlers.

    JSON lines unless ``level`` is DEBUG (console renderer then). With
    ``file_path`` the same records also go to a size-rotated file; that is
    where tool error details end up, since chat replies never carry them.
    """
    level = level.upper()
    log_level = getattr(logging, level, logging.INFO)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_PRE_CHAIN,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    formatter = _formatter(json_output=level != "DEBUG")
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if file_path.strip():
        file_handler = _rotating_file(file_path.strip(), rotation_max_mb, rotation_backups)
        if file_handler is not None:
            handlers.append(file_handler)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(log_level)
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(log_level)
        root.addHandler(handler)

    quiet_level = logging.WARNING if log_level > logging.DEBUG else logging.NOTSET
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)
