"""Logging configuration and utilities."""

import sys
import logging
import logging.handlers
import structlog
from pathlib import Path
from datetime import datetime, timezone
import json
from typing import Optional, Union


_STANDARD_RECORD_ATTRS = frozenset(
    [
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
    ]
)


def setup_logging(
    debug: bool = False,
    log_file: bool = True,
    log_level: str = "INFO",
    log_format: str = "json",
    log_dir: Optional[Union[str, Path]] = None,
    file_rotation_mb: int = 10,
    file_backup_count: int = 7,
) -> Optional[Path]:
    """
    Configure structured logging for the chat client.

    Args:
        debug: Enable debug logging (overrides log_level)
        log_file: Whether to log to file in addition to console
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Console format (json, dev)
        log_dir: Directory for log files
        file_rotation_mb: File rotation size in MB
        file_backup_count: Number of backup files to keep

    Returns:
        Path of the log file, or None when file logging is disabled.
    """
    if debug:
        log_level = "DEBUG"
    log_level = log_level.upper()

    log_path: Optional[Path] = None
    if log_file:
        log_dir = Path(log_dir or "./logs").expanduser()
        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        log_path = log_dir / f"voice_chat_{timestamp}.log"

    use_console_renderer = log_format == "dev" or (
        sys.stderr.isatty() and log_format != "json"
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if use_console_renderer:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    else:
        processors.append(structlog.processors.JSONRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # The interactive host writes to stdout, so console logs go to stderr
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(getattr(logging, log_level))
    if use_console_renderer:
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
    else:
        console_handler.setFormatter(JsonFormatter())
    root_logger.addHandler(console_handler)

    if log_path is not None:
        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=file_rotation_mb * 1024 * 1024,
            backupCount=file_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(getattr(logging, log_level))
        file_handler.setFormatter(JsonFormatter())
        root_logger.addHandler(file_handler)

    root_logger.setLevel(getattr(logging, log_level))

    # Transport libraries are chatty at DEBUG
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    if log_path is not None:
        structlog.get_logger().info(
            "Logging configured",
            log_file=str(log_path),
            log_level=log_level,
            log_format=log_format,
        )
    return log_path


class JsonFormatter(logging.Formatter):
    """JSON formatter for log files."""

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        try:
            log_dict = {
                "timestamp": datetime.fromtimestamp(
                    record.created, tz=timezone.utc
                ).isoformat(),
                "level": record.levelname,
                "logger": record.name,
                "message": record.getMessage(),
                "module": record.module,
                "function": record.funcName,
                "line": record.lineno,
            }

            if record.exc_info:
                log_dict["exception"] = {
                    "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                    "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                    "traceback": self.formatException(record.exc_info),
                }

            if self.include_extra:
                extra_attrs = {
                    key: value
                    for key, value in record.__dict__.items()
                    if key not in log_dict
                    and key not in _STANDARD_RECORD_ATTRS
                    and not key.startswith("_")
                }
                if extra_attrs:
                    log_dict["attributes"] = extra_attrs

            return json.dumps(
                log_dict, ensure_ascii=False, separators=(",", ":"), default=str
            )

        except Exception as e:
            # Fall back to a minimal record rather than losing the line
            return json.dumps(
                {
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "level": "ERROR",
                    "logger": "JsonFormatter",
                    "message": f"Failed to format log record: {str(e)}",
                    "original_message": str(record.msg),
                }
            )


def setup_logging_from_settings(settings, debug: bool = False) -> Optional[Path]:
    """Configure logging from a Settings instance."""
    return setup_logging(
        debug=debug,
        log_file=settings.logging.file_enabled,
        log_level=settings.logging.level,
        log_format=settings.logging.format,
        log_dir=settings.data_dir / "logs",
        file_rotation_mb=settings.logging.file_rotation_mb,
        file_backup_count=settings.logging.file_backup_count,
    )
