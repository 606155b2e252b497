"""Logging configuration and utilities."""

import sys
import json
import logging
import logging.handlers
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional, Union

import structlog


# LogRecord attributes that are never copied into the JSON "attributes" block
_RECORD_FIELDS = frozenset(
    {
        "name", "msg", "args", "levelname", "levelno", "pathname", "filename",
        "module", "exc_info", "exc_text", "stack_info", "lineno", "funcName",
        "created", "msecs", "relativeCreated", "thread", "threadName",
        "processName", "process", "taskName", "message",
    }
)


def _use_console_renderer(log_format: str) -> bool:
    return log_format == "dev" or (sys.stderr.isatty() and log_format != "json")


def setup_logging(
    debug: bool = False,
    log_file: bool = False,
    log_level: str = "INFO",
    log_format: str = "json",
    log_dir: Optional[Union[str, Path]] = None,
    file_rotation_mb: int = 10,
    file_backup_count: int = 7,
) -> Optional[Path]:
    """
    Configure structured logging for the assistant.

    Args:
        debug: Enable debug logging (overrides log_level)
        log_file: Whether to log to a rotating file in addition to the console
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Console format (json, dev)
        log_dir: Directory for log files
        file_rotation_mb: File rotation size in MB
        file_backup_count: Number of rotated files to keep

    Returns:
        Path of the log file when file logging is enabled
    """
    if debug:
        log_level = "DEBUG"
    level = getattr(logging, log_level.upper(), logging.INFO)

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
    if _use_console_renderer(log_format):
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

    console_handler = logging.StreamHandler(sys.stdout if debug else sys.stderr)
    console_handler.setLevel(level)
    if _use_console_renderer(log_format):
        console_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
    else:
        console_handler.setFormatter(JsonFormatter())
    root_logger.addHandler(console_handler)
    root_logger.setLevel(level)

    log_path = None
    if log_file:
        directory = Path(log_dir or "./logs")
        directory.mkdir(parents=True, exist_ok=True)
        log_path = directory / f"mindcare_{datetime.now().strftime('%Y-%m-%d_%H-%M-%S')}.log"

        file_handler = logging.handlers.RotatingFileHandler(
            log_path,
            maxBytes=file_rotation_mb * 1024 * 1024,
            backupCount=file_backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        # File logs are always JSON
        file_handler.setFormatter(JsonFormatter())
        root_logger.addHandler(file_handler)

        structlog.get_logger().info(
            "Logging configured",
            log_file=str(log_path),
            log_level=log_level,
            log_format=log_format,
        )

    return log_path


class JsonFormatter(logging.Formatter):
    """JSON formatter for standard log records."""

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        log_dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            log_dict["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc_value) if exc_value else None,
                "traceback": self.formatException(record.exc_info),
            }

        if self.include_extra:
            extra = {
                key: value
                for key, value in record.__dict__.items()
                if key not in log_dict and key not in _RECORD_FIELDS and not key.startswith("_")
            }
            if extra:
                log_dict["attributes"] = extra

        return json.dumps(log_dict, ensure_ascii=False, separators=(",", ":"), default=str)


def cleanup_old_logs(log_dir: Optional[Union[str, Path]] = None, keep_days: int = 7) -> int:
    """Remove log files older than keep_days. Returns the number removed."""
    directory = Path(log_dir or "./logs")
    if not directory.exists():
        return 0

    logger = structlog.get_logger("logging.cleanup")
    cutoff_time = datetime.now().timestamp() - keep_days * 24 * 60 * 60
    removed = 0

    for log_path in directory.glob("*.log*"):
        try:
            if log_path.stat().st_mtime < cutoff_time:
                log_path.unlink()
                removed += 1
                logger.info("Removed old log file", file=str(log_path))
        except OSError as e:
            logger.warning("Failed to remove old log file", file=str(log_path), error=str(e))

    return removed
