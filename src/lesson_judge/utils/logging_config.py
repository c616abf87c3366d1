"""Logging configuration for lesson evaluation.

Modules log through the standard ``logging`` API. ``configure_logging``
routes those records either to stdlib handlers (plain or JSON) or, with
``use_loguru=True``, into loguru sinks via an intercept handler.
"""

import inspect
import json
import logging
import sys
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Dict, Optional, Union

from loguru import logger as loguru_logger

STANDARD_RECORD_ATTRS = frozenset(
    [
        "name", "msg", "args", "created", "filename", "funcName", "levelname",
        "levelno", "lineno", "module", "msecs", "message", "pathname", "process",
        "processName", "relativeCreated", "thread", "threadName", "exc_info",
        "exc_text", "stack_info", "taskName",
    ]
)


class JsonFormatter(logging.Formatter):
    """JSON formatter for structured log records.

    Output keys: timestamp, level, logger, message, plus ``exception`` and
    ``extra`` (fields passed via ``extra=``) when present.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = {
            k: v for k, v in record.__dict__.items() if k not in STANDARD_RECORD_ATTRS
        }
        if extra_fields:
            log_data["extra"] = extra_fields

        return json.dumps(log_data, ensure_ascii=False, default=str)


class InterceptHandler(logging.Handler):
    """Forward stdlib log records to loguru, preserving the caller location."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: Union[str, int] = loguru_logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = inspect.currentframe(), 0
        while frame:
            filename = frame.f_code.co_filename
            is_logging = filename == logging.__file__
            is_frozen = "importlib" in filename and "_bootstrap" in filename
            if depth > 0 and not (is_logging or is_frozen):
                break
            frame = frame.f_back
            depth += 1

        loguru_logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def configure_logging(
    level: Union[str, int] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
    json_format: bool = True,
    console_output: bool = True,
    use_loguru: bool = False,
) -> None:
    """Configure logging for lesson evaluation.

    Args:
        level: Logging level (default: INFO)
        log_file: Optional file path for log output
        json_format: Use JSON output instead of plain text (default: True)
        console_output: Log to stdout (default: True)
        use_loguru: Route records through loguru sinks (default: False)

    Example:
        >>> configure_logging(level="DEBUG", json_format=False, use_loguru=True)
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)

    if use_loguru:
        loguru_logger.remove()
        if console_output:
            loguru_logger.add(
                sys.stdout, level=level, backtrace=True, diagnose=False, serialize=json_format
            )
        if log_file:
            loguru_logger.add(str(log_file), level=level, serialize=json_format)
        root_logger.addHandler(InterceptHandler())
    else:
        if json_format:
            formatter: logging.Formatter = JsonFormatter()
        else:
            formatter = logging.Formatter(
                fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )

        if console_output:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setLevel(level)
            console_handler.setFormatter(formatter)
            root_logger.addHandler(console_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
            file_handler.setLevel(level)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

    logging.info(
        f"Logging configured: level={logging.getLevelName(level)}, "
        f"json_format={json_format}, loguru={use_loguru}"
    )


@contextmanager
def pipeline_stage_logger(stage_name: str, **context):
    """Log entry, exit, and duration of an evaluation stage.

    Args:
        stage_name: Name of the stage
        **context: Extra fields attached to every stage record

    Yields:
        Logger named ``lesson_judge.<stage_name>``
    """
    logger = logging.getLogger(f"lesson_judge.{stage_name}")
    start_time = datetime.now(UTC)
    logger.info(
        f"Starting stage: {stage_name}",
        extra={"stage": stage_name, "status": "started", **context},
    )

    try:
        yield logger
    except Exception as e:
        duration_ms = (datetime.now(UTC) - start_time).total_seconds() * 1000
        logger.error(
            f"Failed stage: {stage_name}",
            extra={
                "stage": stage_name,
                "status": "failed",
                "duration_ms": round(duration_ms, 2),
                "error": str(e)[:200],
                **context,
            },
            exc_info=True,
        )
        raise

    duration_ms = (datetime.now(UTC) - start_time).total_seconds() * 1000
    logger.info(
        f"Completed stage: {stage_name}",
        extra={
            "stage": stage_name,
            "status": "completed",
            "duration_ms": round(duration_ms, 2),
            **context,
        },
    )


def get_logger(name: str) -> logging.Logger:
    """Logger with the given name (typically ``__name__``)."""
    return logging.getLogger(name)
