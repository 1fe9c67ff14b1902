"""
Logging Configuration.

- JSON format for batch runs whose logs are collected (LOG_FORMAT=json)
- Human-readable format for interactive use (LOG_FORMAT=text, default)
- Run context (seed, sample size, stage) attached to every record
- timed_operation() for stage timings
"""

import json
import logging
import os
import sys
import time
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

# =============================================================================
# Run Context
# =============================================================================

run_id_var: ContextVar[Optional[str]] = ContextVar("run_id", default=None)
stage_var: ContextVar[Optional[str]] = ContextVar("stage", default=None)


def set_run_context(run_id: Optional[str] = None, stage: Optional[str] = None) -> None:
    """
    Set run context for logging.

    Args:
        run_id: Identifier of the analysis run (e.g. "v1_seed42_n500")
        stage: Pipeline stage currently executing
    """
    if run_id is not None:
        run_id_var.set(run_id)
    if stage is not None:
        stage_var.set(stage)


def clear_run_context() -> None:
    """Clear all run context variables."""
    run_id_var.set(None)
    stage_var.set(None)


def get_run_context() -> Dict[str, Optional[str]]:
    return {"run_id": run_id_var.get(), "stage": stage_var.get()}


# =============================================================================
# Formatters
# =============================================================================


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Format:
    {
        "timestamp": "2026-01-22T12:00:00.000000+00:00",
        "level": "INFO",
        "logger": "paygap.pipeline",
        "message": "Simulated 500 employees",
        "run_id": "v1_seed42_n500",
        "stage": "simulate"
    }
    """

    # Attributes present on every LogRecord; anything else came from `extra=`
    _RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in get_run_context().items():
            if value is not None:
                entry[key] = value

        extra = {k: v for k, v in record.__dict__.items() if k not in self._RESERVED}
        if extra:
            entry["extra"] = extra

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class ColoredFormatter(logging.Formatter):
    """
    Colored human-readable formatter.

    Format:
    2026-01-22 12:00:00 [INFO    ] paygap.pipeline - Message here [run:v1_seed42_n500 stage:fit]
    """

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
        "RESET": "\033[0m",
        "GRAY": "\033[90m",
    }

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")

        if self.use_colors:
            level_color = self.COLORS.get(record.levelname, "")
            reset = self.COLORS["RESET"]
            gray = self.COLORS["GRAY"]
        else:
            level_color = reset = gray = ""

        level = f"{level_color}[{record.levelname:8s}]{reset}"

        logger_name = record.name
        if len(logger_name) > 30:
            logger_name = "..." + logger_name[-27:]

        context_parts = []
        run_id = run_id_var.get()
        stage = stage_var.get()
        if run_id:
            context_parts.append(f"run:{run_id}")
        if stage:
            context_parts.append(f"stage:{stage}")
        context_str = f" {gray}[{' '.join(context_parts)}]{reset}" if context_parts else ""

        output = f"{timestamp} {level} {logger_name} - {record.getMessage()}{context_str}"
        if record.exc_info:
            output += "\n" + self.formatException(record.exc_info)
        return output


# =============================================================================
# Configuration
# =============================================================================

NOISY_LOGGERS = [
    "matplotlib",
    "PIL",
    "pytensor",
    "pymc",
    "arviz",
    "numba",
    "h5py",
]


def configure_logging(
    level: Optional[str] = None,
    log_format: Optional[str] = None,
) -> None:
    """
    Configure logging for the process (call once at startup).

    Args:
        level: Log level name; defaults to LOG_LEVEL or INFO
        log_format: "text" or "json"; defaults to LOG_FORMAT or text
    """
    level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    log_format = (log_format or os.environ.get("LOG_FORMAT", "text")).lower()

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        use_colors = os.environ.get("NO_COLOR", "").lower() not in ("1", "true", "yes")
        handler.setFormatter(ColoredFormatter(use_colors=use_colors))
    handler.setLevel(getattr(logging, level, logging.INFO))
    root_logger.addHandler(handler)

    for noisy_logger in NOISY_LOGGERS:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(f"Logging configured: format={log_format}, level={level}")


class timed_operation:
    """
    Context manager for timing a stage and logging its duration.

    Usage:
        with timed_operation("simulate", logger):
            df = generator.generate()
    """

    def __init__(
        self,
        operation_name: str,
        logger: Optional[logging.Logger] = None,
        level: int = logging.INFO,
    ):
        self.operation_name = operation_name
        self.logger = logger or logging.getLogger(__name__)
        self.level = level
        self.start_time: Optional[float] = None
        self.duration_ms: Optional[float] = None
        self._previous_stage: Optional[str] = None

    def __enter__(self):
        self._previous_stage = stage_var.get()
        stage_var.set(self.operation_name)
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration_ms = (time.perf_counter() - self.start_time) * 1000
        if exc_type is None:
            self.logger.log(
                self.level,
                f"{self.operation_name} completed in {self.duration_ms:.2f}ms",
                extra={"operation": self.operation_name, "duration_ms": self.duration_ms},
            )
        else:
            self.logger.error(f"{self.operation_name} failed after {self.duration_ms:.2f}ms")
        stage_var.set(self._previous_stage)
        return False
