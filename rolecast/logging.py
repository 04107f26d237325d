"""Loguru sinks for orchestrator runs.

rolecast logs through loguru but stays silent until an orchestrator is
entered with ``logging=True`` or a LogConfig. Records carry their
context (component, cluster, group, phase) in ``extra``; each sink
renders it as a ``[key=value ...]`` suffix after the call site.

Example:
    with ClusterActionOrchestrator(
        provider,
        handlers,
        logging=LogConfig(level="DEBUG", file="logs/hadoop.log"),
    ) as orchestrator:
        orchestrator.launch_cluster(spec)
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from loguru import logger

logger.disable("rolecast")

type LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"]

_CONTEXT_KEYS = ("component", "cluster", "group", "phase", "instance_id")

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan><dim>{context}</dim> | "
    "<level>{message}</level>"
)

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{line}{context} | {message}"


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Where orchestrator logs go.

    Attributes:
        level: Console threshold. The file sink always records DEBUG and up.
        file: Log file path; parent directories are created.
        console: Log to stderr.
        rotation: Loguru rotation policy for the file sink.
        retention: Rotated files to keep.
    """

    level: LogLevel = "INFO"
    file: str | None = None
    console: bool = True
    rotation: str = "50 MB"
    retention: int = 10


def normalize_log_config(logging: LogConfig | bool) -> LogConfig | None:
    """Turn the ``logging=`` argument into a LogConfig (or None when disabled)."""
    match logging:
        case LogConfig():
            return logging
        case True:
            return LogConfig()
        case _:
            return None


def _context(record: Any) -> str:
    extra = record["extra"]
    parts = [f"{k}={extra[k]}" for k in _CONTEXT_KEYS if k in extra]
    if not parts:
        return ""
    # The result is formatted again by loguru
    return " [" + " ".join(parts).replace("{", "{{").replace("}", "}}") + "]"


def _formatter(template: str) -> Callable[[Any], str]:
    def format_record(record: Any) -> str:
        return template.replace("{context}", _context(record)) + "\n{exception}"

    return format_record


def setup_logging(config: LogConfig) -> list[int]:
    """Add the sinks described by ``config``.

    Returns:
        Loguru handler ids, for ``teardown_logging``.
    """
    logger.enable("rolecast")
    handler_ids: list[int] = []

    if config.console:
        handler_ids.append(
            logger.add(
                sys.stderr,
                level=config.level,
                format=_formatter(CONSOLE_FORMAT),
                colorize=True,
                filter="rolecast",
            )
        )

    if config.file:
        Path(config.file).parent.mkdir(parents=True, exist_ok=True)
        handler_ids.append(
            logger.add(
                config.file,
                level="DEBUG",
                format=_formatter(FILE_FORMAT),
                rotation=config.rotation,
                retention=config.retention,
                compression="zip",
                diagnose=False,  # tracebacks may hold provider credentials
                enqueue=True,
                filter="rolecast",
            )
        )

    return handler_ids


def teardown_logging(handler_ids: list[int]) -> None:
    """Remove the sinks added by ``setup_logging`` and silence rolecast again."""
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable("rolecast")
