"""Logging configuration for skybake.

Logging is disabled by default and enabled by calling ``setup_logging``.
``run_steps`` binds the build name and the running step into every record
through ``logger.contextualize``, so each line says which build and which
step it came from.

Example:
    from skybake.logging import LogConfig, setup_logging, teardown_logging

    handler_ids = setup_logging(LogConfig(level="DEBUG", file="build.log"))
    try:
        await run_steps(steps, state)
    finally:
        teardown_logging(handler_ids)
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from loguru import logger

if TYPE_CHECKING:
    from loguru import Record

logger.disable("skybake")

type LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]


def _context(record: Record) -> str:
    extra = record["extra"]
    return "".join(f"{{extra[{key}]}} | " for key in ("build", "step") if key in extra)


def console_format(record: Record) -> str:
    return (
        "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
        f"{_context(record)}<level>{{message}}</level>\n{{exception}}"
    )


def file_format(record: Record) -> str:
    return (
        "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
        f"{_context(record)}{{name}}:{{line}} - {{message}}\n{{exception}}"
    )


@dataclass(frozen=True, slots=True)
class LogConfig:
    """Logging configuration.

    Attributes:
        level: Minimum level for the console sink. The file sink always
            records DEBUG and above.
        file: Build log path, appended to across builds.
        console: Whether to log to stderr.
        serialize: Write the file sink as JSON lines instead of text.
    """

    level: LogLevel = "INFO"
    file: str | None = None
    console: bool = True
    serialize: bool = False


def setup_logging(config: LogConfig) -> list[int]:
    """Enable skybake logging and return handler IDs for teardown."""
    logger.enable("skybake")
    handler_ids: list[int] = []

    if config.console:
        handler_ids.append(
            logger.add(
                sys.stderr,
                level=config.level,
                format=console_format,
                colorize=True,
                filter="skybake",
            )
        )

    if config.file:
        handler_ids.append(
            logger.add(
                config.file,
                level="DEBUG",
                format=file_format,
                serialize=config.serialize,
                diagnose=False,  # user data and tokens must not leak into tracebacks
                filter="skybake",
            )
        )

    return handler_ids


def teardown_logging(handler_ids: list[int]) -> None:
    """Remove handlers and disable logging again."""
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable("skybake")
