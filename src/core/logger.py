"""Advanced logging with Loguru."""

import contextvars
import logging
import sys
from contextlib import contextmanager
from pathlib import Path
from types import FrameType
from typing import Any, Dict, Iterator, Optional, Union

from loguru import logger

# Context variable carrying the wizard session id into every log record
session_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "session_id", default=None
)

__all__ = ["session_id_ctx", "log_session", "setup_structured_logging", "InterceptHandler"]


class InterceptHandler(logging.Handler):
    """Route stdlib logging records (aiohttp, aiosmtplib, ...) into Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        # Get corresponding Loguru level if it exists
        level: Union[str, int]
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame: Optional[FrameType] = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _session_patcher(record: Dict[str, Any]) -> None:
    """Copy the current wizard session id into the record's extra fields."""
    session_id = session_id_ctx.get()
    if session_id:
        record["extra"]["session_id"] = session_id


@contextmanager
def log_session(session_id: str) -> Iterator[None]:
    """Stamp ``session_id`` on records logged inside the block, and in tasks created there."""
    token = session_id_ctx.set(session_id)
    try:
        yield
    finally:
        session_id_ctx.reset(token)


def setup_structured_logging(
    level: str = "INFO",
    json_format: bool = False,
    logs_dir: Optional[Path] = None,
    diagnose: bool = False,
) -> None:
    """
    Setup Loguru logging with structured output.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Also write JSON lines to a rotating file (True for production)
        logs_dir: Directory for file sinks; no file sinks when None
        diagnose: Include variable values in tracebacks (development only)
    """
    # Remove default handler
    logger.remove()

    logger.configure(patcher=_session_patcher)

    console_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
        "<level>{message}</level>"
    )
    logger.add(sys.stderr, format=console_format, level=level, colorize=True)

    if logs_dir is not None:
        logs_dir.mkdir(parents=True, exist_ok=True)
        if json_format:
            logger.add(
                logs_dir / "booking_core.jsonl",
                format="{message}",
                level=level,
                rotation="10 MB",
                retention="30 days",
                compression="zip",
                serialize=True,
            )
        logger.add(
            logs_dir / "errors_{time:YYYY-MM-DD}.log",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function}:{line} - {message}",
            level="ERROR",
            rotation="10 MB",
            retention="90 days",
            backtrace=True,
            diagnose=diagnose,
        )

    # Intercept all standard logging
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    logging.root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Reduce noise from third-party libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("aiosmtplib").setLevel(logging.WARNING)

    logger.info(f"Logging initialized (level={level}, json={json_format})")
