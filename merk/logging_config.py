"""
Structured logging for Merk.

Events are rendered by structlog and written through the stdlib ``logging``
root logger, one line per event: JSON by default, colored key/value pairs for
local development. A correlation ID set in the current context is attached
to every event, which lets the commits made for one request be grouped even
when they span several sessions.
"""

import logging
import sys
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

import structlog
from structlog.types import EventDict, Processor


_correlation_id: ContextVar[Optional[str]] = ContextVar("merk_correlation_id", default=None)


def add_correlation_id(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """structlog processor copying the context's correlation ID into the event."""
    value = _correlation_id.get()
    if value:
        event_dict["correlation_id"] = value
    return event_dict


def set_correlation_id(correlation_id: Optional[str] = None) -> str:
    """
    Bind a correlation ID to the current context.

    Args:
        correlation_id: ID to use; a random UUID4 when omitted

    Returns:
        The ID now in effect
    """
    value = correlation_id or str(uuid.uuid4())
    _correlation_id.set(value)
    return value


def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def clear_correlation_id() -> None:
    _correlation_id.set(None)


@contextmanager
def correlation_scope(correlation_id: Optional[str] = None) -> Iterator[str]:
    """
    Bind a correlation ID for the duration of a block, restoring the previous
    one afterwards.

    Example:
        >>> with correlation_scope("req-42"):
        ...     await merk.commit(root)
    """
    token = _correlation_id.set(correlation_id or str(uuid.uuid4()))
    try:
        yield _correlation_id.get()
    finally:
        _correlation_id.reset(token)


def _make_handler(log_file: Optional[Path], level: int) -> logging.Handler:
    if log_file is None:
        handler: logging.Handler = logging.StreamHandler(sys.stderr)
    else:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path)
    # structlog has already rendered the line
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.setLevel(level)
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    json_format: bool = True,
) -> None:
    """
    Route Merk logging to stderr or a file.

    Replaces any handlers already installed on the root logger, so it is safe
    to call again to reconfigure.

    Args:
        level: Level name; unknown names fall back to INFO
        log_file: Write to this file (parents created) instead of stderr
        json_format: Render JSON lines instead of the console format
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(_make_handler(log_file, numeric_level))
    root.setLevel(numeric_level)

    processors: List[Processor] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_correlation_id,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer() if json_format else structlog.dev.ConsoleRenderer(colors=True),
    ]

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """
    Logger under the ``merk`` namespace.

    ``get_logger("demo")`` logs as ``merk.demo``; module names that already
    start with ``merk`` are used as they are.
    """
    if name == "merk" or name.startswith("merk."):
        return structlog.get_logger(name)
    return structlog.get_logger(f"merk.{name}")


def log_commit(
    logger: structlog.stdlib.BoundLogger,
    session_id: str,
    puts: int,
    deletes: int,
    root_hash: str,
    duration_ms: float,
    **kwargs: Any,
) -> None:
    """
    Log a successful commit.

    Args:
        logger: Logger instance
        session_id: Session the commit belongs to
        puts: Number of put operations written
        deletes: Number of delete operations written
        root_hash: Digest of the committed tree (hex encoded)
        duration_ms: Store write duration in milliseconds
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "merk_commit",
        "session_id": session_id,
        "puts": puts,
        "deletes": deletes,
        "root_hash": root_hash,
        "duration_ms": duration_ms,
    }

    log_data.update(kwargs)

    logger.info("merk_commit", **log_data)


def log_store_failure(
    logger: structlog.stdlib.BoundLogger,
    session_id: Optional[str],
    operation: str,
    error: BaseException,
    **kwargs: Any,
) -> None:
    """
    Log a failed interaction with the backing store.

    Args:
        logger: Logger instance
        session_id: Session ID if one exists yet
        operation: Operation that failed ("load", "commit")
        error: Exception raised by the store
        **kwargs: Additional context to log
    """
    log_data: Dict[str, Any] = {
        "event_type": "store_failure",
        "operation": operation,
        "error_type": type(error).__name__,
        "error": str(error),
    }

    if session_id is not None:
        log_data["session_id"] = session_id

    log_data.update(kwargs)

    logger.error(f"merk_{operation}_failed", **log_data)
