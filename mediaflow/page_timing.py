from __future__ import annotations

from contextlib import contextmanager
import contextvars
from dataclasses import dataclass
import functools
import logging
import time
from typing import Callable, Generator, Iterator, Optional, TypeVar

DEFAULT_LOGGER_NAME = "uvicorn.error"
logger = logging.getLogger(DEFAULT_LOGGER_NAME)

T = TypeVar("T")

_CURRENT_TIMING: contextvars.ContextVar["PageTiming | None"] = contextvars.ContextVar(
    "page_timing", default=None
)


@dataclass
class PageTiming:
    """Time spent inside one page callback, split by collaborator."""

    page: str
    callback: str
    start: float
    sql_seconds: float = 0.0
    storage_seconds: float = 0.0
    storage_calls: int = 0

    def add_sql(self, seconds: float) -> None:
        self.sql_seconds += seconds

    def add_storage(self, seconds: float) -> None:
        self.storage_seconds += seconds
        self.storage_calls += 1


def has_active_timing() -> bool:
    return _CURRENT_TIMING.get() is not None


def record_sql_time(seconds: float) -> None:
    timing = _CURRENT_TIMING.get()
    if timing is None:
        return
    timing.add_sql(seconds)


def record_storage_time(seconds: float) -> None:
    timing = _CURRENT_TIMING.get()
    if timing is None:
        return
    timing.add_storage(seconds)


@contextmanager
def storage_call_timing(operation: str, blob_name: str = "") -> Iterator[None]:
    """Log one object-storage call and charge it to the active page timing."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        record_storage_time(elapsed)
        logger.info("storage.timing op=%s ms=%.2f blob=%s", operation, elapsed * 1000.0, blob_name or "-")


@contextmanager
def page_load_timing(
    page: str, callback: str, log: Optional[logging.Logger] = None
) -> Generator[PageTiming, None, None]:
    start = time.perf_counter()
    timing = PageTiming(page=page, callback=callback, start=start)
    token = _CURRENT_TIMING.set(timing)
    try:
        yield timing
    finally:
        total = time.perf_counter() - start
        other = max(0.0, total - timing.sql_seconds - timing.storage_seconds)
        resolved_log = log or logger
        resolved_log.info(
            "page_load.timing page=%s callback=%s total_ms=%.2f sql_ms=%.2f storage_ms=%.2f "
            "storage_calls=%d other_ms=%.2f",
            page,
            callback,
            total * 1000,
            timing.sql_seconds * 1000,
            timing.storage_seconds * 1000,
            timing.storage_calls,
            other * 1000,
        )
        _CURRENT_TIMING.reset(token)


def timed_page_load(
    page: str,
    func: Callable[..., T],
    label: Optional[str] = None,
    log: Optional[logging.Logger] = None,
) -> Callable[..., T]:
    callback = label or func.__name__
    resolved_logger = log or logging.getLogger(DEFAULT_LOGGER_NAME)

    @functools.wraps(func)
    def _wrapped(*args, **kwargs) -> T:
        with page_load_timing(page, callback, resolved_logger):
            return func(*args, **kwargs)

    return _wrapped
