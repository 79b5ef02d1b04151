"""Shared worker pool on which every parse-type operation runs."""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional, TypeVar

from . import config

logger = logging.getLogger(__name__)

T = TypeVar("T")

_EXECUTOR: Optional[ThreadPoolExecutor] = None
_EXECUTOR_LOCK = threading.Lock()


def get_executor(max_workers: Optional[int] = None) -> ThreadPoolExecutor:
    """Get or create the shared ThreadPoolExecutor for parse tasks."""
    global _EXECUTOR
    if _EXECUTOR is None:
        with _EXECUTOR_LOCK:
            if _EXECUTOR is None:
                workers = max_workers or config.MAX_WORKERS
                _EXECUTOR = ThreadPoolExecutor(
                    max_workers=workers, thread_name_prefix="codecanon-parse",
                )
                logger.debug("Started shared parse pool with %d workers", workers)
    return _EXECUTOR


def shutdown_executor(wait: bool = True) -> None:
    """Tear down the shared pool; the next :func:`get_executor` call starts a fresh one."""
    global _EXECUTOR
    with _EXECUTOR_LOCK:
        executor, _EXECUTOR = _EXECUTOR, None
    if executor is not None:
        executor.shutdown(wait=wait)
        logger.debug("Shared parse pool shut down")


def completed(value: T) -> "Future[T]":
    """Return an already-resolved future carrying *value*."""
    future: "Future[T]" = Future()
    future.set_result(value)
    return future
