"""Bounded work distribution for ssg.

This module provides the single concurrency primitive used by the build:
one producer pushes work items into a bounded queue and a fixed number of
worker threads consume them.

Key names:
- CancelScope: Cancellation flag with parent to child propagation.
- one_to_n: Distribute items from one producer to N consumers.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any

from .errors import Cancelled, ConfigError

logger = logging.getLogger(__name__)

# How long blocked queue operations wait before re-checking cancellation.
_POLL_INTERVAL = 0.05


class NotEnoughConcurrencyError(ConfigError):
    """Concurrency must be greater than zero."""

    def __init__(self, concurrency: int):
        self.concurrency = concurrency
        super().__init__(f"concurrency must be greater than zero, got {concurrency}")


class CancelScope:
    """A cancellation flag shared by cooperating threads.

    Cancelling a scope also cancels every scope derived from it, the same
    way a derived context is cancelled with its parent. A scope created
    from an already cancelled parent starts out cancelled.

    Args:
        parent: Optional scope whose cancellation propagates to this one.
    """

    def __init__(self, parent: CancelScope | None = None):
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._children: list[CancelScope] = []
        if parent is not None:
            parent._adopt(self)

    def _adopt(self, child: CancelScope) -> None:
        with self._lock:
            if not self._event.is_set():
                self._children.append(child)
                return
        child.cancel()

    def cancel(self) -> None:
        """Cancel this scope and all scopes derived from it."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            children, self._children = self._children, []
        for child in children:
            child.cancel()

    @property
    def cancelled(self) -> bool:
        """Whether the scope has been cancelled."""
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the scope is cancelled or timeout elapses.

        Returns:
            True if the scope is cancelled.
        """
        return self._event.wait(timeout)

    def raise_if_cancelled(self) -> None:
        """Raise Cancelled if the scope has been cancelled."""
        if self._event.is_set():
            raise Cancelled("operation was cancelled")


Emit = Callable[[Any], None]
Producer = Callable[[Emit, CancelScope], None]
Consumer = Callable[[Any, CancelScope], None]


def one_to_n(
    produce: Producer,
    consume: Consumer,
    concurrency: int,
    parent: CancelScope | None = None,
) -> None:
    """Distribute work from one producer to a limited number of consumers.

    ``produce`` is called once with an ``emit`` function and the shared
    scope; every emitted item is handed to exactly one ``consume`` call
    running on one of ``concurrency`` worker threads. ``emit`` blocks while
    the queue holds ``concurrency`` items, and raises Cancelled instead of
    blocking forever once the scope is cancelled.

    The first error raised by the producer or any consumer cancels the
    scope and is re-raised here after all threads have stopped. Which error
    wins when both fail at nearly the same time is not defined. Workers stop
    at their next dequeue once the scope is cancelled; an item that is
    already being consumed is finished first.

    Args:
        produce: Callable emitting work items.
        consume: Callable processing one work item.
        concurrency: Number of worker threads, must be at least one.
        parent: Optional scope whose cancellation stops the distribution.

    Raises:
        NotEnoughConcurrencyError: If concurrency is below one. No thread
            is started in that case.
        Cancelled: If the parent scope was cancelled and nothing failed.
    """
    if concurrency < 1:
        raise NotEnoughConcurrencyError(concurrency)

    scope = CancelScope(parent)
    work: queue.Queue[Any] = queue.Queue(maxsize=concurrency)
    produced = threading.Event()
    errors: list[BaseException] = []
    errors_lock = threading.Lock()

    def fail(exc: BaseException) -> None:
        with errors_lock:
            if not errors:
                errors.append(exc)
        scope.cancel()

    def emit(item: Any) -> None:
        while True:
            scope.raise_if_cancelled()
            try:
                work.put(item, timeout=_POLL_INTERVAL)
                return
            except queue.Full:
                continue

    def run_producer() -> None:
        try:
            produce(emit, scope)
        except Exception as exc:
            fail(exc)
        finally:
            produced.set()

    def run_worker() -> None:
        while not scope.cancelled:
            try:
                item = work.get(timeout=_POLL_INTERVAL)
            except queue.Empty:
                if produced.is_set() and work.empty():
                    return
                continue
            try:
                consume(item, scope)
            except Exception as exc:
                fail(exc)
                return

    with ThreadPoolExecutor(
        max_workers=concurrency + 1, thread_name_prefix="ssg-worker"
    ) as executor:
        futures = [executor.submit(run_producer)]
        futures.extend(executor.submit(run_worker) for _ in range(concurrency))
        wait(futures)

    if errors:
        raise errors[0]
    if scope.cancelled:
        raise Cancelled("work distribution was cancelled")
