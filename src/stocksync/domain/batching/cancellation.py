"""Cooperative cancellation for import runs and batch attempts."""

from __future__ import annotations

import asyncio
import queue
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from stocksync.domain.errors import ErrorKind, ImportCancelledError, IngestError

if TYPE_CHECKING:
    from collections.abc import Awaitable


class AttemptAbandonedError(IngestError):
    """Raised inside a worker whose batch attempt was given up (timeout or cancel)."""

    kind = ErrorKind.BATCH_FAILED


class CancellationToken:
    """One cancellation signal shared by every suspension point of a run.

    ``cancel()`` may be called from any thread. A signal handler interrupts the
    main thread, possibly while it holds the token's lock, so it uses
    ``cancel_soon()`` instead, which only enqueues the request for the relay
    thread started by ``start_relay()``. Waiting is event-driven; nothing polls.
    """

    def __init__(self) -> None:
        self._flag = threading.Event()
        self._lock = threading.Lock()
        self._waiters: list[tuple[asyncio.AbstractEventLoop, asyncio.Event]] = []
        self._requests: queue.SimpleQueue[str] = queue.SimpleQueue()
        self._relay: threading.Thread | None = None
        self._requested = False
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._flag.is_set()

    @property
    def cancel_requested(self) -> bool:
        """True once a cancel was asked for, even if the relay has not applied it yet."""

        return self._requested or self._flag.is_set()

    def cancel(self, reason: str = "Import cancelled") -> None:
        self._requested = True
        with self._lock:
            if self._flag.is_set():
                return
            self.reason = reason
            self._flag.set()
            waiters = list(self._waiters)
        for loop, event in waiters:
            if not loop.is_closed():
                loop.call_soon_threadsafe(event.set)

    def cancel_soon(self, reason: str = "Import cancelled") -> None:
        """Request cancellation from a signal handler; takes no lock."""

        self._requested = True
        self._requests.put(reason)

    def start_relay(self) -> threading.Thread:
        """Start the daemon thread that applies ``cancel_soon()`` requests."""

        with self._lock:
            if self._relay is None:
                self._relay = threading.Thread(
                    target=self._apply_request, name="stocksync-cancel", daemon=True
                )
                self._relay.start()
            return self._relay

    def _apply_request(self) -> None:
        self.cancel(self._requests.get())

    def raise_if_cancelled(self) -> None:
        if self._flag.is_set():
            raise ImportCancelledError(self.reason or "Import cancelled")

    async def wait(self) -> None:
        """Return once the token is cancelled."""

        entry = (asyncio.get_running_loop(), asyncio.Event())
        with self._lock:
            if self._flag.is_set():
                return
            self._waiters.append(entry)
        try:
            await entry[1].wait()
        finally:
            with self._lock:
                self._waiters.remove(entry)

    async def sleep(self, delay: float) -> None:
        """Sleep ``delay`` seconds, raising ``ImportCancelledError`` as soon as cancelled."""

        self.raise_if_cancelled()
        if delay > 0:
            try:
                async with asyncio.timeout(delay):
                    await self.wait()
            except TimeoutError:
                return
        self.raise_if_cancelled()

    async def guard[T](self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first, then cancel it and raise.

        Work that still finishes while it is being cancelled keeps its result: a batch
        that committed must not be reported as timed out or cancelled.
        """

        self.raise_if_cancelled()
        work = asyncio.ensure_future(awaitable)
        watcher = asyncio.ensure_future(self.wait())
        try:
            await asyncio.wait({work, watcher}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            work.cancel()
            await asyncio.gather(work, return_exceptions=True)
            if finished_cleanly(work):
                return work.result()
            raise
        finally:
            watcher.cancel()
        if work.done():
            return work.result()
        work.cancel()
        await asyncio.gather(work, return_exceptions=True)
        if finished_cleanly(work):
            return work.result()
        self.raise_if_cancelled()
        raise ImportCancelledError("Import cancelled")  # pragma: no cover


def finished_cleanly(work: asyncio.Future[Any]) -> bool:
    """Whether ``work`` ran to completion, neither cancelled nor failed."""

    return work.done() and not work.cancelled() and work.exception() is None


@dataclass(slots=True)
class Checkpoint:
    """Stop signal polled by the worker-thread stages of one batch attempt."""

    token: CancellationToken | None = None
    _abandoned: threading.Event = field(default_factory=threading.Event)

    def abandon(self) -> None:
        self._abandoned.set()

    @property
    def stopped(self) -> bool:
        return self._abandoned.is_set() or (self.token is not None and self.token.cancelled)

    def __call__(self) -> None:
        if self.token is not None:
            self.token.raise_if_cancelled()
        if self._abandoned.is_set():
            raise AttemptAbandonedError("Batch attempt abandoned")
