from __future__ import annotations

import asyncio
import signal
import threading
import time
from typing import TYPE_CHECKING

import pytest

from stocksync.domain.batching import (
    AttemptAbandonedError,
    AttemptResult,
    CancellationToken,
    Checkpoint,
    ThreadedBatchProcessor,
)
from stocksync.domain.errors import ImportCancelledError
from stocksync.domain.ingest import partition
from tests.helpers.imports import make_record

if TYPE_CHECKING:
    from types import FrameType

    from stocksync.domain.ingest import Batch


def test_cancel_keeps_first_reason() -> None:
    token = CancellationToken()

    token.cancel("first")
    token.cancel("second")

    assert token.cancelled
    assert token.reason == "first"
    with pytest.raises(ImportCancelledError, match="first"):
        token.raise_if_cancelled()


def test_sleep_returns_after_delay_when_not_cancelled() -> None:
    token = CancellationToken()

    asyncio.run(token.sleep(0.01))

    assert not token.cancelled


def test_cancel_from_another_thread_wakes_sleep() -> None:
    token = CancellationToken()

    async def scenario() -> float:
        started = time.perf_counter()
        threading.Timer(0.05, token.cancel).start()
        with pytest.raises(ImportCancelledError):
            await token.sleep(30)
        return time.perf_counter() - started

    assert asyncio.run(scenario()) < 5


def test_guard_cancels_the_guarded_work() -> None:
    token = CancellationToken()

    async def scenario() -> bool:
        cancelled = asyncio.Event()

        async def work() -> None:
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        asyncio.get_running_loop().call_later(0.02, token.cancel)
        with pytest.raises(ImportCancelledError):
            await token.guard(work())
        return cancelled.is_set()

    assert asyncio.run(scenario())


def test_cancel_soon_from_signal_handler_while_lock_is_held() -> None:
    token = CancellationToken()
    relay = token.start_relay()

    def on_sigint(signum: int, frame: FrameType | None) -> None:
        token.cancel_soon("Interrupted")

    previous = signal.signal(signal.SIGINT, on_sigint)
    try:
        with token._lock:  # noqa: SLF001
            signal.raise_signal(signal.SIGINT)
            assert token.cancel_requested
            assert not token.cancelled
        relay.join(5)
    finally:
        signal.signal(signal.SIGINT, previous)

    assert not relay.is_alive()
    assert token.cancelled
    assert token.reason == "Interrupted"
    assert token.start_relay() is relay


def test_guard_keeps_result_of_work_finishing_during_cancel() -> None:
    token = CancellationToken()

    async def work() -> int:
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            return 7
        return 0

    async def scenario() -> int:
        asyncio.get_running_loop().call_later(0.02, token.cancel)
        return await token.guard(work())

    assert asyncio.run(scenario()) == 7


def test_guard_keeps_result_of_work_finishing_during_timeout() -> None:
    token = CancellationToken()

    async def work() -> int:
        try:
            await asyncio.sleep(30)
        except asyncio.CancelledError:
            return 7
        return 0

    async def scenario() -> int:
        async with asyncio.timeout(0.02):
            return await token.guard(work())

    assert asyncio.run(scenario()) == 7
    assert not token.cancelled


def test_guard_returns_work_result() -> None:
    token = CancellationToken()

    async def work() -> int:
        return 7

    assert asyncio.run(token.guard(work())) == 7


def test_checkpoint_raises_once_abandoned_or_cancelled() -> None:
    token = CancellationToken()
    checkpoint = Checkpoint(token)

    checkpoint()
    checkpoint.abandon()
    assert checkpoint.stopped
    with pytest.raises(AttemptAbandonedError):
        checkpoint()

    token.cancel()
    with pytest.raises(ImportCancelledError):
        checkpoint()


def test_threaded_processor_returns_handler_result() -> None:
    (batch,) = partition([make_record()], 5)

    def handler(batch: Batch, *, checkpoint: Checkpoint) -> AttemptResult:
        checkpoint()
        return AttemptResult(succeeded_rows=len(batch))

    processor = ThreadedBatchProcessor(handler)
    result = asyncio.run(processor(batch, attempt=1, token=CancellationToken()))

    assert result.succeeded_rows == 1


def test_timed_out_attempt_unwinds_worker_before_returning() -> None:
    (batch,) = partition([make_record()], 5)
    exited = threading.Event()

    def handler(batch: Batch, *, checkpoint: Checkpoint) -> AttemptResult:
        try:
            while True:
                checkpoint()
                time.sleep(0.005)
        finally:
            exited.set()

    processor = ThreadedBatchProcessor(handler)

    async def scenario() -> None:
        async with asyncio.timeout(0.05):
            await processor(batch, attempt=1, token=CancellationToken())

    with pytest.raises(TimeoutError):
        asyncio.run(scenario())
    assert exited.is_set()


def test_worker_committing_past_its_last_checkpoint_keeps_its_result() -> None:
    (batch,) = partition([make_record()], 5)

    def handler(batch: Batch, *, checkpoint: Checkpoint) -> AttemptResult:
        checkpoint()
        time.sleep(0.2)
        return AttemptResult(succeeded_rows=len(batch), summary="committed")

    processor = ThreadedBatchProcessor(handler)

    async def scenario() -> AttemptResult:
        async with asyncio.timeout(0.05):
            return await processor(batch, attempt=1, token=CancellationToken())

    result = asyncio.run(scenario())

    assert result.summary == "committed"
    assert result.succeeded_rows == 1
