"""Tests for cancellable sleep, timeout races and retry with backoff."""

import asyncio
import time

import pytest

from termflow.cancellation import (
    CancellationError,
    CancellationToken,
    CancellationTokenSource,
    OperationTimeoutError,
    parallel_with_cancellation,
    retry_with_cancellation,
    sleep,
    with_timeout,
)


class TestSleep:
    @pytest.mark.asyncio()
    async def test_sleep_completes_without_token(self):
        started = time.monotonic()
        await sleep(0.01)
        assert time.monotonic() - started >= 0.009

    @pytest.mark.asyncio()
    async def test_sleep_wakes_on_cancel(self):
        source = CancellationTokenSource()
        asyncio.get_running_loop().call_later(0.01, source.cancel)

        started = time.monotonic()
        with pytest.raises(CancellationError):
            await sleep(5, source.token)
        assert time.monotonic() - started < 1

    @pytest.mark.asyncio()
    async def test_sleep_on_cancelled_token_raises_at_once(self):
        with pytest.raises(CancellationError):
            await sleep(5, CancellationToken.CANCELLED)


class TestWithTimeout:
    @pytest.mark.asyncio()
    async def test_returns_result_when_operation_wins(self):
        async def operation(token):
            return "done"

        assert await with_timeout(operation, 1) == "done"

    @pytest.mark.asyncio()
    async def test_hanging_operation_times_out_and_cancels_token(self):
        seen: list[CancellationToken] = []

        async def operation(token):
            seen.append(token)
            await asyncio.Event().wait()

        started = time.monotonic()
        with pytest.raises(OperationTimeoutError):
            await with_timeout(operation, 0.05)
        elapsed = time.monotonic() - started

        assert 0.04 <= elapsed < 1
        assert seen[0].is_cancelled

    @pytest.mark.asyncio()
    async def test_timeout_error_is_a_timeout_error(self):
        async def operation(token):
            await asyncio.sleep(10)

        with pytest.raises(TimeoutError, match="custom"):
            await with_timeout(operation, 0.01, message="custom")

    @pytest.mark.asyncio()
    async def test_token_aware_operation_still_times_out(self):
        async def operation(token):
            await sleep(10, token)

        with pytest.raises(OperationTimeoutError):
            await with_timeout(operation, 0.05)

    @pytest.mark.asyncio()
    async def test_operation_error_propagates(self):
        async def operation(token):
            raise ValueError("bad")

        with pytest.raises(ValueError, match="bad"):
            await with_timeout(operation, 1)


class TestRetryWithCancellation:
    @pytest.mark.asyncio()
    async def test_succeeds_after_failures(self):
        attempts = 0

        async def operation(token):
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise RuntimeError("flaky")
            return attempts

        result = await retry_with_cancellation(operation, max_retries=3, delay=0.001)

        assert result == 3

    @pytest.mark.asyncio()
    async def test_exhausted_retries_raise_last_error(self):
        attempts = 0

        async def operation(token):
            nonlocal attempts
            attempts += 1
            raise RuntimeError(f"attempt {attempts}")

        with pytest.raises(RuntimeError, match="attempt 3"):
            await retry_with_cancellation(operation, max_retries=2, delay=0.001)
        assert attempts == 3

    @pytest.mark.asyncio()
    async def test_negative_max_retries_is_rejected(self):
        calls = 0

        async def operation(token):
            nonlocal calls
            calls += 1

        with pytest.raises(ValueError, match="max_retries"):
            await retry_with_cancellation(operation, max_retries=-1, delay=0)
        assert calls == 0

    @pytest.mark.asyncio()
    async def test_cancel_during_first_backoff_stops_retrying(self):
        source = CancellationTokenSource()
        attempts = 0

        async def operation(token):
            nonlocal attempts
            attempts += 1
            raise RuntimeError("always")

        def on_retry(error, attempt):
            asyncio.get_running_loop().call_later(0.01, source.cancel)

        started = time.monotonic()
        with pytest.raises(CancellationError):
            await retry_with_cancellation(
                operation,
                max_retries=3,
                delay=5,
                token=source.token,
                on_retry=on_retry,
            )

        assert attempts < 3
        assert time.monotonic() - started < 1

    @pytest.mark.asyncio()
    async def test_cancellation_error_is_never_retried(self):
        attempts = 0

        async def operation(token):
            nonlocal attempts
            attempts += 1
            raise CancellationError()

        with pytest.raises(CancellationError):
            await retry_with_cancellation(operation, max_retries=5, delay=0.001)
        assert attempts == 1

    @pytest.mark.asyncio()
    async def test_cancelled_token_prevents_first_attempt(self):
        attempts = 0

        async def operation(token):
            nonlocal attempts
            attempts += 1

        with pytest.raises(CancellationError):
            await retry_with_cancellation(
                operation, max_retries=2, delay=0.001, token=CancellationToken.CANCELLED
            )
        assert attempts == 0

    @pytest.mark.asyncio()
    async def test_backoff_doubles_delay(self, monkeypatch):
        delays: list[float] = []

        async def fake_sleep(seconds, token=None):
            delays.append(seconds)

        monkeypatch.setattr("termflow.cancellation.operations.sleep", fake_sleep)

        async def operation(token):
            raise RuntimeError("always")

        with pytest.raises(RuntimeError):
            await retry_with_cancellation(operation, max_retries=3, delay=0.1)
        assert delays == pytest.approx([0.1, 0.2, 0.4])

        delays.clear()
        with pytest.raises(RuntimeError):
            await retry_with_cancellation(operation, max_retries=2, delay=0.1, backoff=False)
        assert delays == pytest.approx([0.1, 0.1])


@pytest.mark.asyncio()
async def test_parallel_with_cancellation_shares_token():
    source = CancellationTokenSource()
    seen: list[CancellationToken] = []

    async def operation(token):
        seen.append(token)
        return len(seen)

    results = await parallel_with_cancellation([operation, operation], source.token)

    assert sorted(results) == [1, 2]
    assert seen == [source.token, source.token]
