"""Tests for cancellation tokens and sources."""

import pytest

from termflow.cancellation import (
    CancellationError,
    CancellationToken,
    CancellationTokenSource,
    is_cancellation_error,
)


class TestCancellationTokenSource:
    def test_cancel_twice_runs_each_listener_once(self):
        source = CancellationTokenSource()
        calls: list[str] = []
        source.token.on_cancellation_requested(lambda: calls.append("a"))
        source.token.on_cancellation_requested(lambda: calls.append("b"))

        source.cancel()
        source.cancel()

        assert calls == ["a", "b"]
        assert source.is_cancelled
        assert source.token.is_cancelled

    def test_failing_listener_does_not_block_others(self):
        source = CancellationTokenSource()
        calls: list[str] = []

        def broken() -> None:
            raise RuntimeError("boom")

        source.token.on_cancellation_requested(broken)
        source.token.on_cancellation_requested(lambda: calls.append("after"))

        source.cancel()

        assert calls == ["after"]

    def test_listener_on_cancelled_token_runs_immediately(self):
        source = CancellationTokenSource()
        source.cancel()
        calls: list[int] = []

        source.token.on_cancellation_requested(lambda: calls.append(1))

        assert calls == [1]

    def test_unregister_removes_listener(self):
        source = CancellationTokenSource()
        calls: list[int] = []
        unregister = source.token.on_cancellation_requested(lambda: calls.append(1))

        unregister()
        source.cancel()

        assert calls == []

    def test_dispose_cancels_token(self):
        source = CancellationTokenSource()
        source.dispose()
        assert source.token.is_cancelled


class TestFixedTokens:
    def test_none_token_never_cancels(self):
        token = CancellationToken.NONE
        calls: list[int] = []
        token.on_cancellation_requested(lambda: calls.append(1))

        assert not token.is_cancelled
        assert not token.can_be_cancelled
        token.throw_if_cancellation_requested()
        assert calls == []

    def test_cancelled_token_is_already_cancelled(self):
        token = CancellationToken.CANCELLED
        calls: list[int] = []
        token.on_cancellation_requested(lambda: calls.append(1))

        assert token.is_cancelled
        assert calls == [1]
        with pytest.raises(CancellationError):
            token.throw_if_cancellation_requested()

    def test_fixed_tokens_are_shared_values(self):
        assert CancellationToken.NONE is CancellationToken.NONE
        assert CancellationToken.CANCELLED is not CancellationToken.NONE


def test_throw_if_cancellation_requested():
    source = CancellationTokenSource()
    source.token.throw_if_cancellation_requested()

    source.cancel()

    with pytest.raises(CancellationError):
        source.token.throw_if_cancellation_requested()


def test_is_cancellation_error():
    assert is_cancellation_error(CancellationError())
    assert not is_cancellation_error(RuntimeError("nope"))
    assert not is_cancellation_error(None)
