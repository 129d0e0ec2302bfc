"""Tests for the tenacity-based retry decorator."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from mailrelay.resilience.retry import resilient_api_call


class TransientError(Exception):
    pass


class TestResilientApiCall:
    def test_returns_first_success(self) -> None:
        func = MagicMock(return_value="ok")
        wrapped = resilient_api_call("test_api", delay_seconds=0)(func)

        assert wrapped() == "ok"
        assert func.call_count == 1

    def test_retries_until_success(self) -> None:
        func = MagicMock(side_effect=[TransientError("boom"), TransientError("boom"), "ok"])
        wrapped = resilient_api_call("test_api", attempts=3, delay_seconds=0)(func)

        assert wrapped() == "ok"
        assert func.call_count == 3

    def test_reraises_original_exception_after_exhaustion(self) -> None:
        func = MagicMock(side_effect=TransientError("still failing"))
        wrapped = resilient_api_call("test_api", attempts=2, delay_seconds=0)(func)

        with pytest.raises(TransientError, match="still failing"):
            wrapped()
        assert func.call_count == 2

    def test_unlisted_exceptions_are_not_retried(self) -> None:
        func = MagicMock(side_effect=KeyError("nope"))
        wrapped = resilient_api_call("test_api", delay_seconds=0, retry_on=(TransientError,))(func)

        with pytest.raises(KeyError):
            wrapped()
        assert func.call_count == 1

    def test_predicate_decides_what_is_retried(self) -> None:
        func = MagicMock(side_effect=[TransientError("retry me"), TransientError("fatal")])
        wrapped = resilient_api_call(
            "test_api",
            attempts=5,
            delay_seconds=0,
            retry_if=lambda exc: str(exc) == "retry me",
        )(func)

        with pytest.raises(TransientError, match="fatal"):
            wrapped()
        assert func.call_count == 2

    def test_logs_warning_per_retry_and_error_on_failure(self) -> None:
        func = MagicMock(side_effect=TransientError("boom"))
        wrapped = resilient_api_call("test_api", attempts=3, delay_seconds=0)(func)

        with patch("mailrelay.resilience.retry.logger") as mock_logger, pytest.raises(TransientError):
            wrapped()

        assert mock_logger.warning.call_count == 2
        mock_logger.error.assert_called_once()
        assert mock_logger.error.call_args.kwargs["api_name"] == "test_api"
        assert mock_logger.error.call_args.kwargs["attempts"] == 3

    @pytest.mark.anyio()
    async def test_coroutine_functions(self) -> None:
        func = AsyncMock(side_effect=[TransientError("boom"), "ok"])

        async def call() -> str:
            return await func()

        wrapped = resilient_api_call("async_api", attempts=2, delay_seconds=0)(call)

        assert await wrapped() == "ok"
        assert func.await_count == 2
