from __future__ import annotations

import pytest
import tenacity

from halu.agents.retry_policy import RetryPolicy
from halu.errors import InteractionCancelledError, LLMRequestError, RetryExhaustedError, TransientStreamError


def _flaky(failures: int, exc_type=TransientStreamError):
    calls = {"n": 0}

    def request() -> str:
        calls["n"] += 1
        if calls["n"] <= failures:
            raise exc_type(f"boom {calls['n']}")
        return "ok"

    return request, calls


def test_retries_transient_failures_until_success() -> None:
    notices = []
    policy = RetryPolicy(
        10,
        wait=tenacity.wait_none(),
        on_retry=lambda attempt, limit, exc: notices.append((attempt, limit, str(exc))),
    )
    request, calls = _flaky(3)

    assert policy.attempt(request) == "ok"
    assert calls["n"] == 4
    assert notices == [(1, 10, "boom 1"), (2, 10, "boom 2"), (3, 10, "boom 3")]


def test_exhaustion_raises_with_last_error_chained() -> None:
    policy = RetryPolicy(3, wait=tenacity.wait_none())
    request, calls = _flaky(5)

    with pytest.raises(RetryExhaustedError) as excinfo:
        policy.attempt(request)

    assert calls["n"] == 3
    assert excinfo.value.attempts == 3
    assert isinstance(excinfo.value.last_error, TransientStreamError)
    assert excinfo.value.__cause__ is excinfo.value.last_error
    assert "boom 3" in str(excinfo.value)


@pytest.mark.parametrize("exc_type", [LLMRequestError, InteractionCancelledError, KeyError])
def test_non_transient_errors_propagate_immediately(exc_type) -> None:
    policy = RetryPolicy(10, wait=tenacity.wait_none())
    request, calls = _flaky(1, exc_type)

    with pytest.raises(exc_type):
        policy.attempt(request)
    assert calls["n"] == 1


def test_rejects_zero_attempts() -> None:
    with pytest.raises(ValueError):
        RetryPolicy(0)
