"""Error hierarchy for halu.

Every error raised by the agent loop, its retry policy and the model
drivers derives from HaluError so callers can catch one type per
interaction and keep the session alive.
"""

from __future__ import annotations


class HaluError(Exception):
    """Base for all halu errors."""


class LLMConfigError(HaluError):
    """Missing or invalid model configuration (e.g., no API key)."""


class LLMRequestError(HaluError):
    """A well-formed error response from the model endpoint. Never retried."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class TransientStreamError(HaluError):
    """A server-side fault signalled while the stream was open.

    Safe to retry with the identical request.
    """


class RetryExhaustedError(HaluError):
    """Transient failures persisted past the attempt ceiling.

    Attributes:
        attempts: Number of attempts made.
        last_error: The final transient failure.
    """

    def __init__(self, attempts: int, last_error: BaseException | None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Model call failed after {attempts} attempts: {last_error}")


class UnknownToolError(HaluError):
    """The model asked for a tool that is not registered."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class InteractionCancelledError(HaluError):
    """The caller cancelled the interaction."""


class MaxRoundsExceededError(HaluError):
    """The model kept requesting tools past the round limit."""

    def __init__(self, max_rounds: int) -> None:
        self.max_rounds = max_rounds
        super().__init__(f"Interaction exceeded {max_rounds} model rounds")


__all__ = [
    "HaluError",
    "LLMConfigError",
    "LLMRequestError",
    "TransientStreamError",
    "RetryExhaustedError",
    "UnknownToolError",
    "InteractionCancelledError",
    "MaxRoundsExceededError",
]
