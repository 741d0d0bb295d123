from __future__ import annotations

import threading

from halu.errors import InteractionCancelledError


class CancellationToken:
    """Caller-owned cancel signal, safe to set from another thread (e.g. a SIGINT handler)."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise InteractionCancelledError("interaction cancelled")


__all__ = ["CancellationToken"]
