"""Cancellation tokens shared between a run and the work it spawns."""

from __future__ import annotations

import threading


class CancelToken:
    """One-shot, thread-safe cancellation flag.

    The serializer cancels a run's token when a newer run claims the same key.
    Build workers, subprocesses and stage boundaries poll ``cancelled``.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: str | None = None
        self._lock = threading.Lock()

    def cancel(self, reason: str) -> None:
        with self._lock:
            if self._event.is_set():
                return
            self._reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled (or timeout). Returns True if cancelled."""
        return self._event.wait(timeout)
