"""Per-key run serialization with cancel-and-replace semantics.

At most one run per key is active. A run that acquires a key cancels whoever
holds it (and whoever was already waiting for it), then blocks only until the
preempted run has released the key. Runs on different keys never interact.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from shipyard.core.cancel import CancelToken
from shipyard.core.result import Err, Ok, Result
from shipyard.services.release.errors import PipelineError, superseded

KEY_PREFIX = "version-bump-release-"


def serialization_key(ref: str) -> str:
    return f"{KEY_PREFIX}{ref}"


@dataclass(eq=False, slots=True)
class Lease:
    key: str
    run_id: str
    token: CancelToken = field(default_factory=CancelToken)


class ConcurrencySerializer:
    """In-process lock table keyed by serialization key."""

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._active: dict[str, Lease] = {}
        self._newest: dict[str, Lease] = {}

    def acquire(self, key: str, run_id: str) -> Result[Lease, PipelineError]:
        lease = Lease(key=key, run_id=run_id)
        with self._cond:
            reason = f"superseded by run {run_id}"
            active = self._active.get(key)
            if active is not None:
                active.token.cancel(reason)
            newest = self._newest.get(key)
            if newest is not None:
                newest.token.cancel(reason)
            self._newest[key] = lease
            # Wake any waiter we just cancelled.
            self._cond.notify_all()

            while key in self._active and not lease.token.cancelled:
                self._cond.wait()

            if lease.token.cancelled:
                return Err(superseded(lease.token.reason))

            self._active[key] = lease
            return Ok(lease)

    def release(self, lease: Lease) -> None:
        with self._cond:
            if self._active.get(lease.key) is lease:
                del self._active[lease.key]
            if self._newest.get(lease.key) is lease:
                del self._newest[lease.key]
            self._cond.notify_all()

    @contextmanager
    def hold(self, key: str, run_id: str) -> Iterator[Result[Lease, PipelineError]]:
        """Acquire for the duration of a ``with`` block; always releases."""
        result = self.acquire(key, run_id)
        try:
            yield result
        finally:
            if isinstance(result, Ok):
                self.release(result.value)

    def active_run(self, key: str) -> str | None:
        with self._cond:
            lease = self._active.get(key)
            return lease.run_id if lease is not None else None
