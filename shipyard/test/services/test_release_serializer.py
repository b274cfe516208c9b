from __future__ import annotations

import threading
import time

from shipyard.core.result import Err, Ok
from shipyard.services.release.serializer import (
    ConcurrencySerializer,
    serialization_key,
)


def _wait_until(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_key_is_derived_from_ref() -> None:
    assert serialization_key("stable") == "version-bump-release-stable"


def test_acquire_and_release() -> None:
    serializer = ConcurrencySerializer()
    key = serialization_key("stable")

    result = serializer.acquire(key, "a")
    assert isinstance(result, Ok)
    assert serializer.active_run(key) == "a"

    serializer.release(result.value)
    assert serializer.active_run(key) is None


def test_hold_releases_on_exit() -> None:
    serializer = ConcurrencySerializer()
    key = serialization_key("alpha")

    with serializer.hold(key, "a") as held:
        assert isinstance(held, Ok)
        assert serializer.active_run(key) == "a"

    assert serializer.active_run(key) is None


def test_different_keys_are_independent() -> None:
    serializer = ConcurrencySerializer()

    a = serializer.acquire(serialization_key("stable"), "a")
    b = serializer.acquire(serialization_key("beta"), "b")

    assert isinstance(a, Ok)
    assert isinstance(b, Ok)
    assert not a.value.token.cancelled
    assert not b.value.token.cancelled


def test_newer_run_preempts_active_run() -> None:
    serializer = ConcurrencySerializer()
    key = serialization_key("stable")

    first = serializer.acquire(key, "a")
    assert isinstance(first, Ok)

    acquired: list[str] = []

    def newer() -> None:
        with serializer.hold(key, "b") as held:
            if isinstance(held, Ok):
                acquired.append(held.value.run_id)

    t = threading.Thread(target=newer)
    t.start()

    # The active run observes cancellation before the newer run may start.
    assert first.value.token.wait(timeout=5.0)
    assert first.value.token.reason == "superseded by run b"
    assert serializer.active_run(key) == "a"
    assert acquired == []

    serializer.release(first.value)
    t.join(timeout=5.0)

    assert acquired == ["b"]
    assert serializer.active_run(key) is None


def test_waiting_run_is_superseded_by_a_newer_one() -> None:
    serializer = ConcurrencySerializer()
    key = serialization_key("rc")

    first = serializer.acquire(key, "a")
    assert isinstance(first, Ok)

    results: dict[str, object] = {}

    def contender(run_id: str) -> None:
        with serializer.hold(key, run_id) as held:
            results[run_id] = held

    b = threading.Thread(target=contender, args=("b",))
    b.start()
    assert first.value.token.wait(timeout=5.0)

    c = threading.Thread(target=contender, args=("c",))
    c.start()
    # b gives up as soon as c arrives, without waiting for a.
    assert _wait_until(lambda: "b" in results)
    assert isinstance(results["b"], Err)

    serializer.release(first.value)
    c.join(timeout=5.0)
    b.join(timeout=5.0)

    held_c = results["c"]
    assert isinstance(held_c, Ok)
    assert held_c.value.run_id == "c"


def test_release_is_idempotent_for_stale_lease() -> None:
    serializer = ConcurrencySerializer()
    key = serialization_key("stable")

    first = serializer.acquire(key, "a")
    assert isinstance(first, Ok)
    serializer.release(first.value)
    second = serializer.acquire(key, "b")
    assert isinstance(second, Ok)

    serializer.release(first.value)

    assert serializer.active_run(key) == "b"
