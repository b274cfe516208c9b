from __future__ import annotations

import pytest

from shipyard.services.release.model import PreRelease, Run, Stable
from shipyard.services.release.policy import release_policy, updates_latest


def test_stable_policy_publishes_and_tags() -> None:
    policy = release_policy(Stable())

    assert policy.publish_to_registry is True
    assert policy.draft is False
    assert policy.tag_enabled is True


@pytest.mark.parametrize("kind", ["alpha", "beta", "rc", "other"])
def test_prerelease_policy_is_draft_dry_run(kind: str) -> None:
    policy = release_policy(PreRelease(kind=kind))  # type: ignore[arg-type]

    assert policy.publish_to_registry is False
    assert policy.draft is True
    assert policy.tag_enabled is False


def test_only_push_runs_update_latest() -> None:
    push = Run(run_id="a", trigger="push", ref="stable", branch_class=Stable())
    manual = Run(run_id="b", trigger="manual", ref="stable", branch_class=Stable())

    assert updates_latest(push) is True
    assert updates_latest(manual) is False
