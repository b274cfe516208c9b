"""Branch-class release policy.

The one place that decides registry, draft and tag behaviour. Stages consume a
``ReleasePolicy`` and never inspect branch names themselves.
"""

from __future__ import annotations

from shipyard.services.release.model import (
    BranchClass,
    PreRelease,
    ReleasePolicy,
    Run,
    Stable,
)


def release_policy(branch_class: BranchClass) -> ReleasePolicy:
    match branch_class:
        case Stable():
            return ReleasePolicy(publish_to_registry=True, draft=False, tag_enabled=True)
        case PreRelease():
            return ReleasePolicy(publish_to_registry=False, draft=True, tag_enabled=False)


def updates_latest(run: Run) -> bool:
    """Manual runs are exploratory and never touch the ``latest`` label."""
    return run.trigger == "push"
