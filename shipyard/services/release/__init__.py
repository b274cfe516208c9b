"""Release pipeline: gate, serializer, build matrix, packaging, upload, publish."""

from shipyard.services.release.errors import PipelineError
from shipyard.services.release.gate import GateDecision, Proceed, Skip, TriggerEvent, evaluate
from shipyard.services.release.model import (
    BranchClass,
    PreRelease,
    ReleasePolicy,
    Run,
    RunOutcome,
    Stable,
    TargetPlatform,
)
from shipyard.services.release.pipeline import ReleasePipeline
from shipyard.services.release.policy import release_policy

__all__ = [
    "BranchClass",
    "GateDecision",
    "PipelineError",
    "PreRelease",
    "Proceed",
    "ReleasePipeline",
    "ReleasePolicy",
    "Run",
    "RunOutcome",
    "Skip",
    "Stable",
    "TargetPlatform",
    "TriggerEvent",
    "evaluate",
    "release_policy",
]
