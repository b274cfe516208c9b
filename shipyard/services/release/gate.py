"""Trigger gate: decide whether an event starts a run.

The gate is pure. Given the same event and settings it always returns the same
decision, and it touches nothing outside its arguments.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from shipyard.core.result import Err, Ok, Result
from shipyard.core.structured import as_str_dict, get_raw_str, get_str, get_table
from shipyard.services.release.errors import PipelineError
from shipyard.services.release.model import (
    BranchClass,
    PreRelease,
    PreReleaseKind,
    Run,
    Stable,
    TriggerKind,
)

_HEADS_PREFIX = "refs/heads/"

_PRERELEASE_PREFIXES: tuple[PreReleaseKind, ...] = ("alpha", "beta", "rc")


@dataclass(frozen=True, slots=True)
class TriggerEvent:
    kind: TriggerKind
    ref: str
    repository_owner: str
    head_commit_message: str | None = None
    inputs: tuple[tuple[str, str], ...] = ()

    def input(self, name: str) -> str | None:
        for k, v in self.inputs:
            if k == name:
                return v
        return None

    @classmethod
    def from_github(
        cls, event_name: str, payload: Mapping[str, object]
    ) -> Result[TriggerEvent, PipelineError]:
        """Parse a GitHub ``push`` or ``workflow_dispatch`` payload."""
        match event_name:
            case "push":
                kind: TriggerKind = "push"
            case "workflow_dispatch":
                kind = "manual"
            case _:
                return Err(
                    PipelineError(
                        kind="invalid_event",
                        message=f"unsupported event: {event_name}",
                        hint="expected push or workflow_dispatch",
                    )
                )

        ref = get_str(payload, "ref")
        if ref is None:
            return Err(PipelineError(kind="invalid_event", message="event payload has no ref"))

        owner = _repository_owner(payload)
        if owner is None:
            return Err(
                PipelineError(kind="invalid_event", message="event payload has no repository owner")
            )

        message: str | None = None
        commit = get_table(payload, "head_commit")
        if commit is not None:
            message = get_raw_str(commit, "message")

        inputs: list[tuple[str, str]] = []
        raw_inputs = get_table(payload, "inputs")
        if raw_inputs is not None:
            for k, v in sorted(raw_inputs.items()):
                if isinstance(v, str):
                    inputs.append((k, v))

        return Ok(
            cls(
                kind=kind,
                ref=branch_name(ref),
                repository_owner=owner,
                head_commit_message=message,
                inputs=tuple(inputs),
            )
        )


def _repository_owner(payload: Mapping[str, object]) -> str | None:
    repo = get_table(payload, "repository")
    if repo is None:
        return None
    owner = as_str_dict(repo.get("owner"))
    if owner is not None:
        # push payloads carry both; dispatch payloads only carry login.
        return get_str(owner, "login") or get_str(owner, "name")
    return None


@dataclass(frozen=True, slots=True)
class Proceed:
    trigger: TriggerKind
    ref: str
    branch_class: BranchClass
    mode_override: str = ""

    def start(self, run_id: str) -> Run:
        return Run(
            run_id=run_id,
            trigger=self.trigger,
            ref=self.ref,
            branch_class=self.branch_class,
            mode_override=self.mode_override,
        )

    def outputs(self) -> list[str]:
        return [
            "proceed=true",
            f"branch_class={self.branch_class.name}",
            f"mode={self.mode_override}",
        ]


@dataclass(frozen=True, slots=True)
class Skip:
    reason: str

    def outputs(self) -> list[str]:
        return ["proceed=false", "branch_class=", "mode="]


type GateDecision = Proceed | Skip


def branch_name(ref: str) -> str:
    return ref.removeprefix(_HEADS_PREFIX)


def classify_branch(ref: str) -> BranchClass | None:
    """Map a branch to its class by prefix; None for non-release branches."""
    name = branch_name(ref)
    if name.startswith("stable"):
        return Stable()
    for prefix in _PRERELEASE_PREFIXES:
        if name.startswith(prefix):
            return PreRelease(kind=prefix)
    return None


def evaluate(
    event: TriggerEvent,
    *,
    owner: str,
    release_marker: str,
    mode_input: str,
) -> GateDecision:
    """Return Proceed only for the authorized owner and a qualifying trigger.

    Manual dispatch qualifies on any branch (unmatched branches classify as
    ``other``). A push qualifies only on a release branch whose head commit
    message starts with ``release_marker``.
    """
    if event.repository_owner != owner:
        return Skip(f"repository owner '{event.repository_owner}' is not authorized")

    branch_class = classify_branch(event.ref)

    if event.kind == "manual":
        return Proceed(
            trigger="manual",
            ref=event.ref,
            branch_class=branch_class or PreRelease(kind="other"),
            mode_override=event.input(mode_input) or "",
        )

    if branch_class is None:
        return Skip(f"branch '{event.ref}' is not a release branch")

    message = event.head_commit_message or ""
    if not message.startswith(release_marker):
        return Skip(f"head commit does not start with '{release_marker}'")

    return Proceed(trigger="push", ref=event.ref, branch_class=branch_class)
