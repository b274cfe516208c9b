from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

PipelineErrorKind = Literal[
    "invalid_event",
    "config_invalid",
    "build_task_failed",
    "package_failed",
    "upload_conflict",
    "upload_failed",
    "publish_failed",
    "superseded",
    "notification_failed",
]


@dataclass(frozen=True, slots=True)
class PipelineError:
    """Canonical failure payload for every pipeline stage.

    A gate rejection is not an error; it is the ``Skip`` decision.
    """

    kind: PipelineErrorKind
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message


def superseded(reason: str | None) -> PipelineError:
    return PipelineError(
        kind="superseded",
        message="run superseded by a newer run on the same key",
        hint=reason,
    )
