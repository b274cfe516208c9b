"""Failure notification: one alert per failed run, never raising.

Delivery problems are reported on the console and dropped so they cannot
replace the failure that triggered them.
"""

from __future__ import annotations

import threading
from typing import Protocol

from shipyard.core.result import Err, Ok, Result
from shipyard.output.console import ConsoleProtocol
from shipyard.platform.http import HttpClient
from shipyard.services.release.errors import PipelineError
from shipyard.services.release.model import Run

FAILURE_TITLE = "Release Failed"


class Notifier(Protocol):
    def send(self, title: str, message: str) -> Result[None, PipelineError]: ...


class WebhookNotifier:
    """Slack-style incoming webhook."""

    def __init__(self, *, url: str, http: HttpClient) -> None:
        self._url = url
        self._http = http

    def send(self, title: str, message: str) -> Result[None, PipelineError]:
        result = self._http.post_json(self._url, {"text": f"*{title}*\n{message}"})
        if isinstance(result, Err):
            return Err(
                PipelineError(
                    kind="notification_failed",
                    message="webhook delivery failed",
                    hint=f"HTTP {result.error.status}" if result.error.status else result.error.message,
                )
            )
        return Ok(None)


class ConsoleNotifier:
    """Used when no webhook is configured."""

    def __init__(self, console: ConsoleProtocol) -> None:
        self._console = console

    def send(self, title: str, message: str) -> Result[None, PipelineError]:
        self._console.error(f"{title}: {message}")
        return Ok(None)


class FailureNotifier:
    def __init__(
        self,
        notifier: Notifier,
        *,
        workflow_url: str,
        console: ConsoleProtocol,
    ) -> None:
        self._notifier = notifier
        self._workflow_url = workflow_url.rstrip("/")
        self._console = console
        self._lock = threading.Lock()
        self._sent: set[str] = set()

    def diagnostic_url(self, run: Run) -> str:
        return f"{self._workflow_url}/{run.run_id}"

    def notify(self, run: Run, error: PipelineError) -> bool:
        """Send the failure alert for ``run`` once. Returns True if delivered."""
        with self._lock:
            if run.run_id in self._sent:
                return False
            self._sent.add(run.run_id)

        message = f"Please check the logs for the run at {self.diagnostic_url(run)}"
        try:
            result = self._notifier.send(FAILURE_TITLE, message)
        except Exception as e:  # noqa: BLE001
            self._console.warning(f"failure notification raised: {e!r} (run failed: {error.kind})")
            return False

        if isinstance(result, Err):
            self._console.warning(
                f"failure notification not delivered: {result.error.pretty()} "
                f"(run failed: {error.kind})"
            )
            return False
        return True
