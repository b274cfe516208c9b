"""Subprocess execution with Result-based error handling.

Every external tool the pipeline drives (build recipes, aws, gh, cargo) goes
through ``run``. A run's ``CancelToken`` is honoured while the child is alive:
once the token is cancelled the child is killed and ``run`` returns an error
with ``cancelled=True``.

Usage:
    result = run(["gh", "release", "view", tag], cwd=root, timeout=60.0)
    match result:
        case Ok(stdout):
            ...
        case Err(error):
            print(f"Failed: {error.stderr}")
"""

from __future__ import annotations

import subprocess
import time
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from shipyard.core.cancel import CancelToken
from shipyard.core.result import Err, Ok, Result

__all__ = ["ProcessError", "run"]

_POLL_SECONDS = 0.2


@dataclass(frozen=True, slots=True)
class ProcessError:
    """Error from a failed subprocess execution.

    Attributes:
        command: The command that was executed.
        returncode: The exit code of the process (-1 if it never ran or was killed).
        stdout: Standard output (may be empty).
        stderr: Standard error (contains error details).
        cancelled: True if the child was killed because its run was cancelled.
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    cancelled: bool = False

    def __str__(self) -> str:
        cmd_str = " ".join(self.command[:3])
        if len(self.command) > 3:
            cmd_str += " ..."
        if self.cancelled:
            return f"{cmd_str} cancelled"
        return f"{cmd_str} failed (exit {self.returncode})"


def _kill(proc: subprocess.Popen[str]) -> tuple[str, str]:
    proc.kill()
    stdout, stderr = proc.communicate()
    return stdout or "", stderr or ""


def run(
    cmd: list[str],
    cwd: Path,
    env: Mapping[str, str] | None = None,
    *,
    timeout: float | None = None,
    cancel: CancelToken | None = None,
) -> Result[str, ProcessError]:
    """Execute a command and return stdout or error.

    Args:
        cmd: Command and arguments to execute.
        cwd: Working directory for the command.
        env: Full environment for the child (inherits ours if None).
        timeout: Maximum seconds to wait (None for no limit).
        cancel: Token polled while the child runs; cancelling kills the child.

    Returns:
        Ok(stdout) on success, Err(ProcessError) on failure.
    """
    command = tuple(cmd)
    if cancel is not None and cancel.cancelled:
        return Err(ProcessError(command, -1, "", cancel.reason or "cancelled", cancelled=True))

    try:
        proc = subprocess.Popen(
            cmd,
            cwd=str(cwd),
            env=dict(env) if env is not None else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors="replace",
        )
    except OSError as e:
        return Err(ProcessError(command, -1, "", str(e)))

    deadline = None if timeout is None else time.monotonic() + timeout
    while True:
        try:
            stdout, stderr = proc.communicate(timeout=_POLL_SECONDS)
            break
        except subprocess.TimeoutExpired:
            if cancel is not None and cancel.cancelled:
                out, _ = _kill(proc)
                return Err(
                    ProcessError(command, -1, out, cancel.reason or "cancelled", cancelled=True)
                )
            if deadline is not None and time.monotonic() >= deadline:
                out, _ = _kill(proc)
                return Err(ProcessError(command, -1, out, f"Command timed out after {timeout}s"))

    if proc.returncode != 0:
        return Err(ProcessError(command, proc.returncode, stdout or "", stderr or ""))

    return Ok(stdout or "")
