"""Tests for shipyard.platform.process module."""

from __future__ import annotations

import sys
import threading
import time
from pathlib import Path

import pytest

from shipyard.core.cancel import CancelToken
from shipyard.core.result import Err, Ok
from shipyard.platform.process import ProcessError, run

PY = sys.executable


class TestProcessError:
    """Test ProcessError dataclass."""

    def test_str_short_command(self) -> None:
        error = ProcessError(command=("gh", "release"), returncode=1, stdout="", stderr="x")
        assert str(error) == "gh release failed (exit 1)"

    def test_str_long_command_truncated(self) -> None:
        error = ProcessError(
            command=("aws", "s3api", "put-object", "--bucket", "b"),
            returncode=255,
            stdout="",
            stderr="error",
        )
        assert str(error) == "aws s3api put-object ... failed (exit 255)"

    def test_str_cancelled(self) -> None:
        error = ProcessError(("just", "build"), -1, "", "superseded", cancelled=True)
        assert str(error) == "just build cancelled"

    def test_frozen(self) -> None:
        error = ProcessError(("cmd",), 1, "", "")
        with pytest.raises(AttributeError):
            error.returncode = 2  # type: ignore[misc]


class TestRun:
    """Test run function."""

    def test_success_returns_stdout(self, tmp_path: Path) -> None:
        result = run([PY, "-c", "print('hello')"], cwd=tmp_path)

        assert isinstance(result, Ok)
        assert "hello" in result.value

    def test_undecodable_output_does_not_raise(self, tmp_path: Path) -> None:
        script = "import sys; sys.stdout.buffer.write(b'\\xff\\xfe built ok\\n')"
        result = run([PY, "-c", script], cwd=tmp_path)

        assert isinstance(result, Ok)
        assert "built ok" in result.value

    def test_failure_returns_error(self, tmp_path: Path) -> None:
        result = run([PY, "-c", "import sys; sys.exit(42)"], cwd=tmp_path)

        assert isinstance(result, Err)
        assert result.error.returncode == 42
        assert result.error.cancelled is False

    def test_command_not_found(self, tmp_path: Path) -> None:
        result = run(["nonexistent_command_12345"], cwd=tmp_path)

        assert isinstance(result, Err)
        assert result.error.returncode == -1
        assert len(result.error.stderr) > 0

    def test_captures_stderr(self, tmp_path: Path) -> None:
        result = run(
            [PY, "-c", "import sys; sys.stderr.write('error msg'); sys.exit(1)"],
            cwd=tmp_path,
        )

        assert isinstance(result, Err)
        assert "error msg" in result.error.stderr

    def test_uses_cwd_and_env(self, tmp_path: Path) -> None:
        (tmp_path / "marker.txt").write_text("content")

        result = run(
            [PY, "-c", "import os; print(os.listdir('.'), os.environ['SHIPYARD_X'])"],
            cwd=tmp_path,
            env={"SHIPYARD_X": "from-env", "PATH": ""},
        )

        assert isinstance(result, Ok)
        assert "marker.txt" in result.value
        assert "from-env" in result.value

    def test_timeout_kills_child(self, tmp_path: Path) -> None:
        result = run([PY, "-c", "import time; time.sleep(30)"], cwd=tmp_path, timeout=0.5)

        assert isinstance(result, Err)
        assert "timed out" in result.error.stderr


class TestRunCancellation:
    def test_already_cancelled_token_never_spawns(self, tmp_path: Path) -> None:
        token = CancelToken()
        token.cancel("superseded")

        result = run(["nonexistent_command_12345"], cwd=tmp_path, cancel=token)

        assert isinstance(result, Err)
        assert result.error.cancelled is True
        assert result.error.stderr == "superseded"

    def test_cancel_kills_running_child(self, tmp_path: Path) -> None:
        token = CancelToken()
        timer = threading.Timer(0.3, token.cancel, args=("newer run",))
        timer.start()
        started = time.monotonic()
        try:
            result = run([PY, "-c", "import time; time.sleep(30)"], cwd=tmp_path, cancel=token)
        finally:
            timer.cancel()

        assert isinstance(result, Err)
        assert result.error.cancelled is True
        assert time.monotonic() - started < 10
