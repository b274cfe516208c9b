"""Tests for shipyard.core.errors module."""

from shipyard.core.errors import ErrorCode


class TestErrorCode:
    def test_values_are_stable(self) -> None:
        assert int(ErrorCode.OK) == 0
        assert int(ErrorCode.USER_ERROR) == 1
        assert int(ErrorCode.CONFIG_ERROR) == 2
        assert int(ErrorCode.BUILD_ERROR) == 3
        assert int(ErrorCode.PUBLISH_ERROR) == 4
        assert int(ErrorCode.UPLOAD_ERROR) == 5
        assert int(ErrorCode.SUPERSEDED) == 6

    def test_str(self) -> None:
        assert str(ErrorCode.CONFIG_ERROR) == "config error"

    def test_is_success(self) -> None:
        assert ErrorCode.OK.is_success
        assert not ErrorCode.BUILD_ERROR.is_success
