"""Tests for platform/http.py - HTTP client abstraction."""

import pytest

from shipyard.core.result import Err, Ok
from shipyard.platform.http import HttpClient, HttpError, MockHttpClient, RealHttpClient


class TestHttpError:
    def test_str_with_status(self) -> None:
        error = HttpError(url="https://example.com/api", status=500, message="Internal Error")
        assert str(error) == "HTTP 500: Internal Error (https://example.com/api)"

    def test_str_without_status(self) -> None:
        """Network errors carry status 0."""
        error = HttpError(url="https://example.com", status=0, message="Timeout")
        assert str(error) == "Timeout (https://example.com)"

    def test_is_frozen(self) -> None:
        error = HttpError(url="https://example.com", status=404, message="Not Found")
        with pytest.raises(AttributeError):
            error.status = 500  # type: ignore[misc]


class TestMockHttpClient:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(MockHttpClient(), HttpClient)
        assert isinstance(RealHttpClient(), HttpClient)

    def test_get_json_returns_configured_response(self) -> None:
        client = MockHttpClient()
        client.set_json("https://api/x", {"crate": {"max_version": "1.0.0"}})

        result = client.get_json("https://api/x")

        assert isinstance(result, Ok)
        assert result.value["crate"]["max_version"] == "1.0.0"
        assert client.calls == [("get_json", "https://api/x")]

    def test_get_json_unknown_url_is_404(self) -> None:
        result = MockHttpClient().get_json("https://api/missing")

        assert isinstance(result, Err)
        assert result.error.status == 404

    def test_get_json_configured_error(self) -> None:
        client = MockHttpClient()
        client.set_json("https://api/x", HttpError("https://api/x", 503, "unavailable"))

        result = client.get_json("https://api/x")

        assert isinstance(result, Err)
        assert result.error.status == 503

    def test_post_json_records_payload(self) -> None:
        client = MockHttpClient()

        result = client.post_json("https://hooks/x", {"text": "hi"})

        assert isinstance(result, Ok)
        assert client.posted == [("https://hooks/x", {"text": "hi"})]

    def test_post_json_failure(self) -> None:
        client = MockHttpClient()
        client.fail_post("https://hooks/x", HttpError("https://hooks/x", 0, "refused"))

        result = client.post_json("https://hooks/x", {"text": "hi"})

        assert isinstance(result, Err)
        assert client.posted == []


class TestRealHttpClient:
    def test_defaults(self) -> None:
        client = RealHttpClient()
        assert client.timeout == 30.0
        assert client.user_agent.startswith("shipyard/")

