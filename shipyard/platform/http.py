"""HTTP client abstraction for registry reads and webhook delivery.

This module provides:
- HttpClient: Protocol for HTTP operations (injectable for tests)
- RealHttpClient: Real implementation using urllib
- MockHttpClient: Mock implementation for testing
"""

from __future__ import annotations

import json
import ssl
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Protocol, cast, runtime_checkable

from shipyard import __version__
from shipyard.core.result import Err, Ok, Result
from shipyard.core.structured import as_str_dict

__all__ = [
    "HttpClient",
    "RealHttpClient",
    "MockHttpClient",
    "HttpError",
]


@dataclass(frozen=True, slots=True)
class HttpError:
    """HTTP error details.

    Attributes:
        url: The URL that failed
        status: HTTP status code (0 for network errors)
        message: Human-readable error message
    """

    url: str
    status: int
    message: str

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status}: {self.message} ({self.url})"
        return f"{self.message} ({self.url})"


@runtime_checkable
class HttpClient(Protocol):
    """Protocol for HTTP operations."""

    def get_json(self, url: str) -> Result[dict[str, Any], HttpError]:
        """Fetch URL and parse the body as a JSON object."""
        ...

    def post_json(self, url: str, payload: dict[str, Any]) -> Result[None, HttpError]:
        """POST a JSON object; the response body is ignored."""
        ...


class RealHttpClient:
    """Real HTTP client using urllib with system certificates."""

    def __init__(self, timeout: float = 30.0, user_agent: str = f"shipyard/{__version__}") -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._ssl_context = ssl.create_default_context()

    def _request(self, req: urllib.request.Request) -> Result[bytes, HttpError]:
        url = req.full_url
        try:
            with urllib.request.urlopen(
                req,
                timeout=self.timeout,
                context=self._ssl_context,
            ) as response:
                return Ok(response.read())
        except urllib.error.HTTPError as e:
            return Err(HttpError(url=url, status=e.code, message=str(e.reason)))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Request timed out"))
        except (ValueError, OSError) as e:
            return Err(HttpError(url=url, status=0, message=str(e)))

    def get_json(self, url: str) -> Result[dict[str, Any], HttpError]:
        req = urllib.request.Request(url, headers={"User-Agent": self.user_agent})
        result = self._request(req)
        if isinstance(result, Err):
            return result

        try:
            data_obj: object = json.loads(result.value.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return Err(HttpError(url=url, status=0, message=f"JSON parse error: {e}"))

        data = as_str_dict(data_obj)
        if data is None:
            return Err(HttpError(url=url, status=0, message="Expected JSON object"))
        return Ok(cast(dict[str, Any], data))

    def post_json(self, url: str, payload: dict[str, Any]) -> Result[None, HttpError]:
        req = urllib.request.Request(
            url,
            data=json.dumps(payload).encode("utf-8"),
            headers={"User-Agent": self.user_agent, "Content-Type": "application/json"},
            method="POST",
        )
        result = self._request(req)
        if isinstance(result, Err):
            return result
        return Ok(None)


class MockHttpClient:
    """Mock HTTP client for testing.

    Usage:
        client = MockHttpClient()
        client.set_json("https://crates.io/api/v1/crates/sn_node", {"crate": {...}})
        client.fail_post("https://hooks.example/x", HttpError(...))
    """

    def __init__(self) -> None:
        self._json_responses: dict[str, dict[str, Any] | HttpError] = {}
        self._post_failures: dict[str, HttpError] = {}
        self.calls: list[tuple[str, str]] = []
        self.posted: list[tuple[str, dict[str, Any]]] = []

    def set_json(self, url: str, response: dict[str, Any] | HttpError) -> None:
        self._json_responses[url] = response

    def fail_post(self, url: str, error: HttpError) -> None:
        self._post_failures[url] = error

    def get_json(self, url: str) -> Result[dict[str, Any], HttpError]:
        self.calls.append(("get_json", url))

        if url not in self._json_responses:
            return Err(HttpError(url=url, status=404, message="Not found (mock)"))

        response = self._json_responses[url]
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)

    def post_json(self, url: str, payload: dict[str, Any]) -> Result[None, HttpError]:
        self.calls.append(("post_json", url))
        if url in self._post_failures:
            return Err(self._post_failures[url])
        self.posted.append((url, payload))
        return Ok(None)
