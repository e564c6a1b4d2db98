"""HTTP client abstraction for hosted-provider APIs.

This module provides:
- HttpClient: Protocol for the JSON POST the release providers need
- RealHttpClient: urllib implementation
- MockHttpClient: canned responses for tests
"""

from __future__ import annotations

import json
import ssl
import urllib.error
import urllib.request
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from reliz import __version__
from reliz.core.result import Err, Ok, Result
from reliz.core.structured import StrDict, as_str_dict

__all__ = [
    "HttpClient",
    "HttpError",
    "MockHttpClient",
    "RealHttpClient",
]


@dataclass(frozen=True, slots=True)
class HttpError:
    """HTTP error details.

    Attributes:
        url: The URL that failed
        status: HTTP status code (0 for network errors)
        message: Human-readable error message (response body for API errors)
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
    def post_json(
        self,
        url: str,
        payload: Mapping[str, object],
        headers: Mapping[str, str],
    ) -> Result[StrDict, HttpError]:
        """POST a JSON payload and parse the JSON object response.

        A 2xx response whose body is not a JSON object yields Ok({}).
        """
        ...


class RealHttpClient:
    """urllib-based client using the system certificate store."""

    def __init__(self, timeout: float = 30.0, user_agent: str = f"reliz/{__version__}") -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._ssl_context = ssl.create_default_context()

    def post_json(
        self,
        url: str,
        payload: Mapping[str, object],
        headers: Mapping[str, str],
    ) -> Result[StrDict, HttpError]:
        body = json.dumps(dict(payload)).encode("utf-8")
        all_headers = {
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
            **headers,
        }
        req = urllib.request.Request(url, data=body, headers=all_headers, method="POST")
        try:
            with urllib.request.urlopen(
                req,
                timeout=self.timeout,
                context=self._ssl_context,
            ) as response:
                raw = response.read()
        except urllib.error.HTTPError as e:
            detail = e.read().decode("utf-8", errors="replace") or str(e.reason)
            return Err(HttpError(url=url, status=e.code, message=detail))
        except urllib.error.URLError as e:
            return Err(HttpError(url=url, status=0, message=str(e.reason)))
        except TimeoutError:
            return Err(HttpError(url=url, status=0, message="Request timed out"))
        except (ValueError, OSError) as e:
            return Err(HttpError(url=url, status=0, message=str(e)))

        try:
            data: object = json.loads(raw.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError):
            return Ok({})
        return Ok(as_str_dict(data) or {})


@dataclass(frozen=True, slots=True)
class RecordedRequest:
    url: str
    payload: StrDict
    headers: dict[str, str]


class MockHttpClient:
    """Mock HTTP client for testing.

    Usage:
        client = MockHttpClient()
        client.set_response("https://api.github.com/repos/o/r/releases", {"html_url": "..."})
    """

    def __init__(self) -> None:
        self._responses: dict[str, StrDict | HttpError] = {}
        self.requests: list[RecordedRequest] = []

    def set_response(self, url: str, response: StrDict | HttpError) -> None:
        self._responses[url] = response

    def post_json(
        self,
        url: str,
        payload: Mapping[str, object],
        headers: Mapping[str, str],
    ) -> Result[StrDict, HttpError]:
        self.requests.append(RecordedRequest(url=url, payload=dict(payload), headers=dict(headers)))

        if url not in self._responses:
            return Err(HttpError(url=url, status=404, message="Not found (mock)"))

        response = self._responses[url]
        if isinstance(response, HttpError):
            return Err(response)
        return Ok(response)
