"""In-memory transports for testing API clients.

Example:
    ```python
    mock = MockClient().ok(HttpMethod.GET, "/icecream/flavors", b'["Vanilla"]')
    api = target(IceCreamApi, "http://localhost", ClientConfig(transport=mock))
    api.flavors()
    mock.verify_one(HttpMethod.GET, "/icecream/flavors")
    ```

Registered URLs may be absolute or relative to any host; they are compared
after percent-decoding.
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Self
from urllib.parse import unquote, urlsplit

from wirestub.http import HttpMethod, Options, Request, Response


class VerificationAssertionError(AssertionError):
    """Raised when recorded traffic does not match expectations."""


@dataclass(frozen=True)
class RequestKey:
    """Identifies requests by method and decoded URL."""

    method: HttpMethod
    url: str

    @classmethod
    def of(cls, request: Request) -> RequestKey:
        return cls(request.method, unquote(request.url))

    def matches(self, other: RequestKey) -> bool:
        if self.method is not other.method:
            return False
        if self.url == other.url:
            return True
        # A relative key matches the path and query of any host
        if not urlsplit(self.url).scheme:
            parts = urlsplit(other.url)
            relative = parts.path + (f"?{parts.query}" if parts.query else "")
            return relative == self.url
        return False

    def __str__(self) -> str:
        return f"{self.method} {self.url}"


@dataclass
class _Stub:
    key: RequestKey
    status: int
    body: bytes
    headers: dict[str, list[str]] = field(default_factory=dict)
    delay: float = 0.0


def _as_bytes(body: bytes | str | None) -> bytes:
    if body is None:
        return b""
    if isinstance(body, str):
        return body.encode("utf-8")
    return body


class MockClient:
    """A blocking transport answering from registered responses.

    In the default mode the last registered response matching a request wins
    and unmatched requests get a 404. In sequential mode every request must
    match the next registered response, in order. Requests are recorded for
    verification in both modes.
    """

    def __init__(self, sequential: bool = False) -> None:
        self.sequential = sequential
        self._stubs: list[_Stub] = []
        self._requests: dict[RequestKey, list[Request]] = {}
        self._position = 0
        self._lock = threading.Lock()

    def add(
        self,
        method: HttpMethod,
        url: str,
        status: int,
        body: bytes | str | None = None,
        headers: Mapping[str, list[str]] | None = None,
        delay: float = 0.0,
    ) -> Self:
        """Register a response.

        Args:
            method: Request method to match
            url: Absolute URL, or path and query matching any host
            status: Response status
            body: Response body
            headers: Response headers
            delay: Seconds to wait before answering
        """
        key = RequestKey(method, unquote(url))
        self._stubs.append(_Stub(key, status, _as_bytes(body), dict(headers or {}), delay))
        return self

    def ok(
        self, method: HttpMethod, url: str, body: bytes | str | None = None, delay: float = 0.0
    ) -> Self:
        return self.add(method, url, 200, body, delay=delay)

    def no_content(self, method: HttpMethod, url: str) -> Self:
        return self.add(method, url, 204)

    def execute(self, request: Request, options: Options) -> Response:
        stub = self._match(request)
        if stub is not None and stub.delay:
            self._wait(request, stub.delay)
        return self._response(request, stub)

    def _match(self, request: Request) -> _Stub | None:
        key = RequestKey.of(request)
        with self._lock:
            self._requests.setdefault(self._recorded_key(key), []).append(request)
            if self.sequential:
                if self._position >= len(self._stubs):
                    msg = f"Received excessive request {key}"
                    raise VerificationAssertionError(msg)
                stub = self._stubs[self._position]
                self._position += 1
                if not stub.key.matches(key):
                    msg = f"Expected {stub.key} but was {key}"
                    raise VerificationAssertionError(msg)
                return stub

            matching = [stub for stub in self._stubs if stub.key.matches(key)]
            return matching[-1] if matching else None

    def _recorded_key(self, key: RequestKey) -> RequestKey:
        for stub in self._stubs:
            if stub.key.matches(key):
                return stub.key
        return key

    def _wait(self, request: Request, delay: float) -> None:
        threading.Event().wait(delay)

    @staticmethod
    def _response(request: Request, stub: _Stub | None) -> Response:
        if stub is None:
            return Response(404, "Not mocked", dict(request.headers), b"", request)
        return Response(stub.status, "Mocked", dict(stub.headers), stub.body, request)

    def requests(self, method: HttpMethod, url: str) -> list[Request]:
        """Requests recorded under the given method and URL."""
        key = RequestKey(method, unquote(url))
        with self._lock:
            return [
                request
                for recorded, requests in self._requests.items()
                if key.matches(recorded) or recorded.matches(key)
                for request in requests
            ]

    def verify_one(self, method: HttpMethod, url: str) -> Request:
        return self.verify_times(method, url, 1)[0]

    def verify_times(self, method: HttpMethod, url: str, times: int) -> list[Request]:
        """Assert the request was received exactly ``times`` times.

        Returns:
            The recorded requests
        """
        if times < 0:
            msg = "times must be a non negative number"
            raise ValueError(msg)
        requests = self.requests(method, url)
        if times == 0:
            self.verify_never(method, url)
        elif not requests:
            msg = f"Wanted {method} {url} but never invoked"
            raise VerificationAssertionError(msg)
        elif len(requests) != times:
            msg = f"Wanted {method} {url} {times} times but got {len(requests)}"
            raise VerificationAssertionError(msg)
        return requests

    def verify_never(self, method: HttpMethod, url: str) -> None:
        if self.requests(method, url):
            msg = f"Did not want {method} {url} but it was invoked"
            raise VerificationAssertionError(msg)

    def verify_status(self) -> None:
        """In sequential mode, assert every registered response was used."""
        if self.sequential and self._position < len(self._stubs):
            msg = "More executions were expected"
            raise VerificationAssertionError(msg)

    def reset_requests(self) -> None:
        with self._lock:
            self._requests.clear()

    def asynchronous(self) -> AsyncMockClient:
        """An asyncio transport sharing this mock's responses and records."""
        return AsyncMockClient(self)


class AbortableMockClient(MockClient):
    """A MockClient whose delayed responses can be interrupted by ``abort``."""

    def __init__(self, sequential: bool = False) -> None:
        super().__init__(sequential)
        self._in_flight: dict[int, threading.Event] = {}
        self.aborted: list[Request] = []

    def _wait(self, request: Request, delay: float) -> None:
        event = threading.Event()
        with self._lock:
            self._in_flight[id(request)] = event
        try:
            if event.wait(delay):
                msg = f"Request aborted: {request}"
                raise ConnectionAbortedError(msg)
        finally:
            with self._lock:
                self._in_flight.pop(id(request), None)

    def abort(self, request: Request) -> None:
        with self._lock:
            event = self._in_flight.get(id(request))
            self.aborted.append(request)
        if event is not None:
            event.set()


class AsyncMockClient:
    """Asyncio view of a MockClient; cancelling a call abandons its delay."""

    def __init__(self, mock: MockClient) -> None:
        self.mock = mock
        self.cancelled: list[Request] = []
        self.closed = False

    async def execute(self, request: Request, options: Options) -> Response:
        stub = self.mock._match(request)
        if stub is not None and stub.delay:
            try:
                await asyncio.sleep(stub.delay)
            except asyncio.CancelledError:
                self.cancelled.append(request)
                raise
        return self.mock._response(request, stub)

    async def close(self) -> None:
        self.closed = True
