"""Transport implementations for wirestub clients.

``HttpxTransport`` performs blocking exchanges and serves direct calls (and
awaited calls, on worker threads). ``AiohttpTransport`` performs asyncio
exchanges and lets awaited calls stay on the event loop.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Self

import aiohttp
import httpx

from wirestub.http import Options, Request, Response


def _collect_headers(items: Iterable[tuple[str, str]]) -> dict[str, list[str]]:
    headers: dict[str, list[str]] = {}
    for name, value in items:
        headers.setdefault(name, []).append(value)
    return headers


def _flatten_headers(headers: dict[str, list[str]]) -> list[tuple[str, str]]:
    return [(name, value) for name, values in headers.items() for value in values]


class HttpxTransport:
    """Blocking transport backed by an ``httpx.Client``.

    The client's connection pool is shared by every call; httpx synchronizes
    it internally, so one transport may serve many worker threads.
    """

    def __init__(
        self, client: httpx.Client | None = None, *, owns_client: bool | None = None
    ) -> None:
        """Initialize the transport.

        Args:
            client: Client to send requests with; one is created (and owned)
                when omitted
            owns_client: Whether close() closes the client; defaults to True
                only for a client created here
        """
        self._client = client or httpx.Client()
        self._owns_client = client is None if owns_client is None else owns_client

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def execute(self, request: Request, options: Options) -> Response:
        """Send the request and read the whole response.

        Raises:
            httpx.HTTPError: If the exchange fails
        """
        response = self._client.request(
            str(request.method),
            request.url,
            headers=_flatten_headers(request.headers),
            content=request.body,
            timeout=httpx.Timeout(options.read_timeout, connect=options.connect_timeout),
            follow_redirects=options.follow_redirects,
        )
        return Response(
            status=response.status_code,
            reason=response.reason_phrase,
            headers=_collect_headers(response.headers.multi_items()),
            body=response.content,
            request=request,
        )

    def close(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            self._client.close()


class AiohttpTransport:
    """Asyncio transport backed by an ``aiohttp.ClientSession``.

    The session is created lazily inside the running loop. Cancelling the
    task awaiting ``execute`` aborts the request.
    """

    def __init__(self, session: aiohttp.ClientSession | None = None) -> None:
        """Initialize the transport.

        Args:
            session: Session to send requests with; one is created (and owned)
                on first use when omitted
        """
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        self._ensure_session()
        return self

    async def __aexit__(self, *args: object) -> None:
        """Async context manager exit."""
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def execute(self, request: Request, options: Options) -> Response:
        """Send the request and read the whole response.

        Raises:
            aiohttp.ClientError: If the exchange fails
            asyncio.TimeoutError: If a timeout elapses
        """
        session = self._ensure_session()
        timeout = aiohttp.ClientTimeout(
            sock_connect=options.connect_timeout,
            sock_read=options.read_timeout,
        )
        async with session.request(
            str(request.method),
            request.url,
            headers=_flatten_headers(request.headers),
            data=request.body,
            timeout=timeout,
            allow_redirects=options.follow_redirects,
        ) as response:
            body = await response.read()
            return Response(
                status=response.status,
                reason=response.reason or "",
                headers=_collect_headers(response.headers.items()),
                body=body,
                request=request,
            )

    async def close(self) -> None:
        """Close the session if this transport created it."""
        if self._session and self._owns_session:
            await self._session.close()
        self._session = None


def create_transport(url: str, **kwargs: Any) -> HttpxTransport:
    """Factory function to create the default blocking transport for a URL.

    Args:
        url: The API base URL
        **kwargs: Passed to ``httpx.Client``

    Returns:
        An HttpxTransport owning a new client

    Examples:
        >>> transport = create_transport("http://localhost:8080/api")
        >>> transport = create_transport("https://example.com", verify=False)
    """
    if url.startswith(("http://", "https://")):
        return HttpxTransport(httpx.Client(**kwargs), owns_client=True)
    msg = f"Unsupported URL scheme: {url}"
    raise ValueError(msg)
