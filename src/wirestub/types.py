"""Core protocol definitions for wirestub."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable

from wirestub.http import Options, Request, Response
from wirestub.template import RequestTemplate

RequestInterceptor = Callable[[RequestTemplate], None]
"""Adjusts the per-call template (auth headers, tracing ids...) before sending."""

ResponseInterceptor = Callable[[Response], Response]
"""Inspects or replaces each response before it is decoded."""


@runtime_checkable
class Transport(Protocol):
    """Protocol for blocking HTTP transports.

    Implementations must be safe to call from several threads at once, since
    every awaited call runs on its own worker thread.
    """

    def execute(self, request: Request, options: Options) -> Response:
        """Send the request and read the whole response.

        Args:
            request: The request to send
            options: Timeouts and redirect policy for this call

        Returns:
            The response, whatever its status

        Raises:
            Exception: If the exchange fails (wrapped as TransportError)
        """
        ...


@runtime_checkable
class AbortableTransport(Transport, Protocol):
    """A blocking transport that can interrupt an in-flight request."""

    def abort(self, request: Request) -> None:
        """Abort the exchange for request if it is still running.

        Called from another thread than the one blocked in ``execute``.
        """
        ...


@runtime_checkable
class AsyncTransport(Protocol):
    """Protocol for asyncio HTTP transports.

    Cancelling the awaiting task aborts the exchange.
    """

    async def execute(self, request: Request, options: Options) -> Response:
        """Send the request and read the whole response.

        Args:
            request: The request to send
            options: Timeouts and redirect policy for this call

        Returns:
            The response, whatever its status

        Raises:
            Exception: If the exchange fails (wrapped as TransportError)
        """
        ...

    async def close(self) -> None:
        """Release connections held by the transport."""
        ...
