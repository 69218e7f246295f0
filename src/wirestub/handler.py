"""The send/decode pipeline for one API method.

The pipeline is split into stages (build, send, handle) so that the direct
path can run them inline while the async adapter runs the very same stages on
its own worker. Both paths therefore fail with identical errors. Send and
handle repeat for as long as the configured retryer allows.
"""

from __future__ import annotations

import asyncio
import dataclasses
import threading
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from wirestub.error import RetryableError, WirestubError
from wirestub.http import Options, Request, Response
from wirestub.resolver import is_no_value_type
from wirestub.signal import InvocationResult

if TYPE_CHECKING:
    from wirestub.client import ClientConfig
    from wirestub.descriptor import MethodDescriptor
    from wirestub.logger import HttpLogger
    from wirestub.retryer import Retryer
    from wirestub.target import Target
    from wirestub.template import RequestTemplate
    from wirestub.types import AsyncTransport, Transport


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _as_strings(value: Any) -> list[str]:
    if isinstance(value, list | tuple | set):
        return [str(item) for item in value if item is not None]
    return [str(value)]


class MethodHandler:
    """Executes calls to one API method.

    Handlers are created once per client and shared by every call; they hold
    no per-call state.
    """

    def __init__(
        self,
        descriptor: MethodDescriptor,
        target: Target,
        config: ClientConfig,
        transport: Transport,
        http_logger: HttpLogger,
    ) -> None:
        self.descriptor = descriptor
        self.target = target
        self.config = config
        self.transport = transport
        self.http_logger = http_logger

    @property
    def method_key(self) -> str:
        return self.descriptor.method_key

    # Stage 1

    def build_request(
        self, args: tuple[Any, ...], kwargs: Mapping[str, Any]
    ) -> tuple[Request, Options]:
        """Bind arguments, encode the body, and run the interceptors.

        Raises:
            TypeError: If the arguments do not match the method signature
            WirestubError: ENCODE error if the body cannot be encoded
        """
        metadata = self.descriptor.metadata
        call = metadata.bind(args, kwargs)
        template = metadata.template.resolve(call.variables)

        for name, value in call.queries.items():
            if value is not None:
                template.query(name, *_as_strings(value))
        for name, value in call.headers.items():
            if value is not None:
                template.header(name, *_as_strings(value))

        if call.has_body:
            self._encode(call.body, template)

        for interceptor in self.config.interceptors:
            interceptor(template)

        return self.target.apply(template), call.options or self.config.options

    def _encode(self, body: Any, template: RequestTemplate) -> None:
        body_type = self.descriptor.metadata.body_type
        try:
            self.config.encoder.encode(body, body_type, template)
        except WirestubError as e:
            if e.method_key is not None:
                raise
            raise dataclasses.replace(e, method_key=self.method_key) from e
        except Exception as e:  # noqa: BLE001
            msg = f"{type(e).__name__}: {e}"
            raise WirestubError.encode(msg, self.method_key) from e

    # Stage 2

    def send(self, request: Request, options: Options) -> tuple[Response, int]:
        """Send through the blocking transport.

        Returns:
            The response and the elapsed milliseconds

        Raises:
            WirestubError: TRANSPORT error if the exchange fails
        """
        self.http_logger.log_request(self.method_key, request)
        start = time.monotonic()
        try:
            response = self.transport.execute(request, options)
        except WirestubError:
            raise
        except Exception as e:  # noqa: BLE001
            raise self._transport_error(request, e, _elapsed_ms(start)) from e
        return response, _elapsed_ms(start)

    async def send_async(
        self, request: Request, options: Options, transport: AsyncTransport
    ) -> tuple[Response, int]:
        """Send through an asyncio transport; see ``send``."""
        self.http_logger.log_request(self.method_key, request)
        start = time.monotonic()
        try:
            response = await transport.execute(request, options)
        except WirestubError:
            raise
        except Exception as e:  # noqa: BLE001
            raise self._transport_error(request, e, _elapsed_ms(start)) from e
        return response, _elapsed_ms(start)

    def _transport_error(
        self, request: Request, error: Exception, elapsed_ms: int
    ) -> WirestubError:
        self.http_logger.log_transport_error(self.method_key, error, elapsed_ms)
        detail = str(error) or type(error).__name__
        msg = f"{detail} executing {request.method} {request.url}"
        return WirestubError.transport(msg, self.method_key)

    # Stage 3

    def handle_response(self, response: Response, elapsed_ms: int = 0) -> Any:
        """Decode a successful response or decode the error of a failed one.

        Response interceptors run first, in order; each returns the response
        the next one (and the decoding) continues with.

        Raises:
            WirestubError: DECODE error if decoding fails
            Exception: Whatever the error decoder returns, for non-2xx responses
        """
        self.http_logger.log_response(self.method_key, response, elapsed_ms)
        for interceptor in self.config.response_interceptors:
            response = interceptor(response)
        return_type = self.descriptor.return_type

        if return_type is Response:
            return response
        if response.ok:
            if is_no_value_type(return_type):
                return None
            return self._decode(response, return_type)
        if response.status == 404 and self.config.dismiss_404:
            return None
        raise self.config.error_decoder.decode(self.method_key, response)

    def _decode(self, response: Response, return_type: Any) -> Any:
        try:
            return self.config.decoder.decode(response, return_type)
        except WirestubError as e:
            if e.method_key is not None:
                raise
            raise dataclasses.replace(
                e,
                method_key=self.method_key,
                status=response.status,
                body=response.body,
            ) from e
        except Exception as e:  # noqa: BLE001
            msg = f"{type(e).__name__}: {e}"
            raise WirestubError.decode(
                msg, self.method_key, response.status, response.body
            ) from e

    # Whole pipeline

    def execute(self, args: tuple[Any, ...], kwargs: Mapping[str, Any]) -> Any:
        """Run build, send, and handle inline; return or raise."""
        request, options = self.build_request(args, kwargs)
        return self.complete(request, options)

    def complete(
        self,
        request: Request,
        options: Options,
        aborted: threading.Event | None = None,
    ) -> Any:
        """Send and handle the request, retrying while the retryer allows.

        Args:
            request: The built request
            options: Options for every attempt
            aborted: Once set, the pending failure is raised instead of
                waiting for another attempt
        """
        retryer = self.config.retryer.clone()
        while True:
            try:
                response, elapsed_ms = self.send(request, options)
                return self.handle_response(response, elapsed_ms)
            except RetryableError as e:
                delay = self._continue_or_propagate(retryer, e)
                failure = e
            if aborted is None:
                time.sleep(delay)
            elif aborted.wait(delay):
                raise failure

    async def execute_async(
        self,
        args: tuple[Any, ...],
        kwargs: Mapping[str, Any],
        transport: AsyncTransport,
    ) -> Any:
        """Run the pipeline with an asyncio transport for the send stage."""
        request, options = self.build_request(args, kwargs)
        retryer = self.config.retryer.clone()
        while True:
            try:
                response, elapsed_ms = await self.send_async(request, options, transport)
                return self.handle_response(response, elapsed_ms)
            except RetryableError as e:
                delay = self._continue_or_propagate(retryer, e)
            await asyncio.sleep(delay)

    def _continue_or_propagate(self, retryer: Retryer, error: RetryableError) -> float:
        delay = retryer.continue_or_propagate(error)
        self.http_logger.log_retry(self.method_key)
        return delay

    def invoke(self, args: tuple[Any, ...], kwargs: Mapping[str, Any]) -> InvocationResult:
        """Run the pipeline inline and capture its outcome."""
        return InvocationResult.capture(self.execute, args, kwargs)
