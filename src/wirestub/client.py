"""Client construction for wirestub APIs."""

from __future__ import annotations

import logging
import weakref
from concurrent.futures import Executor
from dataclasses import dataclass, field
from typing import Any, Self, TypeVar

from wirestub.codec import (
    DefaultDecoder,
    DefaultEncoder,
    DefaultErrorDecoder,
    Decoder,
    Encoder,
    ErrorDecoder,
)
from wirestub.contract import Contract
from wirestub.descriptor import MethodDescriptor, build_descriptor_table
from wirestub.dispatch import AsyncDispatchAdapter, Dispatcher
from wirestub.error import WirestubError
from wirestub.handler import MethodHandler
from wirestub.http import Options
from wirestub.logger import HttpLogger, LogLevel
from wirestub.retryer import DefaultRetryer, Retryer
from wirestub.stubs import build_client_class, instantiate
from wirestub.target import Target
from wirestub.transports import create_transport
from wirestub.types import (
    AsyncTransport,
    RequestInterceptor,
    ResponseInterceptor,
    Transport,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ClientConfig:
    """Configuration for wirestub clients.

    Attributes:
        transport: Blocking transport; an httpx one is created when omitted
        async_transport: Asyncio transport for ``async def`` methods; when
            omitted they run the blocking transport on worker threads
        encoder: Writes body parameters into requests
        decoder: Turns 2xx responses into return values
        error_decoder: Turns other responses into exceptions
        interceptors: Run in order on every request before it is sent
        response_interceptors: Run in order on every response before it is
            decoded; each returns the response to continue with
        retryer: Decides whether failed exchanges are attempted again;
            NEVER_RETRY turns retries off
        options: Default timeouts and redirect policy
        log_level: How much HTTP traffic to log
        dismiss_404: Return None instead of failing on 404 responses
        executor: Runs blocking work for ``async def`` methods instead of a
            thread per call
        contract: Parses the API class
    """

    transport: Transport | None = None
    async_transport: AsyncTransport | None = None
    encoder: Encoder = field(default_factory=DefaultEncoder)
    decoder: Decoder = field(default_factory=DefaultDecoder)
    error_decoder: ErrorDecoder = field(default_factory=DefaultErrorDecoder)
    interceptors: list[RequestInterceptor] = field(default_factory=list)
    response_interceptors: list[ResponseInterceptor] = field(default_factory=list)
    retryer: Retryer = field(default_factory=DefaultRetryer)
    options: Options = field(default_factory=Options)
    log_level: LogLevel = LogLevel.NONE
    dismiss_404: bool = False
    executor: Executor | None = None
    contract: Contract = field(default_factory=Contract)


class Client:
    """Owns a generated API client and the transports it created.

    Example:
        ```python
        with Client(IceCreamApi, "http://localhost:8080") as client:
            order = client.api.find_order(1)
        ```
    """

    def __init__(
        self,
        api_type: type[T],
        url: str | Target,
        config: ClientConfig | None = None,
        name: str | None = None,
    ) -> None:
        """Build the client, resolving every API method up front.

        Args:
            api_type: The API class
            url: Base URL, or a Target (for dynamic URLs)
            config: Client configuration; defaults apply when omitted
            name: Target name used in repr; defaults to the URL

        Raises:
            ContractError: If the API class or one of its methods is invalid
        """
        self.config = config or ClientConfig()
        self.target = url if isinstance(url, Target) else Target(api_type, url, name or "")
        if self.target.api_type is not api_type:
            msg = (
                f"Target is bound to {self.target.api_type.__name__}, "
                f"not {api_type.__name__}"
            )
            raise WirestubError.contract(msg)
        self.descriptors = build_descriptor_table(api_type, self.config.contract)

        self.owns_transport = self.config.transport is None
        if self.config.transport is not None:
            self.transport = self.config.transport
        else:
            try:
                self.transport = create_transport(self.target.url)
            except ValueError as e:
                raise WirestubError.contract(str(e)) from e

        http_logger = HttpLogger(self.config.log_level)
        handlers = {
            method_name: MethodHandler(
                descriptor, self.target, self.config, self.transport, http_logger
            )
            for method_name, descriptor in self.descriptors.items()
        }
        adapter = AsyncDispatchAdapter(
            self.transport, self.config.async_transport, self.config.executor
        )
        self.dispatcher = Dispatcher(handlers, adapter)
        self.api: Any = instantiate(
            build_client_class(self.target, self.descriptors, self.dispatcher)
        )
        logger.debug(
            "Built %s client for %s with %d methods",
            api_type.__name__,
            self.target.url,
            len(self.descriptors),
        )

    def descriptor(self, name: str) -> MethodDescriptor:
        return self.descriptors[name]

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        """Close the blocking transport if this client created it.

        Transports passed in through the config are left to their owner.
        """
        if self.owns_transport:
            close = getattr(self.transport, "close", None)
            if close is not None:
                close()

    def __repr__(self) -> str:
        return f"Client({self.target.api_type.__name__}, url={self.target.url!r})"


def target(
    api_type: type[T],
    url: str | Target,
    config: ClientConfig | None = None,
    name: str | None = None,
) -> T:
    """Create a client implementing api_type.

    ``def`` methods of the API block and return the decoded value; ``async
    def`` methods return coroutines. Both raise the same errors.

    A transport created here is closed once the returned instance is garbage
    collected. Use ``Client`` to close it at a known point instead.

    Args:
        api_type: The API class
        url: Base URL, or a Target
        config: Client configuration; defaults apply when omitted
        name: Target name used in repr; defaults to the URL

    Returns:
        An instance of a generated subclass of api_type

    Raises:
        ContractError: If the API class or one of its methods is invalid

    Examples:
        >>> api = target(IceCreamApi, "http://localhost:8080")
        >>> api = target(IceCreamApi, "http://localhost:8080", ClientConfig(decoder=JsonDecoder()))
    """
    client = Client(api_type, url, config, name)
    if client.owns_transport:
        weakref.finalize(client.api, client.transport.close)
    return client.api
