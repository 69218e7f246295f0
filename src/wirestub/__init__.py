"""wirestub - declarative HTTP clients for blocking and async Python code

Describe an HTTP API as a class of decorated methods; ``target()`` generates a
client where ``def`` methods block and ``async def`` methods can be awaited.
"""

from wirestub.client import Client, ClientConfig, target
from wirestub.codec import (
    DefaultDecoder,
    DefaultEncoder,
    DefaultErrorDecoder,
    JsonDecoder,
    JsonEncoder,
)
from wirestub.contract import (
    Body,
    Contract,
    HeaderMap,
    Param,
    QueryMap,
    delete,
    get,
    headers,
    patch,
    post,
    put,
    request_line,
)
from wirestub.detector import CallingConvention
from wirestub.error import (
    ApplicationError,
    ContractError,
    DecodeError,
    EncodeError,
    ErrorCode,
    RetryableError,
    TransportError,
    WirestubError,
)
from wirestub.http import HttpMethod, Options, Request, Response
from wirestub.logger import LogLevel
from wirestub.retryer import NEVER_RETRY, DefaultRetryer, Retryer
from wirestub.target import Target
from wirestub.template import RequestTemplate
from wirestub.transports import AiohttpTransport, HttpxTransport

__version__ = "0.1.0"

__all__ = [
    # Client
    "Client",
    "ClientConfig",
    "Target",
    "target",
    # Declarations
    "request_line",
    "get",
    "post",
    "put",
    "patch",
    "delete",
    "headers",
    "Param",
    "QueryMap",
    "HeaderMap",
    "Body",
    "Contract",
    "CallingConvention",
    # HTTP
    "HttpMethod",
    "Options",
    "Request",
    "Response",
    "RequestTemplate",
    "LogLevel",
    # Retries
    "Retryer",
    "DefaultRetryer",
    "NEVER_RETRY",
    # Codecs
    "DefaultEncoder",
    "DefaultDecoder",
    "DefaultErrorDecoder",
    "JsonEncoder",
    "JsonDecoder",
    # Transports
    "HttpxTransport",
    "AiohttpTransport",
    # Errors
    "WirestubError",
    "ErrorCode",
    "RetryableError",
    "TransportError",
    "EncodeError",
    "DecodeError",
    "ApplicationError",
    "ContractError",
]
