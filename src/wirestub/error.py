"""Error types for wirestub clients.

Both calling conventions surface the same exceptions: a direct method raises
them on the caller's thread, a suspending method re-raises them after the
awaited call resumes. Errors compare by content so the two are interchangeable.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorCode(Enum):
    """Categories of client failures."""

    TRANSPORT = "transport"
    ENCODE = "encode"
    DECODE = "decode"
    APPLICATION = "application"
    CONTRACT = "contract"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class WirestubError(Exception):
    """Client error with code, message, and the response context if any."""

    code: ErrorCode
    message: str
    method_key: str | None = None
    status: int | None = None
    body: bytes | None = None

    def __str__(self) -> str:
        if self.method_key:
            return f"{self.code}: {self.message} [{self.method_key}]"
        return f"{self.code}: {self.message}"

    @staticmethod
    def transport(message: str, method_key: str | None = None) -> TransportError:
        """Create a TRANSPORT error (connection refused, timeout, reset...)."""
        return TransportError(ErrorCode.TRANSPORT, message, method_key)

    @staticmethod
    def encode(message: str, method_key: str | None = None) -> EncodeError:
        """Create an ENCODE error."""
        return EncodeError(ErrorCode.ENCODE, message, method_key)

    @staticmethod
    def decode(
        message: str,
        method_key: str | None = None,
        status: int | None = None,
        body: bytes | None = None,
    ) -> DecodeError:
        """Create a DECODE error."""
        return DecodeError(ErrorCode.DECODE, message, method_key, status, body)

    @staticmethod
    def application(
        message: str,
        method_key: str | None = None,
        status: int | None = None,
        body: bytes | None = None,
    ) -> ApplicationError:
        """Create an APPLICATION error for a non-success response."""
        return ApplicationError(ErrorCode.APPLICATION, message, method_key, status, body)

    @staticmethod
    def retryable(
        message: str,
        method_key: str | None = None,
        status: int | None = None,
        body: bytes | None = None,
        retry_after: float | None = None,
    ) -> RetryableError:
        """Create an APPLICATION error that the retryer may try again."""
        return RetryableError(
            ErrorCode.APPLICATION, message, method_key, status, body, retry_after
        )

    @staticmethod
    def contract(message: str, method_key: str | None = None) -> ContractError:
        """Create a CONTRACT error (invalid interface definition)."""
        return ContractError(ErrorCode.CONTRACT, message, method_key)


@dataclass(frozen=True)
class RetryableError(WirestubError):
    """A failure the configured retryer may attempt again.

    Attributes:
        retry_after: Epoch seconds the server asked to wait until, if it did
    """

    retry_after: float | None = None


class TransportError(RetryableError):
    """The request could not be sent or the response could not be read."""


class EncodeError(WirestubError):
    """The request body could not be encoded."""


class DecodeError(WirestubError):
    """The response body could not be decoded into the declared type."""


class ApplicationError(WirestubError):
    """The server answered with a non-success status."""

    @property
    def is_client_error(self) -> bool:
        return self.status is not None and 400 <= self.status < 500

    @property
    def is_server_error(self) -> bool:
        return self.status is not None and 500 <= self.status < 600


class ContractError(WirestubError):
    """The interface definition cannot be turned into a client."""
