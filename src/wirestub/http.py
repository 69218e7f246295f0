"""HTTP value types exchanged with transports."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class HttpMethod(Enum):
    """HTTP methods a request line may use."""

    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Options:
    """Per-request transport options.

    Attributes:
        connect_timeout: Seconds allowed to establish the connection
        read_timeout: Seconds allowed between bytes of the response
        follow_redirects: Whether 3xx responses are followed by the transport
    """

    connect_timeout: float = 10.0
    read_timeout: float = 60.0
    follow_redirects: bool = True


@dataclass(frozen=True)
class Request:
    """An immutable, fully resolved HTTP request."""

    method: HttpMethod
    url: str
    headers: dict[str, list[str]] = field(default_factory=dict)
    body: bytes | None = None

    def header(self, name: str) -> str | None:
        """Return the first value of a header, matching the name case-insensitively."""
        for key, values in self.headers.items():
            if key.lower() == name.lower() and values:
                return values[0]
        return None

    def __str__(self) -> str:
        return f"{self.method} {self.url}"


@dataclass(frozen=True)
class Response:
    """An HTTP response with its body fully read."""

    status: int
    reason: str = ""
    headers: dict[str, list[str]] = field(default_factory=dict)
    body: bytes = b""
    request: Request | None = None

    def header(self, name: str) -> str | None:
        """Return the first value of a header, matching the name case-insensitively."""
        for key, values in self.headers.items():
            if key.lower() == name.lower() and values:
                return values[0]
        return None

    def text(self, encoding: str | None = None) -> str:
        """Decode the body, using the Content-Type charset when present."""
        return self.body.decode(encoding or self._charset(), errors="replace")

    def _charset(self) -> str:
        content_type = self.header("Content-Type") or ""
        for part in content_type.split(";")[1:]:
            key, _, value = part.strip().partition("=")
            if key.lower() == "charset" and value:
                return value.strip('"')
        return "utf-8"

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300
