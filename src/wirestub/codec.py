"""Encoders, decoders, and error decoders.

Decoders always receive a concrete target type. A target of ``None``
(``NoneType``) means the method returns nothing: every decoder here answers
``None`` for it without looking at the body.
"""

from __future__ import annotations

import functools
import re
import time
from email.utils import parsedate_to_datetime
from typing import Any, Protocol

from pydantic import TypeAdapter, ValidationError

from wirestub.error import WirestubError
from wirestub.http import Response
from wirestub.resolver import is_no_value_type
from wirestub.template import RequestTemplate

# Bytes of the body quoted in error messages
MAX_BODY_EXCERPT = 400

RETRY_AFTER_SECONDS = re.compile(r"[0-9]+\.?0*")


class Encoder(Protocol):
    """Writes a body parameter into the request template."""

    def encode(self, obj: Any, body_type: Any, template: RequestTemplate) -> None:
        """Encode obj into template.body.

        Args:
            obj: The body argument
            body_type: The parameter's declared type
            template: The per-call template to modify

        Raises:
            WirestubError: ENCODE error if obj cannot be encoded
        """
        ...


class Decoder(Protocol):
    """Turns a successful response into the method's return value."""

    def decode(self, response: Response, type_: Any) -> Any:
        """Decode response into an instance of type_.

        Args:
            response: The response, body fully read
            type_: The resolved return type; NoneType for "no value"

        Returns:
            The decoded value, or None for a no-value target

        Raises:
            WirestubError: DECODE error if the body does not fit type_
        """
        ...


class ErrorDecoder(Protocol):
    """Turns a non-success response into an exception."""

    def decode(self, method_key: str, response: Response) -> Exception:
        """Build the exception the call should fail with.

        Args:
            method_key: ``ApiClass.method`` of the failing call
            response: The non-success response

        Returns:
            The exception to raise (not raised here)
        """
        ...


@functools.lru_cache(maxsize=256)
def _cached_adapter(type_: Any) -> TypeAdapter[Any]:
    return TypeAdapter(type_)


def type_adapter(type_: Any) -> TypeAdapter[Any]:
    """Return a (cached when possible) pydantic TypeAdapter for type_."""
    try:
        return _cached_adapter(type_)
    except TypeError:
        # Unhashable type expression
        return TypeAdapter(type_)


class DefaultEncoder:
    """Encodes ``str`` and ``bytes`` bodies only."""

    def encode(self, obj: Any, body_type: Any, template: RequestTemplate) -> None:
        if obj is None:
            template.body = None
        elif isinstance(obj, bytes):
            template.body = obj
        elif isinstance(obj, str):
            template.body = obj.encode("utf-8")
        else:
            msg = f"{type(obj).__name__} is not a type supported by this encoder"
            raise WirestubError.encode(msg)


class JsonEncoder:
    """Encodes any pydantic-serializable body as JSON."""

    def encode(self, obj: Any, body_type: Any, template: RequestTemplate) -> None:
        if obj is None:
            template.body = None
            return
        target = type(obj) if body_type in (None, Any) else body_type
        try:
            template.body = type_adapter(target).dump_json(obj)
        except Exception as e:  # noqa: BLE001 - pydantic raises several types
            msg = f"Cannot encode {type(obj).__name__} as JSON: {e}"
            raise WirestubError.encode(msg) from e
        if "Content-Type" not in template.headers:
            template.header("Content-Type", "application/json")


class DefaultDecoder:
    """Decodes to ``str``, ``bytes``, ``Response``, or nothing."""

    def decode(self, response: Response, type_: Any) -> Any:
        if is_no_value_type(type_):
            return None
        if type_ is Response:
            return response
        if type_ is bytes:
            return response.body
        if type_ is str or type_ is Any:
            return response.text()
        if not response.body:
            return None
        msg = f"{type_!r} is not a type supported by this decoder"
        raise WirestubError.decode(msg)


class JsonDecoder:
    """Decodes JSON bodies into any type pydantic can validate.

    Validation runs in lax mode, so ``{"no": "999"}`` fills an ``int`` field.
    """

    def decode(self, response: Response, type_: Any) -> Any:
        if is_no_value_type(type_):
            return None
        if type_ is Response:
            return response
        if type_ is bytes:
            return response.body
        if not response.body.strip():
            return None
        if type_ is str and not response.body.lstrip().startswith(b'"'):
            return response.text()
        try:
            return type_adapter(type_).validate_json(response.body)
        except ValidationError as e:
            msg = f"Response does not match {type_!r}: {e}"
            raise WirestubError.decode(msg) from e


def body_excerpt(body: bytes | None, limit: int = MAX_BODY_EXCERPT) -> str:
    if not body:
        return ""
    text = body[:limit].decode("utf-8", errors="replace")
    return text + ("..." if len(body) > limit else "")


def retry_after(value: str | None, now: float | None = None) -> float | None:
    """Parse a Retry-After header into epoch seconds.

    Accepts delay seconds (``120``) or an HTTP date; anything else is None.
    """
    if value is None:
        return None
    value = value.strip()
    now = time.time() if now is None else now
    if RETRY_AFTER_SECONDS.fullmatch(value):
        return now + int(value.split(".")[0])
    try:
        return parsedate_to_datetime(value).timestamp()
    except (TypeError, ValueError):
        return None


class DefaultErrorDecoder:
    """Maps non-success responses to an ApplicationError.

    A response carrying a valid Retry-After header becomes a RetryableError
    instead, so the retryer tries the call again.
    """

    def decode(self, method_key: str, response: Response) -> Exception:
        request = response.request
        target = f"{request.method} {request.url}" if request else method_key
        message = f"[{response.status} {response.reason}] during [{target}]"
        excerpt = body_excerpt(response.body)
        if excerpt:
            message += f": [{excerpt}]"
        after = retry_after(response.header("Retry-After"))
        if after is not None:
            return WirestubError.retryable(
                message, method_key, response.status, response.body, after
            )
        return WirestubError.application(
            message, method_key, response.status, response.body
        )
