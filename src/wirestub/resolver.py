"""Return-type resolution for interface methods.

Calling an ``async def`` method produces a coroutine object, so the runtime
return type of every suspending method is the same opaque wrapper. Decoders
need the payload type instead, which only the source-level return annotation
carries. This module recovers it once, when a client is built.
"""

from __future__ import annotations

import collections.abc
import inspect
import types
import typing
from typing import Any

from wirestub.detector import CallingConvention, unwrap_function
from wirestub.error import WirestubError

NoneType = type(None)

# Types that only describe "something awaitable" and never a payload
WRAPPER_TYPES: tuple[Any, ...] = (
    types.CoroutineType,
    collections.abc.Coroutine,
    collections.abc.Awaitable,
    typing.Coroutine,
    typing.Awaitable,
)


def is_wrapper_type(tp: Any) -> bool:
    """Whether tp is an awaitable wrapper rather than a payload type."""
    origin = typing.get_origin(tp) or tp
    return any(origin is wrapper for wrapper in WRAPPER_TYPES)


def is_no_value_type(tp: Any) -> bool:
    """Whether tp declares that a call produces no value."""
    return tp is None or tp is NoneType


def _method_key(func: Any) -> str:
    return getattr(func, "__qualname__", repr(func))


def _source_return_annotation(func: Any) -> Any:
    """Read the declared return annotation, resolving string annotations.

    Returns:
        The annotation, or inspect.Signature.empty when none is declared

    Raises:
        WirestubError: CONTRACT error if the annotations cannot be evaluated
    """
    target = unwrap_function(func)
    try:
        hints = typing.get_type_hints(target, include_extras=True)
    except Exception as e:  # noqa: BLE001 - NameError, TypeError, SyntaxError...
        msg = f"Cannot resolve the return annotation: {e}"
        raise WirestubError.contract(msg, _method_key(target)) from e
    return hints.get("return", inspect.Signature.empty)


def _unwrap_awaitable(tp: Any, key: str) -> Any:
    """Peel explicit Coroutine[...] / Awaitable[...] layers off an annotation."""
    while is_wrapper_type(tp):
        args = typing.get_args(tp)
        if not args:
            msg = f"Awaitable return type {tp!r} does not name its payload type"
            raise WirestubError.contract(msg, key)
        tp = args[-1]
    return tp


def _strip_annotated(tp: Any) -> Any:
    if typing.get_origin(tp) is typing.Annotated:
        return typing.get_args(tp)[0]
    return tp


def resolve_return_type(func: Any, convention: CallingConvention) -> Any:
    """Find the concrete type the decoder must target for func.

    Args:
        func: The interface method as declared
        convention: The method's calling convention

    Returns:
        The payload type; NoneType for methods declared to return None,
        typing.Any for direct methods without an annotation

    Raises:
        WirestubError: CONTRACT error for a suspending method whose source-level
            annotation is missing, unresolvable, or names no payload type
    """
    key = _method_key(unwrap_function(func))
    annotation = _source_return_annotation(func)

    if annotation is inspect.Signature.empty:
        if convention is CallingConvention.SUSPENDING:
            msg = "Suspending method must declare its return type"
            raise WirestubError.contract(msg, key)
        return Any

    annotation = _strip_annotated(annotation)
    if convention is CallingConvention.SUSPENDING:
        annotation = _unwrap_awaitable(annotation, key)
    return NoneType if annotation is None else annotation
