"""Calling-convention detection for interface methods."""

from __future__ import annotations

import inspect
from enum import Enum
from typing import Any


class CallingConvention(Enum):
    """How a client method hands its result back to the caller.

    DIRECT methods block and return the decoded value. SUSPENDING methods are
    ``async def``: calling them yields a coroutine that resumes with the value.
    """

    DIRECT = "direct"
    SUSPENDING = "suspending"

    def __str__(self) -> str:
        return self.value


def unwrap_function(func: Any) -> Any:
    """Strip staticmethod/classmethod and functools.wraps layers."""
    if isinstance(func, staticmethod | classmethod):
        func = func.__func__
    try:
        return inspect.unwrap(func)
    except ValueError:
        # Cycle in __wrapped__; keep the outermost object
        return func


def detect_calling_convention(func: Any) -> CallingConvention:
    """Classify a method as direct or suspending.

    Only the interpreter's own marker counts: the outermost function must
    carry the coroutine flag. ``__wrapped__`` chains are not followed, so a
    ``def`` wrapper around an ``async def`` is DIRECT. Objects without code
    metadata are DIRECT.

    Args:
        func: A function, method, or decorated callable

    Returns:
        The calling convention; never raises
    """
    if isinstance(func, staticmethod | classmethod):
        func = func.__func__
    if inspect.iscoroutinefunction(func):
        return CallingConvention.SUSPENDING
    return CallingConvention.DIRECT


def is_suspending(func: Any) -> bool:
    """Shorthand for ``detect_calling_convention(func) is SUSPENDING``."""
    return detect_calling_convention(func) is CallingConvention.SUSPENDING
