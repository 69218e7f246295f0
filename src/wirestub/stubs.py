"""Generated client classes.

A client is an instance of a dynamic subclass of the API class. Each request
method is overridden with a stub that keeps the declared calling convention:
``def`` stubs block and return, ``async def`` stubs return a coroutine. Other
methods and attributes of the API class are inherited untouched.
"""

from __future__ import annotations

import functools
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from wirestub.descriptor import MethodDescriptor
    from wirestub.dispatch import Dispatcher
    from wirestub.target import Target

TARGET_ATTR = "_wirestub_target"
DISPATCHER_ATTR = "_wirestub_dispatcher"
DESCRIPTORS_ATTR = "_wirestub_descriptors"


def _direct_stub(name: str, declared: Callable[..., Any]) -> Callable[..., Any]:
    def stub(self: Any, *args: Any, **kwargs: Any) -> Any:
        return getattr(type(self), DISPATCHER_ATTR).invoke_direct(name, args, kwargs)

    return _wrap(stub, declared)


def _suspending_stub(name: str, declared: Callable[..., Any]) -> Callable[..., Any]:
    async def stub(self: Any, *args: Any, **kwargs: Any) -> Any:
        dispatcher = getattr(type(self), DISPATCHER_ATTR)
        return await dispatcher.invoke_suspending(name, args, kwargs)

    return _wrap(stub, declared)


def _wrap(stub: Callable[..., Any], declared: Callable[..., Any]) -> Callable[..., Any]:
    functools.update_wrapper(stub, declared)
    # update_wrapper copies __isabstractmethod__ along with __dict__
    stub.__isabstractmethod__ = False  # type: ignore[attr-defined]
    return stub


def _client_repr(self: Any) -> str:
    target: Target = getattr(self, TARGET_ATTR)
    return f"{target.api_type.__name__}Client(name={target.name!r}, url={target.url!r})"


def _client_eq(self: Any, other: object) -> bool:
    if not hasattr(other, TARGET_ATTR):
        return NotImplemented
    return getattr(self, TARGET_ATTR) == getattr(other, TARGET_ATTR)


def _client_hash(self: Any) -> int:
    return hash(getattr(self, TARGET_ATTR))


def build_client_class(
    target: Target,
    descriptors: Mapping[str, MethodDescriptor],
    dispatcher: Dispatcher,
) -> type:
    """Create the client subclass of ``target.api_type``.

    Args:
        target: The API class and base URL
        descriptors: The descriptor table of the API class
        dispatcher: Routes stub calls to handlers

    Returns:
        A subclass whose request methods are replaced by stubs
    """
    api_type = target.api_type
    namespace: dict[str, Any] = {
        "__module__": api_type.__module__,
        "__qualname__": f"{api_type.__qualname__}Client",
        "__doc__": api_type.__doc__,
        "__repr__": _client_repr,
        "__eq__": _client_eq,
        "__hash__": _client_hash,
        TARGET_ATTR: target,
        DISPATCHER_ATTR: dispatcher,
        DESCRIPTORS_ATTR: descriptors,
    }
    for name, descriptor in descriptors.items():
        declared = getattr(api_type, name)
        if descriptor.is_suspending:
            namespace[name] = _suspending_stub(name, declared)
        else:
            namespace[name] = _direct_stub(name, declared)

    metaclass = type(api_type)
    return metaclass(f"{api_type.__name__}Client", (api_type,), namespace)


def instantiate(client_class: type) -> Any:
    """Create a client without running the API class's ``__init__``."""
    return object.__new__(client_class)
