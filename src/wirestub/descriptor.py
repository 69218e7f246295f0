"""Per-method descriptors, built once per client."""

from __future__ import annotations

import dataclasses
import types
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

from wirestub.contract import Contract, MethodMetadata
from wirestub.detector import CallingConvention, detect_calling_convention
from wirestub.error import WirestubError
from wirestub.resolver import is_wrapper_type, resolve_return_type


@dataclass(frozen=True)
class MethodDescriptor:
    """Immutable dispatch record for one API method.

    Attributes:
        name: Attribute name on the API class
        method_key: ``ApiClass.method``, used in errors and logs
        parameter_types: Declared parameter types, self excluded
        declared_return_type: What calling the method really returns:
            ``types.CoroutineType`` for suspending methods
        return_type: The payload type decoders target
        calling_convention: DIRECT or SUSPENDING
        metadata: Request template and parameter bindings
    """

    name: str
    method_key: str
    parameter_types: tuple[Any, ...]
    declared_return_type: Any
    return_type: Any
    calling_convention: CallingConvention
    metadata: MethodMetadata

    @property
    def is_suspending(self) -> bool:
        return self.calling_convention is CallingConvention.SUSPENDING


def describe_method(func: Callable[..., Any], metadata: MethodMetadata) -> MethodDescriptor:
    """Classify func and resolve its payload type.

    Raises:
        WirestubError: CONTRACT error if the payload type cannot be resolved
    """
    convention = detect_calling_convention(func)
    try:
        return_type = resolve_return_type(func, convention)
    except WirestubError as e:
        raise dataclasses.replace(e, method_key=metadata.method_key) from e
    if convention is CallingConvention.SUSPENDING and is_wrapper_type(return_type):
        msg = f"Resolved return type {return_type!r} is still an awaitable wrapper"
        raise WirestubError.contract(msg, metadata.method_key)

    declared = (
        types.CoroutineType if convention is CallingConvention.SUSPENDING else return_type
    )
    return MethodDescriptor(
        name=metadata.name,
        method_key=metadata.method_key,
        parameter_types=metadata.parameter_types,
        declared_return_type=declared,
        return_type=return_type,
        calling_convention=convention,
        metadata=metadata,
    )


def build_descriptor_table(
    api_type: type, contract: Contract | None = None
) -> Mapping[str, MethodDescriptor]:
    """Describe every request method of api_type.

    All methods are resolved eagerly so that an invalid declaration fails here
    rather than on first call.

    Returns:
        A read-only mapping of method name to descriptor
    """
    parsed = (contract or Contract()).parse(api_type)
    table = {
        name: describe_method(func, metadata) for name, (func, metadata) in parsed.items()
    }
    return MappingProxyType(table)
