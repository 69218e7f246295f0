"""Declarative contract: request decorators and parameter binding.

An API is a plain class whose methods describe remote operations::

    class IceCreamApi:
        @get("/icecream/orders/{order_id}")
        async def find_order(self, order_id: int) -> IceCreamOrder: ...

        @post("/icecream/orders")
        @headers("Content-Type: application/json")
        def place_order(self, order: IceCreamOrder) -> None: ...

``def`` methods become blocking calls, ``async def`` methods become awaitable
calls; both share the same request template and bindings.
"""

from __future__ import annotations

import inspect
import typing
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

from wirestub.detector import unwrap_function
from wirestub.error import WirestubError
from wirestub.http import HttpMethod, Options
from wirestub.template import RequestTemplate

F = TypeVar("F", bound=Callable[..., Any])

REQUEST_LINE_ATTR = "__wirestub_request_line__"
HEADERS_ATTR = "__wirestub_headers__"
DECODE_SLASH_ATTR = "__wirestub_decode_slash__"

# Methods that must not carry a request body
BODILESS_METHODS = frozenset({HttpMethod.GET, HttpMethod.HEAD})


# Parameter markers, used through typing.Annotated


@dataclass(frozen=True)
class Param:
    """Bind a parameter to a template expression under another name.

    Example:
        ``order_id: Annotated[int, Param("orderId")]``
    """

    name: str
    expander: Callable[[Any], str] | None = None


@dataclass(frozen=True)
class QueryMap:
    """Merge a mapping parameter into the query string."""


@dataclass(frozen=True)
class HeaderMap:
    """Merge a mapping parameter into the request headers."""


@dataclass(frozen=True)
class Body:
    """Mark a parameter as the request body explicitly."""


# Decorators


def request_line(line: str, decode_slash: bool = True) -> Callable[[F], F]:
    """Declare the HTTP method and URI template of an API method.

    Args:
        line: ``METHOD /path/{var}?name={var}``; the path may be absolute
        decode_slash: Keep "/" in path values; False encodes it as %2F

    Raises:
        WirestubError: CONTRACT error for a malformed request line
    """
    RequestTemplate.from_request_line(line)

    def decorator(func: F) -> F:
        setattr(func, REQUEST_LINE_ATTR, line)
        setattr(func, DECODE_SLASH_ATTR, decode_slash)
        return func

    return decorator


def get(path: str, decode_slash: bool = True) -> Callable[[F], F]:
    return request_line(f"GET {path}", decode_slash)


def post(path: str, decode_slash: bool = True) -> Callable[[F], F]:
    return request_line(f"POST {path}", decode_slash)


def put(path: str, decode_slash: bool = True) -> Callable[[F], F]:
    return request_line(f"PUT {path}", decode_slash)


def patch(path: str, decode_slash: bool = True) -> Callable[[F], F]:
    return request_line(f"PATCH {path}", decode_slash)


def delete(path: str, decode_slash: bool = True) -> Callable[[F], F]:
    return request_line(f"DELETE {path}", decode_slash)


def headers(*lines: str) -> Callable[[Any], Any]:
    """Add ``Name: value`` headers to a method, or to every method of a class.

    Values may contain ``{var}`` expressions bound like URI variables.
    """
    for line in lines:
        if ":" not in line:
            msg = f"Header must be formatted as 'Name: value': {line!r}"
            raise WirestubError.contract(msg)

    def decorator(target: Any) -> Any:
        existing = tuple(target.__dict__.get(HEADERS_ATTR, ()))
        setattr(target, HEADERS_ATTR, existing + lines)
        return target

    return decorator


# Parsed metadata


class BindingKind(Enum):
    VARIABLE = "variable"
    QUERY_MAP = "query_map"
    HEADER_MAP = "header_map"
    BODY = "body"
    OPTIONS = "options"


@dataclass(frozen=True)
class ParameterBinding:
    """How one method parameter feeds the request."""

    name: str
    kind: BindingKind
    annotation: Any = Any
    alias: str | None = None
    expander: Callable[[Any], str] | None = None


@dataclass(frozen=True)
class BoundCall:
    """The arguments of one invocation, sorted by destination."""

    variables: dict[str, Any] = field(default_factory=dict)
    queries: dict[str, Any] = field(default_factory=dict)
    headers: dict[str, Any] = field(default_factory=dict)
    body: Any = None
    has_body: bool = False
    options: Options | None = None


@dataclass(frozen=True)
class MethodMetadata:
    """Everything the contract knows about one API method.

    The template is never mutated; each call resolves it into a fresh copy.
    """

    method_key: str
    name: str
    template: RequestTemplate
    signature: inspect.Signature
    bindings: tuple[ParameterBinding, ...]
    body_type: Any = None

    @property
    def parameter_types(self) -> tuple[Any, ...]:
        return tuple(binding.annotation for binding in self.bindings)

    def bind(self, args: tuple[Any, ...], kwargs: Mapping[str, Any]) -> BoundCall:
        """Sort call arguments by destination.

        Raises:
            TypeError: If the arguments do not match the declared signature
        """
        arguments = self.signature.bind(*args, **kwargs)
        arguments.apply_defaults()

        variables: dict[str, Any] = {}
        queries: dict[str, Any] = {}
        header_values: dict[str, Any] = {}
        body: Any = None
        has_body = False
        options: Options | None = None

        for binding in self.bindings:
            value = arguments.arguments[binding.name]
            match binding.kind:
                case BindingKind.VARIABLE:
                    if value is not None and binding.expander is not None:
                        value = binding.expander(value)
                    variables[binding.alias or binding.name] = value
                case BindingKind.QUERY_MAP:
                    queries.update(value or {})
                case BindingKind.HEADER_MAP:
                    header_values.update(value or {})
                case BindingKind.BODY:
                    body = value
                    has_body = True
                case BindingKind.OPTIONS:
                    options = value

        return BoundCall(variables, queries, header_values, body, has_body, options)


def _parse_header_line(line: str) -> tuple[str, str]:
    name, _, value = line.partition(":")
    return name.strip(), value.strip()


def _markers(annotation: Any) -> tuple[Any, list[Any]]:
    if typing.get_origin(annotation) is typing.Annotated:
        base, *extras = typing.get_args(annotation)
        return base, extras
    return annotation, []


def _is_options(annotation: Any) -> bool:
    if annotation is Options:
        return True
    return Options in typing.get_args(annotation)


class Contract:
    """Parses API classes into per-method metadata.

    Subclass and override ``parse_method`` to support other decorator styles.
    """

    def parse(self, api_type: type) -> dict[str, tuple[Callable[..., Any], MethodMetadata]]:
        """Parse every request method of api_type.

        Args:
            api_type: The API class

        Returns:
            Method name to (declared function, metadata), in definition order

        Raises:
            WirestubError: CONTRACT error if the class is not a valid API
        """
        if not inspect.isclass(api_type):
            msg = f"API type must be a class, got {type(api_type).__name__}"
            raise WirestubError.contract(msg)

        class_headers = self._class_headers(api_type)
        parsed: dict[str, tuple[Callable[..., Any], MethodMetadata]] = {}

        for name in self._member_names(api_type):
            attr = inspect.getattr_static(api_type, name)
            func = unwrap_function(attr)
            if not callable(func):
                continue
            has_line = hasattr(func, REQUEST_LINE_ATTR) or hasattr(attr, REQUEST_LINE_ATTR)
            if not has_line:
                if getattr(attr, "__isabstractmethod__", False):
                    msg = "Abstract method has no request line"
                    raise WirestubError.contract(msg, f"{api_type.__name__}.{name}")
                continue
            if isinstance(attr, staticmethod | classmethod):
                msg = "Request methods must be instance methods"
                raise WirestubError.contract(msg, f"{api_type.__name__}.{name}")
            parsed[name] = (attr, self.parse_method(api_type, name, attr, class_headers))

        if not parsed:
            msg = f"{api_type.__name__} declares no request methods"
            raise WirestubError.contract(msg)
        return parsed

    def parse_method(
        self,
        api_type: type,
        name: str,
        func: Callable[..., Any],
        class_headers: tuple[str, ...] = (),
    ) -> MethodMetadata:
        """Build the metadata of one decorated method."""
        method_key = f"{api_type.__name__}.{name}"
        target = unwrap_function(func)
        line = getattr(func, REQUEST_LINE_ATTR, None) or getattr(target, REQUEST_LINE_ATTR)
        decode_slash = getattr(
            func, DECODE_SLASH_ATTR, getattr(target, DECODE_SLASH_ATTR, True)
        )
        template = RequestTemplate.from_request_line(line, decode_slash)

        for header_line in (*class_headers, *getattr(target, HEADERS_ATTR, ())):
            header_name, value = _parse_header_line(header_line)
            template.headers[header_name] = [value]

        try:
            hints = typing.get_type_hints(target, include_extras=True)
        except Exception as e:  # noqa: BLE001
            msg = f"Cannot resolve annotations: {e}"
            raise WirestubError.contract(msg, method_key) from e

        signature = inspect.signature(target)
        parameters = list(signature.parameters.values())[1:]  # drop self
        bindings = self._bind_parameters(method_key, parameters, hints, template)

        body_bindings = [b for b in bindings if b.kind is BindingKind.BODY]
        if len(body_bindings) > 1:
            names = ", ".join(b.name for b in body_bindings)
            msg = f"Method has more than one body parameter: {names}"
            raise WirestubError.contract(msg, method_key)
        if body_bindings and template.method in BODILESS_METHODS:
            msg = f"{template.method} request cannot have a body ({body_bindings[0].name})"
            raise WirestubError.contract(msg, method_key)

        return MethodMetadata(
            method_key=method_key,
            name=name,
            template=template,
            signature=signature.replace(parameters=parameters),
            bindings=tuple(bindings),
            body_type=body_bindings[0].annotation if body_bindings else None,
        )

    def _bind_parameters(
        self,
        method_key: str,
        parameters: list[inspect.Parameter],
        hints: dict[str, Any],
        template: RequestTemplate,
    ) -> list[ParameterBinding]:
        variables = template.variables()
        bindings: list[ParameterBinding] = []
        seen: set[str] = set()

        for parameter in parameters:
            if parameter.kind in (
                inspect.Parameter.VAR_POSITIONAL,
                inspect.Parameter.VAR_KEYWORD,
            ):
                msg = f"Variadic parameter *{parameter.name} cannot be bound to a request"
                raise WirestubError.contract(msg, method_key)

            annotation, markers = _markers(hints.get(parameter.name, Any))
            param = next((m for m in markers if isinstance(m, Param)), None)

            if _is_options(annotation):
                kind = BindingKind.OPTIONS
            elif any(isinstance(m, QueryMap) for m in markers):
                kind = BindingKind.QUERY_MAP
            elif any(isinstance(m, HeaderMap) for m in markers):
                kind = BindingKind.HEADER_MAP
            elif any(isinstance(m, Body) for m in markers):
                kind = BindingKind.BODY
            elif (param.name if param else parameter.name) in variables:
                kind = BindingKind.VARIABLE
            else:
                kind = BindingKind.BODY

            alias = param.name if param else None
            if kind is BindingKind.VARIABLE:
                key = alias or parameter.name
                if key in seen:
                    msg = f"Template variable {key!r} is bound twice"
                    raise WirestubError.contract(msg, method_key)
                seen.add(key)

            bindings.append(
                ParameterBinding(
                    name=parameter.name,
                    kind=kind,
                    annotation=annotation,
                    alias=alias,
                    expander=param.expander if param else None,
                )
            )
        return bindings

    @staticmethod
    def _class_headers(api_type: type) -> tuple[str, ...]:
        lines: tuple[str, ...] = ()
        for klass in reversed(api_type.__mro__):
            lines += tuple(klass.__dict__.get(HEADERS_ATTR, ()))
        return lines

    @staticmethod
    def _member_names(api_type: type) -> list[str]:
        names: list[str] = []
        for klass in reversed(api_type.__mro__):
            if klass is object:
                continue
            for name in klass.__dict__:
                if name.startswith("__") or name in names:
                    continue
                names.append(name)
        return names
