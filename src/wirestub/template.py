"""Request templates with simple ``{name}`` expressions.

A template is parsed once from a request line such as
``GET /orders/{order_id}?expand={expand}`` and resolved per call into a
concrete template that interceptors may still adjust before the final
``Request`` is produced.
"""

from __future__ import annotations

import copy
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote, urlencode

from wirestub.error import WirestubError
from wirestub.http import HttpMethod, Request

EXPRESSION = re.compile(r"\{([^{}]+)\}")


def expressions(text: str) -> list[str]:
    """Return the variable names referenced by ``{name}`` expressions in text."""
    return [name.strip() for name in EXPRESSION.findall(text)]


def _is_single_expression(text: str) -> bool:
    match = EXPRESSION.fullmatch(text)
    return match is not None


def _format(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


def _expand(
    text: str, variables: Mapping[str, Any], encode: bool, decode_slash: bool = True
) -> str:
    safe = "/" if decode_slash else ""

    def replace(match: re.Match[str]) -> str:
        value = variables.get(match.group(1).strip())
        if value is None:
            return ""
        formatted = _format(value)
        return quote(formatted, safe=safe) if encode else formatted

    return EXPRESSION.sub(replace, text)


def _expand_values(
    templates: Iterable[str], variables: Mapping[str, Any]
) -> list[str]:
    """Expand a list of value templates.

    A value made of a single expression that resolves to None is dropped, and
    one that resolves to a list or tuple contributes one value per item.
    """
    values: list[str] = []
    for template in templates:
        if _is_single_expression(template):
            value = variables.get(expressions(template)[0])
            if value is None:
                continue
            if isinstance(value, list | tuple | set):
                values.extend(_format(item) for item in value if item is not None)
                continue
            values.append(_format(value))
            continue
        values.append(_expand(template, variables, encode=False))
    return values


@dataclass
class RequestTemplate:
    """A (possibly unresolved) HTTP request.

    Attributes:
        method: The HTTP method
        uri: Path (or absolute URL) with optional ``{name}`` expressions
        queries: Query parameter name to value templates
        headers: Header name to value templates
        body: Encoded body, set by the encoder or an interceptor
        resolved: True once expressions have been expanded
        decode_slash: Keep "/" in path values instead of encoding it as %2F
    """

    method: HttpMethod
    uri: str = ""
    queries: dict[str, list[str]] = field(default_factory=dict)
    headers: dict[str, list[str]] = field(default_factory=dict)
    body: bytes | None = None
    resolved: bool = False
    decode_slash: bool = True

    @classmethod
    def from_request_line(cls, line: str, decode_slash: bool = True) -> RequestTemplate:
        """Parse ``METHOD /path?query`` into a template.

        Raises:
            WirestubError: CONTRACT error if the method is missing or unknown
        """
        method_name, _, target = line.strip().partition(" ")
        try:
            method = HttpMethod(method_name.upper())
        except ValueError as e:
            msg = f"Request line must start with an HTTP method: {line!r}"
            raise WirestubError.contract(msg) from e

        path, _, query = target.strip().partition("?")
        template = cls(method=method, uri=path, decode_slash=decode_slash)
        for pair in filter(None, query.split("&")):
            name, _, value = pair.partition("=")
            template.queries.setdefault(name, []).append(value)
        return template

    def variables(self) -> set[str]:
        """All expression names used anywhere in the template."""
        names = set(expressions(self.uri))
        for values in (*self.queries.values(), *self.headers.values()):
            for value in values:
                names.update(expressions(value))
        return names

    def header(self, name: str, *values: str) -> RequestTemplate:
        """Append header values; with no values the header is removed."""
        if not values:
            self.headers.pop(name, None)
            return self
        self.headers.setdefault(name, []).extend(values)
        return self

    def query(self, name: str, *values: str) -> RequestTemplate:
        """Append query values; with no values the parameter is removed."""
        if not values:
            self.queries.pop(name, None)
            return self
        self.queries.setdefault(name, []).extend(values)
        return self

    def copy(self) -> RequestTemplate:
        return copy.deepcopy(self)

    def resolve(self, variables: Mapping[str, Any]) -> RequestTemplate:
        """Return a new template with every expression expanded.

        Path values are percent-encoded, except for "/" while decode_slash
        is set. Query and header expressions that
        resolve to None are dropped along with their parameter.
        """
        queries: dict[str, list[str]] = {}
        for name, templates in self.queries.items():
            values = _expand_values(templates, variables)
            if values or not any(map(_is_single_expression, templates)):
                queries[name] = values

        headers: dict[str, list[str]] = {}
        for name, templates in self.headers.items():
            values = _expand_values(templates, variables)
            if values:
                headers[name] = values

        return RequestTemplate(
            method=self.method,
            uri=_expand(
                self.uri, variables, encode=True, decode_slash=self.decode_slash
            ),
            queries=queries,
            headers=headers,
            body=self.body,
            resolved=True,
            decode_slash=self.decode_slash,
        )

    def url(self, base_url: str = "") -> str:
        """Build the absolute URL, prefixing base_url unless the uri is absolute."""
        if self.uri.startswith(("http://", "https://")):
            url = self.uri
        else:
            path = self.uri
            if path and not path.startswith("/"):
                path = "/" + path
            url = base_url.rstrip("/") + path

        pairs = [
            (name, value) for name, values in self.queries.items() for value in values
        ]
        if not pairs:
            return url
        separator = "&" if "?" in url else "?"
        return url + separator + urlencode(pairs, quote_via=quote)

    def request(self, base_url: str = "") -> Request:
        """Produce the final immutable request.

        Raises:
            WirestubError: CONTRACT error if the template was never resolved
        """
        if not self.resolved:
            msg = "Template must be resolved before building a request"
            raise WirestubError.contract(msg)
        return Request(
            method=self.method,
            url=self.url(base_url),
            headers={name: list(values) for name, values in self.headers.items()},
            body=self.body,
        )
