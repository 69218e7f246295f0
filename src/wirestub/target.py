"""Targets bind an API class to a base URL."""

from __future__ import annotations

from dataclasses import dataclass

from wirestub.error import WirestubError
from wirestub.http import Request
from wirestub.template import RequestTemplate


@dataclass(frozen=True)
class Target:
    """An API class bound to a fixed base URL.

    Subclass and override ``apply`` for dynamic URLs or per-request signing.
    """

    api_type: type
    url: str
    name: str = ""

    def __post_init__(self) -> None:
        if not self.url:
            msg = f"Target URL for {self.api_type.__name__} must not be empty"
            raise WirestubError.contract(msg)
        if not self.name:
            object.__setattr__(self, "name", self.url)

    def apply(self, template: RequestTemplate) -> Request:
        """Turn a resolved template into a request against this target."""
        return template.request(self.url)
