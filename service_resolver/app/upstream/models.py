"""
Endpoint and request types shared by discovery and the load balancer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Tuple

import httpx

URL_PARAMETER = "$1"


class HttpMethod(Enum):
    """HTTP methods a registry may announce for a network."""
    GET = "GET"


class DiscoveryMode(Enum):
    """Where an endpoint set came from."""
    STATIC = "static"
    DYNAMIC = "dynamic"


class InvalidEndpointURL(ValueError):
    """An endpoint URL template is not an absolute http(s) URL."""


@dataclass(frozen=True)
class Endpoint:
    """A URL template with an optional ``$1`` placeholder."""

    template: str

    @classmethod
    def from_url(cls, url: str) -> "Endpoint":
        url = url.strip()
        try:
            parsed = httpx.URL(url.replace(URL_PARAMETER, "x"))
        except (httpx.InvalidURL, TypeError) as e:
            raise InvalidEndpointURL(f"Ill-formed URL {url!r}: {e}") from e
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise InvalidEndpointURL(f"Ill-formed URL {url!r}: absolute http(s) URL required")
        return cls(template=url)

    def render(self, parameter: str) -> str:
        return self.template.replace(URL_PARAMETER, parameter)

    def __str__(self) -> str:
        return self.template


@dataclass(frozen=True)
class EndpointSet:
    """Ordered, non-empty candidate endpoints plus the method to use."""

    endpoints: Tuple[Endpoint, ...]
    mode: DiscoveryMode
    method: HttpMethod = HttpMethod.GET

    def __post_init__(self):
        if not self.endpoints:
            raise ValueError("EndpointSet requires at least one endpoint")

    @classmethod
    def from_urls(cls, urls: Iterable[str], mode: DiscoveryMode,
                  method: HttpMethod = HttpMethod.GET) -> "EndpointSet":
        # Repeated URLs collapse to their first position.
        return cls(
            endpoints=tuple(dict.fromkeys(Endpoint.from_url(url) for url in urls)),
            mode=mode,
            method=method
        )

    @property
    def urls(self) -> Tuple[str, ...]:
        return tuple(endpoint.template for endpoint in self.endpoints)

    def __len__(self) -> int:
        return len(self.endpoints)


@dataclass
class RequestTemplate:
    """Method and headers applied to every attempt of a request."""

    method: HttpMethod = HttpMethod.GET
    headers: Dict[str, str] = field(default_factory=dict)
