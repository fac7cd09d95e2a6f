"""
Upstream access for the resolver.

- models: Endpoint, EndpointSet, HttpMethod and request templates
- load_balancer: rotating retry over an endpoint set
- endpoints: static or registry-driven endpoint discovery
"""

from .models import DiscoveryMode, Endpoint, EndpointSet, HttpMethod, RequestTemplate
from .load_balancer import LoadBalancedClient
from .endpoints import EndpointResolver

__all__ = [
    "DiscoveryMode",
    "Endpoint",
    "EndpointSet",
    "HttpMethod",
    "RequestTemplate",
    "LoadBalancedClient",
    "EndpointResolver",
]
