"""
Endpoint discovery: static node list or registry lookup.
"""

from typing import Any, List, Optional, Sequence

from shared.config import ResolverConfig
from shared.errors import (
    ConfigurationError,
    DeadlineExceeded,
    NoUsableEndpoint,
    RegistryResponseInvalid,
    RegistryUnreachable,
    RetryExhausted,
)
from shared.logging import get_logger

from ..identifiers import Identifier
from .load_balancer import LoadBalancedClient
from .models import (
    DiscoveryMode,
    EndpointSet,
    HttpMethod,
    InvalidEndpointURL,
    RequestTemplate,
)

REGISTRY_PAYLOAD = "payload"
REGISTRY_ENVIRONMENTS = "environments"
REGISTRY_TYPE = "type"
REGISTRY_TYPE_REST = "REST"
REGISTRY_METADATA = "metadata"
REGISTRY_URLS = "urls"
REGISTRY_METHOD = "method"


class EndpointResolver:
    """Determine the candidate endpoints for an identifier.

    In static mode the node list is parsed once here and returned for
    every identifier. In dynamic mode every call asks the registry; the
    registry URL list itself is parsed once here.
    """

    def __init__(self,
                 client: LoadBalancedClient,
                 node_urls: Optional[Sequence[str]] = None,
                 registry_urls: Optional[Sequence[str]] = None,
                 registry_enabled: bool = False):
        self.client = client
        self.registry_enabled = registry_enabled
        self.logger = get_logger("resolver.endpoints")

        self._static_set: Optional[EndpointSet] = None
        self._registry_set: Optional[EndpointSet] = None

        if registry_enabled:
            self._registry_set = self._build_set("registry", registry_urls)
            self.logger.info(
                "Initialized registry load balancer",
                urls=list(self._registry_set.urls)
            )
        else:
            self._static_set = self._build_set("network", node_urls)
            self.logger.info(
                "Initialized network load balancer",
                urls=list(self._static_set.urls)
            )

    @classmethod
    def from_config(cls, config: ResolverConfig, client: LoadBalancedClient) -> "EndpointResolver":
        return cls(
            client,
            node_urls=config.node_urls,
            registry_urls=config.registry_urls,
            registry_enabled=config.did_registry_enabled
        )

    @staticmethod
    def _build_set(kind: str, urls: Optional[Sequence[str]]) -> EndpointSet:
        if not urls:
            raise ConfigurationError(f"No {kind} URLs configured")
        try:
            return EndpointSet.from_urls(urls, DiscoveryMode.STATIC)
        except InvalidEndpointURL as e:
            raise ConfigurationError(
                f"Could not initialize {kind} load balancer: {e}",
                details={"urls": list(urls)}
            ) from e

    async def discover(self, identifier: Identifier, deadline: Optional[float] = None) -> EndpointSet:
        """Return the endpoint set to fetch ``identifier`` from."""
        if not self.registry_enabled:
            return self._static_set

        endpoint_set = await self._discover_from_registry(identifier, deadline)
        self.logger.info(
            "Initialized dynamic network load balancer",
            urls=list(endpoint_set.urls),
            method=endpoint_set.method.value
        )
        return endpoint_set

    async def _discover_from_registry(self, identifier: Identifier,
                                      deadline: Optional[float]) -> EndpointSet:
        template = RequestTemplate(
            method=HttpMethod.GET,
            headers={"Accept": "application/json"}
        )
        try:
            response = await self.client.request(
                template, identifier.registry_key, self._registry_set, deadline=deadline
            )
        except DeadlineExceeded:
            raise
        except RetryExhausted as e:
            self.logger.error(
                "Could not retrieve servers from registry",
                identifier=str(identifier),
                error=e.message
            )
            raise RegistryUnreachable(
                f"Could not retrieve servers from registry for identifier {identifier}",
                details={"attempts": e.attempts, "last_status": e.last_status, "last_error": e.last_error}
            ) from e

        if not response.content:
            raise RegistryResponseInvalid(
                f"Empty registry response for identifier {identifier}"
            )
        try:
            body = response.json()
        except ValueError as e:
            raise RegistryResponseInvalid(
                f"Could not extract JSON object from registry response for identifier {identifier}"
            ) from e

        environments = self._environments(body, identifier)
        return self._select_rest_endpoints(environments, body)

    @staticmethod
    def _environments(body: Any, identifier: Identifier) -> List[Any]:
        payload = body.get(REGISTRY_PAYLOAD) if isinstance(body, dict) else None
        environments = payload.get(REGISTRY_ENVIRONMENTS) if isinstance(payload, dict) else None
        if not isinstance(environments, list):
            raise RegistryResponseInvalid(
                f"Could not retrieve valid JSON response from registry for identifier {identifier}",
                details={"response": body}
            )
        return environments

    def _select_rest_endpoints(self, environments: List[Any], body: Any) -> EndpointSet:
        urls: List[str] = []
        method: Optional[str] = None

        for environment in environments:
            if not isinstance(environment, dict) or environment.get(REGISTRY_TYPE) != REGISTRY_TYPE_REST:
                continue
            metadata = environment.get(REGISTRY_METADATA)
            if not isinstance(metadata, dict):
                continue

            entry_urls = metadata.get(REGISTRY_URLS)
            if isinstance(entry_urls, list):
                urls.extend(url for url in entry_urls if isinstance(url, str))

            # Several REST entries: URLs accumulate, the last method wins.
            entry_method = metadata.get(REGISTRY_METHOD)
            if isinstance(entry_method, str):
                method = entry_method

        if method is None or not urls:
            raise NoUsableEndpoint(
                "Could not resolve DID network URL from registry response",
                details={"response": body}
            )

        try:
            http_method = HttpMethod(method.upper())
        except ValueError as e:
            raise NoUsableEndpoint(
                f"No valid HTTP method found in registry for URLs {urls}",
                details={"method": method}
            ) from e

        try:
            return EndpointSet.from_urls(urls, DiscoveryMode.DYNAMIC, http_method)
        except InvalidEndpointURL as e:
            raise RegistryResponseInvalid(str(e), details={"urls": urls}) from e
