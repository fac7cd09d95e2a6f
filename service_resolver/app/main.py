"""
did:hpass resolver driver service.
"""

from typing import Optional

import httpx
from fastapi.responses import JSONResponse

from shared.base_service import BaseService
from shared.config import ResolverConfig
from shared.logging import set_did_context
from shared.retry import RetryConfig, deadline_after

from .auth.token_cache import AuthTokenCache
from .resolution.document import DID_CONTENT_TYPE
from .resolution.orchestrator import ResolutionOrchestrator
from .upstream.endpoints import EndpointResolver
from .upstream.load_balancer import LoadBalancedClient


class ResolverService(BaseService):
    """Universal Resolver driver for did:hpass."""

    def __init__(self, config: Optional[ResolverConfig] = None,
                 http_client: Optional[httpx.AsyncClient] = None):
        super().__init__("resolver", config)

        # An injected client is owned by the caller; otherwise one is
        # opened for the lifetime of the application.
        self._owns_http_client = http_client is None
        self.http_client = http_client

        self.orchestrator: Optional[ResolutionOrchestrator] = None
        self._build_components()
        self._setup_resolver_routes()

    def _build_components(self):
        retry_config = RetryConfig(
            max_retries=self.config.max_retries,
            base_delay=self.config.retry_base_delay,
            max_delay=self.config.retry_max_delay,
            jitter=self.config.retry_jitter,
            backoff_strategy=self.config.retry_backoff_strategy
        )
        self.network_client = LoadBalancedClient(
            http_client=self.http_client,
            retry_config=retry_config,
            timeout=self.config.request_timeout,
            metrics=self.metrics,
            name="network"
        )
        self.registry_client = LoadBalancedClient(
            http_client=self.http_client,
            retry_config=retry_config,
            timeout=self.config.request_timeout,
            metrics=self.metrics,
            name="registry"
        )
        self.endpoint_resolver = EndpointResolver.from_config(self.config, self.registry_client)

        self.token_cache = None
        if self.config.auth_enabled:
            self.token_cache = AuthTokenCache.from_config(
                self.config, http_client=self.http_client, metrics=self.metrics
            )

        self.orchestrator = ResolutionOrchestrator(
            self.endpoint_resolver,
            self.network_client,
            token_cache=self.token_cache,
            metrics=self.metrics
        )

    def _use_http_client(self, client: Optional[httpx.AsyncClient]):
        self.http_client = client
        self.network_client.http_client = client
        self.registry_client.http_client = client
        if self.token_cache is not None:
            self.token_cache.http_client = client

    async def startup(self):
        if self._owns_http_client:
            self._use_http_client(httpx.AsyncClient(timeout=self.config.request_timeout))
        self.logger.info(
            "Resolver driver started",
            registry_enabled=self.config.did_registry_enabled,
            auth_enabled=self.config.auth_enabled
        )

    async def shutdown(self):
        if self._owns_http_client and self.http_client is not None:
            await self.http_client.aclose()
            self._use_http_client(None)

    def _setup_resolver_routes(self):
        """Set up resolver routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "resolver",
                "message": "did:hpass resolver driver",
                "version": "1.0.0"
            }

        @self.app.get("/1.0/identifiers/{identifier:path}")
        async def resolve_identifier(identifier: str):
            """Resolve a did:hpass identifier."""
            set_did_context(identifier)
            result = await self.orchestrator.resolve(
                identifier,
                deadline=deadline_after(self.config.resolution_timeout)
            )
            return JSONResponse(
                content=result.to_json(),
                media_type=DID_CONTENT_TYPE
            )

        @self.app.get("/1.0/properties")
        async def properties():
            """Driver properties with secrets masked."""
            return self.config.public_properties()

    async def _check_dependencies(self):
        return {
            "discovery": "registry" if self.config.did_registry_enabled else "static",
            "auth": "enabled" if self.config.auth_enabled else "disabled",
        }


def create_app(config: Optional[ResolverConfig] = None,
               http_client: Optional[httpx.AsyncClient] = None):
    """Create FastAPI application."""
    service = ResolverService(config, http_client)
    return service.app


if __name__ == "__main__":
    service = ResolverService()
    service.run()
