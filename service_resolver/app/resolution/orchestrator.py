"""
Resolution sequence: validate, discover, authenticate, fetch.
"""

import time
from contextlib import contextmanager
from enum import Enum
from typing import Optional

from shared.errors import ResolutionError
from shared.logging import get_logger
from shared.metrics import MetricsCollector

from ..auth.token_cache import AuthTokenCache
from ..identifiers import Identifier
from ..upstream.endpoints import EndpointResolver
from ..upstream.load_balancer import LoadBalancedClient
from ..upstream.models import RequestTemplate
from .document import ResolutionResult, build_resolution_result


class ResolutionStage(Enum):
    VALIDATE_IDENTIFIER = "validate_identifier"
    DISCOVER_ENDPOINTS = "discover_endpoints"
    ATTACH_AUTH = "attach_auth"
    FETCH_RESOURCE = "fetch_resource"
    BUILD_DOCUMENT = "build_document"


class ResolutionOrchestrator:
    """Run one resolution from identifier string to raw payload.

    Resolutions are independent of each other; the token cache is the only
    state they share. ``token_cache`` is None when authentication is
    disabled, in which case no Authorization header is sent.
    """

    def __init__(self,
                 endpoint_resolver: EndpointResolver,
                 client: LoadBalancedClient,
                 token_cache: Optional[AuthTokenCache] = None,
                 metrics: Optional[MetricsCollector] = None):
        self.endpoint_resolver = endpoint_resolver
        self.client = client
        self.token_cache = token_cache
        self.metrics = metrics
        self.logger = get_logger("resolver.orchestrator")

    async def fetch(self, did: str, deadline: Optional[float] = None) -> str:
        """Return the raw body served for ``did``."""
        identifier, body = await self._fetch(did, deadline)
        return body

    async def resolve(self, did: str, deadline: Optional[float] = None) -> ResolutionResult:
        """Fetch ``did`` and build its resolution result."""
        start_time = time.time()
        try:
            identifier, body = await self._fetch(did, deadline)
            with self._stage(ResolutionStage.BUILD_DOCUMENT):
                result = build_resolution_result(identifier, body)
        except ResolutionError as e:
            self._record(e.code, start_time)
            raise

        self._record("ok", start_time)
        self.logger.info(
            "DID resolved",
            did=did,
            verification_methods=len(result.did_document.verification_method),
            duration_ms=round((time.time() - start_time) * 1000, 2)
        )
        return result

    async def _fetch(self, did: str, deadline: Optional[float]):
        with self._stage(ResolutionStage.VALIDATE_IDENTIFIER):
            identifier = Identifier.parse(did)

        with self._stage(ResolutionStage.DISCOVER_ENDPOINTS):
            endpoint_set = await self.endpoint_resolver.discover(identifier, deadline=deadline)

        headers = {"Content-Type": "application/json"}
        if self.token_cache is not None:
            with self._stage(ResolutionStage.ATTACH_AUTH):
                token = await self.token_cache.authenticate(deadline=deadline)
            headers["Authorization"] = f"Bearer {token}"

        template = RequestTemplate(method=endpoint_set.method, headers=headers)
        with self._stage(ResolutionStage.FETCH_RESOURCE):
            response = await self.client.request(
                template, identifier.resource_id, endpoint_set, deadline=deadline
            )

        return identifier, response.text

    @contextmanager
    def _stage(self, stage: ResolutionStage):
        """Tag resolution errors with the stage they were raised in."""
        self.logger.debug("Entering resolution stage", stage=stage.value)
        try:
            yield
        except ResolutionError as e:
            e.details.setdefault("stage", stage.value)
            self.logger.warning(
                "Resolution failed",
                stage=stage.value,
                code=e.code,
                error=e.message
            )
            raise

    def _record(self, result: str, start_time: float):
        if self.metrics is not None:
            self.metrics.record_resolution(result, time.time() - start_time)
