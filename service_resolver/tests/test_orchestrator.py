"""
Unit tests for ResolutionOrchestrator.
"""

import asyncio
import json
import time

import pytest
import httpx

from service_resolver.app.auth.token_cache import AuthTokenCache
from service_resolver.app.resolution.orchestrator import ResolutionOrchestrator
from service_resolver.app.upstream.endpoints import EndpointResolver
from service_resolver.app.upstream.load_balancer import LoadBalancedClient
from shared.errors import (
    DeadlineExceeded,
    IdentifierMalformed,
    LoginUnreachable,
    RegistryUnreachable,
    RetryExhausted,
    DocumentInvalid,
)
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig
from shared.test_helpers import (
    RESOURCE_ID,
    RecordingTransport,
    VALID_DID,
    create_mock_jwt_token,
    json_response,
    test_data_factory,
)

NODE_URL = "http://node-1.example.com/api/v1/health-authorities/$1"
LOGIN_URL = "http://login.example.com/api/v1/hpass/users/login"
REGISTRY_URL = "http://registry.example.com/api/v1/environments/$1"


class FakeHpass:
    """Routes requests by host to canned login, registry and node answers."""

    def __init__(self, node_status=200, login_status=200, registry_status=200):
        self.token = create_mock_jwt_token()
        self.node_status = node_status
        self.login_status = login_status
        self.registry_status = registry_status
        self.transport = RecordingTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "login.example.com":
            return json_response(self.login_status, test_data_factory.create_login_response(self.token))
        if request.url.host == "registry.example.com":
            return json_response(self.registry_status, test_data_factory.create_registry_response([NODE_URL]))
        return json_response(self.node_status, test_data_factory.create_did_body())

    def requests_to(self, host):
        return [request for request in self.transport.requests if request.url.host == host]


class TestResolutionOrchestrator:
    """Test cases for ResolutionOrchestrator."""

    def make_orchestrator(self, http_client, auth=True, registry=False, metrics=None):
        client = LoadBalancedClient(http_client=http_client, retry_config=RetryConfig(max_retries=2))
        if registry:
            resolver = EndpointResolver(client, registry_urls=[REGISTRY_URL], registry_enabled=True)
        else:
            resolver = EndpointResolver(client, node_urls=[NODE_URL])
        token_cache = None
        if auth:
            token_cache = AuthTokenCache(LOGIN_URL, "driver@example.com", "secret-password", http_client=http_client)
        return ResolutionOrchestrator(resolver, client, token_cache=token_cache, metrics=metrics)

    @pytest.mark.asyncio
    async def test_resolve_static_with_auth(self):
        hpass = FakeHpass()

        async with httpx.AsyncClient(transport=hpass.transport) as http_client:
            orchestrator = self.make_orchestrator(http_client)
            result = await orchestrator.resolve(VALID_DID)

        assert result.did_document.id == VALID_DID
        node_requests = hpass.requests_to("node-1.example.com")
        assert len(node_requests) == 1
        assert node_requests[0].url.path.endswith(f"/{RESOURCE_ID}")
        assert node_requests[0].headers["Authorization"] == f"Bearer {hpass.token}"
        assert node_requests[0].headers["Content-Type"] == "application/json"

    @pytest.mark.asyncio
    async def test_fetch_returns_raw_body(self):
        hpass = FakeHpass()

        async with httpx.AsyncClient(transport=hpass.transport) as http_client:
            orchestrator = self.make_orchestrator(http_client)
            body = await orchestrator.fetch(VALID_DID)

        assert json.loads(body) == test_data_factory.create_did_body()

    @pytest.mark.asyncio
    async def test_no_auth_header_when_disabled(self):
        hpass = FakeHpass()

        async with httpx.AsyncClient(transport=hpass.transport) as http_client:
            orchestrator = self.make_orchestrator(http_client, auth=False)
            await orchestrator.fetch(VALID_DID)

        assert hpass.requests_to("login.example.com") == []
        assert "Authorization" not in hpass.requests_to("node-1.example.com")[0].headers

    @pytest.mark.asyncio
    async def test_malformed_identifier_makes_no_calls(self):
        hpass = FakeHpass()

        async with httpx.AsyncClient(transport=hpass.transport) as http_client:
            orchestrator = self.make_orchestrator(http_client, registry=True)
            with pytest.raises(IdentifierMalformed) as exc_info:
                await orchestrator.resolve("did:hpass:nope")

        assert hpass.transport.requests == []
        assert exc_info.value.details["stage"] == "validate_identifier"

    @pytest.mark.asyncio
    async def test_registry_discovery_then_fetch(self):
        hpass = FakeHpass()

        async with httpx.AsyncClient(transport=hpass.transport) as http_client:
            orchestrator = self.make_orchestrator(http_client, registry=True)
            await orchestrator.resolve(VALID_DID)

        hosts = [request.url.host for request in hpass.transport.requests]
        assert hosts == ["registry.example.com", "login.example.com", "node-1.example.com"]

    @pytest.mark.asyncio
    async def test_registry_failure_skips_login_and_fetch(self):
        hpass = FakeHpass(registry_status=503)

        async with httpx.AsyncClient(transport=hpass.transport) as http_client:
            orchestrator = self.make_orchestrator(http_client, registry=True)
            with pytest.raises(RegistryUnreachable) as exc_info:
                await orchestrator.resolve(VALID_DID)

        assert exc_info.value.details["stage"] == "discover_endpoints"
        assert hpass.requests_to("login.example.com") == []
        assert hpass.requests_to("node-1.example.com") == []

    @pytest.mark.asyncio
    async def test_login_failure_skips_fetch(self):
        hpass = FakeHpass(login_status=500)

        async with httpx.AsyncClient(transport=hpass.transport) as http_client:
            orchestrator = self.make_orchestrator(http_client)
            with pytest.raises(LoginUnreachable) as exc_info:
                await orchestrator.resolve(VALID_DID)

        assert exc_info.value.details["stage"] == "attach_auth"
        assert hpass.requests_to("node-1.example.com") == []

    @pytest.mark.asyncio
    async def test_slow_login_bounded_by_deadline(self):
        released = asyncio.Event()

        async def handler(request):
            if request.url.host == "login.example.com":
                await released.wait()
                return json_response(200, test_data_factory.create_login_response())
            return json_response(200, test_data_factory.create_did_body())

        transport = RecordingTransport(handler)
        async with httpx.AsyncClient(transport=transport) as http_client:
            orchestrator = self.make_orchestrator(http_client)
            started = time.monotonic()
            with pytest.raises(DeadlineExceeded) as exc_info:
                await orchestrator.resolve(VALID_DID, deadline=started + 0.05)

            # The login keeps running and serves the next caller.
            released.set()
            await orchestrator.token_cache.authenticate()

        assert time.monotonic() - started < 0.5
        assert exc_info.value.details["stage"] == "attach_auth"
        assert [request.url.host for request in transport.requests] == ["login.example.com"]

    @pytest.mark.asyncio
    async def test_fetch_failure_reports_attempts(self):
        hpass = FakeHpass(node_status=500)
        metrics = MetricsCollector("test")

        async with httpx.AsyncClient(transport=hpass.transport) as http_client:
            orchestrator = self.make_orchestrator(http_client, metrics=metrics)
            with pytest.raises(RetryExhausted) as exc_info:
                await orchestrator.resolve(VALID_DID)

        assert exc_info.value.details["stage"] == "fetch_resource"
        assert exc_info.value.attempts == 3
        assert len(hpass.requests_to("node-1.example.com")) == 3
        assert metrics.get_sample("did_resolutions_total", {"result": "RETRY_EXHAUSTED"}) == 1.0

    @pytest.mark.asyncio
    async def test_invalid_document_tagged_with_build_stage(self):
        def handler(request):
            if request.url.host == "login.example.com":
                return json_response(200, test_data_factory.create_login_response())
            return json_response(200, {"payload": {"id": VALID_DID}})

        transport = RecordingTransport(handler)
        async with httpx.AsyncClient(transport=transport) as http_client:
            orchestrator = self.make_orchestrator(http_client)
            with pytest.raises(DocumentInvalid) as exc_info:
                await orchestrator.resolve(VALID_DID)

        assert exc_info.value.details["stage"] == "build_document"

    @pytest.mark.asyncio
    async def test_success_recorded_in_metrics(self):
        hpass = FakeHpass()
        metrics = MetricsCollector("test")

        async with httpx.AsyncClient(transport=hpass.transport) as http_client:
            orchestrator = self.make_orchestrator(http_client, metrics=metrics)
            await orchestrator.resolve(VALID_DID)

        assert metrics.get_sample("did_resolutions_total", {"result": "ok"}) == 1.0
