"""
Mock HealthPass server providing registry, node and login endpoints.
"""

import jwt
from typing import Dict, Any, List, Optional, Set
from datetime import datetime, timedelta, timezone
from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import BaseModel

from shared.logging import get_logger


class LoginRequest(BaseModel):
    email: str
    password: str


class MockHpassServer:
    """Mock HealthPass server implementation.

    One application plays the registry, every network node and the login
    service; nodes are told apart by the Host header.
    """

    def __init__(self, base_url: str = "http://hpass.mock", require_auth: bool = True):
        self.base_url = base_url.rstrip("/")
        self.require_auth = require_auth
        self.logger = get_logger("mock.hpass")
        self.app = FastAPI(title="Mock HealthPass", version="1.0.0")

        self.secret = "mock-hpass-secret"
        self.token_lifetime = timedelta(hours=1)
        self.users = {"driver@example.com": "secret-password"}

        # registry key -> node URL templates
        self.networks: Dict[str, List[str]] = {}
        # resource id -> DID payload
        self.dids: Dict[str, Dict[str, Any]] = {}
        self.failing_hosts: Set[str] = set()

        self.login_count = 0
        self.node_requests: List[str] = []

        self._setup_routes()

    @property
    def registry_url(self) -> str:
        return f"{self.base_url}/api/v1/registry/environments?network_id=$1"

    @property
    def login_url(self) -> str:
        return f"{self.base_url}/api/v1/hpass/users/login"

    def node_url(self, host: str) -> str:
        return f"http://{host}/api/v1/health-authorities/$1"

    def add_network(self, registry_key: str, node_hosts: List[str]):
        self.networks[registry_key] = [self.node_url(host) for host in node_hosts]

    def add_did(self, resource_id: str, payload: Dict[str, Any]):
        self.dids[resource_id] = payload

    def _setup_routes(self):
        """Set up mock routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "mock-hpass",
                "message": "Mock HealthPass server for the did:hpass resolver driver",
                "version": "1.0.0"
            }

        @self.app.post("/api/v1/hpass/users/login")
        async def login(request: LoginRequest):
            """Issue an access token for known credentials."""
            if self.users.get(request.email) != request.password:
                raise HTTPException(status_code=401, detail="Invalid credentials")

            self.login_count += 1
            self.logger.info("Issued mock access token", email=request.email)
            return {
                "access_token": self._issue_token(request.email),
                "token_type": "Bearer",
                "expires_in": int(self.token_lifetime.total_seconds())
            }

        @self.app.get("/api/v1/registry/environments")
        async def environments(network_id: str = Query(...)):
            """Registry lookup for a network."""
            urls = self.networks.get(network_id)
            if urls is None:
                raise HTTPException(status_code=404, detail="Network not found")

            return {
                "payload": {
                    "environments": [
                        {"type": "REST", "metadata": {"urls": urls, "method": "GET"}},
                        {"type": "BLOCKCHAIN", "metadata": {"urls": [], "method": "POST"}}
                    ]
                }
            }

        @self.app.get("/api/v1/health-authorities/{resource_id}")
        async def health_authority(resource_id: str, request: Request):
            """Serve a DID payload."""
            host = request.headers.get("host", "")
            self.node_requests.append(host)

            if host in self.failing_hosts:
                raise HTTPException(status_code=503, detail="Node unavailable")

            if self.require_auth:
                self._check_bearer(request.headers.get("authorization"))

            payload = self.dids.get(resource_id)
            if payload is None:
                raise HTTPException(status_code=404, detail="DID not found")
            return {"payload": payload}

    def _issue_token(self, subject: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "iss": self.base_url,
            "sub": subject,
            "iat": int(now.timestamp()),
            "exp": int((now + self.token_lifetime).timestamp()),
        }
        return jwt.encode(payload, self.secret, algorithm="HS256")

    def _check_bearer(self, authorization: Optional[str]):
        if not authorization or not authorization.startswith("Bearer "):
            raise HTTPException(status_code=401, detail="Missing bearer token")
        try:
            jwt.decode(authorization[len("Bearer "):], self.secret, algorithms=["HS256"])
        except jwt.InvalidTokenError:
            raise HTTPException(status_code=401, detail="Invalid token")


def create_app():
    """Create mock HealthPass application."""
    server = MockHpassServer()
    return server.app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8090)
