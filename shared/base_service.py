"""
FastAPI service skeleton for the did:hpass resolver driver.

Subclasses add their routes and override ``startup``/``shutdown`` to manage
outbound clients; this class owns request correlation, the health and
metrics endpoints, and the mapping of resolution errors to HTTP responses.
"""

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Dict, Optional
import time
import os

from prometheus_client import CONTENT_TYPE_LATEST

from shared.config import ResolverConfig, get_config
from shared.logging import configure_logging, get_logger, set_request_id, clear_context, request_id_var
from shared.metrics import get_metrics_collector
from shared.errors import ResolutionError

REQUEST_ID_HEADER = "X-Request-ID"
SERVICE_VERSION = "1.0.0"


class BaseService:
    """Common wiring shared by driver services."""

    def __init__(self, service_name: str, config: Optional[ResolverConfig] = None):
        self.service_name = service_name
        self.config = config or get_config()
        self._started_at = time.monotonic()

        configure_logging(service_name, self.config.log_level, json_logs=self.config.env != "local")
        self.logger = get_logger(f"{service_name}.service")
        self.metrics = get_metrics_collector(service_name)
        self.metrics.set_info(version=SERVICE_VERSION, env=self.config.env)

        self.app = self._create_app()
        self._setup_middleware()
        self._setup_routes()
        self._setup_error_handlers()

    def _create_app(self) -> FastAPI:
        @asynccontextmanager
        async def lifespan(app: FastAPI):
            await self.startup()
            try:
                yield
            finally:
                await self.shutdown()

        local = self.config.env == "local"
        return FastAPI(
            title="did:hpass Resolver Driver",
            description="Universal Resolver driver for did:hpass identifiers",
            version=SERVICE_VERSION,
            docs_url="/docs" if local else None,
            redoc_url="/redoc" if local else None,
            lifespan=lifespan,
        )

    def _setup_middleware(self):
        """Correlate, time and count every request."""

        @self.app.middleware("http")
        async def correlate_request(request: Request, call_next):
            started = time.monotonic()
            request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))

            try:
                response = await call_next(request)
            finally:
                clear_context()

            duration = time.monotonic() - started
            response.headers[REQUEST_ID_HEADER] = request_id

            # Label by route template so identifiers do not become label values.
            route = request.scope.get("route")
            endpoint = getattr(route, "path", request.url.path)
            self.metrics.record_http_request(
                method=request.method,
                endpoint=endpoint,
                status_code=response.status_code
            )

            self.logger.info(
                "HTTP request",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2)
            )
            return response

    def _setup_routes(self):
        @self.app.get("/health")
        async def health_check():
            """Liveness plus a summary of how upstreams are reached."""
            try:
                dependencies = await self._check_dependencies()
            except Exception as e:
                self.logger.error("Health check failed", error=str(e))
                return JSONResponse(
                    status_code=503,
                    content={"service": self.service_name, "status": "error", "error": str(e)}
                )

            return {
                "service": self.service_name,
                "status": "ok",
                "uptime_seconds": round(time.monotonic() - self._started_at, 3),
                "dependencies": dependencies,
                "version": SERVICE_VERSION,
                "commit": os.getenv("GIT_COMMIT", "unknown")
            }

        @self.app.get("/metrics")
        async def metrics_endpoint():
            """Prometheus metrics endpoint."""
            return Response(content=self.metrics.render(), media_type=CONTENT_TYPE_LATEST)

    def _setup_error_handlers(self):
        @self.app.exception_handler(ResolutionError)
        async def resolution_error_handler(request: Request, exc: ResolutionError):
            log = self.logger.warning if exc.status_code < 500 else self.logger.error
            log(
                "Resolution failed",
                code=exc.code,
                message=exc.message,
                details=exc.details
            )
            return JSONResponse(
                status_code=exc.status_code,
                content=exc.to_response(request_id_var.get()).model_dump()
            )

        @self.app.exception_handler(Exception)
        async def unhandled_error_handler(request: Request, exc: Exception):
            self.logger.error("Unhandled exception", error=str(exc), exc_info=True)
            return JSONResponse(
                status_code=500,
                content={
                    "request_id": request.headers.get(REQUEST_ID_HEADER),
                    "code": "INTERNAL_ERROR",
                    "message": "Internal server error",
                    "details": {}
                }
            )

    async def startup(self):
        """Acquire resources. Override in subclasses."""

    async def shutdown(self):
        """Release resources. Override in subclasses."""

    async def _check_dependencies(self) -> Dict[str, str]:
        """Describe upstream dependencies. Override in subclasses."""
        return {}

    def run(self):
        """Serve the application with uvicorn."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower()
        )
