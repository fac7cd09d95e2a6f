"""
Shared utilities for the did:hpass resolver driver.

This package aggregates common building blocks consumed by the service:

- config: Driver configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Resolution error taxonomy and error responses
- retry: Retry policy and deadline helpers
- base_service: FastAPI service skeleton (health, metrics, error handlers)
- test_helpers: Token and payload factories for tests

Do not import from service_* packages into shared/.
"""
