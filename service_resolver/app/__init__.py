"""
Resolver driver package for did:hpass identifiers.

This package exposes the FastAPI application that resolves did:hpass
identifiers against the network nodes serving them:

- app.main: Application entrypoint that wires routes and lifecycle.
- app.identifiers: Identifier pattern and segment extraction.
- app.upstream: Endpoint discovery and the load-balanced REST client.
- app.auth: Login and bearer token caching.
- app.resolution: Resolution sequence and DID document construction.

Design notes:
- Module import must not perform network calls. All IO happens in route
  handlers or the application lifespan.
- Use the shared/ utilities for configuration, logging, metrics and errors.
- The only state shared between resolutions is the cached bearer token.
"""
