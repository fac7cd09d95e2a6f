"""
Login and bearer token caching for upstream requests.
"""

from .token_cache import AuthToken, AuthTokenCache, CacheStatus

__all__ = ["AuthToken", "AuthTokenCache", "CacheStatus"]
