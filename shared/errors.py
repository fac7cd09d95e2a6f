"""
Shared error handling for the did:hpass resolver driver.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class ResolutionError(Exception):
    """Base exception for resolution failures."""

    status_code: int = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self, request_id: Optional[str] = None) -> ErrorResponse:
        """Convert to error response."""
        details = dict(self.details)
        if self.__cause__ is not None:
            details.setdefault("cause", str(self.__cause__))

        return ErrorResponse(
            request_id=request_id,
            code=self.code,
            message=self.message,
            details=details
        )


class ConfigurationError(ResolutionError):
    """Driver configuration is incomplete or inconsistent."""

    def __init__(self, message: str = "Invalid configuration", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)


class IdentifierMalformed(ResolutionError):
    """Identifier does not match the did:hpass pattern."""

    status_code = 400

    def __init__(self, identifier: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            "IDENTIFIER_MALFORMED",
            f"Identifier is invalid: {identifier}",
            {"identifier": identifier, **(details or {})}
        )


class EndpointDiscoveryError(ResolutionError):
    """Candidate endpoints could not be determined."""

    status_code = 502


class RegistryUnreachable(EndpointDiscoveryError):

    def __init__(self, message: str = "Registry unreachable", details: Optional[Dict[str, Any]] = None):
        super().__init__("REGISTRY_UNREACHABLE", message, details)


class RegistryResponseInvalid(EndpointDiscoveryError):

    def __init__(self, message: str = "Registry response invalid", details: Optional[Dict[str, Any]] = None):
        super().__init__("REGISTRY_RESPONSE_INVALID", message, details)


class NoUsableEndpoint(EndpointDiscoveryError):

    def __init__(self, message: str = "No usable endpoint in registry response", details: Optional[Dict[str, Any]] = None):
        super().__init__("NO_USABLE_ENDPOINT", message, details)


class AuthenticationError(ResolutionError):
    """Authentication against the login service failed."""

    status_code = 502


class CredentialsMissing(AuthenticationError):

    def __init__(self, message: str = "Login credentials are not configured", details: Optional[Dict[str, Any]] = None):
        super().__init__("CREDENTIALS_MISSING", message, details)


class LoginUnreachable(AuthenticationError):

    def __init__(self, message: str = "Login service unreachable", details: Optional[Dict[str, Any]] = None):
        super().__init__("LOGIN_UNREACHABLE", message, details)


class LoginResponseInvalid(AuthenticationError):

    def __init__(self, message: str = "Login response invalid", details: Optional[Dict[str, Any]] = None):
        super().__init__("LOGIN_RESPONSE_INVALID", message, details)


class RetryExhausted(ResolutionError):
    """Raised when all load-balanced attempts failed."""

    status_code = 502

    def __init__(self, message: str, attempts: int,
                 last_status: Optional[int] = None,
                 last_error: Optional[str] = None,
                 details: Optional[Dict[str, Any]] = None):
        self.attempts = attempts
        self.last_status = last_status
        self.last_error = last_error
        super().__init__(
            "RETRY_EXHAUSTED",
            message,
            {
                "attempts": attempts,
                "last_status": last_status,
                "last_error": last_error,
                **(details or {})
            }
        )


class DeadlineExceeded(RetryExhausted):
    """Caller deadline passed before a successful attempt."""

    status_code = 504

    def __init__(self, attempts: int,
                 last_status: Optional[int] = None,
                 last_error: Optional[str] = None):
        super().__init__(
            "Deadline exceeded before a successful response",
            attempts=attempts,
            last_status=last_status,
            last_error=last_error
        )
        self.code = "DEADLINE_EXCEEDED"


class ResourceFetchError(ResolutionError):
    """Fetched resource could not be used."""

    status_code = 502

    def __init__(self, message: str = "Could not fetch DID from network", details: Optional[Dict[str, Any]] = None):
        super().__init__("RESOURCE_FETCH_ERROR", message, details)


class DocumentInvalid(ResourceFetchError):
    """Fetched payload lacks mandatory DID document fields."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.code = "DOCUMENT_INVALID"
