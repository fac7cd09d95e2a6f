"""
Structured logging for the did:hpass resolver driver.

Every event carries the request id and the identifier under resolution
when they are known, so one resolution can be followed across discovery,
login and fetch.
"""

import sys
import structlog
import logging
import uuid
from typing import Any, Dict, List, Optional
from contextvars import ContextVar

# Correlation for the request being served
request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
did_var: ContextVar[Optional[str]] = ContextVar('did', default=None)

# Keys whose values never reach the log output
REDACTED_KEYS = frozenset({"password", "authorization", "access_token", "token"})
REDACTED = "********"


def configure_logging(service_name: str, log_level: str = "info", json_logs: bool = True) -> None:
    """Configure structlog on top of the standard library for a service."""
    processors: List[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        _service_binder(service_name),
        add_component,
        add_correlation_context,
        redact_secrets,
    ]
    processors.append(
        structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )


def _service_binder(service_name: str):
    def add_service(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict
    return add_service


def add_component(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Derive the component from dotted logger names like ``resolver.endpoints``."""
    parts = event_dict.get("logger", "").split(".")
    if len(parts) > 1:
        event_dict["component"] = parts[1]
    return event_dict


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Add request id and identifier to log events."""
    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id

    did = did_var.get()
    if did:
        event_dict.setdefault("did", did)

    return event_dict


def redact_secrets(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    for key in event_dict.keys() & REDACTED_KEYS:
        event_dict[key] = REDACTED
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Set request ID in context, generating one when absent."""
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_did_context(did: Optional[str]):
    """Set the identifier being resolved."""
    did_var.set(did)


def clear_context():
    request_id_var.set(None)
    did_var.set(None)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
