"""
Configuration management for the did:hpass resolver driver.

Values are read from ``UNIRESOLVER_DRIVER_*`` environment variables (or a
``.env`` file) through pydantic-settings.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, SecretStr, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.errors import ConfigurationError


def split_url_list(value: Optional[str]) -> List[str]:
    """Split a comma-separated URL list, dropping blanks."""
    if not value:
        return []
    return [url.strip() for url in value.split(",") if url.strip()]


class ResolverConfig(BaseSettings):
    """Driver configuration."""

    model_config = SettingsConfigDict(
        env_prefix="UNIRESOLVER_DRIVER_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Service
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)

    # Endpoint discovery
    did_health_node_url: Optional[str] = Field(default=None)
    did_registry_url: Optional[str] = Field(default=None)
    did_registry_enabled: bool = Field(default=False)

    # Authentication
    auth_enabled: bool = Field(default=True)
    auth_login_url: Optional[str] = Field(default=None)
    user: Optional[str] = Field(default=None)
    password: Optional[SecretStr] = Field(default=None)
    token_expiry_buffer_seconds: int = Field(default=300, ge=0)

    # Request behaviour
    request_timeout: float = Field(default=10.0, gt=0)
    login_timeout: float = Field(default=10.0, gt=0)
    resolution_timeout: float = Field(default=60.0, gt=0)
    max_retries: int = Field(default=10, ge=0)
    retry_base_delay: float = Field(default=0.0, ge=0)
    retry_max_delay: float = Field(default=5.0, ge=0)
    retry_backoff_strategy: Literal["fixed", "linear", "exponential"] = Field(default="fixed")
    retry_jitter: bool = Field(default=False)

    @model_validator(mode="after")
    def _check_endpoint_sources(self) -> "ResolverConfig":
        if self.did_registry_enabled:
            if not split_url_list(self.did_registry_url):
                raise ValueError("did_registry_url is required when the registry is enabled")
        elif not split_url_list(self.did_health_node_url):
            raise ValueError("did_health_node_url is required when the registry is disabled")

        if self.auth_enabled and not self.auth_login_url:
            raise ValueError("auth_login_url is required when authentication is enabled")
        return self

    @property
    def node_urls(self) -> List[str]:
        return split_url_list(self.did_health_node_url)

    @property
    def registry_urls(self) -> List[str]:
        return split_url_list(self.did_registry_url)

    def password_value(self) -> Optional[str]:
        if self.password is None:
            return None
        return self.password.get_secret_value()

    def public_properties(self) -> Dict[str, Any]:
        """Driver properties safe to expose over HTTP."""
        properties = self.model_dump(exclude={"password"})
        properties["password"] = "********" if self.password else None
        return properties


def get_config(**overrides: Any) -> ResolverConfig:
    """Load configuration, raising ConfigurationError when it is unusable."""
    try:
        return ResolverConfig(**overrides)
    except ValidationError as e:
        raise ConfigurationError(
            "Invalid driver configuration",
            details={"errors": [error["msg"] for error in e.errors()]}
        ) from e
