"""
Bearer token cache for the login service.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional, Tuple

import httpx
import jwt

from shared.config import ResolverConfig
from shared.errors import CredentialsMissing, DeadlineExceeded, LoginResponseInvalid, LoginUnreachable
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.retry import remaining_time

ACCESS_TOKEN = "access_token"
DEFAULT_EXPIRY_BUFFER = timedelta(minutes=5)


class CacheStatus(Enum):
    """Outcome of looking at the cached token."""
    HIT = "hit"
    ABSENT = "absent"
    EXPIRING = "expiring"
    UNPARSABLE = "unparsable"


@dataclass(frozen=True)
class AuthToken:
    value: str
    expires_at: Optional[datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def token_expiry(token: str) -> Optional[datetime]:
    """Read the ``exp`` claim without verifying the signature.

    Returns None when the token cannot be decoded or has no usable ``exp``.
    """
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except jwt.PyJWTError:
        return None

    exp = claims.get("exp")
    if not isinstance(exp, (int, float)) or isinstance(exp, bool):
        return None
    try:
        return datetime.fromtimestamp(exp, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


class AuthTokenCache:
    """Obtain a bearer token and keep it until it is about to expire.

    A single token is cached per instance. Refreshes are single-flight:
    the first caller to find the token unusable starts the login as a
    task, and everyone racing on it awaits that task.
    """

    def __init__(self,
                 login_url: str,
                 user: Optional[str],
                 password: Optional[str],
                 http_client: Optional[httpx.AsyncClient] = None,
                 timeout: float = 10.0,
                 expiry_buffer: timedelta = DEFAULT_EXPIRY_BUFFER,
                 clock: Callable[[], datetime] = utc_now,
                 metrics: Optional[MetricsCollector] = None):
        self.login_url = login_url
        self.user = user
        self.password = password
        self.http_client = http_client
        self.timeout = timeout
        self.expiry_buffer = expiry_buffer
        self.clock = clock
        self.metrics = metrics
        self.logger = get_logger("resolver.auth.token_cache")

        self._token: Optional[AuthToken] = None
        self._refresh: Optional[asyncio.Future] = None

    @classmethod
    def from_config(cls, config: ResolverConfig,
                    http_client: Optional[httpx.AsyncClient] = None,
                    metrics: Optional[MetricsCollector] = None) -> "AuthTokenCache":
        return cls(
            login_url=config.auth_login_url,
            user=config.user,
            password=config.password_value(),
            http_client=http_client,
            timeout=config.login_timeout,
            expiry_buffer=timedelta(seconds=config.token_expiry_buffer_seconds),
            metrics=metrics
        )

    @property
    def token(self) -> Optional[AuthToken]:
        """The cached token, if any."""
        return self._token

    def lookup(self) -> Tuple[CacheStatus, Optional[str]]:
        """Classify the cached token; the value is returned only on a hit."""
        if self._token is None:
            return CacheStatus.ABSENT, None

        expires_at = self._token.expires_at
        if expires_at is None:
            return CacheStatus.UNPARSABLE, None
        if expires_at > self.clock() + self.expiry_buffer:
            return CacheStatus.HIT, self._token.value
        return CacheStatus.EXPIRING, None

    async def authenticate(self, deadline: Optional[float] = None) -> str:
        """Return a token that stays valid beyond the expiry buffer.

        Callers arriving while a login is in flight await that same login
        and share its token or its error. ``deadline`` bounds the wait
        for this caller only; the shared login keeps running.
        """
        status, value = self.lookup()
        if status is CacheStatus.HIT:
            return value

        if self._refresh is None:
            self.logger.info("Cached token not usable, logging in", reason=status.value)
            self._refresh = asyncio.ensure_future(self._refresh_token())
            self._refresh.add_done_callback(_consume_result)

        remaining = remaining_time(deadline)
        if remaining is None:
            return await asyncio.shield(self._refresh)
        try:
            return await asyncio.wait_for(asyncio.shield(self._refresh), max(0.0, remaining))
        except asyncio.TimeoutError:
            self.logger.warning("Deadline exceeded while waiting for login", url=self.login_url)
            raise DeadlineExceeded(0, last_error="login still in flight")

    async def _refresh_token(self) -> str:
        try:
            self._token = await self._login()
            return self._token.value
        finally:
            self._refresh = None

    async def _login(self) -> AuthToken:
        if not self.user or not self.password:
            raise CredentialsMissing(details={"login_url": self.login_url})

        try:
            if self.http_client is not None:
                response = await self._post_credentials(self.http_client)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await self._post_credentials(client)
        except httpx.HTTPError as e:
            self._record_refresh("unreachable")
            self.logger.error("Login request failed", url=self.login_url, error=str(e))
            raise LoginUnreachable(
                f"Could not get response from {self.login_url}",
                details={"error": str(e)}
            ) from e

        if not response.is_success:
            self._record_refresh("unreachable")
            self.logger.error(
                "Login returned unexpected status",
                url=self.login_url,
                status_code=response.status_code
            )
            raise LoginUnreachable(
                f"Could not retrieve valid HTTP response from {self.login_url}",
                details={"status_code": response.status_code}
            )

        try:
            body = response.json()
        except ValueError as e:
            self._record_refresh("invalid")
            raise LoginResponseInvalid("Login response is not valid JSON") from e

        access_token = body.get(ACCESS_TOKEN) if isinstance(body, dict) else None
        if not isinstance(access_token, str) or not access_token:
            self._record_refresh("invalid")
            self.logger.error("Login response has no access token", url=self.login_url)
            raise LoginResponseInvalid("Invalid login data: access_token missing")

        expires_at = token_expiry(access_token)
        if expires_at is None:
            self.logger.warning("Access token expiry could not be read; it will not be reused")
        self._record_refresh("success")
        self.logger.info(
            "Obtained new access token",
            expires_at=expires_at.isoformat() if expires_at else None
        )
        return AuthToken(value=access_token, expires_at=expires_at)

    async def _post_credentials(self, client: httpx.AsyncClient) -> httpx.Response:
        return await client.post(
            self.login_url,
            json={"email": self.user, "password": self.password},
            headers={"Content-Type": "application/json"},
            timeout=self.timeout
        )

    def _record_refresh(self, outcome: str):
        if self.metrics is not None:
            self.metrics.record_token_refresh(outcome)


def _consume_result(task: "asyncio.Future") -> None:
    # Mark a failed login as retrieved even when every waiter gave up.
    if not task.cancelled():
        task.exception()
