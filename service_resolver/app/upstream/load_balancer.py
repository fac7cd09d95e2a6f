"""
Load-balanced REST client with endpoint-rotating retry.
"""

import asyncio
from typing import Optional

import httpx

from shared.errors import DeadlineExceeded, RetryExhausted
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.retry import RetryConfig, calculate_delay, remaining_time

from .models import EndpointSet, RequestTemplate


class LoadBalancedClient:
    """Issue a request against an endpoint set, failing over on errors.

    Every call starts at the first endpoint. A transport error or a non-2xx
    status moves the cursor to the next endpoint (wrapping around) until
    ``retry_config.max_attempts`` attempts have been made. A 2xx response is
    returned as is; its body is not inspected.

    ``deadline`` is a ``time.monotonic()`` instant. No attempt starts after
    it and each attempt's timeout is capped by the time left.
    """

    def __init__(self,
                 http_client: Optional[httpx.AsyncClient] = None,
                 retry_config: Optional[RetryConfig] = None,
                 timeout: float = 10.0,
                 metrics: Optional[MetricsCollector] = None,
                 name: str = "upstream"):
        self.http_client = http_client
        self.retry_config = retry_config or RetryConfig()
        self.timeout = timeout
        self.metrics = metrics
        self.logger = get_logger(f"resolver.load_balancer.{name}")

    async def request(self,
                      template: RequestTemplate,
                      path_parameter: str,
                      endpoint_set: EndpointSet,
                      deadline: Optional[float] = None) -> httpx.Response:
        """Send ``template`` to the endpoints of ``endpoint_set``."""
        if self.http_client is not None:
            return await self._request_with_retry(
                self.http_client, template, path_parameter, endpoint_set, deadline
            )

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._request_with_retry(
                client, template, path_parameter, endpoint_set, deadline
            )

    async def _request_with_retry(self,
                                  client: httpx.AsyncClient,
                                  template: RequestTemplate,
                                  path_parameter: str,
                                  endpoint_set: EndpointSet,
                                  deadline: Optional[float]) -> httpx.Response:
        max_attempts = self.retry_config.max_attempts
        cursor = 0
        attempts = 0
        last_status: Optional[int] = None
        last_error: Optional[str] = None

        while attempts < max_attempts:
            remaining = remaining_time(deadline)
            if remaining is not None and remaining <= 0:
                self.logger.warning(
                    "Deadline exceeded, abandoning upstream request",
                    attempts=attempts,
                    max_attempts=max_attempts
                )
                raise DeadlineExceeded(attempts, last_status, last_error)

            endpoint = endpoint_set.endpoints[cursor]
            url = endpoint.render(path_parameter)
            attempts += 1
            timeout = self.timeout if remaining is None else min(self.timeout, remaining)

            attempt = client.request(
                template.method.value,
                url,
                headers=template.headers,
                timeout=timeout
            )
            try:
                if remaining is None:
                    response = await attempt
                else:
                    response = await asyncio.wait_for(attempt, remaining)
            except asyncio.TimeoutError:
                self._record_attempt("error")
                self.logger.warning(
                    "Deadline exceeded, upstream attempt cancelled",
                    url=url,
                    attempt=attempts,
                    max_attempts=max_attempts
                )
                raise DeadlineExceeded(attempts, last_status, "attempt cancelled at deadline")
            except httpx.HTTPError as e:
                last_status = None
                last_error = f"{type(e).__name__}: {e}"
                self._record_attempt("error")
            else:
                if response.is_success:
                    self._record_attempt("success")
                    if attempts > 1:
                        self.logger.info(
                            "Upstream request succeeded after retry",
                            url=url,
                            attempt=attempts
                        )
                    return response

                last_status = response.status_code
                last_error = f"HTTP {response.status_code}"
                self._record_attempt("status")

            self.logger.warning(
                "Upstream request unsuccessful",
                url=url,
                attempt=attempts,
                max_attempts=max_attempts,
                status_code=last_status,
                error=last_error
            )

            cursor = (cursor + 1) % len(endpoint_set)

            if attempts < max_attempts:
                await self._wait_before_retry(attempts, deadline)

        self.logger.error(
            "All upstream attempts exhausted",
            attempts=attempts,
            endpoints=list(endpoint_set.urls),
            last_status=last_status,
            last_error=last_error
        )
        raise RetryExhausted(
            f"Request failed after {attempts} attempts",
            attempts=attempts,
            last_status=last_status,
            last_error=last_error
        )

    async def _wait_before_retry(self, attempt: int, deadline: Optional[float]):
        delay = calculate_delay(attempt, self.retry_config)
        remaining = remaining_time(deadline)
        if remaining is not None:
            delay = min(delay, max(0.0, remaining))
        if delay > 0:
            await asyncio.sleep(delay)

    def _record_attempt(self, outcome: str):
        if self.metrics is not None:
            self.metrics.record_upstream_attempt(outcome)
