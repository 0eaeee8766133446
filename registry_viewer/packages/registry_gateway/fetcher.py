"""Transient-fault tolerant fetcher for the upstream registry.

Runs one logical request against the registry and retries it according to a
``RetryPolicy``:

- transport errors (connection refused, DNS failure, timeouts) are retried
  immediately, then surfaced as ``UpstreamUnavailableError``
- 304 Not Modified on reads is retried after a fixed delay, then surfaced
  as ``RetriesExhaustedError``
- any other status, success or not, is returned to the caller as-is
"""

import asyncio
from typing import Any, Awaitable, Callable, Mapping, Optional

import httpx
import structlog

from .retry import RetryDecision, RetryPolicy, RetryState
from .types import (
    DeadlineExceededError,
    RegistryConfig,
    RequestCancelledError,
    RetriesExhaustedError,
    UpstreamUnavailableError,
)

logger = structlog.stdlib.get_logger(__name__)

CancelCheck = Callable[[], Awaitable[bool]]
Sleep = Callable[[float], Awaitable[None]]


def build_http_client(config: RegistryConfig) -> httpx.AsyncClient:
    """Create the HTTP client used for one inbound request."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(
            connect=config.connect_timeout,
            read=config.read_timeout,
            write=config.read_timeout,
            pool=10.0,
        ),
        follow_redirects=True,
        headers={"User-Agent": "registry-viewer-gateway"},
    )


class RegistryFetcher:
    """Executes registry requests with bounded retries.

    The fetcher holds no state across calls; each ``fetch`` gets its own
    ``RetryState``.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: RegistryConfig,
        is_cancelled: Optional[CancelCheck] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.client = client
        self.config = config
        self.is_cancelled = is_cancelled
        self.sleep = sleep

    def default_policy(self, method: str) -> RetryPolicy:
        return RetryPolicy.for_method(
            method,
            max_retries=self.config.max_retries,
            not_modified_delay=self.config.not_modified_delay,
            deadline=self.config.deadline,
        )

    async def _check_cancelled(self, method: str, url: str) -> None:
        if self.is_cancelled is not None and await self.is_cancelled():
            logger.info(
                "Client disconnected, abandoning retries",
                method=method,
                target_url=url,
            )
            raise RequestCancelledError()

    async def _send(
        self,
        state: RetryState,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]],
        content: Optional[bytes],
        params: Optional[Any],
    ) -> httpx.Response:
        request = self.client.request(
            method=method,
            url=url,
            headers=headers,
            content=content,
            params=params,
        )
        if state.policy.deadline is None:
            return await request

        remaining = state.policy.deadline - state.elapsed()
        try:
            return await asyncio.wait_for(request, timeout=max(remaining, 0))
        except asyncio.TimeoutError:
            raise DeadlineExceededError() from None

    async def fetch(
        self,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        content: Optional[bytes] = None,
        params: Optional[Any] = None,
        policy: Optional[RetryPolicy] = None,
    ) -> httpx.Response:
        """Perform a request against the registry.

        Args:
            method: HTTP method
            url: Full upstream URL
            headers: Headers to send (already sanitized)
            content: Optional request body
            params: Optional query parameters
            policy: Retry policy, defaults to ``RetryPolicy.for_method``

        Returns:
            The registry response, whatever its status

        Raises:
            UpstreamUnavailableError: Transport failure after all attempts
            DeadlineExceededError: The overall deadline was reached
            RetriesExhaustedError: 304 on every attempt
            RequestCancelledError: The inbound client disconnected
        """
        method = method.upper()
        state = RetryState(policy=policy or self.default_policy(method))

        while True:
            attempt = state.start_attempt()
            logger.info(
                "Fetching from registry",
                method=method,
                target_url=url,
                attempt=attempt,
            )

            try:
                response = await self._send(state, method, url, headers, content, params)
            except DeadlineExceededError:
                logger.error(
                    "Registry deadline exceeded",
                    method=method,
                    target_url=url,
                    attempt=attempt,
                    elapsed=state.elapsed(),
                )
                raise
            except httpx.RequestError as e:
                decision = state.record_error(e)
                logger.warning(
                    "Transport error while fetching from registry",
                    method=method,
                    target_url=url,
                    attempt=attempt,
                    error=str(e) or type(e).__name__,
                    decision=decision.value,
                )
            else:
                decision = state.record_response(response.status_code)
                logger.info(
                    "Registry response received",
                    method=method,
                    target_url=url,
                    attempt=attempt,
                    status_code=response.status_code,
                    decision=decision.value,
                )
                if decision == RetryDecision.RETURN:
                    return response

            if decision == RetryDecision.RAISE:
                logger.error(
                    "Fetch error after max retries",
                    method=method,
                    target_url=url,
                    attempts=state.attempts,
                    error=str(state.last_error),
                )
                raise UpstreamUnavailableError() from state.last_error
            if decision == RetryDecision.EXHAUSTED:
                logger.error(
                    "Cache miss after max retries",
                    method=method,
                    target_url=url,
                    attempts=state.attempts,
                )
                raise RetriesExhaustedError()
            if decision == RetryDecision.DEADLINE:
                logger.error(
                    "Registry deadline exceeded",
                    method=method,
                    target_url=url,
                    attempts=state.attempts,
                    elapsed=state.elapsed(),
                )
                raise DeadlineExceededError()

            await self._check_cancelled(method, url)
            if decision == RetryDecision.RETRY_AFTER_DELAY:
                logger.warning(
                    "Cache miss occurred, retrying",
                    method=method,
                    target_url=url,
                    retry=attempt,
                    max_retries=state.policy.max_retries,
                )
                await self.sleep(state.policy.not_modified_delay)
                await self._check_cancelled(method, url)
