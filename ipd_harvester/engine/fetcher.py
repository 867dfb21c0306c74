"""HTTP fetching with bounded retries and a per-request timeout."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict

import httpx
import structlog

from ..errors import FetchError, RetryExhaustedError
from ..infra import RetryPolicy


@dataclass(slots=True)
class FetchResponse:
    """Standardised response wrapper."""

    url: str
    status_code: int
    content: bytes = field(repr=False)
    headers: Dict[str, str] = field(default_factory=dict)


class UnexpectedStatus(Exception):
    """Raised inside the retry loop for any status other than 200."""

    def __init__(self, status_code: int) -> None:
        super().__init__(f"Unexpected status {status_code}")
        self.status_code = status_code


class Fetcher:
    """Retrieve a URL, retrying transport errors and non-success statuses.

    One ``httpx.Client`` is shared by every worker thread; the client is
    thread-safe and pools connections to the single dbfetch host.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        retry_policy: RetryPolicy | None = None,
        user_agent: str | None = None,
        logger: structlog.BoundLogger | None = None,
        transport: httpx.BaseTransport | None = None,
        max_connections: int = 100,
    ) -> None:
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy(max_attempts=3, delay=2.0)
        self.logger = logger or structlog.get_logger("ipd_harvester.fetcher")
        self._client = httpx.Client(
            follow_redirects=True,
            timeout=timeout,
            headers={"User-Agent": user_agent} if user_agent else None,
            limits=httpx.Limits(max_connections=max_connections),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "Fetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def fetch(self, url: str) -> FetchResponse:
        def _attempt(attempt: int) -> FetchResponse:
            try:
                response = self._client.get(url, timeout=self.timeout)
            except httpx.HTTPError as exc:
                self.logger.warning("fetch_error", url=url, attempt=attempt, error=str(exc))
                raise
            if self._is_failure(response):
                self.logger.warning(
                    "fetch_bad_status", url=url, attempt=attempt, status=response.status_code
                )
                raise UnexpectedStatus(response.status_code)
            return FetchResponse(
                url=str(response.url),
                status_code=response.status_code,
                content=response.content,
                headers=dict(response.headers),
            )

        try:
            return self.retry_policy.run(
                _attempt,
                retry_on=(httpx.HTTPError, UnexpectedStatus),
                describe=f"GET {url}",
            )
        except RetryExhaustedError as exc:
            cause = exc.__cause__
            raise FetchError(
                url, f"Fetch failed after {exc.attempts} attempts ({cause})"
            ) from cause

    @staticmethod
    def _is_failure(response: httpx.Response) -> bool:
        return response.status_code != httpx.codes.OK


__all__ = ["FetchResponse", "Fetcher", "UnexpectedStatus"]
