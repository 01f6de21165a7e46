"""Host-restricted HTTP client with tenacity retries for the Wikimedia APIs."""

from __future__ import annotations

import logging
from typing import Any, Tuple
from urllib.parse import urlparse

import httpx
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

ALLOWED_DOMAINS: Tuple[str, ...] = ("wikipedia.org", "wikimedia.org")

_TRANSIENT = (httpx.TimeoutException, httpx.NetworkError)


class HostNotAllowedError(ValueError):
    """Raised when a request targets a host outside the Wikimedia domains."""


def _host_allowed(host: str, domains: Tuple[str, ...]) -> bool:
    host = host.lower().rstrip(".")
    return any(host == d or host.endswith("." + d) for d in domains)


class WikiHTTPClient:
    """httpx client wrapper with a host allow-list and tenacity retries.

    Parameters
    ----------
    timeout:
        Per-request timeout in seconds.
    max_retries:
        Maximum attempts for timeouts and network errors.
    min_wait / max_wait:
        Exponential backoff boundaries in seconds.
    user_agent:
        Sent on every request; Wikimedia asks clients to identify themselves.
    """

    def __init__(
        self,
        timeout: int = 10,
        max_retries: int = 3,
        min_wait: float = 2.0,
        max_wait: float = 30.0,
        user_agent: str = "wikiheat/0.1",
        allowed_domains: Tuple[str, ...] = ALLOWED_DOMAINS,
    ) -> None:
        self.timeout = timeout
        self.max_retries = max_retries
        self.min_wait = min_wait
        self.max_wait = max_wait
        self.allowed_domains = allowed_domains
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            headers={"User-Agent": user_agent, "Accept": "application/json"},
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(self, url: str, **kwargs: Any) -> httpx.Response:
        """Host-checked GET; transient failures are retried with backoff."""
        self._assert_allowed(url)
        retrying = Retrying(
            stop=stop_after_attempt(max(self.max_retries, 1)),
            wait=wait_exponential(multiplier=1, min=self.min_wait, max=self.max_wait),
            retry=retry_if_exception_type(_TRANSIENT),
            reraise=True,
        )
        for attempt in retrying:
            with attempt:
                response = self._client.get(url, **kwargs)
                response.raise_for_status()
        return response

    def close(self) -> None:
        """Close the underlying httpx client."""
        self._client.close()

    def __enter__(self) -> "WikiHTTPClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _assert_allowed(self, url: str) -> None:
        parsed = urlparse(url)
        host = parsed.hostname or ""
        if not host:
            raise HostNotAllowedError(f"Cannot determine host from URL: {url!r}")
        if parsed.scheme != "https":
            raise HostNotAllowedError(f"Only https is allowed: {url!r}")
        if not _host_allowed(host, self.allowed_domains):
            raise HostNotAllowedError(f"Host {host!r} is not a Wikimedia host")
