"""Async GitHub API client: REST pagination, GraphQL, error classification.

Each request is a single attempt. Failures are raised as typed errors from
:mod:`projectfacts.exceptions` so the collector can decide about retries
with the rate governor.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx
import structlog

from projectfacts.core.config import DEFAULT_API_URL
from projectfacts.engines.rate_governor import QuotaSnapshot
from projectfacts.exceptions import (
    AuthorizationError,
    MalformedResponseError,
    NotFoundError,
    ProjectFactsError,
    RateLimitError,
    RequestRejectedError,
    ServerError,
    SourceTimeoutError,
    TransientError,
)

log = structlog.get_logger("projectfacts.engine")

_NEXT_LINK_RE = re.compile(r'<([^>]+)>;\s*rel="next"')

_DEFAULT_RATE_LIMIT_WAIT = 60  # seconds, when no header says otherwise


@dataclass(frozen=True)
class GitHubPage:
    """One decoded response: JSON body, next-page URL and quota headers."""

    data: Any
    next_url: str | None
    quota: QuotaSnapshot | None


class GitHubClient:
    """Thin async wrapper around the GitHub REST and GraphQL APIs."""

    def __init__(
        self,
        token: str | None = None,
        *,
        base_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers: dict[str, str] = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
            # renamed and transferred repositories answer with a 301
            follow_redirects=True,
        )

    # ── lifecycle ──────────────────────────────────────────────────────────

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ── public ─────────────────────────────────────────────────────────────

    async def get_page(self, url: str, params: dict[str, Any] | None = None) -> GitHubPage:
        """GET one page of a REST endpoint.

        *url* may be a path or the absolute ``next`` URL of a previous page;
        in the latter case *params* must be ``None`` since the URL carries them.
        """
        response = await self._send("GET", url, params=params)
        return GitHubPage(
            data=self._json(response, url),
            next_url=self._parse_next_link(response.headers.get("Link", "")),
            quota=QuotaSnapshot.from_headers(response.headers),
        )

    async def graphql(self, query: str, variables: dict[str, Any] | None = None) -> GitHubPage:
        """POST a GraphQL query and return its ``data`` object.

        GraphQL reports most failures in a 200 response's ``errors`` list;
        those are mapped onto the same error classes as REST status codes.
        """
        response = await self._send("POST", "/graphql", json={"query": query, "variables": variables or {}})
        body = self._json(response, "/graphql")
        errors = body.get("errors") if isinstance(body, dict) else None
        if errors:
            self._raise_graphql_error(errors, response)
        data = body.get("data") if isinstance(body, dict) else None
        return GitHubPage(data=data or {}, next_url=None, quota=QuotaSnapshot.from_headers(response.headers))

    async def get_quota(self) -> QuotaSnapshot:
        """Read the core REST quota from ``/rate_limit`` (does not count against it)."""
        response = await self._send("GET", "/rate_limit")
        body = self._json(response, "/rate_limit")
        resources = body.get("resources") if isinstance(body, dict) else None
        core = resources.get("core") if isinstance(resources, dict) else None
        if not isinstance(core, dict):
            raise MalformedResponseError("/rate_limit response has no core quota")
        remaining = self._parse_header_int(core.get("remaining"))
        limit = self._parse_header_int(core.get("limit"))
        reset = self._parse_header_int(core.get("reset"))
        return QuotaSnapshot(
            remaining=remaining or 0,
            limit=limit or 0,
            reset_at=datetime.fromtimestamp(reset if reset is not None else time.time(), tz=timezone.utc),
        )

    # ── internal ───────────────────────────────────────────────────────────

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            log.warning("github.timeout", url=url)
            raise SourceTimeoutError(f"{method} {url} timed out") from exc
        except httpx.TransportError as exc:
            log.warning("github.transport_error", url=url, error=str(exc))
            raise TransientError(f"{method} {url} failed: {exc}") from exc
        self._raise_for_status(response, url)
        return response

    def _raise_for_status(self, response: httpx.Response, url: str) -> None:
        status = response.status_code
        if status < 400:
            return
        if status == 429 or (status == 403 and self._is_rate_limited(response)):
            wait = self._get_rate_limit_wait(response)
            log.warning("github.rate_limit", url=url, status=status, wait_seconds=wait)
            raise RateLimitError(
                wait,
                reset_at=self._parse_reset(response),
                quota=QuotaSnapshot.from_headers(response.headers),
            )
        if status in (401, 403):
            log.warning("github.unauthorized", url=url, status=status)
            raise AuthorizationError(status, f"{status} {self._message(response)} for {url}")
        if status == 404:
            raise NotFoundError(f"not found: {url}")
        if status >= 500:
            log.warning("github.server_error", url=url, status=status)
            raise ServerError(status, url)
        log.warning("github.request_rejected", url=url, status=status)
        raise RequestRejectedError(status, f"{status} {self._message(response)} for {url}")

    @staticmethod
    def _json(response: httpx.Response, url: str) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            log.warning("github.malformed_response", url=url, status=response.status_code)
            raise MalformedResponseError(f"{url} returned a non-JSON body") from exc

    def _raise_graphql_error(self, errors: list[Any], response: httpx.Response) -> None:
        first = errors[0] if isinstance(errors[0], dict) else {}
        kind = first.get("type", "")
        message = first.get("message", "GraphQL query failed")
        if kind == "NOT_FOUND":
            raise NotFoundError(message)
        if kind == "RATE_LIMITED":
            wait = self._get_rate_limit_wait(response)
            log.warning("github.rate_limit", url="/graphql", wait_seconds=wait)
            raise RateLimitError(
                wait,
                reset_at=self._parse_reset(response),
                quota=QuotaSnapshot.from_headers(response.headers),
            )
        if kind in ("FORBIDDEN", "INSUFFICIENT_SCOPES"):
            raise AuthorizationError(403, message)
        raise ProjectFactsError(f"GraphQL error: {message}")

    @staticmethod
    def _message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.reason_phrase
        if isinstance(body, dict) and isinstance(body.get("message"), str):
            return body["message"]
        return response.reason_phrase

    @staticmethod
    def _is_rate_limited(response: httpx.Response) -> bool:
        """Check if a 403 response is due to rate limiting."""
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is not None:
            try:
                return int(remaining) == 0
            except (ValueError, TypeError):
                pass
        # GitHub also uses Retry-After header for secondary rate limits
        return "Retry-After" in response.headers

    @staticmethod
    def _get_rate_limit_wait(response: httpx.Response) -> int:
        """Calculate how long to wait based on rate-limit headers."""
        retry_after = response.headers.get("Retry-After")
        if retry_after is not None:
            try:
                return max(int(retry_after), 0)
            except (ValueError, TypeError):
                pass
        reset_ts = response.headers.get("X-RateLimit-Reset")
        if reset_ts is not None:
            try:
                return max(int(reset_ts) - int(time.time()), 0)
            except (ValueError, TypeError):
                pass
        return _DEFAULT_RATE_LIMIT_WAIT

    @staticmethod
    def _parse_reset(response: httpx.Response) -> datetime | None:
        # Retry-After takes precedence, so the reset instant is not authoritative
        if "Retry-After" in response.headers:
            return None
        reset = GitHubClient._parse_header_int(response.headers.get("X-RateLimit-Reset"))
        if reset is None:
            return None
        return datetime.fromtimestamp(reset, tz=timezone.utc)

    @staticmethod
    def _parse_header_int(value: str | None) -> int | None:
        """Safely parse an integer header value."""
        if value is None:
            return None
        try:
            return int(value)
        except (ValueError, TypeError):
            return None

    @staticmethod
    def _parse_next_link(link_header: str) -> str | None:
        """Extract the ``next`` URL from a GitHub ``Link`` header."""
        match = _NEXT_LINK_RE.search(link_header)
        return match.group(1) if match else None
