"""API quota tracking, call estimation and retry backoff.

The governor decides; it never sleeps. Callers own the waiting so that a
rate-limit wait is always visible to them as a retryable condition.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import structlog

from projectfacts.core.config import CollectionOptions
from projectfacts.exceptions import RateLimitError, TransientError

log = structlog.get_logger("projectfacts.engine")

# Planned call counts are padded by this factor for retries and pagination drift.
_ESTIMATE_BUFFER = 1.2


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (ValueError, TypeError):
        return None


@dataclass(frozen=True)
class QuotaSnapshot:
    """Remaining quota as reported by one response."""

    remaining: int
    limit: int
    reset_at: datetime

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> QuotaSnapshot | None:
        """Build from ``X-RateLimit-*`` headers; ``None`` if any is missing."""
        remaining = _parse_int(headers.get("X-RateLimit-Remaining"))
        limit = _parse_int(headers.get("X-RateLimit-Limit"))
        reset = _parse_int(headers.get("X-RateLimit-Reset"))
        if remaining is None or limit is None or reset is None:
            return None
        return cls(
            remaining=remaining,
            limit=limit,
            reset_at=datetime.fromtimestamp(reset, tz=timezone.utc),
        )

    def wait_until_reset(self, now: datetime | None = None) -> timedelta:
        return max(timedelta(0), self.reset_at - (now or _utcnow()))


@dataclass(frozen=True)
class Feasibility:
    feasible: bool
    estimate: int
    remaining: int
    suggested_wait: timedelta
    recommended_concurrency: int


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry budget for a single external call."""

    max_attempts: int = 3
    backoff_base: float = 1.0
    max_wait: float = 300.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")

    @classmethod
    def from_options(cls, options: CollectionOptions) -> RetryPolicy:
        return cls(
            max_attempts=options.max_attempts,
            backoff_base=options.backoff_base,
            max_wait=options.max_wait,
        )

    def allows(self, attempts_made: int, wait: float) -> bool:
        """True if another attempt may follow *attempts_made* after waiting *wait* seconds."""
        return attempts_made < self.max_attempts and wait <= self.max_wait


class RateGovernor:
    """Shared quota state for one collection run.

    :meth:`record` is the only mutation and runs under a lock, so snapshots
    arriving from concurrent repository fetches are merged, never lost.
    """

    def __init__(
        self,
        options: CollectionOptions | None = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._options = options or CollectionOptions()
        self._policy = RetryPolicy.from_options(self._options)
        self._clock = clock
        self._lock = asyncio.Lock()
        self._snapshot: QuotaSnapshot | None = None
        self._calls_made = 0

    @property
    def options(self) -> CollectionOptions:
        return self._options

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def snapshot(self) -> QuotaSnapshot | None:
        return self._snapshot

    @property
    def calls_made(self) -> int:
        return self._calls_made

    # ── planning ───────────────────────────────────────────────────────────

    def page_budget(self, limit: int, options: CollectionOptions | None = None) -> int:
        """Most pages one entity list may fetch; collectors stop here even if more remain."""
        opts = options or self._options
        return math.ceil(limit / opts.per_page) if limit > 0 else 0

    def per_repository_calls(self, options: CollectionOptions | None = None) -> int:
        """Unbuffered call count for one repository: metadata plus one call per page."""
        opts = options or self._options
        return 1 + sum(self.page_budget(limit, opts) for limit in opts.entity_limits.values())

    def estimate_required_calls(
        self,
        repositories: Sequence[str] | int,
        options: CollectionOptions | None = None,
    ) -> int:
        count = repositories if isinstance(repositories, int) else len(repositories)
        if count <= 0:
            return 0
        raw = count * self.per_repository_calls(options)
        return math.ceil(raw * _ESTIMATE_BUFFER)

    def check_feasible(
        self,
        estimate: int,
        snapshot: QuotaSnapshot,
        *,
        repositories: int = 1,
        now: datetime | None = None,
    ) -> Feasibility:
        now = now or self._clock()
        feasible = estimate <= snapshot.remaining
        wait = timedelta(0) if feasible else snapshot.wait_until_reset(now)
        per_repo = self.per_repository_calls()
        concurrency = min(
            self._options.max_concurrency,
            max(repositories, 1),
            snapshot.remaining // per_repo if per_repo else self._options.max_concurrency,
        )
        result = Feasibility(
            feasible=feasible,
            estimate=estimate,
            remaining=snapshot.remaining,
            suggested_wait=wait,
            recommended_concurrency=max(concurrency, 1),
        )
        log.info(
            "governor.feasibility",
            feasible=feasible,
            estimate=estimate,
            remaining=snapshot.remaining,
            suggested_wait_seconds=wait.total_seconds(),
            concurrency=result.recommended_concurrency,
        )
        return result

    # ── bookkeeping ────────────────────────────────────────────────────────

    async def record(self, snapshot: QuotaSnapshot | None) -> None:
        """Count one completed call and merge its quota snapshot.

        A snapshot from a later reset window replaces the current one; within
        the same window the lowest remaining count wins, whatever order the
        responses complete in.
        """
        async with self._lock:
            self._calls_made += 1
            if snapshot is None:
                return
            current = self._snapshot
            if current is None or snapshot.reset_at > current.reset_at:
                self._snapshot = snapshot
            elif snapshot.reset_at == current.reset_at and snapshot.remaining < current.remaining:
                self._snapshot = snapshot

    # ── backoff ────────────────────────────────────────────────────────────

    def backoff_for(self, error: BaseException, attempt: int, now: datetime | None = None) -> float:
        """Seconds to wait before retrying after *error* on zero-based *attempt*.

        Rate limits wait until the reset instant; other transient failures
        back off exponentially. Non-retryable errors return 0.
        """
        if isinstance(error, RateLimitError):
            if error.reset_at is not None:
                delta = error.reset_at - (now or self._clock())
                return max(0.0, delta.total_seconds())
            return error.wait_seconds
        if isinstance(error, TransientError):
            return self._policy.backoff_base * (2**attempt)
        return 0.0
