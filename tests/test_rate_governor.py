"""Tests for quota tracking, feasibility and backoff."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from conftest import NOW, RESET_AT
from projectfacts.core.config import CollectionOptions
from projectfacts.engines.rate_governor import QuotaSnapshot, RateGovernor, RetryPolicy
from projectfacts.exceptions import (
    AuthorizationError,
    RateLimitError,
    ServerError,
    SourceTimeoutError,
)


def _governor(**overrides) -> RateGovernor:
    return RateGovernor(CollectionOptions(**overrides), clock=lambda: NOW)


class TestQuotaSnapshot:
    def test_from_headers(self):
        reset = int(RESET_AT.timestamp())
        snapshot = QuotaSnapshot.from_headers(
            {"X-RateLimit-Remaining": "42", "X-RateLimit-Limit": "5000", "X-RateLimit-Reset": str(reset)}
        )
        assert snapshot == QuotaSnapshot(remaining=42, limit=5000, reset_at=RESET_AT)

    def test_missing_header(self):
        assert QuotaSnapshot.from_headers({"X-RateLimit-Remaining": "42"}) is None

    def test_garbage_header(self):
        headers = {"X-RateLimit-Remaining": "lots", "X-RateLimit-Limit": "5000", "X-RateLimit-Reset": "0"}
        assert QuotaSnapshot.from_headers(headers) is None

    def test_wait_until_reset_never_negative(self):
        snapshot = QuotaSnapshot(remaining=0, limit=5000, reset_at=NOW - timedelta(minutes=5))
        assert snapshot.wait_until_reset(NOW) == timedelta(0)


class TestEstimate:
    def test_per_repository_calls(self):
        # 1 metadata + 3 issue + 3 PR + 5 commit + 1 release + 1 contributor pages
        assert _governor().per_repository_calls() == 14

    def test_buffered_and_rounded_up(self):
        governor = _governor()
        assert governor.estimate_required_calls(["a/b"]) == 17
        assert governor.estimate_required_calls(3) == 51

    def test_zero_repositories(self):
        assert _governor().estimate_required_calls([]) == 0

    def test_disabled_entities_cost_nothing(self):
        governor = _governor(issue_limit=0, pull_request_limit=0, commit_limit=0, release_limit=0, contributor_limit=0)
        assert governor.per_repository_calls() == 1

    def test_monotonic_in_repository_count(self):
        governor = _governor()
        estimates = [governor.estimate_required_calls(n) for n in range(6)]
        assert estimates == sorted(estimates)


class TestFeasibility:
    def test_insufficient_quota(self):
        governor = _governor()
        snapshot = QuotaSnapshot(remaining=5, limit=5000, reset_at=RESET_AT)
        result = governor.check_feasible(50, snapshot, now=NOW)
        assert result.feasible is False
        assert result.suggested_wait == timedelta(hours=1)
        assert result.suggested_wait >= timedelta(0)

    def test_reset_already_passed(self):
        governor = _governor()
        snapshot = QuotaSnapshot(remaining=5, limit=5000, reset_at=NOW - timedelta(seconds=1))
        result = governor.check_feasible(50, snapshot, now=NOW)
        assert result.feasible is False
        assert result.suggested_wait == timedelta(0)

    def test_sufficient_quota(self):
        governor = _governor()
        snapshot = QuotaSnapshot(remaining=5000, limit=5000, reset_at=RESET_AT)
        result = governor.check_feasible(51, snapshot, repositories=3, now=NOW)
        assert result.feasible is True
        assert result.suggested_wait == timedelta(0)
        assert result.recommended_concurrency == 3

    def test_concurrency_capped_by_quota(self):
        governor = _governor(max_concurrency=8)
        # 30 calls left covers two repositories' worth of 14 calls
        snapshot = QuotaSnapshot(remaining=30, limit=5000, reset_at=RESET_AT)
        result = governor.check_feasible(17, snapshot, repositories=10, now=NOW)
        assert result.recommended_concurrency == 2

    def test_concurrency_at_least_one(self):
        governor = _governor()
        snapshot = QuotaSnapshot(remaining=3, limit=5000, reset_at=RESET_AT)
        result = governor.check_feasible(3, snapshot, repositories=4, now=NOW)
        assert result.feasible is True
        assert result.recommended_concurrency == 1


class TestRecord:
    @pytest.mark.anyio
    async def test_counts_calls(self):
        governor = _governor()
        await governor.record(None)
        await governor.record(QuotaSnapshot(remaining=10, limit=5000, reset_at=RESET_AT))
        assert governor.calls_made == 2
        assert governor.snapshot.remaining == 10

    @pytest.mark.anyio
    async def test_lowest_remaining_wins_within_window(self):
        governor = _governor()
        snapshots = [QuotaSnapshot(remaining=r, limit=5000, reset_at=RESET_AT) for r in (90, 40, 70, 55)]
        await asyncio.gather(*(governor.record(s) for s in snapshots))
        assert governor.snapshot.remaining == 40
        assert governor.calls_made == 4

    @pytest.mark.anyio
    async def test_new_window_replaces(self):
        governor = _governor()
        await governor.record(QuotaSnapshot(remaining=3, limit=5000, reset_at=RESET_AT))
        later = QuotaSnapshot(remaining=4999, limit=5000, reset_at=RESET_AT + timedelta(hours=1))
        await governor.record(later)
        assert governor.snapshot == later

    @pytest.mark.anyio
    async def test_stale_window_ignored(self):
        governor = _governor()
        current = QuotaSnapshot(remaining=4000, limit=5000, reset_at=RESET_AT)
        await governor.record(current)
        await governor.record(QuotaSnapshot(remaining=1, limit=5000, reset_at=RESET_AT - timedelta(hours=1)))
        assert governor.snapshot == current


class TestBackoff:
    def test_rate_limit_waits_until_reset(self):
        governor = _governor()
        error = RateLimitError(10, reset_at=NOW + timedelta(seconds=90))
        assert governor.backoff_for(error, 0, now=NOW) == 90

    def test_rate_limit_without_reset_uses_wait(self):
        assert _governor().backoff_for(RateLimitError(60), 2) == 60

    def test_transient_is_exponential(self):
        governor = _governor(backoff_base=0.5)
        waits = [governor.backoff_for(ServerError(502), attempt) for attempt in range(4)]
        assert waits == [0.5, 1.0, 2.0, 4.0]
        assert governor.backoff_for(SourceTimeoutError("slow"), 1) == 1.0

    def test_non_retryable_is_zero(self):
        assert _governor().backoff_for(AuthorizationError(401), 0) == 0


class TestRetryPolicy:
    def test_allows_within_budget(self):
        policy = RetryPolicy(max_attempts=3, max_wait=60)
        assert policy.allows(1, 10)
        assert policy.allows(2, 60)
        assert not policy.allows(3, 1)

    def test_wait_over_ceiling_escalates(self):
        assert not RetryPolicy(max_wait=60).allows(1, 61)

    def test_from_options(self):
        policy = RetryPolicy.from_options(CollectionOptions(max_attempts=5, backoff_base=2.0, max_wait=10.0))
        assert policy == RetryPolicy(max_attempts=5, backoff_base=2.0, max_wait=10.0)

    def test_invalid(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)


def test_default_clock_is_aware():
    governor = RateGovernor()
    snapshot = QuotaSnapshot(remaining=0, limit=1, reset_at=datetime.now(timezone.utc) + timedelta(days=1))
    result = governor.check_feasible(1, snapshot)
    assert result.suggested_wait > timedelta(hours=23)
