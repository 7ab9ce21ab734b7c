"""Collect and canonicalize every entity type of one repository."""

from __future__ import annotations

import asyncio
import functools
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime

import structlog

from projectfacts.core.config import CollectionOptions
from projectfacts.engines.canonicalizer import EntityType, RawPayload, Repository, canonicalize
from projectfacts.engines.collector.models import (
    CollectionFailure,
    CollectionResult,
    CollectionSuccess,
    RepositoryFacts,
)
from projectfacts.engines.collector.source import EntitySource, SourcePage
from projectfacts.engines.rate_governor import RateGovernor
from projectfacts.exceptions import (
    ProjectFactsError,
    RateLimitError,
    RetriesExhaustedError,
    SourceTimeoutError,
    TransientError,
)

log = structlog.get_logger("projectfacts.engine")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class _EntityQuery:
    entity: EntityType
    method: str
    uses_since: bool


_QUERIES: dict[str, _EntityQuery] = {
    "issues": _EntityQuery(EntityType.ISSUE, "list_issues", True),
    "pull_requests": _EntityQuery(EntityType.PULL_REQUEST, "list_pull_requests", True),
    "commits": _EntityQuery(EntityType.COMMIT, "list_commits", True),
    "releases": _EntityQuery(EntityType.RELEASE, "list_releases", False),
    "contributors": _EntityQuery(EntityType.CONTRIBUTOR, "list_contributors", False),
}


def _describe(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"


def _kind(exc: BaseException) -> str:
    if isinstance(exc, RetriesExhaustedError) and isinstance(exc.last_error, ProjectFactsError):
        return exc.last_error.kind
    return exc.kind if isinstance(exc, ProjectFactsError) else "error"


class RepositoryCollector:
    """Fetch metadata, then all entity lists concurrently, for one repository.

    Every source call runs under a timeout and is retried per the governor's
    :class:`~projectfacts.engines.rate_governor.RetryPolicy`. A repository
    contributes all of its facts or none: any failed entity type turns the
    whole repository into a :class:`CollectionFailure`.
    """

    def __init__(
        self,
        source: EntitySource,
        governor: RateGovernor,
        options: CollectionOptions | None = None,
        *,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._source = source
        self._governor = governor
        self._options = options or governor.options
        self._sleep = sleep

    async def collect(self, repository: str, since: datetime | None = None) -> CollectionResult:
        try:
            metadata = await self._collect_metadata(repository)
        except Exception as exc:
            log.warning("collector.metadata_failed", repository=repository, error=_describe(exc))
            return CollectionFailure(
                repository=repository,
                cause=f"repository: {_describe(exc)}",
                kind=_kind(exc),
                failed_entities=("repository",),
            )

        names = list(_QUERIES)
        results = await asyncio.gather(
            *(self._collect_entity(repository, name, since) for name in names),
            return_exceptions=True,
        )

        collected: dict[str, tuple] = {}
        errors: dict[str, BaseException] = {}
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                log.error(
                    "collector.sub_failed",
                    collector=name,
                    repository=repository,
                    error=str(result),
                )
                errors[name] = result
                continue
            collected[name] = tuple(result)

        if errors:
            first = next(iter(errors.values()))
            return CollectionFailure(
                repository=repository,
                cause="; ".join(f"{name}: {_describe(exc)}" for name, exc in errors.items()),
                kind=_kind(first),
                failed_entities=tuple(errors),
            )

        facts = RepositoryFacts(repository=repository, metadata=metadata, **collected)
        log.info("collector.repo_done", repository=repository, **facts.counts())
        return CollectionSuccess(repository=repository, facts=facts)

    # ── internal ───────────────────────────────────────────────────────────

    async def _collect_metadata(self, repository: str) -> Repository:
        page = await self._call(
            f"repository {repository}", functools.partial(self._source.get_repository, repository)
        )
        if not page.items:
            raise ProjectFactsError(f"no metadata returned for {repository}")
        return canonicalize(RawPayload(EntityType.REPOSITORY, page.shape, page.items[0], repository))

    async def _collect_entity(self, repository: str, name: str, since: datetime | None) -> list:
        limit = self._options.entity_limits[name]
        pages_left = self._governor.page_budget(limit, self._options)
        if pages_left == 0:
            return []
        query = _QUERIES[name]
        method = getattr(self._source, query.method)
        facts: dict[object, object] = {}
        cursor: str | None = None
        while len(facts) < limit and pages_left > 0:
            pages_left -= 1
            kwargs: dict[str, object] = {"cursor": cursor, "per_page": self._options.per_page}
            if query.uses_since:
                kwargs["since"] = since
            page = await self._call(
                f"{name} {repository}", functools.partial(method, repository, **kwargs)
            )
            for item in page.items:
                fact = canonicalize(RawPayload(query.entity, page.shape, item, repository))
                # identity is unique per repository; the first page wins
                facts.setdefault(fact.key, fact)
            cursor = page.next_cursor
            if not cursor:
                break
        if cursor and len(facts) < limit:
            log.info("collector.page_budget_reached", repository=repository, entity=name, collected=len(facts))
        return list(facts.values())[:limit]

    async def _call(self, operation: str, fn: Callable[[], Awaitable[SourcePage]]) -> SourcePage:
        """Run one source call with timeout, retries and quota bookkeeping."""
        policy = self._governor.policy
        attempt = 0
        while True:
            try:
                page = await asyncio.wait_for(fn(), timeout=self._options.call_timeout)
            except asyncio.TimeoutError as exc:
                error: TransientError = SourceTimeoutError(
                    f"{operation} timed out after {self._options.call_timeout}s"
                )
                error.__cause__ = exc
            except RateLimitError as exc:
                # a rejected call still spent a request and reports the drained quota
                await self._governor.record(exc.quota)
                error = exc
            except TransientError as exc:
                error = exc
            else:
                await self._governor.record(page.quota)
                return page

            wait = self._governor.backoff_for(error, attempt)
            attempt += 1
            if not policy.allows(attempt, wait):
                log.warning(
                    "collector.retries_exhausted",
                    operation=operation,
                    attempts=attempt,
                    wait_seconds=wait,
                    error=str(error),
                )
                raise RetriesExhaustedError(operation, attempt, error) from error
            log.warning(
                "collector.retry",
                operation=operation,
                attempt=attempt,
                max_attempts=policy.max_attempts,
                wait_seconds=wait,
                error=str(error),
            )
            await self._sleep(wait)
