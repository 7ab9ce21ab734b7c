"""Bounded fan-out of the repository collector across a project's repositories."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from datetime import datetime

import structlog

from projectfacts.engines.collector.models import (
    CollectionFailure,
    CollectionResult,
    CollectionSuccess,
    ProjectCollection,
)
from projectfacts.engines.collector.repository import RepositoryCollector

log = structlog.get_logger("projectfacts.engine")

_DEFAULT_CONCURRENCY = 5


class ProjectCollector:
    """Run one :class:`RepositoryCollector` task per repository.

    At most *concurrency* repositories are in flight. A failure on one
    repository never aborts the others. :meth:`cancel` is cooperative:
    repositories that have not started resolve to a ``cancelled`` failure
    while in-flight ones run to completion and are kept.
    """

    def __init__(self, collector: RepositoryCollector, *, concurrency: int = _DEFAULT_CONCURRENCY) -> None:
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._collector = collector
        self._concurrency = concurrency
        self._cancelled = asyncio.Event()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    async def collect(
        self,
        repositories: Sequence[str],
        since: datetime | None = None,
        *,
        concurrency: int | None = None,
    ) -> ProjectCollection:
        """Collect every repository; the result is sorted by repository name."""
        sem = asyncio.Semaphore(concurrency or self._concurrency)

        async def _run_one(repository: str) -> CollectionResult:
            async with sem:
                if self._cancelled.is_set():
                    return CollectionFailure(
                        repository=repository,
                        cause="collection cancelled before this repository started",
                        kind="cancelled",
                    )
                try:
                    return await self._collector.collect(repository, since)
                except Exception as exc:
                    log.error("collector.failed", repository=repository, error=str(exc))
                    return CollectionFailure(
                        repository=repository, cause=f"{type(exc).__name__}: {exc}"
                    )

        unique = sorted(set(repositories))
        results = await asyncio.gather(*(_run_one(repo) for repo in unique))

        collection = ProjectCollection()
        for result in sorted(results, key=lambda r: r.repository):
            if isinstance(result, CollectionSuccess):
                collection.successes.append(result)
            else:
                log.warning(
                    "collector.repo_failed",
                    repository=result.repository,
                    kind=result.kind,
                    cause=result.cause,
                )
                collection.failures.append(result)

        log.info(
            "collector.done",
            repositories=len(unique),
            succeeded=len(collection.successes),
            failed=len(collection.failures),
            status=collection.status,
        )
        return collection
