"""Phase orchestrator — DETECT → COLLECT → ANALYZE, with a fatal ERROR exit from any phase.

A phase only starts once the previous one produced valid output. Nothing
here retries a phase; bounded retries live at the source-call level.
"""

from __future__ import annotations

import asyncio
import enum
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass
from typing import Any

import structlog

from projectfacts.core.auth import AuthProvider, LocalContext
from projectfacts.core.config import CollectionOptions, api_url
from projectfacts.core.logging import bind_phase, run_context
from projectfacts.detector import DetectedProject, ProjectDetector, TargetReference
from projectfacts.engines.aggregation import ActivityWindow, aggregate
from projectfacts.engines.collector import (
    EntitySource,
    GitHubClient,
    GitHubGraphQLSource,
    GitHubRestSource,
    ProjectCollection,
    ProjectCollector,
    ProjectSource,
    RepositoryCollector,
)
from projectfacts.engines.rate_governor import RateGovernor
from projectfacts.exceptions import (
    AmbiguousTargetError,
    AuthorizationError,
    PipelineError,
    ProjectFactsError,
    TargetNotFoundError,
    ValidationError,
)
from projectfacts.run_log import RunLog
from projectfacts.schemas import OutputBundle, OutputSink, build_bundle

log = structlog.get_logger("projectfacts.engine")


class Phase(str, enum.Enum):
    DETECT = "DETECT"
    COLLECT = "COLLECT"
    ANALYZE = "ANALYZE"
    DONE = "DONE"
    ERROR = "ERROR"


_PIPELINE = (Phase.DETECT, Phase.COLLECT, Phase.ANALYZE)


@dataclass(frozen=True)
class Sources:
    entities: EntitySource
    projects: ProjectSource


SourceFactory = Callable[[str], AbstractAsyncContextManager[Sources]]


@asynccontextmanager
async def github_sources(token: str, options: CollectionOptions | None = None) -> AsyncIterator[Sources]:
    """REST entity source and GraphQL project source sharing one client."""
    timeout = (options or CollectionOptions()).call_timeout
    async with GitHubClient(token, base_url=api_url(), timeout=timeout) as client:
        yield Sources(entities=GitHubRestSource(client), projects=GitHubGraphQLSource(client))


@dataclass
class RunOutcome:
    state: Phase
    bundle: OutputBundle | None
    error: PipelineError | None
    run_log: RunLog
    run_id: str = ""

    @property
    def succeeded(self) -> bool:
        return self.state is Phase.DONE


# ── recovery suggestions ───────────────────────────────────────────────────

_REAUTH = "Re-authenticate with GitHub (gh auth login, or refresh GITHUB_TOKEN) with access to the project"
_DEBUG = "Re-run with PROJECTFACTS_LOG_LEVEL=DEBUG to inspect each failed call"

_RECOVERY_BY_KIND: dict[str, str] = {
    "authorization": _REAUTH,
    "not_found": "Check that every repository linked to the project still exists and is visible to the token",
    "rate_limit": "Wait for the API quota to reset, then run again",
    "retries_exhausted": "Run again later; GitHub kept failing past the retry budget",
    "timeout": "Raise PROJECTFACTS_CALL_TIMEOUT or run again when GitHub is responsive",
    "server_error": "Run again later; GitHub answered with server errors",
    "transient": "Check network connectivity and run again",
    "validation": "Report the payload that failed validation; the source shape may have changed",
    "request_rejected": "Check the owner, project number and repository names; GitHub rejected the request",
    "malformed_response": "Check PROJECTFACTS_GITHUB_API_URL points at a GitHub API endpoint",
}


def _recovery_for(exc: ProjectFactsError) -> list[str]:
    suggestion = _RECOVERY_BY_KIND.get(exc.kind)
    return [suggestion, _DEBUG] if suggestion else [_DEBUG]


def _collection_recovery(collection: ProjectCollection) -> list[str]:
    kinds = sorted({f.kind for f in collection.failures})
    suggestions = [_RECOVERY_BY_KIND[k] for k in kinds if k in _RECOVERY_BY_KIND]
    return [*dict.fromkeys(suggestions), _DEBUG]


class PhaseOrchestrator:
    """Sequence the three phases for one target and window.

    Collaborators are injected one capability at a time: a token provider,
    a factory turning the token into sources, an optional local context
    for ``local`` targets, and an optional sink for the finished bundle.
    """

    def __init__(
        self,
        auth: AuthProvider,
        *,
        sources: SourceFactory | None = None,
        local: LocalContext | None = None,
        sink: OutputSink | None = None,
        options: CollectionOptions | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._auth = auth
        self._options = options or CollectionOptions()
        self._sources = sources or (lambda token: github_sources(token, self._options))
        self._local = local
        self._sink = sink
        self._sleep = sleep
        self._collector: ProjectCollector | None = None
        self._cancel_requested = False

    def cancel(self) -> None:
        """Stop starting new repositories; in-flight ones finish and are kept."""
        self._cancel_requested = True
        if self._collector is not None:
            self._collector.cancel()

    async def run(self, target: TargetReference, window: ActivityWindow | None = None) -> RunOutcome:
        window = window or ActivityWindow.last_days(self._options.window_days)
        with run_context(target.describe()) as run_id:
            outcome = await self._run(target, window)
        outcome.run_id = run_id
        return outcome

    async def _run(self, target: TargetReference, window: ActivityWindow) -> RunOutcome:
        run_log = RunLog()
        run_log.record(Phase.DETECT.value, "run_started", "info", target=target.describe(), window=window.to_dict())

        try:
            token = self._auth.get_token()
        except Exception as exc:
            return self._fail(run_log, Phase.DETECT, exc, [_REAUTH], target=target.describe())

        async with self._sources(token) as sources:
            detected = await self._detect(run_log, sources, target)
            if isinstance(detected, RunOutcome):
                return detected

            collection = await self._collect(run_log, sources, detected, window)
            if isinstance(collection, RunOutcome):
                return collection

        return self._analyze(run_log, detected, collection, window)

    # ── phases ─────────────────────────────────────────────────────────────

    async def _detect(
        self, run_log: RunLog, sources: Sources, target: TargetReference
    ) -> DetectedProject | RunOutcome:
        phase = Phase.DETECT
        bind_phase(phase.value)
        run_log.start_phase(phase.value)
        ref = target.describe()
        try:
            detected = await ProjectDetector(sources.projects, self._local).detect(target)
        except AmbiguousTargetError as exc:
            run_log.record(phase.value, "ambiguous_target", "failed", candidates=exc.candidates)
            return self._fail(
                run_log,
                phase,
                exc,
                [
                    "Pass the project URL explicitly to pick one of: " + ", ".join(exc.candidates),
                    "Close or update the projects that are no longer tracked",
                ],
                target=ref,
                candidates=exc.candidates,
            )
        except TargetNotFoundError as exc:
            return self._fail(
                run_log,
                phase,
                exc,
                [
                    "Check the owner login or project URL",
                    "Make sure the token can read the owner's projects (read:project scope)",
                ],
                target=ref,
            )
        except AuthorizationError as exc:
            return self._fail(run_log, phase, exc, [_REAUTH], target=ref)
        except ValidationError as exc:
            return self._fail(
                run_log,
                phase,
                exc,
                ["Link at least one repository to the project, or pass a different target"],
                target=ref,
            )
        except ProjectFactsError as exc:
            return self._fail(run_log, phase, exc, _recovery_for(exc), target=ref)
        except Exception as exc:
            log.exception("orchestrator.unexpected_error", phase=phase.value)
            return self._fail(run_log, phase, exc, [_DEBUG], target=ref)

        run_log.complete_phase(
            phase.value,
            project=detected.project.key,
            candidates=list(detected.candidates),
            repositories=list(detected.repositories),
        )
        return detected

    async def _collect(
        self,
        run_log: RunLog,
        sources: Sources,
        detected: DetectedProject,
        window: ActivityWindow,
    ) -> ProjectCollection | RunOutcome:
        phase = Phase.COLLECT
        bind_phase(phase.value)
        run_log.start_phase(phase.value)
        repositories = list(detected.repositories)
        governor = RateGovernor(self._options)
        estimate = governor.estimate_required_calls(repositories)
        context: dict[str, Any] = {"project": detected.project.key, "repositories": repositories, "estimate": estimate}

        try:
            snapshot = governor.snapshot or await sources.entities.get_quota()
        except ProjectFactsError as exc:
            return self._fail(run_log, phase, exc, _recovery_for(exc), **context)
        except Exception as exc:
            log.exception("orchestrator.unexpected_error", phase=phase.value)
            return self._fail(run_log, phase, exc, [_DEBUG], **context)
        feasibility = governor.check_feasible(estimate, snapshot, repositories=len(repositories))
        run_log.record(
            phase.value,
            "feasibility_checked",
            "ok" if feasibility.feasible else "failed",
            estimate=estimate,
            remaining=snapshot.remaining,
            reset_at=snapshot.reset_at.isoformat(),
            suggested_wait_seconds=feasibility.suggested_wait.total_seconds(),
            concurrency=feasibility.recommended_concurrency,
        )
        if not feasibility.feasible:
            wait = int(feasibility.suggested_wait.total_seconds())
            return self._fail(
                run_log,
                phase,
                f"estimated {estimate} API calls exceed the {snapshot.remaining} remaining",
                [
                    f"Wait {wait}s for the quota to reset at {snapshot.reset_at.isoformat()}",
                    "Lower the per-entity limits (PROJECTFACTS_*_LIMIT) to shrink the estimate",
                    "Track fewer repositories in the project",
                ],
                remaining=snapshot.remaining,
                suggested_wait_seconds=wait,
                **context,
            )

        collector = ProjectCollector(
            RepositoryCollector(sources.entities, governor, self._options, sleep=self._sleep),
            concurrency=feasibility.recommended_concurrency,
        )
        self._collector = collector
        if self._cancel_requested:
            collector.cancel()
        try:
            collection = await collector.collect(
                repositories, window.collection_start(self._options.compare_previous_window)
            )
        finally:
            self._collector = None

        for failure in collection.failures:
            run_log.record(phase.value, "repository_failed", "failed", **failure.to_dict())

        counters = {
            "succeeded": len(collection.successes),
            "failed": len(collection.failures),
            "calls_made": governor.calls_made,
        }
        if collection.status == "failed":
            return self._fail(
                run_log,
                phase,
                f"all {len(repositories)} repositories failed to collect",
                _collection_recovery(collection),
                failed_repositories=collection.failed_repositories,
                **counters,
                **context,
            )

        run_log.complete_phase(
            phase.value,
            "degraded" if collection.degraded else "ok",
            failed_repositories=collection.failed_repositories,
            **counters,
        )
        return collection

    def _analyze(
        self,
        run_log: RunLog,
        detected: DetectedProject,
        collection: ProjectCollection,
        window: ActivityWindow,
    ) -> RunOutcome:
        phase = Phase.ANALYZE
        bind_phase(phase.value)
        run_log.start_phase(phase.value)
        metrics = aggregate([*collection.facts(), *detected.items], window)
        run_log.complete_phase(phase.value, repositories=len(metrics.per_repository))
        run_log.record(Phase.DONE.value, "run_completed", "degraded" if collection.degraded else "ok")

        bundle = build_bundle(
            detected.project,
            detected.candidates,
            detected.items,
            collection,
            metrics,
            window,
            run_log,
        )
        if self._sink is not None:
            try:
                self._sink.emit(bundle)
            except Exception as exc:
                outcome = self._fail(run_log, phase, exc, ["Check that the output destination is writable"])
                outcome.bundle = bundle
                return outcome
        log.info("orchestrator.done", project=detected.project.key, status=bundle.status)
        return RunOutcome(state=Phase.DONE, bundle=bundle, error=None, run_log=run_log)

    # ── failure ────────────────────────────────────────────────────────────

    def _fail(
        self,
        run_log: RunLog,
        phase: Phase,
        cause: str | BaseException,
        recovery: list[str],
        **context: Any,
    ) -> RunOutcome:
        error = PipelineError(cause, recovery, {"phase": phase.value, **context})
        cause_type = type(cause).__name__ if isinstance(cause, BaseException) else None
        run_log.fail_phase(phase.value, str(cause), cause_type=cause_type)
        if phase in _PIPELINE:
            for later in _PIPELINE[_PIPELINE.index(phase) + 1 :]:
                run_log.skip_phase(later.value, f"{phase.value} failed")
        log.error("orchestrator.failed", phase=phase.value, cause=str(cause), recovery=error.recovery)
        return RunOutcome(state=Phase.ERROR, bundle=None, error=error, run_log=run_log)
