"""Output bundle schema handed to the external output collaborator."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from typing import Any, Literal, Protocol

from pydantic import BaseModel, Field

from projectfacts.engines.aggregation import ActivityWindow, AggregateMetrics
from projectfacts.engines.canonicalizer import CanonicalFact, Project, ProjectItem
from projectfacts.engines.collector import ProjectCollection
from projectfacts.run_log import RunLog


class RunLogEntryModel(BaseModel):
    phase: str
    event: str
    outcome: str
    detail: dict[str, Any] = Field(default_factory=dict)


class PhaseTimingModel(BaseModel):
    phase: str
    status: str
    duration: float | None = None


class EntitySet(BaseModel):
    repositories: list[dict[str, Any]] = Field(default_factory=list)
    issues: list[dict[str, Any]] = Field(default_factory=list)
    pull_requests: list[dict[str, Any]] = Field(default_factory=list)
    commits: list[dict[str, Any]] = Field(default_factory=list)
    releases: list[dict[str, Any]] = Field(default_factory=list)
    contributors: list[dict[str, Any]] = Field(default_factory=list)
    project_items: list[dict[str, Any]] = Field(default_factory=list)


class Aggregates(BaseModel):
    per_repository: dict[str, dict[str, Any]] = Field(default_factory=dict)
    per_project: dict[str, Any] = Field(default_factory=dict)


class FailedRepository(BaseModel):
    repository: str
    cause: str
    kind: str
    failed_entities: list[str] = Field(default_factory=list)


class ProjectSummary(BaseModel):
    owner: str
    number: int
    title: str
    url: str
    closed: bool
    candidates: list[str] = Field(default_factory=list)


class WindowModel(BaseModel):
    start: datetime
    end: datetime
    days: float


class OutputBundle(BaseModel):
    """Facts, aggregates and run log of one successful run."""

    status: Literal["complete", "degraded"]
    degraded: bool
    project: ProjectSummary
    window: WindowModel
    entities: EntitySet
    aggregates: Aggregates
    failed_repositories: list[FailedRepository] = Field(default_factory=list)
    run_log: list[RunLogEntryModel] = Field(default_factory=list)
    phases: list[PhaseTimingModel] = Field(default_factory=list)
    total_duration: float = 0.0


class OutputSink(Protocol):
    """Receives the finished bundle (serialization is the sink's concern)."""

    def emit(self, bundle: OutputBundle) -> None: ...


def _rows(facts: list[CanonicalFact]) -> list[dict[str, Any]]:
    ordered = sorted(facts, key=lambda f: (getattr(f, "repository", None) or "", str(f.key)))
    return [asdict(f) for f in ordered]


def build_bundle(
    project: Project,
    candidates: tuple[str, ...],
    items: tuple[ProjectItem, ...],
    collection: ProjectCollection,
    metrics: AggregateMetrics,
    window: ActivityWindow,
    run_log: RunLog,
) -> OutputBundle:
    successes = [s.facts for s in collection.successes]
    summary = run_log.get_summary()
    return OutputBundle(
        status="degraded" if collection.degraded else "complete",
        degraded=collection.degraded,
        project=ProjectSummary(
            owner=project.owner,
            number=project.number,
            title=project.title,
            url=project.url,
            closed=project.closed,
            candidates=list(candidates),
        ),
        window=WindowModel(start=window.start, end=window.end, days=window.days),
        entities=EntitySet(
            repositories=_rows([f.metadata for f in successes]),
            issues=_rows([i for f in successes for i in f.issues]),
            pull_requests=_rows([p for f in successes for p in f.pull_requests]),
            commits=_rows([c for f in successes for c in f.commits]),
            releases=_rows([r for f in successes for r in f.releases]),
            contributors=_rows([c for f in successes for c in f.contributors]),
            project_items=_rows(list(items)),
        ),
        aggregates=Aggregates(**metrics.to_dict()),
        failed_repositories=[FailedRepository(**f.to_dict()) for f in collection.failures],
        run_log=[RunLogEntryModel(**e) for e in run_log.to_list()],
        phases=[PhaseTimingModel(**p) for p in summary["phases"]],
        total_duration=summary["total_duration"],
    )
