"""Result values of the collection fan-out.

Per-repository outcomes are values, never exceptions: a failed repository
is a :class:`CollectionFailure` alongside the successes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union

from projectfacts.engines.canonicalizer.models import (
    CanonicalFact,
    Commit,
    Contributor,
    Issue,
    PullRequest,
    Release,
    Repository,
)

CollectionStatus = Literal["complete", "degraded", "failed"]


@dataclass(frozen=True)
class RepositoryFacts:
    """Every canonical fact collected for one repository."""

    repository: str
    metadata: Repository
    issues: tuple[Issue, ...] = ()
    pull_requests: tuple[PullRequest, ...] = ()
    commits: tuple[Commit, ...] = ()
    releases: tuple[Release, ...] = ()
    contributors: tuple[Contributor, ...] = ()

    def all_facts(self) -> list[CanonicalFact]:
        return [
            self.metadata,
            *self.issues,
            *self.pull_requests,
            *self.commits,
            *self.releases,
            *self.contributors,
        ]

    def counts(self) -> dict[str, int]:
        return {
            "issues": len(self.issues),
            "pull_requests": len(self.pull_requests),
            "commits": len(self.commits),
            "releases": len(self.releases),
            "contributors": len(self.contributors),
        }


@dataclass(frozen=True)
class CollectionSuccess:
    repository: str
    facts: RepositoryFacts


@dataclass(frozen=True)
class CollectionFailure:
    repository: str
    cause: str
    kind: str = "error"  # error kind of the underlying failure, or "cancelled"
    failed_entities: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "repository": self.repository,
            "cause": self.cause,
            "kind": self.kind,
            "failed_entities": list(self.failed_entities),
        }


CollectionResult = Union[CollectionSuccess, CollectionFailure]


@dataclass
class ProjectCollection:
    """Joined outcome of one fan-out, sorted by repository."""

    successes: list[CollectionSuccess] = field(default_factory=list)
    failures: list[CollectionFailure] = field(default_factory=list)

    @property
    def status(self) -> CollectionStatus:
        if not self.failures:
            return "complete"
        if not self.successes:
            return "failed"
        return "degraded"

    @property
    def degraded(self) -> bool:
        return self.status == "degraded"

    @property
    def failed_repositories(self) -> list[str]:
        return [f.repository for f in self.failures]

    def facts(self) -> list[CanonicalFact]:
        return [fact for s in self.successes for fact in s.facts.all_facts()]
