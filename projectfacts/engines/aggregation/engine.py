"""Aggregation engine — canonical facts in, per-repository and per-project metrics out.

Facts are bucketed and sorted before any reduction, so the output depends
only on the set of facts, never on the order they were collected in.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

import structlog

from projectfacts.engines.aggregation import stats
from projectfacts.engines.aggregation.window import ActivityWindow
from projectfacts.engines.canonicalizer.models import (
    CanonicalFact,
    Commit,
    Contributor,
    Issue,
    Project,
    ProjectItem,
    PullRequest,
    Release,
    Repository,
)

log = structlog.get_logger("projectfacts.engine")

TOP_CONTRIBUTORS = 5


@dataclass(frozen=True)
class AggregateMetrics:
    per_repository: dict[str, dict[str, Any]] = field(default_factory=dict)
    per_project: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"per_repository": self.per_repository, "per_project": self.per_project}


@dataclass
class _Bucket:
    """All facts of one repository, each list sorted by identity."""

    metadata: Repository | None = None
    issues: list[Issue] = field(default_factory=list)
    pull_requests: list[PullRequest] = field(default_factory=list)
    commits: list[Commit] = field(default_factory=list)
    releases: list[Release] = field(default_factory=list)
    contributors: list[Contributor] = field(default_factory=list)


def _sort_key(fact: CanonicalFact) -> tuple[str, str, str, str]:
    return (type(fact).__name__, getattr(fact, "repository", None) or "", str(fact.key), repr(fact))


def _unique(facts: Iterable[CanonicalFact]) -> list[CanonicalFact]:
    """Sorted facts with one fact per (type, repository, identity)."""
    seen: set[tuple[str, str, str]] = set()
    result: list[CanonicalFact] = []
    for fact in sorted(facts, key=_sort_key):
        ident = _sort_key(fact)[:3]
        if ident in seen:
            continue
        seen.add(ident)
        result.append(fact)
    return result


def _bucket(facts: list[CanonicalFact]) -> tuple[dict[str, _Bucket], list[ProjectItem]]:
    buckets: dict[str, _Bucket] = defaultdict(_Bucket)
    items: list[ProjectItem] = []
    for fact in facts:
        if isinstance(fact, ProjectItem):
            items.append(fact)
        elif isinstance(fact, Project):
            continue
        elif isinstance(fact, Repository):
            buckets[fact.full_name].metadata = fact
        elif isinstance(fact, Issue):
            buckets[fact.repository].issues.append(fact)
        elif isinstance(fact, PullRequest):
            buckets[fact.repository].pull_requests.append(fact)
        elif isinstance(fact, Commit):
            buckets[fact.repository].commits.append(fact)
        elif isinstance(fact, Release):
            buckets[fact.repository].releases.append(fact)
        elif isinstance(fact, Contributor):
            buckets[fact.repository].contributors.append(fact)
    return dict(sorted(buckets.items())), items


def _hours(start: datetime | None, end: datetime | None) -> float | None:
    if start is None or end is None or end < start:
        return None
    return stats.hours_between(start, end)


def _durations(pairs: Iterable[tuple[datetime | None, datetime | None]]) -> list[float]:
    return sorted(h for h in (_hours(s, e) for s, e in pairs) if h is not None)


def _commit_instant(commit: Commit) -> datetime | None:
    return commit.committed_at or commit.authored_at


def _release_instant(release: Release) -> datetime | None:
    return release.published_at or release.created_at


def _window_counts(bucket: _Bucket, window: ActivityWindow) -> dict[str, int]:
    return {
        "commits": sum(1 for c in bucket.commits if window.contains(_commit_instant(c))),
        "issues": sum(1 for i in bucket.issues if window.contains(i.created_at)),
        "pull_requests": sum(1 for p in bucket.pull_requests if window.contains(p.created_at)),
        "releases": sum(1 for r in bucket.releases if window.contains(_release_instant(r))),
    }


def _growth(current: dict[str, int], previous: dict[str, int]) -> dict[str, float]:
    return {name: stats.growth_rate(current[name], previous[name]) for name in sorted(current)}


def _contribution_counts(contributors: Iterable[Contributor]) -> dict[str, int]:
    counts: Counter[str] = Counter()
    for contributor in contributors:
        if contributor.contributions is not None:
            counts[contributor.login] += contributor.contributions
    return dict(sorted(counts.items()))


def _distribution(values: list[float]) -> dict[str, Any]:
    return {
        "mean": stats.mean(values),
        "median": stats.median(values),
        "variance": stats.variance(values),
        "standard_deviation": stats.standard_deviation(values),
        "percentiles": stats.percentiles(values),
        "gini": stats.gini_coefficient(values),
    }


# ── per repository ─────────────────────────────────────────────────────────


def _issue_metrics(issues: list[Issue], window: ActivityWindow) -> dict[str, Any]:
    closed = sum(1 for i in issues if i.state == "closed")
    to_close = _durations((i.created_at, i.closed_at) for i in issues if i.state == "closed")
    return {
        "total": len(issues),
        "open": len(issues) - closed,
        "closed": closed,
        "closed_percentage": stats.percentage(closed, len(issues)),
        "opened_in_window": sum(1 for i in issues if window.contains(i.created_at)),
        "closed_in_window": sum(1 for i in issues if window.contains(i.closed_at)),
        "comments_mean": stats.mean(i.comments for i in issues),
        "median_hours_to_close": stats.median(to_close),
        "p90_hours_to_close": stats.percentile(to_close, 90),
    }


def _pull_request_metrics(prs: list[PullRequest], window: ActivityWindow) -> dict[str, Any]:
    closed = sum(1 for p in prs if p.state == "closed")
    merged = sum(1 for p in prs if p.merged)
    to_merge = _durations((p.created_at, p.merged_at) for p in prs if p.merged)
    return {
        "total": len(prs),
        "open": len(prs) - closed,
        "closed": closed,
        "merged": merged,
        "draft": sum(1 for p in prs if p.draft),
        "merge_percentage": stats.percentage(merged, len(prs)),
        "opened_in_window": sum(1 for p in prs if window.contains(p.created_at)),
        "merged_in_window": sum(1 for p in prs if window.contains(p.merged_at)),
        "median_hours_to_merge": stats.median(to_merge),
        "p90_hours_to_merge": stats.percentile(to_merge, 90),
        "additions": sum(p.additions or 0 for p in prs),
        "deletions": sum(p.deletions or 0 for p in prs),
    }


def _commit_metrics(commits: list[Commit], window: ActivityWindow) -> dict[str, Any]:
    authors = {c.author_login or c.author_email or c.author_name for c in commits}
    return {
        "total": len(commits),
        "in_window": sum(1 for c in commits if window.contains(_commit_instant(c))),
        "unique_authors": len(authors),
        "additions": sum(c.additions or 0 for c in commits),
        "deletions": sum(c.deletions or 0 for c in commits),
        "verified_percentage": stats.percentage(sum(1 for c in commits if c.verified), len(commits)),
    }


def _release_metrics(releases: list[Release], window: ActivityWindow) -> dict[str, Any]:
    return {
        "total": len(releases),
        "in_window": sum(1 for r in releases if window.contains(_release_instant(r))),
        "prereleases": sum(1 for r in releases if r.prerelease),
        "drafts": sum(1 for r in releases if r.draft),
    }


def _contributor_metrics(contributors: list[Contributor]) -> dict[str, Any]:
    counts = list(_contribution_counts(contributors).values())
    return {
        "total": len(contributors),
        "bots": sum(1 for c in contributors if c.account_type == "Bot"),
        "contributions_total": sum(counts),
        "mean": stats.mean(counts),
        "median": stats.median(counts),
        "gini": stats.gini_coefficient(counts),
        "top_share": stats.top_share(counts),
    }


def _activity_metrics(bucket: _Bucket, current: dict[str, int], window: ActivityWindow) -> dict[str, Any]:
    days = window.days
    instants = [
        t
        for t in (
            *(_commit_instant(c) for c in bucket.commits),
            *(i.created_at for i in bucket.issues),
            *(p.created_at for p in bucket.pull_requests),
        )
        if window.contains(t)
    ]
    daily = stats.bin_counts(instants)
    events = current["commits"] + current["issues"] + current["pull_requests"]
    return {
        "window_days": days,
        "events_in_window": events,
        "density": stats.activity_density(events, days),
        "commits_per_day": stats.ratio(current["commits"], days),
        "issues_per_day": stats.ratio(current["issues"], days),
        "pull_requests_per_day": stats.ratio(current["pull_requests"], days),
        "active_days": len(daily),
        "peak_daily_events": max(daily.values(), default=0),
    }


def _repository_metrics(meta: Repository | None, window: ActivityWindow) -> dict[str, Any]:
    if meta is None:
        return {}
    return {
        "stars": meta.stars,
        "forks": meta.forks,
        "watchers": meta.watchers,
        "open_issues": meta.open_issues,
        "forks_per_star": stats.ratio(meta.forks, meta.stars),
        "watchers_per_star": stats.ratio(meta.watchers or 0, meta.stars),
        "age_days": stats.days_between(meta.created_at, window.end) if meta.created_at else None,
        "is_fork": meta.is_fork,
        "is_archived": meta.is_archived,
    }


def _aggregate_repository(bucket: _Bucket, window: ActivityWindow) -> dict[str, Any]:
    current = _window_counts(bucket, window)
    previous = _window_counts(bucket, window.previous())
    return {
        "repository": _repository_metrics(bucket.metadata, window),
        "issues": _issue_metrics(bucket.issues, window),
        "pull_requests": _pull_request_metrics(bucket.pull_requests, window),
        "commits": _commit_metrics(bucket.commits, window),
        "releases": _release_metrics(bucket.releases, window),
        "contributors": _contributor_metrics(bucket.contributors),
        "activity": _activity_metrics(bucket, current, window),
        "window_counts": {"current": current, "previous": previous},
        "growth": _growth(current, previous),
    }


# ── per project ────────────────────────────────────────────────────────────


def _aggregate_project(
    buckets: dict[str, _Bucket],
    per_repository: dict[str, dict[str, Any]],
    items: list[ProjectItem],
) -> dict[str, Any]:
    n = len(buckets)
    totals = {
        "issues": sum(m["issues"]["total"] for m in per_repository.values()),
        "open_issues": sum(m["issues"]["open"] for m in per_repository.values()),
        "closed_issues": sum(m["issues"]["closed"] for m in per_repository.values()),
        "pull_requests": sum(m["pull_requests"]["total"] for m in per_repository.values()),
        "merged_pull_requests": sum(m["pull_requests"]["merged"] for m in per_repository.values()),
        "commits": sum(m["commits"]["total"] for m in per_repository.values()),
        "releases": sum(m["releases"]["total"] for m in per_repository.values()),
        "stars": sum(b.metadata.stars for b in buckets.values() if b.metadata),
        "forks": sum(b.metadata.forks for b in buckets.values() if b.metadata),
    }
    merged_contributions: Counter[str] = Counter()
    for bucket in buckets.values():
        merged_contributions.update(_contribution_counts(bucket.contributors))
    logins = {c.login for b in buckets.values() for c in b.contributors}
    totals["contributors"] = len(logins)

    current = Counter()
    previous = Counter()
    for metrics in per_repository.values():
        current.update(metrics["window_counts"]["current"])
        previous.update(metrics["window_counts"]["previous"])
    names = ("commits", "issues", "pull_requests", "releases")

    densities = [m["activity"]["density"] for m in per_repository.values()]
    contributions = sorted(merged_contributions.values())
    result: dict[str, Any] = {
        "repositories_analyzed": n,
        "totals": totals,
        "averages": {
            "issues_per_repository": stats.ratio(totals["issues"], n),
            "pull_requests_per_repository": stats.ratio(totals["pull_requests"], n),
            "commits_per_repository": stats.ratio(totals["commits"], n),
            "releases_per_repository": stats.ratio(totals["releases"], n),
            "contributors_per_repository": stats.ratio(
                sum(len(b.contributors) for b in buckets.values()), n
            ),
        },
        "ratios": {
            "commits_per_issue": stats.ratio(totals["commits"], totals["issues"]),
            "commits_per_pull_request": stats.ratio(totals["commits"], totals["pull_requests"]),
            "issues_per_pull_request": stats.ratio(totals["issues"], totals["pull_requests"]),
            "closed_issue_percentage": stats.percentage(totals["closed_issues"], totals["issues"]),
            "merge_percentage": stats.percentage(
                totals["merged_pull_requests"], totals["pull_requests"]
            ),
        },
        "activity_distribution": _distribution(densities),
        "contributor_distribution": {
            "unique_contributors": len(logins),
            "total_contributions": sum(contributions),
            "mean": stats.mean(contributions),
            "median": stats.median(contributions),
            "gini": stats.gini_coefficient(contributions),
            "top_share": stats.top_share(contributions),
            "top_contributors": [
                [login, count]
                for login, count in stats.find_top_n(dict(merged_contributions), TOP_CONTRIBUTORS)
            ],
        },
        "window_counts": {
            "current": {name: current[name] for name in names},
            "previous": {name: previous[name] for name in names},
        },
        "growth": {name: stats.growth_rate(current[name], previous[name]) for name in names},
    }
    if items:
        result["items"] = {
            "total": len(items),
            "by_type": dict(sorted(Counter(i.content_type for i in items).items())),
            "by_status": dict(sorted(Counter(i.status or "none" for i in items).items())),
        }
    return result


def aggregate(facts: Iterable[CanonicalFact], window: ActivityWindow) -> AggregateMetrics:
    """Derive all metrics for one run from its canonical facts."""
    unique = _unique(facts)
    buckets, items = _bucket(unique)
    per_repository = {
        name: _aggregate_repository(bucket, window) for name, bucket in buckets.items()
    }
    per_project = _aggregate_project(buckets, per_repository, items)
    log.info(
        "aggregation.done",
        repositories=len(per_repository),
        facts=len(unique),
    )
    return AggregateMetrics(per_repository=per_repository, per_project=per_project)
