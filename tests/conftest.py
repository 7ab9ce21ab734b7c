"""Shared fixtures and in-memory sources for projectfacts tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from projectfacts.engines.canonicalizer import SourceShape
from projectfacts.engines.collector import SourcePage
from projectfacts.engines.rate_governor import QuotaSnapshot
from projectfacts.exceptions import NotFoundError

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)
RESET_AT = NOW + timedelta(hours=1)


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


async def no_sleep(_seconds: float) -> None:
    return None


# ── payload builders (REST shape) ──────────────────────────────────────────


def iso(dt: datetime) -> str:
    return dt.isoformat().replace("+00:00", "Z")


def rest_repo(full_name: str, **overrides: Any) -> dict[str, Any]:
    owner, name = full_name.split("/")
    payload = {
        "full_name": full_name,
        "name": name,
        "owner": {"login": owner},
        "html_url": f"https://github.com/{full_name}",
        "default_branch": "main",
        "stargazers_count": 10,
        "forks_count": 2,
        "subscribers_count": 3,
        "open_issues_count": 1,
        "created_at": "2020-01-01T00:00:00Z",
    }
    payload.update(overrides)
    return payload


def rest_issue(number: int, state: str = "open", created: datetime = NOW - timedelta(days=1), **extra: Any) -> dict[str, Any]:
    payload = {
        "number": number,
        "title": f"Issue {number}",
        "state": state,
        "user": {"login": "alice"},
        "comments": 1,
        "created_at": iso(created),
        "updated_at": iso(created),
        "closed_at": iso(created + timedelta(hours=5)) if state == "closed" else None,
    }
    payload.update(extra)
    return payload


def rest_pull(number: int, merged: bool = False, created: datetime = NOW - timedelta(days=1)) -> dict[str, Any]:
    return {
        "number": number,
        "title": f"PR {number}",
        "state": "closed" if merged else "open",
        "user": {"login": "bob"},
        "head": {"ref": f"feature-{number}"},
        "base": {"ref": "main"},
        "created_at": iso(created),
        "updated_at": iso(created),
        "merged_at": iso(created + timedelta(hours=2)) if merged else None,
    }


def rest_commit(sha: str, login: str = "alice", when: datetime = NOW - timedelta(days=1)) -> dict[str, Any]:
    return {
        "sha": sha,
        "commit": {
            "message": f"commit {sha}",
            "author": {"name": login.title(), "email": f"{login}@example.com", "date": iso(when)},
            "committer": {"date": iso(when)},
        },
        "author": {"login": login},
        "parents": [{"sha": "parent"}],
    }


def rest_release(tag: str, when: datetime = NOW - timedelta(days=2)) -> dict[str, Any]:
    return {"tag_name": tag, "name": tag, "author": {"login": "alice"}, "published_at": iso(when)}


def rest_contributor(login: str, contributions: int) -> dict[str, Any]:
    return {"login": login, "contributions": contributions, "type": "User"}


def repo_data(full_name: str, issues: int = 2, commits: int = 3) -> dict[str, list[Any]]:
    return {
        "repository": [rest_repo(full_name)],
        "issues": [rest_issue(n, "closed" if n % 2 else "open") for n in range(1, issues + 1)],
        "pull_requests": [rest_pull(1, merged=True), rest_pull(2)],
        "commits": [rest_commit(f"{full_name}-{n}") for n in range(commits)],
        "releases": [rest_release("v1.0.0")],
        "contributors": [rest_contributor("alice", 5), rest_contributor("bob", 3)],
    }


# ── fake sources ───────────────────────────────────────────────────────────


class FakeEntitySource:
    """EntitySource serving canned REST payloads with offset cursors."""

    def __init__(
        self,
        repos: dict[str, dict[str, list[Any]]],
        *,
        remaining: int = 5000,
        failures: dict[tuple[str, str], BaseException] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.repos = repos
        self.remaining = remaining
        self.failures = dict(failures or {})
        self.delay = delay
        self.calls: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def get_quota(self) -> QuotaSnapshot:
        self.calls.append(("quota", ""))
        return QuotaSnapshot(remaining=self.remaining, limit=5000, reset_at=RESET_AT)

    async def _serve(self, repository: str, entity: str, cursor: str | None, per_page: int) -> SourcePage:
        self.calls.append((entity, repository))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            failure = self.failures.get((repository, entity))
            if failure is not None:
                raise failure
            if repository not in self.repos:
                raise NotFoundError(f"not found: {repository}")
            items = self.repos[repository].get(entity, [])
            start = int(cursor or 0)
            end = start + per_page
            self.remaining -= 1
            return SourcePage(
                items=items[start:end],
                shape=SourceShape.REST,
                quota=QuotaSnapshot(remaining=self.remaining, limit=5000, reset_at=RESET_AT),
                next_cursor=str(end) if end < len(items) else None,
            )
        finally:
            self.in_flight -= 1

    async def get_repository(self, repository: str) -> SourcePage:
        return await self._serve(repository, "repository", None, 1)

    async def list_issues(self, repository, *, since, cursor, per_page):
        return await self._serve(repository, "issues", cursor, per_page)

    async def list_pull_requests(self, repository, *, since, cursor, per_page):
        return await self._serve(repository, "pull_requests", cursor, per_page)

    async def list_commits(self, repository, *, since, cursor, per_page):
        return await self._serve(repository, "commits", cursor, per_page)

    async def list_releases(self, repository, *, cursor, per_page):
        return await self._serve(repository, "releases", cursor, per_page)

    async def list_contributors(self, repository, *, cursor, per_page):
        return await self._serve(repository, "contributors", cursor, per_page)


def graphql_project(
    owner: str,
    number: int,
    *,
    updated: datetime = NOW,
    closed: bool = False,
    repositories: tuple[str, ...] = (),
) -> dict[str, Any]:
    return {
        "id": f"PVT_{owner}_{number}",
        "number": number,
        "title": f"Project {number}",
        "url": f"https://github.com/orgs/{owner}/projects/{number}",
        "closed": closed,
        "public": True,
        "createdAt": "2024-01-01T00:00:00Z",
        "updatedAt": iso(updated),
        "owner": {"login": owner},
        "items": {"totalCount": 0},
        "repositories": {"nodes": [{"nameWithOwner": r} for r in repositories]},
    }


def graphql_item(item_id: str, repository: str, number: int, kind: str = "ISSUE") -> dict[str, Any]:
    return {
        "id": item_id,
        "type": kind,
        "status": {"name": "Todo"},
        "content": {
            "title": f"{repository}#{number}",
            "url": f"https://github.com/{repository}/issues/{number}",
            "number": number,
            "repository": {"nameWithOwner": repository},
        },
    }


class FakeProjectSource:
    """ProjectSource over canned GraphQL nodes; items are served two per page."""

    def __init__(
        self,
        projects: dict[str, list[dict[str, Any]]],
        items: dict[tuple[str, int], list[dict[str, Any]]] | None = None,
    ) -> None:
        self.projects = projects
        self.items = items or {}

    async def list_projects(self, owner: str) -> SourcePage:
        if owner not in self.projects:
            raise NotFoundError(f"owner {owner} not found")
        return SourcePage(items=list(self.projects[owner]), shape=SourceShape.GRAPHQL)

    async def get_project(self, owner: str, number: int) -> SourcePage:
        for node in self.projects.get(owner, []):
            if node["number"] == number:
                return SourcePage(items=[node], shape=SourceShape.GRAPHQL)
        raise NotFoundError(f"project {owner}#{number} not found")

    async def list_project_items(self, owner: str, number: int, *, cursor: str | None = None) -> SourcePage:
        items = self.items.get((owner, number), [])
        start = int(cursor or 0)
        end = start + 2
        return SourcePage(
            items=items[start:end],
            shape=SourceShape.GRAPHQL,
            next_cursor=str(end) if end < len(items) else None,
        )
