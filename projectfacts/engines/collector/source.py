"""Entity query sources — the paginated data-source seam and its GitHub implementations."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from projectfacts.engines.canonicalizer._fields import dig, timestamp
from projectfacts.engines.canonicalizer.models import SourceShape
from projectfacts.engines.collector.github_client import GitHubClient
from projectfacts.engines.rate_governor import QuotaSnapshot
from projectfacts.exceptions import NotFoundError


@dataclass(frozen=True)
class SourcePage:
    """One page of raw payloads, all in the same *shape*."""

    items: list[Any]
    shape: SourceShape
    quota: QuotaSnapshot | None = None
    next_cursor: str | None = None


@runtime_checkable
class EntitySource(Protocol):
    """Paginated repository-scoped queries.

    *cursor* is opaque; pass back the previous page's ``next_cursor``.
    """

    async def get_quota(self) -> QuotaSnapshot: ...

    async def get_repository(self, repository: str) -> SourcePage: ...

    async def list_issues(
        self, repository: str, *, since: datetime | None, cursor: str | None, per_page: int
    ) -> SourcePage: ...

    async def list_pull_requests(
        self, repository: str, *, since: datetime | None, cursor: str | None, per_page: int
    ) -> SourcePage: ...

    async def list_commits(
        self, repository: str, *, since: datetime | None, cursor: str | None, per_page: int
    ) -> SourcePage: ...

    async def list_releases(
        self, repository: str, *, cursor: str | None, per_page: int
    ) -> SourcePage: ...

    async def list_contributors(
        self, repository: str, *, cursor: str | None, per_page: int
    ) -> SourcePage: ...


@runtime_checkable
class ProjectSource(Protocol):
    """Projects (v2) lookups used while detecting the target."""

    async def list_projects(self, owner: str) -> SourcePage: ...

    async def get_project(self, owner: str, number: int) -> SourcePage: ...

    async def list_project_items(
        self, owner: str, number: int, *, cursor: str | None = None
    ) -> SourcePage: ...


def _iso(value: datetime | None) -> str | None:
    return value.isoformat().replace("+00:00", "Z") if value else None


class GitHubRestSource:
    """EntitySource over the GitHub REST API."""

    def __init__(self, client: GitHubClient) -> None:
        self._client = client

    async def get_quota(self) -> QuotaSnapshot:
        return await self._client.get_quota()

    async def get_repository(self, repository: str) -> SourcePage:
        page = await self._client.get_page(f"/repos/{repository}")
        return SourcePage(items=[page.data], shape=SourceShape.REST, quota=page.quota)

    async def _list(
        self, path: str, params: dict[str, Any], cursor: str | None
    ) -> tuple[list[Any], str | None, QuotaSnapshot | None]:
        page = await (
            self._client.get_page(cursor) if cursor else self._client.get_page(path, params)
        )
        items = page.data if isinstance(page.data, list) else []
        return items, page.next_url, page.quota

    async def list_issues(
        self, repository: str, *, since: datetime | None, cursor: str | None, per_page: int
    ) -> SourcePage:
        params: dict[str, Any] = {"state": "all", "sort": "updated", "direction": "desc", "per_page": per_page}
        if since is not None:
            params["since"] = _iso(since)
        items, next_url, quota = await self._list(f"/repos/{repository}/issues", params, cursor)
        # the issues endpoint also returns pull requests
        issues = [i for i in items if not (isinstance(i, dict) and "pull_request" in i)]
        return SourcePage(items=issues, shape=SourceShape.REST, quota=quota, next_cursor=next_url)

    async def list_pull_requests(
        self, repository: str, *, since: datetime | None, cursor: str | None, per_page: int
    ) -> SourcePage:
        params = {"state": "all", "sort": "updated", "direction": "desc", "per_page": per_page}
        items, next_url, quota = await self._list(f"/repos/{repository}/pulls", params, cursor)
        if since is None:
            return SourcePage(items=items, shape=SourceShape.REST, quota=quota, next_cursor=next_url)
        # no server-side since filter; results are newest-updated first
        kept = [p for p in items if _updated_since(p, since)]
        if len(kept) < len(items):
            next_url = None
        return SourcePage(items=kept, shape=SourceShape.REST, quota=quota, next_cursor=next_url)

    async def list_commits(
        self, repository: str, *, since: datetime | None, cursor: str | None, per_page: int
    ) -> SourcePage:
        params: dict[str, Any] = {"per_page": per_page}
        if since is not None:
            params["since"] = _iso(since)
        items, next_url, quota = await self._list(f"/repos/{repository}/commits", params, cursor)
        return SourcePage(items=items, shape=SourceShape.REST, quota=quota, next_cursor=next_url)

    async def list_releases(
        self, repository: str, *, cursor: str | None, per_page: int
    ) -> SourcePage:
        items, next_url, quota = await self._list(
            f"/repos/{repository}/releases", {"per_page": per_page}, cursor
        )
        return SourcePage(items=items, shape=SourceShape.REST, quota=quota, next_cursor=next_url)

    async def list_contributors(
        self, repository: str, *, cursor: str | None, per_page: int
    ) -> SourcePage:
        items, next_url, quota = await self._list(
            f"/repos/{repository}/contributors", {"per_page": per_page}, cursor
        )
        return SourcePage(items=items, shape=SourceShape.REST, quota=quota, next_cursor=next_url)


def _updated_since(payload: Any, since: datetime) -> bool:
    updated = timestamp(payload.get("updated_at")) if isinstance(payload, dict) else None
    return updated is None or updated >= since


# ── GraphQL: projects ──────────────────────────────────────────────────────

_PROJECT_FIELDS = """
  id number title url closed public shortDescription createdAt updatedAt
  owner { ... on User { login } ... on Organization { login } }
  items { totalCount }
  repositories(first: 50) { nodes { nameWithOwner } }
"""

LIST_PROJECTS_QUERY = (
    """
query($login: String!, $first: Int!) {
  repositoryOwner(login: $login) {
    login
    ... on ProjectV2Owner {
      projectsV2(first: $first, orderBy: {field: UPDATED_AT, direction: DESC}) {
        nodes {"""
    + _PROJECT_FIELDS
    + """}
      }
    }
  }
}
"""
)

GET_PROJECT_QUERY = (
    """
query($login: String!, $number: Int!) {
  repositoryOwner(login: $login) {
    ... on ProjectV2Owner {
      projectV2(number: $number) {"""
    + _PROJECT_FIELDS
    + """}
    }
  }
}
"""
)

LIST_PROJECT_ITEMS_QUERY = """
query($login: String!, $number: Int!, $first: Int!, $after: String) {
  repositoryOwner(login: $login) {
    ... on ProjectV2Owner {
      projectV2(number: $number) {
        items(first: $first, after: $after) {
          pageInfo { hasNextPage endCursor }
          nodes {
            id
            type
            status: fieldValueByName(name: "Status") {
              ... on ProjectV2ItemFieldSingleSelectValue { name }
            }
            content {
              ... on Issue { title url number repository { nameWithOwner } }
              ... on PullRequest { title url number repository { nameWithOwner } }
              ... on DraftIssue { title }
            }
          }
        }
      }
    }
  }
}
"""


class GitHubGraphQLSource:
    """ProjectSource over the GitHub GraphQL API."""

    def __init__(self, client: GitHubClient, *, page_size: int = 100) -> None:
        self._client = client
        self._page_size = page_size

    async def list_projects(self, owner: str) -> SourcePage:
        page = await self._client.graphql(
            LIST_PROJECTS_QUERY, {"login": owner, "first": self._page_size}
        )
        nodes = dig(page.data, "repositoryOwner", "projectsV2", "nodes") or []
        return SourcePage(
            items=[n for n in nodes if n], shape=SourceShape.GRAPHQL, quota=page.quota
        )

    async def get_project(self, owner: str, number: int) -> SourcePage:
        page = await self._client.graphql(GET_PROJECT_QUERY, {"login": owner, "number": number})
        node = dig(page.data, "repositoryOwner", "projectV2")
        if not node:
            raise NotFoundError(f"project {owner}#{number} not found")
        return SourcePage(items=[node], shape=SourceShape.GRAPHQL, quota=page.quota)

    async def list_project_items(
        self, owner: str, number: int, *, cursor: str | None = None
    ) -> SourcePage:
        page = await self._client.graphql(
            LIST_PROJECT_ITEMS_QUERY,
            {"login": owner, "number": number, "first": self._page_size, "after": cursor},
        )
        project = dig(page.data, "repositoryOwner", "projectV2")
        if not project:
            raise NotFoundError(f"project {owner}#{number} not found")
        items = dig(project, "items") or {}
        info = items.get("pageInfo") or {}
        next_cursor = info.get("endCursor") if info.get("hasNextPage") else None
        return SourcePage(
            items=[n for n in items.get("nodes") or [] if n],
            shape=SourceShape.GRAPHQL,
            quota=page.quota,
            next_cursor=next_cursor,
        )

