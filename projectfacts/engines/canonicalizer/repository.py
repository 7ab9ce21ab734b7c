"""Repository metadata canonicalizers."""

from __future__ import annotations

from typing import Any

from projectfacts.engines.canonicalizer import _fields as f
from projectfacts.engines.canonicalizer.models import EntityType, Repository, SourceShape

_ENTITY = EntityType.REPOSITORY


def _split(full_name: str | None, owner: str | None, name: str | None) -> tuple[str | None, str | None]:
    if full_name and "/" in full_name:
        head, _, tail = full_name.partition("/")
        return owner or head or None, name or tail or None
    return owner, name


def _scoped(scope: str | None, owner: str, name: str) -> tuple[str, str]:
    # the requested repository keys every fact collected for it
    if scope and "/" in scope:
        head, _, tail = scope.partition("/")
        if head and tail:
            return head, tail
    return owner, name


def from_rest(data: Any, scope: str | None = None) -> Repository:
    payload = f.ensure_object(data, _ENTITY, SourceShape.REST)
    owner, name = _split(
        f.opt_text(payload.get("full_name")),
        f.opt_text(f.dig(payload, "owner", "login")),
        f.opt_text(payload.get("name")),
    )
    f.require(_ENTITY, SourceShape.REST, **{"owner.login": owner, "name": name})
    owner, name = _scoped(scope, owner, name)
    return Repository(
        full_name=f"{owner}/{name}",
        owner=owner,
        name=name,
        description=f.opt_text(payload.get("description")),
        url=f.text(payload.get("html_url"), ""),
        default_branch=f.text(payload.get("default_branch"), "main"),
        language=f.opt_text(payload.get("language")),
        license=f.opt_text(f.dig(payload, "license", "spdx_id")),
        topics=f.names(payload.get("topics")),
        stars=f.count(payload.get("stargazers_count")),
        forks=f.count(payload.get("forks_count")),
        # REST watchers_count mirrors stars; subscribers are the real watchers
        watchers=f.opt_count(payload.get("subscribers_count")),
        open_issues=f.opt_count(payload.get("open_issues_count")),
        is_fork=f.flag(payload.get("fork")),
        is_archived=f.flag(payload.get("archived")),
        is_private=f.flag(payload.get("private")),
        created_at=f.timestamp(payload.get("created_at")),
        updated_at=f.timestamp(payload.get("updated_at")),
        pushed_at=f.timestamp(payload.get("pushed_at")),
    )


def _from_graph(data: Any, shape: SourceShape, scope: str | None) -> Repository:
    payload = f.ensure_object(data, _ENTITY, shape)
    owner, name = _split(
        f.opt_text(payload.get("nameWithOwner")),
        f.opt_text(f.dig(payload, "owner", "login")),
        f.opt_text(payload.get("name")),
    )
    f.require(_ENTITY, shape, **{"owner.login": owner, "name": name})
    owner, name = _scoped(scope, owner, name)
    topics = [f.dig(node, "topic") or node for node in f.nodes(payload.get("repositoryTopics"))]
    return Repository(
        full_name=f"{owner}/{name}",
        owner=owner,
        name=name,
        description=f.opt_text(payload.get("description")),
        url=f.text(payload.get("url"), ""),
        default_branch=f.text(f.dig(payload, "defaultBranchRef", "name"), "main"),
        language=f.opt_text(f.dig(payload, "primaryLanguage", "name")),
        license=f.opt_text(f.dig(payload, "licenseInfo", "spdxId")),
        topics=f.names(topics),
        stars=f.count(payload.get("stargazerCount")),
        forks=f.count(payload.get("forkCount")),
        watchers=f.total_count(payload.get("watchers")),
        open_issues=f.total_count(payload.get("issues")),
        is_fork=f.flag(payload.get("isFork")),
        is_archived=f.flag(payload.get("isArchived")),
        is_private=f.flag(payload.get("isPrivate")),
        created_at=f.timestamp(payload.get("createdAt")),
        updated_at=f.timestamp(payload.get("updatedAt")),
        pushed_at=f.timestamp(payload.get("pushedAt")),
    )


def from_graphql(data: Any, scope: str | None = None) -> Repository:
    return _from_graph(data, SourceShape.GRAPHQL, scope)


def from_cli(data: Any, scope: str | None = None) -> Repository:
    # ``gh repo view --json`` reuses the GraphQL field names
    return _from_graph(data, SourceShape.CLI, scope)
