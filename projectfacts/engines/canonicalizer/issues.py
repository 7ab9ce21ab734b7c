"""Issue canonicalizers."""

from __future__ import annotations

from typing import Any

from projectfacts.engines.canonicalizer import _fields as f
from projectfacts.engines.canonicalizer.models import EntityType, Issue, SourceShape

_ENTITY = EntityType.ISSUE
DEFAULT_TITLE = "Untitled Issue"


def from_rest(data: Any, scope: str | None = None) -> Issue:
    payload = f.ensure_object(data, _ENTITY, SourceShape.REST)
    num = f.number(payload.get("number"))
    f.require(_ENTITY, SourceShape.REST, number=num)
    return Issue(
        repository=f.repository_scope(scope, f.repository_from_api_url(payload.get("repository_url"))),
        number=num,
        title=f.text(payload.get("title"), DEFAULT_TITLE),
        state=f.closed_state(payload.get("state")),
        author=f.text(f.dig(payload, "user", "login"), f.UNKNOWN),
        assignees=f.logins(payload.get("assignees")),
        labels=f.names(payload.get("labels")),
        milestone=f.opt_text(f.dig(payload, "milestone", "title")),
        comments=f.count(payload.get("comments")),
        locked=f.flag(payload.get("locked")),
        url=f.text(payload.get("html_url"), ""),
        created_at=f.timestamp(payload.get("created_at")),
        updated_at=f.timestamp(payload.get("updated_at")),
        closed_at=f.timestamp(payload.get("closed_at")),
    )


def from_graphql(data: Any, scope: str | None = None) -> Issue:
    payload = f.ensure_object(data, _ENTITY, SourceShape.GRAPHQL)
    num = f.number(payload.get("number"))
    f.require(_ENTITY, SourceShape.GRAPHQL, number=num)
    return Issue(
        repository=f.repository_scope(scope, f.dig(payload, "repository", "nameWithOwner")),
        number=num,
        title=f.text(payload.get("title"), DEFAULT_TITLE),
        state=f.closed_state(payload.get("state"), payload.get("closed")),
        author=f.text(f.dig(payload, "author", "login"), f.UNKNOWN),
        assignees=f.logins(payload.get("assignees")),
        labels=f.names(payload.get("labels")),
        milestone=f.opt_text(f.dig(payload, "milestone", "title")),
        comments=f.count(f.total_count(payload.get("comments"))),
        locked=f.flag(payload.get("locked")),
        url=f.text(payload.get("url"), ""),
        created_at=f.timestamp(payload.get("createdAt")),
        updated_at=f.timestamp(payload.get("updatedAt")),
        closed_at=f.timestamp(payload.get("closedAt")),
    )


def from_cli(data: Any, scope: str | None = None) -> Issue:
    """``gh issue list --json``: comments arrive as a list, ``locked`` is not exposed."""
    payload = f.ensure_object(data, _ENTITY, SourceShape.CLI)
    num = f.number(payload.get("number"))
    f.require(_ENTITY, SourceShape.CLI, number=num)
    return Issue(
        repository=f.repository_scope(scope, f.dig(payload, "repository", "nameWithOwner")),
        number=num,
        title=f.text(payload.get("title"), DEFAULT_TITLE),
        state=f.closed_state(payload.get("state"), payload.get("closed")),
        author=f.text(f.dig(payload, "author", "login"), f.UNKNOWN),
        assignees=f.logins(payload.get("assignees")),
        labels=f.names(payload.get("labels")),
        milestone=f.opt_text(f.dig(payload, "milestone", "title")),
        comments=f.count(f.total_count(payload.get("comments"))),
        locked=False,
        url=f.text(payload.get("url"), ""),
        created_at=f.timestamp(payload.get("createdAt")),
        updated_at=f.timestamp(payload.get("updatedAt")),
        closed_at=f.timestamp(payload.get("closedAt")),
    )
