"""Projects (v2) and project item canonicalizers."""

from __future__ import annotations

from typing import Any

from projectfacts.engines.canonicalizer import _fields as f
from projectfacts.engines.canonicalizer.models import EntityType, Project, ProjectItem, SourceShape

DEFAULT_PROJECT_TITLE = "Untitled Project"
DEFAULT_ITEM_TITLE = "Untitled Item"

_CONTENT_TYPES = {
    "ISSUE": "ISSUE",
    "PULLREQUEST": "PULL_REQUEST",
    "PULL_REQUEST": "PULL_REQUEST",
    "DRAFTISSUE": "DRAFT_ISSUE",
    "DRAFT_ISSUE": "DRAFT_ISSUE",
    "REDACTED": "REDACTED",
}


def project_key(owner: str, number: int) -> str:
    return f"{owner}#{number}"


def _content_type(value: Any) -> str:
    if isinstance(value, str):
        return _CONTENT_TYPES.get(value.upper(), "REDACTED")
    return "REDACTED"


def _linked(value: Any) -> tuple[str, ...]:
    found = {f.dig(node, "nameWithOwner") for node in f.nodes(value)}
    return tuple(sorted(name for name in found if isinstance(name, str) and name))


# ── projects ───────────────────────────────────────────────────────────────


def _project_from_graph(data: Any, scope: str | None, shape: SourceShape) -> Project:
    payload = f.ensure_object(data, EntityType.PROJECT, shape)
    owner = f.opt_text(f.dig(payload, "owner", "login")) or scope
    num = f.number(payload.get("number"))
    f.require(EntityType.PROJECT, shape, **{"owner.login": owner, "number": num})
    return Project(
        owner=owner,
        number=num,
        id=f.text(payload.get("id"), ""),
        title=f.text(payload.get("title"), DEFAULT_PROJECT_TITLE),
        url=f.text(payload.get("url"), ""),
        description=f.opt_text(payload.get("shortDescription")),
        closed=f.flag(payload.get("closed")),
        public=f.flag(payload.get("public")),
        item_count=f.total_count(payload.get("items")),
        linked_repositories=_linked(payload.get("repositories")),
        created_at=f.timestamp(payload.get("createdAt")),
        updated_at=f.timestamp(payload.get("updatedAt")),
    )


def project_from_graphql(data: Any, scope: str | None = None) -> Project:
    return _project_from_graph(data, scope, SourceShape.GRAPHQL)


def project_from_cli(data: Any, scope: str | None = None) -> Project:
    """``gh project list --format json``: no timestamps, no linked repositories."""
    return _project_from_graph(data, scope, SourceShape.CLI)


def project_from_rest(data: Any, scope: str | None = None) -> Project:
    payload = f.ensure_object(data, EntityType.PROJECT, SourceShape.REST)
    owner = f.opt_text(f.dig(payload, "owner", "login")) or scope
    num = f.number(payload.get("number"))
    f.require(EntityType.PROJECT, SourceShape.REST, **{"owner.login": owner, "number": num})
    return Project(
        owner=owner,
        number=num,
        id=f.text(payload.get("node_id"), ""),
        title=f.text(payload.get("title"), DEFAULT_PROJECT_TITLE),
        url=f.text(payload.get("html_url"), ""),
        description=f.opt_text(payload.get("short_description")),
        closed=f.timestamp(payload.get("closed_at")) is not None or payload.get("state") == "closed",
        public=f.flag(payload.get("public")),
        item_count=None,
        linked_repositories=(),
        created_at=f.timestamp(payload.get("created_at")),
        updated_at=f.timestamp(payload.get("updated_at")),
    )


# ── project items ──────────────────────────────────────────────────────────


def _graphql_status(payload: Any) -> str | None:
    direct = f.opt_text(f.dig(payload, "status", "name"))
    if direct is not None:
        return direct
    for node in f.nodes(payload.get("fieldValues")):
        if f.dig(node, "field", "name") == "Status":
            return f.opt_text(f.dig(node, "name"))
    return None


def item_from_graphql(data: Any, scope: str | None = None) -> ProjectItem:
    payload = f.ensure_object(data, EntityType.PROJECT_ITEM, SourceShape.GRAPHQL)
    item_id = f.identifier(payload.get("id"))
    f.require(EntityType.PROJECT_ITEM, SourceShape.GRAPHQL, id=item_id)
    content = payload.get("content")
    return ProjectItem(
        project=scope or "",
        id=item_id,
        content_type=_content_type(payload.get("type")),
        title=f.text(f.dig(content, "title"), DEFAULT_ITEM_TITLE),
        url=f.opt_text(f.dig(content, "url")),
        repository=f.opt_text(f.dig(content, "repository", "nameWithOwner")),
        number=f.number(f.dig(content, "number")),
        status=_graphql_status(payload),
    )


def item_from_cli(data: Any, scope: str | None = None) -> ProjectItem:
    """``gh project item-list --format json``: repository is a bare ``owner/name``."""
    payload = f.ensure_object(data, EntityType.PROJECT_ITEM, SourceShape.CLI)
    item_id = f.identifier(payload.get("id"))
    f.require(EntityType.PROJECT_ITEM, SourceShape.CLI, id=item_id)
    content = payload.get("content")
    return ProjectItem(
        project=scope or "",
        id=item_id,
        content_type=_content_type(f.dig(content, "type")),
        title=f.text(f.dig(content, "title") or payload.get("title"), DEFAULT_ITEM_TITLE),
        url=f.opt_text(f.dig(content, "url")),
        repository=f.opt_text(f.dig(content, "repository")),
        number=f.number(f.dig(content, "number")),
        status=f.opt_text(payload.get("status")),
    )


def item_from_rest(data: Any, scope: str | None = None) -> ProjectItem:
    """REST project items expose no field values, so ``status`` stays ``None``."""
    payload = f.ensure_object(data, EntityType.PROJECT_ITEM, SourceShape.REST)
    item_id = f.identifier(payload.get("node_id"))
    f.require(EntityType.PROJECT_ITEM, SourceShape.REST, node_id=item_id)
    content = payload.get("content")
    repository = f.opt_text(f.dig(content, "repository", "full_name")) or f.repository_from_api_url(
        f.dig(content, "repository_url")
    )
    return ProjectItem(
        project=scope or "",
        id=item_id,
        content_type=_content_type(payload.get("content_type")),
        title=f.text(f.dig(content, "title"), DEFAULT_ITEM_TITLE),
        url=f.opt_text(f.dig(content, "html_url")),
        repository=repository,
        number=f.number(f.dig(content, "number")),
        status=None,
    )
