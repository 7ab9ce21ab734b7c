"""Release canonicalizers."""

from __future__ import annotations

from typing import Any

from projectfacts.engines.canonicalizer import _fields as f
from projectfacts.engines.canonicalizer.models import EntityType, Release, SourceShape

_ENTITY = EntityType.RELEASE


def from_rest(data: Any, scope: str | None = None) -> Release:
    payload = f.ensure_object(data, _ENTITY, SourceShape.REST)
    tag = f.identifier(payload.get("tag_name"))
    f.require(_ENTITY, SourceShape.REST, tag_name=tag)
    return Release(
        repository=f.repository_scope(scope),
        tag_name=tag,
        name=f.text(payload.get("name"), tag),
        draft=f.flag(payload.get("draft")),
        prerelease=f.flag(payload.get("prerelease")),
        author=f.text(f.dig(payload, "author", "login"), f.UNKNOWN),
        url=f.text(payload.get("html_url"), ""),
        created_at=f.timestamp(payload.get("created_at")),
        published_at=f.timestamp(payload.get("published_at")),
    )


def from_graphql(data: Any, scope: str | None = None) -> Release:
    payload = f.ensure_object(data, _ENTITY, SourceShape.GRAPHQL)
    tag = f.identifier(payload.get("tagName"))
    f.require(_ENTITY, SourceShape.GRAPHQL, tagName=tag)
    return Release(
        repository=f.repository_scope(scope),
        tag_name=tag,
        name=f.text(payload.get("name"), tag),
        draft=f.flag(payload.get("isDraft")),
        prerelease=f.flag(payload.get("isPrerelease")),
        author=f.text(f.dig(payload, "author", "login"), f.UNKNOWN),
        url=f.text(payload.get("url"), ""),
        created_at=f.timestamp(payload.get("createdAt")),
        published_at=f.timestamp(payload.get("publishedAt")),
    )


def from_cli(data: Any, scope: str | None = None) -> Release:
    """``gh release list --json``: no author, no url."""
    payload = f.ensure_object(data, _ENTITY, SourceShape.CLI)
    tag = f.identifier(payload.get("tagName"))
    f.require(_ENTITY, SourceShape.CLI, tagName=tag)
    return Release(
        repository=f.repository_scope(scope),
        tag_name=tag,
        name=f.text(payload.get("name"), tag),
        draft=f.flag(payload.get("isDraft")),
        prerelease=f.flag(payload.get("isPrerelease")),
        author=f.text(f.dig(payload, "author", "login"), f.UNKNOWN),
        url=f.text(payload.get("url"), ""),
        created_at=f.timestamp(payload.get("createdAt")),
        published_at=f.timestamp(payload.get("publishedAt")),
    )
