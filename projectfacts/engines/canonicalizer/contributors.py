"""Contributor canonicalizers.

Shapes that carry no contribution count leave ``contributions`` as ``None``.
"""

from __future__ import annotations

from typing import Any

from projectfacts.engines.canonicalizer import _fields as f
from projectfacts.engines.canonicalizer.models import Contributor, EntityType, SourceShape

_ENTITY = EntityType.CONTRIBUTOR
DEFAULT_ACCOUNT_TYPE = "User"


def from_rest(data: Any, scope: str | None = None) -> Contributor:
    payload = f.ensure_object(data, _ENTITY, SourceShape.REST)
    login = f.identifier(payload.get("login"))
    f.require(_ENTITY, SourceShape.REST, login=login)
    return Contributor(
        repository=f.repository_scope(scope),
        login=login,
        contributions=f.opt_count(payload.get("contributions")),
        account_type=f.text(payload.get("type"), DEFAULT_ACCOUNT_TYPE),
        url=f.text(payload.get("html_url"), ""),
    )


def from_graphql(data: Any, scope: str | None = None) -> Contributor:
    payload = f.ensure_object(data, _ENTITY, SourceShape.GRAPHQL)
    login = f.identifier(payload.get("login"))
    f.require(_ENTITY, SourceShape.GRAPHQL, login=login)
    return Contributor(
        repository=f.repository_scope(scope),
        login=login,
        contributions=f.total_count(payload.get("contributions")),
        account_type=f.text(payload.get("__typename"), DEFAULT_ACCOUNT_TYPE),
        url=f.text(payload.get("url"), ""),
    )


def from_cli(data: Any, scope: str | None = None) -> Contributor:
    payload = f.ensure_object(data, _ENTITY, SourceShape.CLI)
    login = f.identifier(payload.get("login"))
    f.require(_ENTITY, SourceShape.CLI, login=login)
    is_bot = payload.get("is_bot")
    return Contributor(
        repository=f.repository_scope(scope),
        login=login,
        contributions=f.opt_count(payload.get("contributions")),
        account_type="Bot" if is_bot is True else DEFAULT_ACCOUNT_TYPE,
        url=f.text(payload.get("url"), ""),
    )
