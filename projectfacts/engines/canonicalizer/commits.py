"""Commit canonicalizers."""

from __future__ import annotations

from typing import Any

from projectfacts.engines.canonicalizer import _fields as f
from projectfacts.engines.canonicalizer.models import Commit, EntityType, SourceShape

_ENTITY = EntityType.COMMIT
DEFAULT_MESSAGE = "No commit message"


def from_rest(data: Any, scope: str | None = None) -> Commit:
    payload = f.ensure_object(data, _ENTITY, SourceShape.REST)
    sha = f.identifier(payload.get("sha"))
    f.require(_ENTITY, SourceShape.REST, sha=sha)
    parents = payload.get("parents")
    stats = payload.get("stats")
    files = payload.get("files")
    return Commit(
        repository=f.repository_scope(scope),
        sha=sha,
        message=f.text(f.dig(payload, "commit", "message"), DEFAULT_MESSAGE),
        author_name=f.text(f.dig(payload, "commit", "author", "name"), f.UNKNOWN),
        author_email=f.text(f.dig(payload, "commit", "author", "email"), ""),
        author_login=f.opt_text(f.dig(payload, "author", "login")),
        url=f.text(payload.get("html_url"), ""),
        parent_count=len(parents) if isinstance(parents, list) else None,
        additions=f.opt_count(f.dig(stats, "additions")),
        deletions=f.opt_count(f.dig(stats, "deletions")),
        changed_files=len(files) if isinstance(files, list) else None,
        verified=f.flag(f.dig(payload, "commit", "verification", "verified")),
        authored_at=f.timestamp(f.dig(payload, "commit", "author", "date")),
        committed_at=f.timestamp(f.dig(payload, "commit", "committer", "date")),
    )


def from_graphql(data: Any, scope: str | None = None) -> Commit:
    """A ``history`` node of a GraphQL ``Commit``."""
    payload = f.ensure_object(data, _ENTITY, SourceShape.GRAPHQL)
    sha = f.identifier(payload.get("oid"))
    f.require(_ENTITY, SourceShape.GRAPHQL, oid=sha)
    return Commit(
        repository=f.repository_scope(scope),
        sha=sha,
        message=f.text(payload.get("message"), DEFAULT_MESSAGE),
        author_name=f.text(f.dig(payload, "author", "name"), f.UNKNOWN),
        author_email=f.text(f.dig(payload, "author", "email"), ""),
        author_login=f.opt_text(f.dig(payload, "author", "user", "login")),
        url=f.text(payload.get("url"), ""),
        parent_count=f.total_count(payload.get("parents")),
        additions=f.opt_count(payload.get("additions")),
        deletions=f.opt_count(payload.get("deletions")),
        changed_files=f.opt_count(payload.get("changedFilesIfAvailable")),
        verified=f.flag(f.dig(payload, "signature", "isValid")),
        authored_at=f.timestamp(payload.get("authoredDate")),
        committed_at=f.timestamp(payload.get("committedDate")),
    )


def _cli_message(payload: Any) -> str | None:
    headline = f.opt_text(payload.get("messageHeadline"))
    body = f.opt_text(payload.get("messageBody"))
    if headline is None:
        return None
    return f"{headline}\n\n{body}" if body else headline


def from_cli(data: Any, scope: str | None = None) -> Commit:
    """A commit entry of ``gh pr view --json commits``.

    The ``gh`` shape carries no url, parents, line stats or signature.
    """
    payload = f.ensure_object(data, _ENTITY, SourceShape.CLI)
    sha = f.identifier(payload.get("oid"))
    f.require(_ENTITY, SourceShape.CLI, oid=sha)
    authors = f.nodes(payload.get("authors"))
    author = authors[0] if authors else None
    return Commit(
        repository=f.repository_scope(scope),
        sha=sha,
        message=_cli_message(payload) or DEFAULT_MESSAGE,
        author_name=f.text(f.dig(author, "name"), f.UNKNOWN),
        author_email=f.text(f.dig(author, "email"), ""),
        author_login=f.opt_text(f.dig(author, "login")),
        url="",
        parent_count=None,
        additions=None,
        deletions=None,
        changed_files=None,
        verified=False,
        authored_at=f.timestamp(payload.get("authoredDate")),
        committed_at=f.timestamp(payload.get("committedDate")),
    )
