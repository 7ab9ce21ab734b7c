"""Pull request canonicalizers."""

from __future__ import annotations

from typing import Any

from projectfacts.engines.canonicalizer import _fields as f
from projectfacts.engines.canonicalizer.models import EntityType, PullRequest, SourceShape

_ENTITY = EntityType.PULL_REQUEST
DEFAULT_TITLE = "Untitled Pull Request"
DEFAULT_BASE_BRANCH = "main"


def _merged(state: Any, merged: Any, merged_at: Any) -> bool:
    if merged is True:
        return True
    if isinstance(state, str) and state.upper() == "MERGED":
        return True
    return f.timestamp(merged_at) is not None


def _reviewers(value: Any) -> tuple[str, ...]:
    # GraphQL wraps each reviewer in {requestedReviewer: {...}}; teams carry no login
    unwrapped = [f.dig(node, "requestedReviewer") or node for node in f.nodes(value)]
    return f.logins(unwrapped)


def from_rest(data: Any, scope: str | None = None) -> PullRequest:
    """REST list items omit line stats and counts; those stay ``None``."""
    payload = f.ensure_object(data, _ENTITY, SourceShape.REST)
    num = f.number(payload.get("number"))
    f.require(_ENTITY, SourceShape.REST, number=num)
    return PullRequest(
        repository=f.repository_scope(scope, f.dig(payload, "base", "repo", "full_name")),
        number=num,
        title=f.text(payload.get("title"), DEFAULT_TITLE),
        state=f.closed_state(payload.get("state")),
        author=f.text(f.dig(payload, "user", "login"), f.UNKNOWN),
        assignees=f.logins(payload.get("assignees")),
        requested_reviewers=f.logins(payload.get("requested_reviewers")),
        labels=f.names(payload.get("labels")),
        milestone=f.opt_text(f.dig(payload, "milestone", "title")),
        draft=f.flag(payload.get("draft")),
        merged=_merged(None, payload.get("merged"), payload.get("merged_at")),
        merged_by=f.opt_text(f.dig(payload, "merged_by", "login")),
        head_branch=f.text(f.dig(payload, "head", "ref"), f.UNKNOWN),
        base_branch=f.text(f.dig(payload, "base", "ref"), DEFAULT_BASE_BRANCH),
        url=f.text(payload.get("html_url"), ""),
        comments=f.opt_count(payload.get("comments")),
        commits=f.opt_count(payload.get("commits")),
        additions=f.opt_count(payload.get("additions")),
        deletions=f.opt_count(payload.get("deletions")),
        changed_files=f.opt_count(payload.get("changed_files")),
        created_at=f.timestamp(payload.get("created_at")),
        updated_at=f.timestamp(payload.get("updated_at")),
        closed_at=f.timestamp(payload.get("closed_at")),
        merged_at=f.timestamp(payload.get("merged_at")),
    )


def _from_graph(data: Any, scope: str | None, shape: SourceShape) -> PullRequest:
    payload = f.ensure_object(data, _ENTITY, shape)
    num = f.number(payload.get("number"))
    f.require(_ENTITY, shape, number=num)
    state = payload.get("state")
    return PullRequest(
        repository=f.repository_scope(scope, f.dig(payload, "repository", "nameWithOwner")),
        number=num,
        title=f.text(payload.get("title"), DEFAULT_TITLE),
        state=f.closed_state(state, payload.get("closed")),
        author=f.text(f.dig(payload, "author", "login"), f.UNKNOWN),
        assignees=f.logins(payload.get("assignees")),
        requested_reviewers=_reviewers(payload.get("reviewRequests")),
        labels=f.names(payload.get("labels")),
        milestone=f.opt_text(f.dig(payload, "milestone", "title")),
        draft=f.flag(payload.get("isDraft")),
        merged=_merged(state, payload.get("merged"), payload.get("mergedAt")),
        merged_by=f.opt_text(f.dig(payload, "mergedBy", "login")),
        head_branch=f.text(payload.get("headRefName"), f.UNKNOWN),
        base_branch=f.text(payload.get("baseRefName"), DEFAULT_BASE_BRANCH),
        url=f.text(payload.get("url"), ""),
        comments=f.total_count(payload.get("comments")),
        commits=f.total_count(payload.get("commits")),
        additions=f.opt_count(payload.get("additions")),
        deletions=f.opt_count(payload.get("deletions")),
        changed_files=f.opt_count(payload.get("changedFiles")),
        created_at=f.timestamp(payload.get("createdAt")),
        updated_at=f.timestamp(payload.get("updatedAt")),
        closed_at=f.timestamp(payload.get("closedAt")),
        merged_at=f.timestamp(payload.get("mergedAt")),
    )


def from_graphql(data: Any, scope: str | None = None) -> PullRequest:
    return _from_graph(data, scope, SourceShape.GRAPHQL)


def from_cli(data: Any, scope: str | None = None) -> PullRequest:
    # ``gh pr list --json`` mirrors GraphQL names; connections arrive as plain lists
    return _from_graph(data, scope, SourceShape.CLI)
