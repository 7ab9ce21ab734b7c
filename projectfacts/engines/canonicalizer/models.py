"""Canonical fact records and the tagged raw-payload variant.

Facts are frozen: a fact is built once, from one raw payload, and never
mutated. Sequence fields are tuples for the same reason.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal, Union

IssueState = Literal["open", "closed"]
ItemContentType = Literal["ISSUE", "PULL_REQUEST", "DRAFT_ISSUE", "REDACTED"]


class SourceShape(str, enum.Enum):
    """The wire shape a raw payload arrives in."""

    REST = "rest"
    GRAPHQL = "graphql"
    CLI = "cli"


class EntityType(str, enum.Enum):
    REPOSITORY = "repository"
    ISSUE = "issue"
    PULL_REQUEST = "pull_request"
    COMMIT = "commit"
    RELEASE = "release"
    CONTRIBUTOR = "contributor"
    PROJECT = "project"
    PROJECT_ITEM = "project_item"


@dataclass(frozen=True)
class RawPayload:
    """One raw entity payload, tagged with its entity type and shape.

    *scope* is the owning ``owner/name`` for repository-scoped entities,
    the owner login for projects and ``owner#number`` for project items.
    Shapes that do not embed their repository
    (GraphQL nodes, most ``gh`` output) rely on it.
    """

    entity: EntityType
    shape: SourceShape
    data: Any
    scope: str | None = None


@dataclass(frozen=True)
class Repository:
    full_name: str
    owner: str
    name: str
    description: str | None
    url: str
    default_branch: str
    language: str | None
    license: str | None
    topics: tuple[str, ...]
    stars: int
    forks: int
    watchers: int | None
    open_issues: int | None
    is_fork: bool
    is_archived: bool
    is_private: bool
    created_at: datetime | None
    updated_at: datetime | None
    pushed_at: datetime | None

    @property
    def repository(self) -> str:
        return self.full_name

    @property
    def key(self) -> str:
        return self.full_name


@dataclass(frozen=True)
class Issue:
    repository: str
    number: int
    title: str
    state: IssueState
    author: str
    assignees: tuple[str, ...]
    labels: tuple[str, ...]
    milestone: str | None
    comments: int
    locked: bool
    url: str
    created_at: datetime | None
    updated_at: datetime | None
    closed_at: datetime | None

    @property
    def key(self) -> int:
        return self.number


@dataclass(frozen=True)
class PullRequest:
    repository: str
    number: int
    title: str
    state: IssueState
    author: str
    assignees: tuple[str, ...]
    requested_reviewers: tuple[str, ...]
    labels: tuple[str, ...]
    milestone: str | None
    draft: bool
    merged: bool
    merged_by: str | None
    head_branch: str
    base_branch: str
    url: str
    comments: int | None
    commits: int | None
    additions: int | None
    deletions: int | None
    changed_files: int | None
    created_at: datetime | None
    updated_at: datetime | None
    closed_at: datetime | None
    merged_at: datetime | None

    @property
    def key(self) -> int:
        return self.number


@dataclass(frozen=True)
class Commit:
    repository: str
    sha: str
    message: str
    author_name: str
    author_email: str
    author_login: str | None
    url: str
    parent_count: int | None
    additions: int | None
    deletions: int | None
    changed_files: int | None
    verified: bool
    authored_at: datetime | None
    committed_at: datetime | None

    @property
    def key(self) -> str:
        return self.sha

    @property
    def short_sha(self) -> str:
        return self.sha[:7]

    @property
    def headline(self) -> str:
        return self.message.split("\n", 1)[0]


@dataclass(frozen=True)
class Release:
    repository: str
    tag_name: str
    name: str
    draft: bool
    prerelease: bool
    author: str
    url: str
    created_at: datetime | None
    published_at: datetime | None

    @property
    def key(self) -> str:
        return self.tag_name


@dataclass(frozen=True)
class Contributor:
    repository: str
    login: str
    contributions: int | None
    account_type: str
    url: str

    @property
    def key(self) -> str:
        return self.login


@dataclass(frozen=True)
class Project:
    owner: str
    number: int
    id: str
    title: str
    url: str
    description: str | None
    closed: bool
    public: bool
    item_count: int | None
    linked_repositories: tuple[str, ...]
    created_at: datetime | None
    updated_at: datetime | None

    @property
    def key(self) -> str:
        return f"{self.owner}#{self.number}"


@dataclass(frozen=True)
class ProjectItem:
    project: str
    id: str
    content_type: ItemContentType
    title: str
    url: str | None
    repository: str | None
    number: int | None
    status: str | None

    @property
    def key(self) -> str:
        return self.id


CanonicalFact = Union[
    Repository, Issue, PullRequest, Commit, Release, Contributor, Project, ProjectItem
]
