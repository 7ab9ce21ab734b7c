"""DETECT phase — resolve exactly one target project and its repositories."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal

import structlog

from projectfacts.core.auth import LocalContext
from projectfacts.core.github import parse_project_url, parse_repo_url
from projectfacts.engines.canonicalizer import EntityType, Project, ProjectItem, RawPayload, canonicalize
from projectfacts.engines.collector.source import ProjectSource
from projectfacts.exceptions import (
    AmbiguousTargetError,
    NotFoundError,
    TargetNotFoundError,
    ValidationError,
)

log = structlog.get_logger("projectfacts.engine")

TargetKind = Literal["url", "owner", "local"]

_MAX_ITEM_PAGES = 50
_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class TargetReference:
    """What the caller asked for: a project URL, an owner login, or the local checkout."""

    kind: TargetKind
    value: str | None = None

    @classmethod
    def url(cls, url: str) -> TargetReference:
        return cls("url", url)

    @classmethod
    def owner(cls, login: str) -> TargetReference:
        return cls("owner", login)

    @classmethod
    def local(cls) -> TargetReference:
        return cls("local")

    def describe(self) -> str:
        return f"{self.kind}:{self.value}" if self.value else self.kind


@dataclass(frozen=True)
class DetectedProject:
    project: Project
    items: tuple[ProjectItem, ...]
    repositories: tuple[str, ...]
    candidates: tuple[str, ...]  # every project key considered, sorted


def select_project(candidates: list[Project], reference: str) -> Project:
    """Pick the single most recently updated project, preferring open ones.

    Raises TargetNotFoundError for no candidates and AmbiguousTargetError
    when the most recent update time is shared by more than one project.
    """
    if not candidates:
        raise TargetNotFoundError(f"no projects found for {reference}")
    open_projects = [p for p in candidates if not p.closed]
    pool = open_projects or candidates
    ranked = sorted(pool, key=lambda p: (p.updated_at or _EPOCH, p.key), reverse=True)
    if len(ranked) == 1:
        return ranked[0]
    newest = ranked[0].updated_at or _EPOCH
    tied = [p for p in ranked if (p.updated_at or _EPOCH) == newest]
    if len(tied) > 1:
        raise AmbiguousTargetError(reference, sorted(p.key for p in candidates))
    return ranked[0]


class ProjectDetector:
    """Resolve a :class:`TargetReference` against a :class:`ProjectSource`."""

    def __init__(self, projects: ProjectSource, local: LocalContext | None = None) -> None:
        self._projects = projects
        self._local = local

    async def detect(self, target: TargetReference) -> DetectedProject:
        reference = target.describe()
        if target.kind == "url":
            project = await self._by_url(target.value or "")
            candidates = [project]
        else:
            candidates = await self._candidates(target)
            project = select_project(candidates, reference)

        keys = tuple(sorted(p.key for p in candidates))
        items = await self._items(project)
        linked = {i.repository for i in items if i.repository} | set(project.linked_repositories)
        repositories = tuple(sorted(linked))
        if not repositories:
            raise ValidationError(f"project {project.key} has no linked repositories")

        log.info(
            "detector.resolved",
            reference=reference,
            project=project.key,
            candidates=len(keys),
            repositories=len(repositories),
        )
        return DetectedProject(project=project, items=items, repositories=repositories, candidates=keys)

    # ── internal ───────────────────────────────────────────────────────────

    async def _by_url(self, url: str) -> Project:
        try:
            owner, number = parse_project_url(url)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        try:
            page = await self._projects.get_project(owner, number)
        except NotFoundError as exc:
            raise TargetNotFoundError(f"project {owner}#{number} not found") from exc
        return canonicalize(RawPayload(EntityType.PROJECT, page.shape, page.items[0], owner))

    async def _candidates(self, target: TargetReference) -> list[Project]:
        if target.kind == "owner":
            if not target.value:
                raise ValidationError("owner target requires a login")
            return await self._list(target.value)

        remote = self._local.remote_url() if self._local else None
        if not remote:
            raise TargetNotFoundError("no git remote available to infer a project from")
        try:
            owner, repo = parse_repo_url(remote)
        except ValueError as exc:
            raise TargetNotFoundError(str(exc)) from exc
        projects = await self._list(owner)
        full_name = f"{owner}/{repo}"
        linked = [p for p in projects if full_name in p.linked_repositories]
        return linked or projects

    async def _list(self, owner: str) -> list[Project]:
        try:
            page = await self._projects.list_projects(owner)
        except NotFoundError as exc:
            raise TargetNotFoundError(f"owner {owner!r} not found") from exc
        return [
            canonicalize(RawPayload(EntityType.PROJECT, page.shape, item, owner))
            for item in page.items
        ]

    async def _items(self, project: Project) -> tuple[ProjectItem, ...]:
        items: dict[str, ProjectItem] = {}
        cursor: str | None = None
        for _ in range(_MAX_ITEM_PAGES):
            page = await self._projects.list_project_items(project.owner, project.number, cursor=cursor)
            for raw in page.items:
                item = canonicalize(RawPayload(EntityType.PROJECT_ITEM, page.shape, raw, project.key))
                items.setdefault(item.id, item)
            cursor = page.next_cursor
            if not cursor:
                break
        return tuple(sorted(items.values(), key=lambda i: i.id))
