"""Dispatch table from (entity type, source shape) to its canonicalizer.

The caller declares the shape it is providing; nothing here inspects the
payload to guess it.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from projectfacts.engines.canonicalizer import (
    commits,
    contributors,
    issues,
    projects,
    pull_requests,
    releases,
    repository,
)
from projectfacts.engines.canonicalizer.models import (
    CanonicalFact,
    EntityType,
    RawPayload,
    SourceShape,
)

Canonicalizer = Callable[[Any, "str | None"], CanonicalFact]

_REGISTRY: dict[tuple[EntityType, SourceShape], Canonicalizer] = {
    (EntityType.REPOSITORY, SourceShape.REST): repository.from_rest,
    (EntityType.REPOSITORY, SourceShape.GRAPHQL): repository.from_graphql,
    (EntityType.REPOSITORY, SourceShape.CLI): repository.from_cli,
    (EntityType.ISSUE, SourceShape.REST): issues.from_rest,
    (EntityType.ISSUE, SourceShape.GRAPHQL): issues.from_graphql,
    (EntityType.ISSUE, SourceShape.CLI): issues.from_cli,
    (EntityType.PULL_REQUEST, SourceShape.REST): pull_requests.from_rest,
    (EntityType.PULL_REQUEST, SourceShape.GRAPHQL): pull_requests.from_graphql,
    (EntityType.PULL_REQUEST, SourceShape.CLI): pull_requests.from_cli,
    (EntityType.COMMIT, SourceShape.REST): commits.from_rest,
    (EntityType.COMMIT, SourceShape.GRAPHQL): commits.from_graphql,
    (EntityType.COMMIT, SourceShape.CLI): commits.from_cli,
    (EntityType.RELEASE, SourceShape.REST): releases.from_rest,
    (EntityType.RELEASE, SourceShape.GRAPHQL): releases.from_graphql,
    (EntityType.RELEASE, SourceShape.CLI): releases.from_cli,
    (EntityType.CONTRIBUTOR, SourceShape.REST): contributors.from_rest,
    (EntityType.CONTRIBUTOR, SourceShape.GRAPHQL): contributors.from_graphql,
    (EntityType.CONTRIBUTOR, SourceShape.CLI): contributors.from_cli,
    (EntityType.PROJECT, SourceShape.REST): projects.project_from_rest,
    (EntityType.PROJECT, SourceShape.GRAPHQL): projects.project_from_graphql,
    (EntityType.PROJECT, SourceShape.CLI): projects.project_from_cli,
    (EntityType.PROJECT_ITEM, SourceShape.REST): projects.item_from_rest,
    (EntityType.PROJECT_ITEM, SourceShape.GRAPHQL): projects.item_from_graphql,
    (EntityType.PROJECT_ITEM, SourceShape.CLI): projects.item_from_cli,
}


def get_canonicalizer(entity: EntityType, shape: SourceShape) -> Canonicalizer:
    """Look up the canonicalizer for *entity* in *shape*.

    Raises KeyError for an unregistered pair.
    """
    try:
        return _REGISTRY[(entity, shape)]
    except KeyError:
        raise KeyError(f"no canonicalizer for {entity!s} in {shape!s} shape") from None


def canonicalize(payload: RawPayload) -> CanonicalFact:
    """Turn one tagged raw payload into its canonical fact."""
    return get_canonicalizer(payload.entity, payload.shape)(payload.data, payload.scope)


def canonicalize_many(
    entity: EntityType,
    shape: SourceShape,
    items: Iterable[Any],
    scope: str | None = None,
) -> list[CanonicalFact]:
    fn = get_canonicalizer(entity, shape)
    return [fn(item, scope) for item in items]
