"""Source payload canonicalizer — REST, GraphQL and ``gh`` shapes into one fact schema."""

from projectfacts.engines.canonicalizer.models import (
    CanonicalFact,
    Commit,
    Contributor,
    EntityType,
    Issue,
    Project,
    ProjectItem,
    PullRequest,
    RawPayload,
    Release,
    Repository,
    SourceShape,
)
from projectfacts.engines.canonicalizer.registry import (
    canonicalize,
    canonicalize_many,
    get_canonicalizer,
)

__all__ = [
    "CanonicalFact",
    "Commit",
    "Contributor",
    "EntityType",
    "Issue",
    "Project",
    "ProjectItem",
    "PullRequest",
    "RawPayload",
    "Release",
    "Repository",
    "SourceShape",
    "canonicalize",
    "canonicalize_many",
    "get_canonicalizer",
]
