"""Collector engine — governed, partial-failure-tolerant GitHub collection."""

from projectfacts.engines.collector.github_client import GitHubClient, GitHubPage
from projectfacts.engines.collector.models import (
    CollectionFailure,
    CollectionResult,
    CollectionSuccess,
    ProjectCollection,
    RepositoryFacts,
)
from projectfacts.engines.collector.project import ProjectCollector
from projectfacts.engines.collector.repository import RepositoryCollector
from projectfacts.engines.collector.source import (
    EntitySource,
    GitHubGraphQLSource,
    GitHubRestSource,
    ProjectSource,
    SourcePage,
)

__all__ = [
    "CollectionFailure",
    "CollectionResult",
    "CollectionSuccess",
    "EntitySource",
    "GitHubClient",
    "GitHubGraphQLSource",
    "GitHubPage",
    "GitHubRestSource",
    "ProjectCollection",
    "ProjectCollector",
    "ProjectSource",
    "RepositoryCollector",
    "RepositoryFacts",
    "SourcePage",
]
