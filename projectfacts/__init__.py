"""projectfacts: rate-aware GitHub project activity collection and aggregation."""

__version__ = "0.1.0"

from projectfacts.engines.aggregation import AggregateMetrics, aggregate
from projectfacts.engines.canonicalizer import RawPayload, SourceShape, canonicalize
from projectfacts.engines.collector import ProjectCollector, RepositoryCollector
from projectfacts.engines.rate_governor import QuotaSnapshot, RateGovernor
from projectfacts.orchestrator import PhaseOrchestrator, RunOutcome

__all__ = [
    "AggregateMetrics",
    "PhaseOrchestrator",
    "ProjectCollector",
    "QuotaSnapshot",
    "RateGovernor",
    "RawPayload",
    "RepositoryCollector",
    "RunOutcome",
    "SourceShape",
    "aggregate",
    "canonicalize",
]
