"""Rate governor — quota tracking, call estimation, bounded retry backoff."""

from projectfacts.engines.rate_governor.governor import (
    Feasibility,
    QuotaSnapshot,
    RateGovernor,
    RetryPolicy,
)

__all__ = [
    "Feasibility",
    "QuotaSnapshot",
    "RateGovernor",
    "RetryPolicy",
]
