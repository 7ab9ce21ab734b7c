"""Runtime configuration read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_API_URL = "https://api.github.com"


def _env_int(key: str, default: int) -> int:
    return int(os.environ.get(key, default))


def _env_float(key: str, default: float) -> float:
    return float(os.environ.get(key, default))


@dataclass(frozen=True)
class CollectionOptions:
    """Per-entity item limits, pagination, concurrency and retry settings.

    A limit of 0 disables collection of that entity type.
    """

    issue_limit: int = 300
    pull_request_limit: int = 300
    commit_limit: int = 500
    release_limit: int = 50
    contributor_limit: int = 100
    per_page: int = 100
    max_concurrency: int = 5
    max_attempts: int = 3
    backoff_base: float = 1.0
    max_wait: float = 300.0  # seconds; longer rate-limit waits escalate
    call_timeout: float = 30.0
    window_days: int = 30
    compare_previous_window: bool = True

    def __post_init__(self) -> None:
        for name in (
            "issue_limit",
            "pull_request_limit",
            "commit_limit",
            "release_limit",
            "contributor_limit",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        if self.per_page < 1 or self.per_page > 100:
            raise ValueError("per_page must be between 1 and 100")
        if self.max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.window_days < 1:
            raise ValueError("window_days must be >= 1")
        if self.call_timeout <= 0:
            raise ValueError("call_timeout must be > 0")

    @property
    def entity_limits(self) -> dict[str, int]:
        return {
            "issues": self.issue_limit,
            "pull_requests": self.pull_request_limit,
            "commits": self.commit_limit,
            "releases": self.release_limit,
            "contributors": self.contributor_limit,
        }

    @classmethod
    def from_env(cls) -> CollectionOptions:
        return cls(
            issue_limit=_env_int("PROJECTFACTS_ISSUE_LIMIT", cls.issue_limit),
            pull_request_limit=_env_int("PROJECTFACTS_PULL_REQUEST_LIMIT", cls.pull_request_limit),
            commit_limit=_env_int("PROJECTFACTS_COMMIT_LIMIT", cls.commit_limit),
            release_limit=_env_int("PROJECTFACTS_RELEASE_LIMIT", cls.release_limit),
            contributor_limit=_env_int("PROJECTFACTS_CONTRIBUTOR_LIMIT", cls.contributor_limit),
            per_page=_env_int("PROJECTFACTS_PER_PAGE", cls.per_page),
            max_concurrency=_env_int("PROJECTFACTS_MAX_CONCURRENCY", cls.max_concurrency),
            max_attempts=_env_int("PROJECTFACTS_MAX_ATTEMPTS", cls.max_attempts),
            backoff_base=_env_float("PROJECTFACTS_BACKOFF_BASE", cls.backoff_base),
            max_wait=_env_float("PROJECTFACTS_MAX_WAIT", cls.max_wait),
            call_timeout=_env_float("PROJECTFACTS_CALL_TIMEOUT", cls.call_timeout),
            window_days=_env_int("PROJECTFACTS_WINDOW_DAYS", cls.window_days),
            compare_previous_window=os.environ.get(
                "PROJECTFACTS_COMPARE_PREVIOUS", "1"
            ).lower() not in ("0", "false", "no"),
        )


def api_url() -> str:
    return os.environ.get("PROJECTFACTS_GITHUB_API_URL", DEFAULT_API_URL)
