"""GitHub reference parsing utilities."""

from __future__ import annotations

import re

_PROJECT_URL_RE = re.compile(
    r"^https://github\.com/(?:orgs|users)/(?P<owner>[^/]+)/projects/(?P<number>\d+)/?(?:[?#].*)?$"
)


def parse_repo_url(repo_url: str) -> tuple[str, str]:
    """Extract (owner, repo) from a GitHub URL.

    Raises ValueError if the URL cannot be parsed.
    """
    result = _extract_owner_repo(repo_url)
    if result is None:
        raise ValueError(f"cannot parse GitHub repo URL: {repo_url!r}")
    owner, repo = result.split("/", 1)
    return owner, repo


def parse_project_url(url: str) -> tuple[str, int]:
    """Extract (owner, project number) from a Projects v2 URL.

    Accepts ``https://github.com/orgs/ORG/projects/N`` and
    ``https://github.com/users/USER/projects/N``.
    """
    match = _PROJECT_URL_RE.match(url.strip())
    if match is None:
        raise ValueError(f"cannot parse GitHub project URL: {url!r}")
    return match.group("owner"), int(match.group("number"))


def split_full_name(full_name: str) -> tuple[str, str]:
    """Split ``owner/name`` into its parts."""
    owner, sep, name = full_name.partition("/")
    if not sep or not owner or not name or "/" in name:
        raise ValueError(f"expected 'owner/name', got {full_name!r}")
    return owner, name


def _extract_owner_repo(repo_url: str) -> str | None:
    """Extract 'owner/repo' from a GitHub URL.

    Handles:
      - https://github.com/owner/repo
      - https://github.com/owner/repo.git
      - git@github.com:owner/repo.git
    """
    repo_url = repo_url.strip().rstrip("/")
    if repo_url.endswith(".git"):
        repo_url = repo_url[:-4]

    # SSH format: git@github.com:owner/repo
    if repo_url.startswith("git@"):
        colon_idx = repo_url.find(":")
        if colon_idx == -1:
            return None
        path = repo_url[colon_idx + 1 :]
        parts = path.split("/")
        if len(parts) == 2 and all(parts):
            return f"{parts[0]}/{parts[1]}"
        return None

    if "github.com/" not in repo_url:
        return None
    parts = repo_url.split("github.com/", 1)[1].split("/")
    if len(parts) >= 2 and parts[0] and parts[1]:
        return f"{parts[0]}/{parts[1]}"
    return None
