"""Credential and local-context seams.

Acquiring and validating credentials happens outside this package; the
orchestrator only asks a provider for an already-valid token.
"""

from __future__ import annotations

import os
from typing import Protocol, runtime_checkable


@runtime_checkable
class AuthProvider(Protocol):
    """Supplies an already-validated API token."""

    def get_token(self) -> str: ...


@runtime_checkable
class LocalContext(Protocol):
    """Supplies the git remote URL of the working copy, if there is one."""

    def remote_url(self) -> str | None: ...


class EnvTokenProvider:
    """Reads the token from ``GITHUB_TOKEN``."""

    def __init__(self, variable: str = "GITHUB_TOKEN") -> None:
        self._variable = variable

    def get_token(self) -> str:
        token = os.environ.get(self._variable, "")
        if not token:
            raise LookupError(f"{self._variable} is not set")
        return token


class StaticLocalContext:
    """LocalContext backed by a fixed remote URL."""

    def __init__(self, url: str | None) -> None:
        self._url = url

    def remote_url(self) -> str | None:
        return self._url
