"""Field readers shared by the per-entity canonicalizers.

Every reader is total: a value of the wrong type reads as absent and the
caller's default applies. Nothing here coerces (``"12"`` is not a count).
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

from projectfacts.engines.canonicalizer.models import EntityType, SourceShape
from projectfacts.exceptions import PayloadValidationError

UNKNOWN = "unknown"
UNKNOWN_REPOSITORY = "unknown/unknown"


def ensure_object(data: Any, entity: EntityType, shape: SourceShape) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise PayloadValidationError(entity.value, shape.value)
    return data


def require(entity: EntityType, shape: SourceShape, **identity: Any) -> None:
    """Raise if any identity value is absent; keyword names are the source field names."""
    missing = [name for name, value in identity.items() if value is None]
    if missing:
        raise PayloadValidationError(entity.value, shape.value, missing)


def dig(data: Any, *path: str) -> Any:
    """Walk nested mappings; ``None`` as soon as a level is missing."""
    for key in path:
        if not isinstance(data, Mapping):
            return None
        data = data.get(key)
    return data


def text(value: Any, default: str) -> str:
    return value if isinstance(value, str) and value else default


def opt_text(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def identifier(value: Any) -> str | None:
    """Non-empty string identity (sha, login, node id, tag)."""
    return opt_text(value)


def number(value: Any) -> int | None:
    """Positive integer identity (issue and pull request numbers)."""
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        return None
    return value


def opt_count(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        return None
    return value


def count(value: Any, default: int = 0) -> int:
    result = opt_count(value)
    return default if result is None else result


def total_count(value: Any) -> int | None:
    """Read a count that is either a bare int, a ``{totalCount}`` connection or a list."""
    if isinstance(value, list):
        return len(value)
    if isinstance(value, Mapping):
        return opt_count(value.get("totalCount"))
    return opt_count(value)


def flag(value: Any) -> bool:
    return value if isinstance(value, bool) else False


def timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 instant to an aware UTC datetime.

    Naive values are taken as UTC. Anything unparseable is absent.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def nodes(value: Any) -> list[Any]:
    """Items of a list or of a GraphQL ``{nodes: [...]}`` connection."""
    if isinstance(value, Mapping):
        value = value.get("nodes")
    return list(value) if isinstance(value, list) else []


def logins(value: Any) -> tuple[str, ...]:
    """Sorted unique logins from user objects (or bare login strings)."""
    found: set[str] = set()
    for item in nodes(value):
        login = item if isinstance(item, str) else dig(item, "login")
        if isinstance(login, str) and login:
            found.add(login)
    return tuple(sorted(found))


def names(value: Any) -> tuple[str, ...]:
    """Sorted unique names from label-like objects (or bare strings)."""
    found: set[str] = set()
    for item in nodes(value):
        name = item if isinstance(item, str) else dig(item, "name")
        if isinstance(name, str) and name:
            found.add(name)
    return tuple(sorted(found))


def closed_state(state: Any, closed: Any = None) -> str:
    """Collapse ``open``/``closed``/``merged`` in any casing to open or closed."""
    if closed is True:
        return "closed"
    if isinstance(state, str) and state.lower() in ("closed", "merged"):
        return "closed"
    return "open"


def repository_scope(scope: str | None, embedded: Any = None) -> str:
    """The owning repository: the caller's scope wins over the payload's own."""
    return scope or opt_text(embedded) or UNKNOWN_REPOSITORY


def repository_from_api_url(value: Any) -> str | None:
    """``owner/name`` from a REST ``repository_url``."""
    url = opt_text(value)
    if url is None or "/repos/" not in url:
        return None
    tail = url.split("/repos/", 1)[1].strip("/")
    parts = tail.split("/")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        return None
    return f"{parts[0]}/{parts[1]}"
