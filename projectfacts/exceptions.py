"""Exception hierarchy for projectfacts.

Three families matter to callers:

* ``ValidationError`` — bad input or an unresolvable target. Never retried.
* ``TransientError`` — timeouts, 5xx, rate limits. Retryable a bounded
  number of times (see ``RetryPolicy``).
* ``AuthorizationError`` — 401/403 that is not a rate limit. Needs
  re-authentication outside this package; never retried.

``PipelineError`` wraps whatever halted the orchestrator and carries the
recovery suggestions and diagnostic context.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from projectfacts.engines.rate_governor import QuotaSnapshot


class ProjectFactsError(Exception):
    """Base exception for all projectfacts errors."""

    retryable: bool = False
    kind: str = "error"


# ── validation ─────────────────────────────────────────────────────────────


class ValidationError(ProjectFactsError):
    """Input validation failure (payload shape, detection target)."""

    kind = "validation"


class PayloadValidationError(ValidationError):
    """Raised when a raw payload cannot be canonicalized.

    *missing_fields* is empty when the payload was not an object at all.
    """

    def __init__(self, entity: str, shape: str, missing_fields: list[str] | None = None):
        self.entity = entity
        self.shape = shape
        self.missing_fields = list(missing_fields or [])
        if self.missing_fields:
            detail = f"missing required field(s): {', '.join(self.missing_fields)}"
        else:
            detail = "payload is not an object"
        super().__init__(f"invalid {shape} {entity} payload: {detail}")


class TargetNotFoundError(ValidationError):
    """No project could be resolved from the detection target."""


class AmbiguousTargetError(ValidationError):
    """More than one project matched equally well and none was picked."""

    def __init__(self, reference: str, candidates: list[str]):
        self.reference = reference
        self.candidates = list(candidates)
        super().__init__(
            f"Ambiguous project target '{reference}' matched {len(self.candidates)} "
            f"equally recent projects: {self.candidates}"
        )


# ── source failures ────────────────────────────────────────────────────────


class TransientError(ProjectFactsError):
    """A failure that may succeed when retried."""

    retryable = True
    kind = "transient"


class RateLimitError(TransientError):
    """Raised when the API quota is exhausted; carries the computed wait.

    *quota* is the snapshot from the rejected response's headers, if any.
    """

    kind = "rate_limit"

    def __init__(
        self,
        wait_seconds: float,
        reset_at: datetime | None = None,
        quota: QuotaSnapshot | None = None,
    ) -> None:
        self.wait_seconds = max(0.0, float(wait_seconds))
        self.reset_at = reset_at
        self.quota = quota
        super().__init__(f"rate limit exceeded, retry after {self.wait_seconds:.0f}s")


class SourceTimeoutError(TransientError):
    """An external call exceeded its timeout."""

    kind = "timeout"


class ServerError(TransientError):
    """The data source answered with a 5xx status."""

    kind = "server_error"

    def __init__(self, status_code: int, url: str = "") -> None:
        self.status_code = status_code
        self.url = url
        super().__init__(f"server error {status_code} for {url}" if url else f"server error {status_code}")


class AuthorizationError(ProjectFactsError):
    """Unauthenticated or forbidden. Requires re-authentication."""

    kind = "authorization"

    def __init__(self, status_code: int, message: str = "") -> None:
        self.status_code = status_code
        super().__init__(message or f"authorization failed ({status_code})")


class NotFoundError(ProjectFactsError):
    """The requested resource does not exist or is not visible."""

    kind = "not_found"


class RequestRejectedError(ProjectFactsError):
    """A 4xx that is not an auth, not-found or rate-limit answer (400, 410, 422...)."""

    kind = "request_rejected"

    def __init__(self, status_code: int, message: str = "") -> None:
        self.status_code = status_code
        super().__init__(message or f"request rejected ({status_code})")


class MalformedResponseError(ProjectFactsError):
    """A successful response whose body is not the JSON the caller expects."""

    kind = "malformed_response"


class RetriesExhaustedError(ProjectFactsError):
    """A transient failure persisted past the retry budget."""

    kind = "retries_exhausted"

    def __init__(self, operation: str, attempts: int, last_error: BaseException) -> None:
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"{operation} failed after {attempts} attempt(s): {last_error}")


# ── pipeline ───────────────────────────────────────────────────────────────


class PipelineError(ProjectFactsError):
    """Fatal orchestrator outcome with recovery guidance.

    *recovery* must contain at least one non-empty suggestion.
    """

    kind = "pipeline"

    def __init__(
        self,
        cause: str | BaseException,
        recovery: list[str],
        context: dict[str, Any] | None = None,
    ) -> None:
        suggestions = [s for s in recovery if s and s.strip()]
        if not suggestions:
            raise ValueError("PipelineError requires at least one recovery suggestion")
        self.cause = cause
        self.recovery = suggestions
        self.context = dict(context or {})
        super().__init__(str(cause))

    def to_dict(self) -> dict[str, Any]:
        return {
            "cause": str(self.cause),
            "cause_type": type(self.cause).__name__ if isinstance(self.cause, BaseException) else None,
            "recovery": list(self.recovery),
            "context": dict(self.context),
        }
