from __future__ import annotations

from typing import Any


class DocgateError(Exception):
    """Base error for docgate."""

    code = "DOCGATE_ERROR"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(DocgateError):
    """Referenced owner, document, principal or category does not exist."""

    code = "NOT_FOUND"


class ValidationError(DocgateError):
    """Write rejected because it would violate a data invariant."""

    code = "VALIDATION_ERROR"


class PermissionDeniedError(DocgateError):
    """Principal is not allowed to perform the mutation."""

    code = "PERMISSION_DENIED"


class QuotaExceededError(DocgateError):
    """Owner plan tier does not allow another active document."""

    code = "QUOTA_EXCEEDED"

    def __init__(self, *, plan_tier: str, limit: int, current_count: int) -> None:
        super().__init__(
            "Document limit reached for your plan",
            details={"plan_tier": plan_tier, "limit": limit, "current_count": current_count},
        )
        self.plan_tier = plan_tier
        self.limit = limit
        self.current_count = current_count


class ConcurrencyConflictError(DocgateError):
    """A locked resource could not be acquired in time; callers should retry."""

    code = "CONCURRENCY_CONFLICT"


class RetrievalError(DocgateError):
    """Retrieval layer failure."""

    code = "RETRIEVAL_ERROR"
