from __future__ import annotations

import pytest

from docgate.apps.api.errors import status_for
from docgate.core.errors import (
    ConcurrencyConflictError,
    DocgateError,
    NotFoundError,
    PermissionDeniedError,
    QuotaExceededError,
    RetrievalError,
    ValidationError,
)


@pytest.mark.parametrize(
    ("error", "status_code"),
    [
        (NotFoundError("missing"), 404),
        (ValidationError("bad"), 422),
        (PermissionDeniedError("no"), 403),
        (QuotaExceededError(plan_tier="free", limit=1, current_count=1), 402),
        (ConcurrencyConflictError("busy"), 409),
        (RetrievalError("down"), 502),
        (DocgateError("other"), 500),
    ],
)
def test_status_for_domain_errors(error: DocgateError, status_code: int) -> None:
    assert status_for(error) == status_code


def test_quota_error_carries_ceiling_and_count() -> None:
    error = QuotaExceededError(plan_tier="enterprise", limit=10, current_count=10)
    assert error.code == "QUOTA_EXCEEDED"
    assert error.message == "Document limit reached for your plan"
    assert error.details == {"plan_tier": "enterprise", "limit": 10, "current_count": 10}
