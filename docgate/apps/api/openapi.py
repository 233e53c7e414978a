from __future__ import annotations

from typing import Any

from docgate.apps.api.response import ErrorEnvelope


def _error_example(*, code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    # Build a consistent error envelope example for OpenAPI docs.
    payload: dict[str, Any] = {
        "error": {"code": code, "message": message},
        "meta": {"request_id": "req_example", "api_version": "v1"},
    }
    if details:
        payload["error"]["details"] = details
    return payload


def _response(description: str, code: str, message: str, details: dict[str, Any] | None = None) -> dict[str, Any]:
    return {
        "model": ErrorEnvelope,
        "description": description,
        "content": {
            "application/json": {
                "example": _error_example(code=code, message=message, details=details),
            }
        },
    }


DEFAULT_ERROR_RESPONSES: dict[int | str, dict[str, Any]] = {
    401: _response("Unauthorized", "AUTH_UNAUTHORIZED", "Authentication required"),
    402: _response(
        "Quota exceeded",
        "QUOTA_EXCEEDED",
        "Document limit reached for your plan",
        {"plan_tier": "free", "limit": 1, "current_count": 1},
    ),
    403: _response("Forbidden", "PERMISSION_DENIED", "Super admin role required"),
    404: _response("Not found", "NOT_FOUND", "Document not found"),
    409: _response("Conflict", "CONCURRENCY_CONFLICT", "Owner is busy with another document change; retry"),
    422: _response("Validation error", "VALIDATION_ERROR", "Slug already in use", {"slug": "handbook"}),
    502: _response("Retrieval failure", "RETRIEVAL_ERROR", "hybrid search query failed"),
}
