from __future__ import annotations

from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from docgate.apps.api.errors import (
    docgate_error_handler,
    http_exception_handler,
    starlette_http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from docgate.apps.api.response import API_VERSION
from docgate.apps.api.routes.access import router as access_router
from docgate.apps.api.routes.categories import router as categories_router
from docgate.apps.api.routes.documents import router as documents_router
from docgate.apps.api.routes.health import router as health_router
from docgate.apps.api.routes.invitations import router as invitations_router
from docgate.apps.api.routes.owners import router as owners_router
from docgate.apps.api.routes.roles import router as roles_router
from docgate.apps.api.routes.search import router as search_router
from docgate.core.config import get_settings
from docgate.core.errors import DocgateError
from docgate.core.logging import configure_logging


def create_app() -> FastAPI:
    configure_logging()
    settings = get_settings()
    app = FastAPI(title="Docgate API", version=API_VERSION)
    app.state.app_name = settings.app_name

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):  # type: ignore[override]
        # Preserve incoming request IDs or assign a new one for traceability.
        request_id = request.headers.get("X-Request-Id") or str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers.setdefault("X-Request-Id", request_id)
        return response

    @app.exception_handler(DocgateError)
    async def _docgate_error_handler(request: Request, exc: DocgateError):
        return await docgate_error_handler(request, exc)

    @app.exception_handler(StarletteHTTPException)
    async def _starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
        return await starlette_http_exception_handler(request, exc)

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(request: Request, exc: Exception):
        return await unhandled_exception_handler(request, exc)

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(request: Request, exc: RequestValidationError):
        return await validation_exception_handler(request, exc)

    @app.exception_handler(HTTPException)
    async def _http_exception_handler(request: Request, exc: HTTPException):
        return await http_exception_handler(request, exc)

    # Mount versioned v1 API routes.
    app.include_router(health_router, prefix=f"/{API_VERSION}")
    app.include_router(access_router, prefix=f"/{API_VERSION}")
    app.include_router(roles_router, prefix=f"/{API_VERSION}")
    app.include_router(invitations_router, prefix=f"/{API_VERSION}")
    app.include_router(owners_router, prefix=f"/{API_VERSION}")
    app.include_router(documents_router, prefix=f"/{API_VERSION}")
    app.include_router(categories_router, prefix=f"/{API_VERSION}")
    app.include_router(search_router, prefix=f"/{API_VERSION}")
    return app


app = create_app()
