"""
main.py — FastAPI Application Entrypoint

Purpose:
- Initialize application services (logging, config, storage backend).
- Register API routers under /api/v1.
- Render every error as {success: false, error: {code, message}}.
- Record requests made with an API key in API_Logs.
- Define root-level health/status endpoints.
- Provide `app` object used by ASGI server (uvicorn).

This file should stay clean: no business logic here.
"""

import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from orgadmin.api.v1 import api_keys, auth, branches, companies, departments, divisions, organization
from orgadmin.core.config import settings
from orgadmin.core.database import (
    DATABASE_CONNECTED,
    DATABASE_DISABLED,
    DATABASE_UNAVAILABLE,
    create_executor,
    init_executor,
)
from orgadmin.core.exceptions import (
    DialectTranslationError,
    DuplicateRecordError,
    HierarchyError,
    OrgAdminError,
    RecordNotFoundError,
)
from orgadmin.core.logging import configure_logging, get_logger
from orgadmin.db.executor import QueryExecutor
from orgadmin.repositories.api_logs import ApiLogRepository

logger = get_logger(__name__)

ERROR_STATUS = {
    RecordNotFoundError: status.HTTP_404_NOT_FOUND,
    DuplicateRecordError: status.HTTP_409_CONFLICT,
    HierarchyError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    DialectTranslationError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    503: "SERVICE_UNAVAILABLE",
}


def error_response(status_code: int, code: str, message: str, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": {"code": code, "message": message}},
        headers=headers,
    )


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None

# -----------------------------------------------------------------------------
# App Factory
# -----------------------------------------------------------------------------

def create_app(executor: Optional[QueryExecutor] = None) -> FastAPI:
    """
    Build the application.

    An injected executor (tests, scripts) is initialized immediately and
    left open; otherwise one is built from settings at start-up and
    disposed at shutdown.
    """
    configure_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if getattr(app.state, "executor", None) is None:
            owned = create_executor(settings)
            app.state.executor = owned
            app.state.database_status = await run_in_threadpool(init_executor, owned)
        yield
        if owned is not None:
            owned.close()
            logger.info("Database connections closed")

    app = FastAPI(
        title=settings.APP_NAME,
        description="Organization structure administration API (companies, branches, divisions, departments)",
        version="1.0.0",
        lifespan=lifespan,
    )

    if executor is not None:
        app.state.executor = executor
        app.state.database_status = init_executor(executor)

    # -------------------------------------------------------------------------
    # CORS
    # -------------------------------------------------------------------------

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -------------------------------------------------------------------------
    # Error Handlers
    # -------------------------------------------------------------------------

    @app.exception_handler(OrgAdminError)
    async def handle_domain_error(request: Request, exc: OrgAdminError):
        status_code = next(
            (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
        if status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return error_response(status_code, exc.code, str(exc))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException):
        if isinstance(exc.detail, dict):
            code = exc.detail.get("code", HTTP_ERROR_CODES.get(exc.status_code, "ERROR"))
            message = exc.detail.get("message", "")
        else:
            code = HTTP_ERROR_CODES.get(exc.status_code, "ERROR")
            message = str(exc.detail)
        return error_response(exc.status_code, code, message, headers=getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err.get('loc', ()))}: {err.get('msg')}" for err in exc.errors()
        )
        return error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, "VALIDATION_ERROR", problems)

    # -------------------------------------------------------------------------
    # API Usage Log
    # -------------------------------------------------------------------------

    @app.middleware("http")
    async def api_log_middleware(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)

        api_key_id = getattr(request.state, "api_key_id", None)
        target = getattr(request.app.state, "executor", None)
        if api_key_id and settings.API_LOG_ENABLED and target is not None:
            await run_in_threadpool(
                ApiLogRepository(target).log_request,
                api_key_id=api_key_id,
                endpoint=request.url.path,
                method=request.method,
                ip_address=_client_ip(request),
                user_agent=request.headers.get("user-agent"),
                response_status=response.status_code,
                response_time_ms=int((time.perf_counter() - started) * 1000),
            )
        return response

    # -------------------------------------------------------------------------
    # Router Registration
    # -------------------------------------------------------------------------

    for module in (companies, branches, divisions, departments, organization, auth, api_keys):
        app.include_router(module.router, prefix="/api/v1")

    # -------------------------------------------------------------------------
    # Health Check
    # -------------------------------------------------------------------------

    @app.get("/")
    def root():
        return {"status": "ok", "message": f"{settings.APP_NAME} running"}

    @app.get("/health")
    def health(request: Request):
        current = getattr(request.app.state, "executor", None)
        if current is None:
            database = DATABASE_UNAVAILABLE
        elif not current.enabled:
            database = DATABASE_DISABLED
        else:
            try:
                current.ping()
                database = DATABASE_CONNECTED
            except Exception:
                logger.warning("Health check ping failed", exc_info=True)
                database = DATABASE_UNAVAILABLE
        return {
            "status": "ok" if database != DATABASE_UNAVAILABLE else "degraded",
            "app": settings.APP_NAME,
            "backend": current.backend_name if current is not None else None,
            "database": database,
        }

    return app


app = create_app()
