from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .credentials import CredentialStore
from .crypto import FieldCipher
from .errors import InternalError, TaskVaultError
from .gate import AccessGateMiddleware
from .logging_setup import setup_logging
from .repositories import TaskRepository, build_stores
from .routers import auth as auth_router
from .routers import tasks as tasks_router
from .settings import Settings, get_settings
from .tokens import TokenService
from .utils import field_errors

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {"name": "auth", "description": "Registration, login and cookie-based sessions."},
    {
        "name": "tasks",
        "description": "Owner-scoped CRUD for tasks with filtering, search and pagination.",
    },
]


# PUBLIC_INTERFACE
def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Storage, cipher and token service are created exactly once here and kept
    on ``app.state`` for the life of the process. A malformed AES key fails
    here, at startup, rather than on the first request.
    """
    settings = settings or get_settings()

    cipher = FieldCipher(settings.aes_secret_key)
    tokens = TokenService(settings.jwt_secret)
    user_store, task_store = build_stores(settings)

    app = FastAPI(
        title="TaskVault",
        description="Multi-user task tracker with cookie sessions and encrypted task descriptions.",
        version="0.1.0",
        openapi_tags=openapi_tags,
    )
    app.state.settings = settings
    app.state.tokens = tokens
    app.state.user_store = user_store
    app.state.task_store = task_store
    app.state.credentials = CredentialStore(user_store, rounds=settings.bcrypt_rounds)
    app.state.tasks = TaskRepository(task_store, cipher)

    app.add_middleware(AccessGateMiddleware, tokens=tokens)

    # Configure CORS based on settings (.env -> CORS_ALLOW_ORIGINS), with '*' fallback
    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)

    # PUBLIC_INTERFACE
    @app.get("/health", summary="Health Check", tags=["health"])
    def health_check() -> JSONResponse:
        """
        Health check endpoint. Reports 503 when the storage backend is unreachable.
        """
        try:
            user_store.ping()
            task_store.ping()
        except Exception:
            logger.exception("Health check failed: storage unreachable")
            return JSONResponse(
                status_code=503,
                content={"status": "unhealthy", "database": "disconnected"},
            )
        return JSONResponse(
            content={
                "status": "healthy",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "database": "connected",
                "environment": settings.environment,
                "backend": settings.persistence_backend,
            }
        )

    app.include_router(auth_router.router)
    app.include_router(tasks_router.router)
    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(TaskVaultError)
    async def taskvault_error_handler(request: Request, exc: TaskVaultError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Request %s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Return a consistent JSON structure for request validation errors.

        Response format:
            {
                "error": "ValidationError",
                "message": "Request validation failed",
                "details": {"<field>": ["<message>", ...]}
            }
        """
        return JSONResponse(
            status_code=400,
            content={
                "error": "ValidationError",
                "message": "Request validation failed",
                "details": field_errors(exc.errors()),
            },
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        err = InternalError()
        return JSONResponse(status_code=err.status_code, content=err.to_dict())


def _build_default_app() -> FastAPI:
    settings = get_settings()
    setup_logging(settings.log_level)
    return create_app(settings)


app = _build_default_app()
