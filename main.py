"""
main.py
-------
FastAPI application factory and entry point.

Application lifecycle:
  1. create_application() builds the Database, the password hasher and the
     app, and stores them on app.state (no module-level engine).
  2. lifespan runs on startup / shutdown: logging, schema creation,
     bootstrap admin, engine disposal.
  3. Routers are registered.
  4. Exception handlers map the domain error taxonomy to status codes.

Run with:
    uvicorn main:app --reload              # development
    uvicorn main:app --workers 4           # production (no --reload)
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from chatserver.api.routes import admin, auth, messages, users
from chatserver.core.config import Settings, settings as default_settings
from chatserver.core.exceptions import ChatServerError
from chatserver.core.logging import configure_logging, get_logger
from chatserver.core.security import PasswordHasher
from chatserver.db.session import Database
from chatserver.services.credential_store import CredentialStore

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Startup / shutdown lifecycle hook.

    Startup:
      - Configure structured logging
      - Create missing tables (CREATE_TABLES_ON_STARTUP)
      - Provision ADMIN_USERNAME if it does not exist yet

    Shutdown:
      - Dispose the async engine (graceful connection pool drain)
    """
    settings: Settings = app.state.settings
    database: Database = app.state.database

    configure_logging(settings)
    logger.info(
        "Starting up",
        app=settings.APP_NAME,
        env=settings.APP_ENV,
        debug=settings.DEBUG,
    )

    if settings.CREATE_TABLES_ON_STARTUP:
        await database.create_all()

    if settings.ADMIN_USERNAME and settings.ADMIN_PASSWORD:
        store = CredentialStore(database, app.state.password_hasher)
        created = await store.ensure_admin(
            settings.ADMIN_USERNAME, settings.ADMIN_PASSWORD, settings.ADMIN_EMAIL
        )
        if created:
            logger.info("Bootstrap admin created", username=settings.ADMIN_USERNAME)

    yield
    logger.info("Shutting down, disposing DB engine")
    await database.dispose()


def create_application(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Multi-channel chat backend with HTTP Basic auth and a "
            "timestamp-watermark polling protocol."
        ),
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.database = Database(settings)
    app.state.password_hasher = PasswordHasher(settings.PASSWORD_HASH_ROUNDS)

    # ── CORS ─────────────────────────────────────────────────────────────────
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Last-Modified"],
    )

    # ── Routers ───────────────────────────────────────────────────────────────
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(messages.router)
    app.include_router(admin.router)

    # ── Exception Handlers ────────────────────────────────────────────────────

    @app.exception_handler(ChatServerError)
    async def chat_server_error_handler(
        request: Request, exc: ChatServerError
    ) -> JSONResponse:
        logger.info(
            "Request refused",
            path=request.url.path,
            method=request.method,
            code=exc.code,
            **exc.details,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.message, "code": exc.code},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    # ── Health Check ──────────────────────────────────────────────────────────

    @app.get("/health", tags=["Health"], summary="Service health check")
    async def health() -> dict:
        return {"status": "ok", "app": settings.APP_NAME, "env": settings.APP_ENV}

    return app


app = create_application()
