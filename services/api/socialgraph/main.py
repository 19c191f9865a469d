"""
Social Graph API — entry point.

Startup sequence:
  1. Configure logging and OTel tracing (→ Jaeger via OTLP)
  2. Build the DB engine and session factory (MySQL in production)
  3. Create tables if not present
  4. Install the per-request dependency context
  5. Expose Prometheus /metrics endpoint
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from prometheus_client import make_asgi_app

from socialgraph.config import Settings, settings as default_settings
from socialgraph.database import build_engine, build_session_factory, init_db
from socialgraph.dependencies import (
    DependencyContextMiddleware,
    RepositoriesProvider,
    sql_repositories,
)
from socialgraph.errors import register_exception_handlers
from socialgraph.routers import login, posts, users
from socialgraph.telemetry import instrument_app, setup_tracing
from socialgraph.tokens import TokenService

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    provider: Optional[RepositoriesProvider] = None,
) -> FastAPI:
    """
    Build the application.

    With no `provider`, repositories are backed by the SQL store described by
    `settings`; tests pass an in-memory provider instead.
    """
    settings = settings or default_settings
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
    )

    if settings.tracing_enabled:
        setup_tracing(settings)

    engine = None
    if provider is None:
        engine = build_engine(settings)
        provider = sql_repositories(build_session_factory(engine))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage startup and shutdown of the store connection pool."""
        logger.info("Starting Social Graph API (env=%s)", settings.environment)
        if engine is not None:
            await init_db(engine)
        logger.info("API ready.")
        yield

        logger.info("Shutting down...")
        if engine is not None:
            await engine.dispose()

    app = FastAPI(
        title="Social Graph API",
        description="Users, posts, follows and likes behind bearer-token authentication.",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.token_service = TokenService(settings.secret_key, settings.token_ttl_seconds)

    register_exception_handlers(app)
    app.add_middleware(DependencyContextMiddleware, provider=provider)

    # ── Routers ────────────────────────────────────────────────────────────
    app.include_router(login.router, prefix="/login", tags=["Auth"])
    app.include_router(users.router, prefix="/users", tags=["Users"])
    app.include_router(posts.router, prefix="/posts", tags=["Posts"])

    # ── Prometheus metrics endpoint ────────────────────────────────────────
    app.mount("/metrics", make_asgi_app())

    if settings.tracing_enabled:
        instrument_app(app)

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok", "service": settings.service_name}

    return app


app = create_app()
