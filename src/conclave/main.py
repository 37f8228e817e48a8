"""Main entry point for the Conclave application."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from conclave.api.v1 import (
    conversations_router,
    invites_router,
    keys_router,
    messages_router,
    participants_router,
)
from conclave.core.errors import register_exception_handlers
from conclave.core.logging import configure_logging
from conclave.core.settings import Settings
from conclave.db.session import Database
from conclave.services.events import EventPublisher, LoggingEventPublisher
from conclave.services.identity import IdentityVerifier, build_identity_verifier

DESCRIPTION = "End-to-end encrypted conversation backend"


def create_app(
    settings: Settings | None = None,
    *,
    identity_verifier: IdentityVerifier | None = None,
    event_publisher: EventPublisher | None = None,
) -> FastAPI:
    """Build the application with its database, verifier and event publisher.

    Everything stateful hangs off ``app.state`` so several apps (one per test,
    say) can coexist in a process.
    """
    settings = settings or Settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title=f"{settings.app_name} API",
        description=DESCRIPTION,
        version=settings.app_version,
    )
    app.state.settings = settings
    app.state.database = Database.from_settings(settings)
    app.state.identity_verifier = identity_verifier or build_identity_verifier(settings)
    app.state.event_publisher = event_publisher or LoggingEventPublisher()

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    # Add GZip middleware for compression
    app.add_middleware(GZipMiddleware)

    register_exception_handlers(app)

    # Include API routers
    app.include_router(conversations_router, prefix="/api/v1")
    app.include_router(participants_router, prefix="/api/v1")
    app.include_router(messages_router, prefix="/api/v1")
    app.include_router(invites_router, prefix="/api/v1")
    app.include_router(keys_router, prefix="/api/v1")

    @app.on_event("startup")
    async def on_startup() -> None:
        if settings.auto_create_tables:
            app.state.database.create_tables()

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        await app.state.identity_verifier.close()
        app.state.database.dispose()

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        """Health check endpoint to verify the service is running."""
        return {"status": "ok"}

    @app.get("/")
    async def root() -> dict[str, str]:
        """Root endpoint with basic information about the API."""
        return {
            "name": f"{settings.app_name} API",
            "version": settings.app_version,
            "description": DESCRIPTION,
            "docs": "/docs",
            "redoc": "/redoc",
        }

    return app


if __name__ == "__main__":
    import uvicorn

    _settings = Settings()
    uvicorn.run(
        "conclave.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
        reload=_settings.debug,
    )
