"""Entry point for the FastAPI application."""

from __future__ import annotations

from typing import Dict, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .bootstrap import build_gateways
from .config import Settings, configure_logging
from .database import create_engine, create_session_factory, create_tables
from .pipeline import DiscoveryGateway
from .routers import discovery as discovery_router
from .schemas import Platform


def create_application(
    settings: Optional[Settings] = None,
    gateways: Optional[Dict[Platform, DiscoveryGateway]] = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Without ``gateways`` the application builds its own against the
    configured database and creates the tables on startup.
    """
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)
    app = FastAPI(title="BrandScout Partnership Discovery")

    # Enable CORS for the front-end.  In production you may restrict origins.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings

    if gateways is None:
        engine = create_engine()
        app.state.gateways = build_gateways(settings, create_session_factory(engine))

        @app.on_event("startup")
        async def on_startup() -> None:
            await create_tables(engine)

        @app.on_event("shutdown")
        async def on_shutdown() -> None:
            await engine.dispose()
    else:
        app.state.gateways = gateways

    app.include_router(discovery_router.router)

    # Health check endpoint
    @app.get("/health", tags=["Health"])
    async def health_check() -> dict[str, str]:
        """Return a simple health status.

        Does not touch the database or any upstream service.
        """
        return {"status": "ok"}

    return app


app = create_application()
