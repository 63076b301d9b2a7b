"""
FastAPI application for quizpulse.

Provides REST API for:
- Quiz attempts (answer-by-answer and bulk submission)
- Attempt history, abandon and delete
- Dashboard (performance history, topic insights, badges)
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from config import Settings, get_settings
from quizpulse import __version__
from quizpulse.api.routers import attempt_router, dashboard_router
from quizpulse.db.database import check_database_health, init_db
from quizpulse.insights.worker import InsightWorkerPool
from quizpulse.logging_setup import configure_logging
from quizpulse.services import Services, build_services


def create_app(services: Services | None = None, settings: Settings | None = None) -> FastAPI:
    """
    Build the application.

    Args:
        services: Pre-wired services (tests); built from settings at startup if None
        settings: Settings override (default: environment)
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        if services is None:
            configure_logging(settings)
            app.state.services = build_services(settings)
        else:
            app.state.services = services
        logger.info("Starting quizpulse service...")
        init_db(app.state.services.engine)
        app.state.services.start()
        logger.info(f"Service started on {settings.api_host}:{settings.api_port}")

        yield

        # Shutdown
        logger.info("Shutting down quizpulse service...")
        app.state.services.stop()

    app = FastAPI(
        title="quizpulse",
        description="Quiz attempt scoring and topic proficiency insights.",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Restrict in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["Health"])
    def health_check(request: Request) -> dict[str, Any]:
        """Database connectivity and insight worker status."""
        current = request.app.state.services
        db_status, db_error = check_database_health(current.engine)

        result: dict[str, Any] = {
            "status": "healthy" if db_status == "ok" else "unhealthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "components": {"database": db_status},
        }
        if isinstance(current.scheduler, InsightWorkerPool):
            status = current.scheduler.status
            result["components"]["insight_workers"] = {
                "running": status.is_running,
                "succeeded": status.succeeded,
                "failed": status.failed,
                "dropped": status.dropped,
            }
        if db_error:
            result["errors"] = {"database": db_error}
        return result

    app.include_router(attempt_router.router, prefix="/attempts", tags=["Attempts"])
    app.include_router(dashboard_router.router, prefix="/dashboard", tags=["Dashboard"])
    return app


app = create_app()
