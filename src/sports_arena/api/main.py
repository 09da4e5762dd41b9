import logging
from typing import Optional
from fastapi import FastAPI, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sports_arena import __version__
from sports_arena.api.auth.routes import router as auth_router
from sports_arena.api.competitions.routes import router as competitions_router
from sports_arena.api.participations.routes import router as participations_router
from sports_arena.api.teams.routes import router as teams_router, players_router
from sports_arena.api.notifications.routes import router as notifications_router
from sports_arena.api.deps import close_redis_client, get_notifier, require_admin
from sports_arena.api.middleware import (
    LoggingMiddleware,
    SecurityHeadersMiddleware,
    AdvancedRateLimitMiddleware
)
from sports_arena.competition import StatusSweepScheduler
from sports_arena.config import config
from sports_arena.db import close_database, get_database, validate_database_startup
from sports_arena.errors import ArenaError
from sports_arena.monitoring import PerformanceMonitor

logger = logging.getLogger(__name__)

# Configure CORS based on environment
if config.is_production:
    allowed_origins = [
        "https://sports-arena.app",
        "https://www.sports-arena.app",
        "https://api.sports-arena.app"
    ]
else:
    allowed_origins = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://arena-frontend:3000"
    ]


async def arena_error_handler(request: Request, exc: ArenaError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"error": "Storage temporarily unavailable"})


def create_app(rate_limit: Optional[bool] = None, monitor: Optional[PerformanceMonitor] = None) -> FastAPI:
    """
    Build the API application.

    Args:
        rate_limit: Enable per-client rate limiting (defaults to RATE_LIMIT_ENABLED)
        monitor: Performance monitor fed by the request middleware
    """
    app = FastAPI(
        title="Sports Arena API",
        description="Sports competition organization platform",
        version=__version__,
        docs_url="/api/docs" if not config.is_production else None,
        redoc_url="/api/redoc" if not config.is_production else None,
        openapi_url="/openapi.json" if not config.is_production else None
    )
    app.state.monitor = monitor or PerformanceMonitor(history_size=config.metrics_history_size)
    app.state.scheduler = None

    app.add_exception_handler(ArenaError, arena_error_handler)
    app.add_exception_handler(SQLAlchemyError, database_error_handler)

    # Security middleware (order matters - first to execute)
    app.add_middleware(SecurityHeadersMiddleware)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "X-Requested-With"
        ],
    )

    # Rate limiting and logging
    if rate_limit is None:
        rate_limit = config.rate_limit_enabled
    if rate_limit:
        app.add_middleware(AdvancedRateLimitMiddleware, default_calls=100, default_period=60)
    app.add_middleware(LoggingMiddleware, monitor=app.state.monitor)

    # Include routers
    app.include_router(auth_router, prefix="/api/v1/auth", tags=["Authentication"])
    app.include_router(competitions_router, prefix="/api/v1/competitions", tags=["Competitions"])
    app.include_router(participations_router, prefix="/api/v1/participations", tags=["Participations"])
    app.include_router(teams_router, prefix="/api/v1/teams", tags=["Teams"])
    app.include_router(players_router, prefix="/api/v1/players", tags=["Teams"])
    app.include_router(notifications_router, prefix="/api/v1/notifications", tags=["Notifications"])

    @app.on_event("startup")
    async def startup_event():
        """Validate database connection on startup."""
        is_valid = await validate_database_startup()
        if not is_valid:
            raise RuntimeError("Database validation failed on startup")
        logger.info("Database validation passed on startup")

        if config.status_sweep_enabled:
            app.state.scheduler = StatusSweepScheduler(
                await get_database(),
                notifier=await get_notifier(),
                monitor=app.state.monitor,
            )
            await app.state.scheduler.start()

    @app.on_event("shutdown")
    async def shutdown_event():
        if app.state.scheduler is not None:
            await app.state.scheduler.stop()
        await close_redis_client()
        await close_database()

    @app.get("/")
    async def root():
        return {"message": "Sports Arena API", "version": __version__}

    @app.get("/health")
    async def health_check():
        database = await (await get_database()).health_check()
        return JSONResponse(
            status_code=200 if database["status"] == "healthy" else 503,
            content={"status": database["status"], "service": "sports-arena-api", "database": database},
        )

    @app.get("/api/v1/admin/metrics", tags=["Admin"])
    async def get_metrics(request: Request, actor=Depends(require_admin)):
        """Request timings per route, from the bounded in-memory history"""
        return request.app.state.monitor.metrics()

    return app


app = create_app()


def main():
    import uvicorn

    logging.basicConfig(
        level=config.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
