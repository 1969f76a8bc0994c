"""
Lifeplanner repeat service - Main Application Entry Point

Generates task instances from repeating tasks, hourly and on demand.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lifeplanner.core.config import get_settings
from lifeplanner.core.logger import logger


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    settings = get_settings()
    logger.info(f"Starting lifeplanner repeat service in {settings.ENVIRONMENT} mode...")

    if settings.is_local:
        from lifeplanner.infrastructure.local.database import init_db

        await init_db()

    from lifeplanner.api.deps import get_repeat_scheduler

    scheduler = get_repeat_scheduler()
    if settings.is_test or not settings.REPEAT_SCHEDULER_ENABLED:
        logger.info("Repeat scheduler disabled")
    else:
        await scheduler.start()

    yield

    # Shutdown
    logger.info("Shutting down lifeplanner repeat service...")
    await scheduler.stop()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Lifeplanner Repeat Service",
        description="Recurring task generation for the lifeplanner productivity app",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    from lifeplanner.api import repeats

    app.include_router(repeats.router, prefix="/api/repeats", tags=["repeats"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "environment": settings.ENVIRONMENT,
            "version": "0.1.0",
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
