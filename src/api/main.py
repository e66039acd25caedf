"""
FastAPI application factory and configuration.

This module creates the FastAPI application instance, wires the storage
backend selected by settings.storage_backend and includes the v1 routes.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from psycopg_pool import ConnectionPool

from src.adapters.repository.memory import InMemoryRepository
from src.adapters.repository.postgres import run_migrations
from src.api.v1 import router as v1_router
from src.config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

# OpenAPI tags for documentation grouping
tags_metadata = [
    {
        "name": "v1",
        "description": "Club Registration API v1 - Preview fees, register members and "
        "decide pending registrations",
    },
]


def _open_pool(settings: Settings) -> ConnectionPool:
    """Create the connection pool and bring the schema up to date."""
    logger.info("Connecting to database...")
    pool = ConnectionPool(
        conninfo=settings.database_url,
        min_size=settings.pool_min_size,
        max_size=settings.pool_max_size,
        timeout=settings.pool_timeout_seconds,
    )

    logger.info("Running database migrations...")
    run_migrations(pool)
    return pool


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    FastAPI lifespan context manager.

    postgres backend: opens the pool, runs migrations, closes the pool on
    shutdown. memory backend: creates one process-wide InMemoryRepository
    shared by every request.
    """
    settings = get_settings()
    logger.info("Starting application with %s storage...", settings.storage_backend)

    pool: ConnectionPool | None = None
    if settings.storage_backend == "memory":
        app.state.repository = InMemoryRepository()
    else:
        pool = _open_pool(settings)
        app.state.pool = pool

    logger.info("Application startup complete")

    yield

    logger.info("Shutting down application...")
    if pool is not None:
        pool.close()
        logger.info("Database connection pool closed")


app = FastAPI(
    title="clubreg",
    description="Club Registration API - Hierarchical fee computation, eligibility "
    "and registration workflow for hockey clubs and associations",
    version="0.1.0",
    openapi_tags=tags_metadata,
    lifespan=lifespan,
)

app.include_router(v1_router, prefix="/v1")


@app.get("/health")
async def health_check(request: Request) -> dict[str, str]:
    """
    Health check endpoint.

    With the postgres backend the database is queried; a connection
    failure propagates as a server error.
    """
    pool = getattr(request.app.state, "pool", None)
    if pool is not None:
        with pool.connection() as conn:
            conn.execute("SELECT 1")

    return {"status": "healthy"}
