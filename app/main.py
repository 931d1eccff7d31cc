"""
FastAPI application entry point.
Configures routes, middleware, and lifecycle events.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import init_db, close_db
from app.exceptions import AppError
from app.logging_config import configure_logging
from app.redis import RedisClient
import logging

# Import routers - MUST BE AT TOP LEVEL
from app.api.activity import router as activity_router
from app.api.reframe_coach import router as reframe_coach_router
from app.api.admin.engagement import router as engagement_admin_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifecycle manager."""
    # Startup
    configure_logging()
    logging.info("Starting up ResilienceHub...")

    if settings.is_development:
        await init_db()

    # Initialize Redis
    try:
        RedisClient.get_client()
    except Exception as e:
        logging.warning(f"Failed to initialize Redis: {e}")

    yield

    # Shutdown
    await RedisClient.close()
    await close_db()
    logging.info("Shutting down...")


app = FastAPI(
    title="ResilienceHub",
    description="Client engagement and Reframe Coach practice API",
    version="1.0.0",
    lifespan=lifespan,
    debug=settings.debug,
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    logging.warning(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"status": "error", "message": exc.message},
    )


# Global Exception Handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logging.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"status": "error", "message": "Internal Server Error"},
    )


# CORS middleware
origins = [settings.app_url]
if settings.is_development:
    origins.append("*")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "env": settings.app_env,
    }


app.include_router(activity_router)
app.include_router(reframe_coach_router)

# Register admin routes
app.include_router(
    engagement_admin_router,
    prefix="/admin",
    tags=["admin"],
)
