from contextlib import asynccontextmanager
import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.core.config import settings
from app.core.logging_config import setup_logging
from app.core.redis import redis_client
from app.middleware.logging import LoggingMiddleware
from app.api.v1.api import api_router
from app.utils.time_utils import utc_now

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting attendance service ({settings.ENVIRONMENT}, timezone {settings.TIMEZONE})")
    yield
    await redis_client.disconnect()
    logger.info("Attendance service stopped")


# Create FastAPI app
app_config = {
    "title": "Attendance Tracker",
    "description": "Employee attendance: check-in, breaks, lunch and check-out with HR administration",
    "version": "1.0.0",
    "lifespan": lifespan,
}

app = FastAPI(**app_config)

# Add middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=settings.ALLOWED_METHODS,
    allow_headers=settings.ALLOWED_HEADERS
)
app.add_middleware(LoggingMiddleware)

# Include routers
app.include_router(api_router, prefix="/api/v1")


@app.get("/")
async def root():
    return {
        "message": "Attendance Tracker API",
        "status": "active",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "components": {
            "redis_lock": "enabled" if redis_client.enabled else "disabled",
        }
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
