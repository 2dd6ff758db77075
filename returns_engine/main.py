"""Main FastAPI application"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
import logging

from returns_engine.config import settings
from returns_engine.database import connect_to_mongo, close_mongo_connection
from returns_engine.core.exceptions import ReturnEngineError
from returns_engine.schemas.common import ErrorResponse
from returns_engine.api.v1 import returns, appeals, admin, webhooks

# Configure logging
logging.basicConfig(
    level=logging.INFO if not settings.debug else logging.DEBUG,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events"""
    # Startup
    logger.info(f"Starting up {settings.app_name}...")
    await connect_to_mongo()
    logger.info("Application ready!")

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.app_name}...")
    await close_mongo_connection()
    logger.info("Shutdown complete!")


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version="1.0.0",
    description="""
    Returns and appeals API for marketplace orders.

    ## Features

    * **Eligibility**: Per-item return windows derived from delivery dates
    * **Returns**: Return requests with photo/video evidence and an approval workflow
    * **Refunds**: Expected refund split across card and loyalty points, Stripe refunds
    * **Appeals**: One evidence-backed appeal per denied return

    ## Authentication

    Customers send a JWT in the Authorization header:
    ```
    Authorization: Bearer <your_jwt_token>
    ```
    Guests use the order's tracking token (`X-Tracking-Token` plus the
    `order_number` query parameter) or its pickup token (`X-Pickup-Token`).
    """,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Serve uploaded evidence
Path(settings.media_root).mkdir(parents=True, exist_ok=True)
app.mount(settings.media_base_url, StaticFiles(directory=settings.media_root), name="media")


# Health check endpoints
@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint to verify the API is running.
    """
    return {
        "success": True,
        "status": "healthy",
        "version": "1.0.0",
        "app": settings.app_name
    }


@app.get("/liveness", tags=["Health"])
async def liveness_probe():
    """
    Kubernetes liveness probe endpoint.
    """
    return {
        "status": "alive",
        "timestamp": datetime.utcnow().isoformat()
    }


@app.get("/readiness", tags=["Health"])
async def readiness_probe():
    """
    Kubernetes readiness probe endpoint.
    Checks database connectivity.
    """
    from returns_engine.database import database
    if database.db is None:
        return JSONResponse(
            status_code=503,
            content={
                "status": "not ready",
                "database": "not connected",
                "timestamp": datetime.utcnow().isoformat()
            }
        )

    try:
        await database.db.command("ping")
    except Exception as e:
        logger.error(f"Readiness check failed: {str(e)}")
        return JSONResponse(
            status_code=503,
            content={
                "status": "not ready",
                "error": str(e),
                "timestamp": datetime.utcnow().isoformat()
            }
        )

    return {
        "status": "ready",
        "database": "connected",
        "timestamp": datetime.utcnow().isoformat()
    }


# Include routers
app.include_router(
    returns.router,
    prefix="/api/returns",
    tags=["Returns"]
)

app.include_router(
    appeals.router,
    prefix="/api/appeals",
    tags=["Appeals"]
)

app.include_router(
    admin.router,
    prefix="/api/admin",
    tags=["Admin - Returns"]
)

app.include_router(
    webhooks.router,
    prefix="/api/webhooks",
    tags=["Webhooks"]
)


# Error handlers
@app.exception_handler(ReturnEngineError)
async def return_engine_error_handler(request: Request, exc: ReturnEngineError):
    """Render engine errors with their kind and per-item messages"""
    logger.info(f"{exc.kind} on {request.url.path}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=exc.kind, detail=exc.detail, errors=exc.errors).model_dump(),
    )


@app.exception_handler(500)
async def internal_error_handler(request, exc):
    """Custom 500 handler"""
    logger.error(f"Internal server error: {str(exc)}")
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "Internal Server Error",
            "detail": "An unexpected error occurred. Please try again later."
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "returns_engine.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level="info"
    )
