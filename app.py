from fastapi import FastAPI

# Import logging system
from core.config import settings
from core.logging import setup_logging, get_logger, app_logger

from core.exceptions import setup_exception_handlers
from core.middleware import setup_middleware

# Import routers
from routers import users, study_guides, realtime

# Initialize logging system early
setup_logging()
logger = get_logger("fastapi")

# Create FastAPI app instance
app = FastAPI(
    title=settings.app_name,
    description="Backend API for collaborative study guides with AI-generated summaries, flashcards and keywords",
    version=settings.app_version,
    debug=settings.debug,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Setup global exception handlers
setup_exception_handlers(app)

# Security headers, request logging, size limit, timeout and CORS
setup_middleware(app)

# Include routers
app.include_router(users.router)
app.include_router(study_guides.router)
app.include_router(realtime.router)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Basic health check endpoint to verify the API is running.
    """
    logger.info("Health check endpoint accessed")
    return {"status": "ok", "message": f"{settings.app_name} is running"}


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint providing basic API information.
    """
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/health",
        "websocket": "/ws",
    }


# Application lifecycle events
@app.on_event("startup")
async def startup_event():
    """Handle application startup."""
    app_logger.info("FastAPI application starting up", component="startup")


@app.on_event("shutdown")
async def shutdown_event():
    """Handle application shutdown."""
    app_logger.info("FastAPI application shutting down", component="shutdown")
