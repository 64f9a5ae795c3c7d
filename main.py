"""
FastAPI main application entry point.
"""

import uvicorn

# Import logging system first
from core.logging import setup_logging, get_logger, database_logger

# Setup logging early
setup_logging()
logger = get_logger("main")

from app import app
from core.config import settings
from db_config import Base, engine
import models  # noqa: F401  registers tables on Base.metadata


@app.on_event("startup")
async def startup_db_client():
    """Create any missing tables on startup."""
    logger.info("Starting database initialization")
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database initialization completed successfully",
                    tables=",".join(sorted(Base.metadata.tables)))
    except Exception as e:
        database_logger.error("Database initialization failed", error=str(e), exc_info=True)
        raise


# Run the application
if __name__ == "__main__":
    logger.info("Starting uvicorn server", host=settings.host, port=settings.port)
    uvicorn.run(
        "main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        reload_excludes=["*.pyc", "*.log", "*.db", "*.json"],
        reload_includes=["*.py"],
    )
