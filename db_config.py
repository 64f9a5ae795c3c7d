"""
Database configuration module using centralized settings.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from core.config import settings
from core.logging import get_logger

logger = get_logger("database")

SQLALCHEMY_DATABASE_URL = settings.sqlalchemy_database_url

engine_options = {"echo": settings.enable_sql_logging}
if SQLALCHEMY_DATABASE_URL.startswith("sqlite"):
    # Single shared connection so in-memory databases survive across sessions
    engine_options.update(connect_args={"check_same_thread": False}, poolclass=StaticPool)
else:
    engine_options.update(pool_size=10, max_overflow=20, pool_pre_ping=True, pool_recycle=3600)
    logger.info(
        "Database configuration loaded",
        host=settings.db_host, port=settings.db_port, database=settings.db_name,
    )

engine = create_engine(SQLALCHEMY_DATABASE_URL, **engine_options)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


# Dependency to get database session
def get_db():
    db = SessionLocal()
    try:
        logger.debug("Database session created")
        yield db
    except Exception as e:
        logger.error("Database session error", error=str(e))
        db.rollback()
        raise
    finally:
        db.close()
        logger.debug("Database session closed")
