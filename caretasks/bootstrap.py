import logging
from typing import Optional

from sqlalchemy.engine import Engine

# Import models so they are registered with SQLAlchemy Base
from . import models  # noqa: F401
from .config import LOG_LEVEL
from .database import Base, engine as default_engine

logger = logging.getLogger(__name__)


def configure_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=level or LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # Reduce verbosity of third-party libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def init_db(engine: Optional[Engine] = None) -> None:
    """Create the care task tables if they do not exist"""
    engine = engine or default_engine
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from races between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")
            raise
