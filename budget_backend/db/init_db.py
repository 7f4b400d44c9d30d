"""
Database initialization - creates all tables and indexes.
All schema is defined in the SQLAlchemy models in budget_backend/models/,
including the unique constraint that makes occurrence materialization idempotent.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from budget_backend.db.base import Base

# Import all models to ensure they are registered with Base.metadata
from budget_backend.models import RecurringRule, Transaction  # noqa: F401

logger = logging.getLogger(__name__)


async def init_database(engine: AsyncEngine):
    """
    Create all tables, indexes and constraints from the models.
    Called on application startup; a connection failure is logged and the app
    keeps starting so it can serve /health while the database comes up.
    """
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialization completed successfully")
    except OSError as e:
        logger.error(
            "Cannot connect to the database (%s). Check DATABASE_URL and that the server is running.", e
        )
    except Exception:
        logger.exception("Error during database initialization")
