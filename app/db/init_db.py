import asyncio
import logging
from app.core.database import engine, async_session_maker
from app.core.logging_config import setup_logging
from app.db.seeds.initial_data import create_initial_data
from app.models.base import Base
import app.models  # noqa: F401  registers every table on Base.metadata

logger = logging.getLogger(__name__)


async def create_tables():
    """Create all database tables"""
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        logger.info("✅ Database tables created successfully")

    except Exception as e:
        logger.error(f"❌ Error creating tables: {str(e)}")
        raise


async def init_db():
    """Initialize the database"""
    try:
        logger.info("🗄️  Initializing database...")

        await create_tables()

        async with async_session_maker() as session:
            await create_initial_data(session)

        logger.info("✅ Database initialized successfully")

    except Exception as e:
        logger.error(f"❌ Database initialization failed: {str(e)}")
        raise
    finally:
        await engine.dispose()


if __name__ == "__main__":
    setup_logging()
    asyncio.run(init_db())
