import asyncio
import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from devicepush.core.config import settings
from devicepush.db import base  # noqa: F401  # ensure models are imported for metadata

logger = logging.getLogger(__name__)

PROJECT_DIR = Path(__file__).resolve().parents[2]

engine = create_async_engine(settings.DATABASE_URL, echo=False, future=True)

AsyncSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    class_=AsyncSession,
)


async def get_session() -> AsyncSession:
    async with AsyncSessionLocal() as session:
        yield session


async def init_models() -> None:
    """Create tables directly from metadata (used when Alembic is unavailable)."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


def _get_alembic_config() -> Config:
    config = Config(str(PROJECT_DIR / "alembic.ini"))
    config.set_main_option("script_location", str(PROJECT_DIR / "alembic"))
    config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)
    config.attributes["configure_logger"] = False
    config.attributes["url_configured"] = True
    return config


async def run_migrations() -> None:
    """Upgrade the database to the latest revision.

    Alembic's env.py drives its own event loop, so it runs on a worker thread.
    """
    if not (PROJECT_DIR / "alembic.ini").exists():
        logger.warning("alembic.ini not found, creating tables from metadata")
        await init_models()
        return
    await asyncio.to_thread(command.upgrade, _get_alembic_config(), "head")
