from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine, AsyncEngine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool
import logging
import os

logger = logging.getLogger(__name__)

# Default to a local SQLite catalog so the service runs without any infrastructure
DATABASE_URL = os.getenv("DATABASE_URL") or "sqlite+aiosqlite:///./experiences.db"

# Ensure asyncpg driver is used in the connection string
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = DATABASE_URL.replace("postgres://", "postgresql+asyncpg://", 1)
elif DATABASE_URL.startswith("postgresql://"):
    DATABASE_URL = DATABASE_URL.replace("postgresql://", "postgresql+asyncpg://", 1)

# Connection Pool Configuration (ignored for SQLite)
POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "10"))
POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "3600"))
POOL_PRE_PING = os.getenv("DB_POOL_PRE_PING", "true").lower() == "true"

# Echo SQL queries (for debugging only)
ECHO_SQL = os.getenv("DB_ECHO", "false").lower() == "true"

USE_NULL_POOL = os.getenv("DB_USE_NULL_POOL", "false").lower() == "true"


def build_engine(url: str) -> AsyncEngine:
    engine_kwargs = {
        "echo": ECHO_SQL,
        "future": True,
        "pool_pre_ping": POOL_PRE_PING,
    }
    if USE_NULL_POOL:
        engine_kwargs["poolclass"] = NullPool
    elif not url.startswith("sqlite"):
        engine_kwargs["pool_size"] = POOL_SIZE
        engine_kwargs["max_overflow"] = MAX_OVERFLOW
        engine_kwargs["pool_timeout"] = POOL_TIMEOUT
        engine_kwargs["pool_recycle"] = POOL_RECYCLE
        logger.info(f"Connection pool: size={POOL_SIZE}, max_overflow={MAX_OVERFLOW}, timeout={POOL_TIMEOUT}s")
    return create_async_engine(url, **engine_kwargs)


engine = build_engine(DATABASE_URL)


def session_factory(bind: AsyncEngine = engine) -> sessionmaker:
    return sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


async def init_db(bind: AsyncEngine = engine):
    # Importing registers the catalog tables on SQLModel.metadata
    import models  # noqa: F401

    async with bind.begin() as conn:
        # This creates tables if they don't exist
        await conn.run_sync(SQLModel.metadata.create_all)
