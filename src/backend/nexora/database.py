"""Async SQLAlchemy database setup for Nexora.

Exports:
  async_engine      -- the shared AsyncEngine instance
  AsyncSessionLocal -- sessionmaker bound to async_engine

The engine only opens connections when STORAGE_BACKEND is "database" and a
repository first uses it.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from nexora.config import settings

async_engine: AsyncEngine = create_async_engine(
    settings.DB_URL,
    echo=False,
    pool_pre_ping=True,
)

# expire_on_commit=False: repositories hand ORM objects back to callers
# after their session has closed.
AsyncSessionLocal: async_sessionmaker[AsyncSession] = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
