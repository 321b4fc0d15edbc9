"""Database session factory setup."""

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine


def setup_db_session(db_url: str, pool_size: int = 20) -> async_sessionmaker[AsyncSession]:
    """Create async database session factory.

    Args:
        db_url: Database connection URL (postgresql+psycopg://... in production,
            sqlite+aiosqlite://... for local runs and tests)
        pool_size: Maximum number of connections in the pool (ignored for SQLite)

    Returns:
        Async session factory for creating database sessions
    """
    engine_kwargs: dict = {
        "pool_pre_ping": True,  # Verify connections before using
        "echo": False,  # Don't log SQL queries (use structlog instead)
    }
    if make_url(db_url).get_backend_name() == "sqlite":
        # Writers wait on the file lock instead of failing immediately
        engine_kwargs["connect_args"] = {"timeout": 30}
    else:
        engine_kwargs["pool_size"] = pool_size
        engine_kwargs["max_overflow"] = 0

    engine = create_async_engine(db_url, **engine_kwargs)

    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Prevent lazy loading issues after commit
    )

    return session_factory
