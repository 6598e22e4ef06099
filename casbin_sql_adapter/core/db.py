import logging
from typing import Optional

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from casbin_sql_adapter.core.config import Settings

logger = logging.getLogger(__name__)


def get_engine(settings: Optional[Settings] = None) -> AsyncEngine:
    """Get an async database engine for the given (or current) settings."""
    if settings is None:
        # Import settings dynamically to get the current instance
        from casbin_sql_adapter.core.config import settings

    url = make_url(settings.DATABASE_URL)

    if url.get_backend_name() == "sqlite":
        # An in-memory database only exists on its one connection
        if url.database in (None, "", ":memory:"):
            return create_async_engine(
                url,
                echo=settings.ECHO_SQL,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_async_engine(url, echo=settings.ECHO_SQL)

    return create_async_engine(
        url,
        echo=settings.ECHO_SQL,
        pool_size=settings.POOL_SIZE,
        max_overflow=settings.MAX_OVERFLOW,
        pool_pre_ping=True,
        pool_recycle=settings.POOL_RECYCLE,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Create the casbin_rule table if it does not exist yet."""
    from casbin_sql_adapter.crud import CasbinRuleCrud

    await CasbinRuleCrud(engine).create_table()
    logger.info(
        f"[init_db] casbin_rule table ready | dialect={engine.dialect.name}"
    )
