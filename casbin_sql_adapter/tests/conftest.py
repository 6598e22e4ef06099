import os

# Set environment before importing ANYTHING else
os.environ["ENVIRONMENT"] = "testing"

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from casbin_sql_adapter.adapter import Adapter
from casbin_sql_adapter.crud import CasbinRuleCrud
from casbin_sql_adapter.tests.utils import new_model

# Test database URL (SQLite in-memory for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture(scope="function")
async def db_engine() -> AsyncGenerator[AsyncEngine, None]:
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def crud(db_engine: AsyncEngine) -> CasbinRuleCrud:
    return CasbinRuleCrud(db_engine)


@pytest_asyncio.fixture(scope="function")
async def adapter(db_engine: AsyncEngine) -> Adapter:
    return Adapter(db_engine, filter_pushdown=True)


@pytest.fixture
def model():
    return new_model()
