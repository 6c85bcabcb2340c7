# tests/conftest.py
from __future__ import annotations

import os
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

# ============================================================
# ★ 在 import stockcount.main 之前固定测试配置 ★
# ============================================================
os.environ.setdefault("STOCKCOUNT_ENV", "test")
os.environ.setdefault("STOCKCOUNT_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("STOCKCOUNT_LOG_LEVEL", "WARNING")

from stockcount.db.base import Base, init_models  # noqa: E402
from stockcount.db.engine import create_async_engine_safe  # noqa: E402
from stockcount.db.session import get_session  # noqa: E402
from stockcount.main import app  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite://"


# =========================================
# 每用例独立的内存库（StaticPool：同一连接，表结构随引擎存活）
# =========================================
@pytest_asyncio.fixture(scope="function")
async def async_engine() -> AsyncGenerator[AsyncEngine, None]:
    init_models()
    engine = create_async_engine_safe(TEST_DATABASE_URL, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture(scope="function")
def async_session_maker(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def session(async_session_maker) -> AsyncGenerator[AsyncSession, None]:
    """
    标准 Session（自动 commit / rollback）
    """
    async with async_session_maker() as sess:
        try:
            yield sess
            if sess.in_transaction():
                await sess.commit()
        except Exception:
            if sess.in_transaction():
                await sess.rollback()
            raise


# =========================================
# FastAPI / httpx AsyncClient（get_session 指向测试库）
# =========================================
@pytest_asyncio.fixture(scope="function")
async def client(async_session_maker) -> AsyncGenerator[httpx.AsyncClient, None]:
    async def _session_override() -> AsyncGenerator[AsyncSession, None]:
        async with async_session_maker() as sess:
            yield sess

    app.dependency_overrides[get_session] = _session_override
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(
            transport=transport,
            base_url="http://testserver",
            timeout=httpx.Timeout(10.0, connect=5.0, read=10.0, write=5.0, pool=5.0),
        ) as c:
            yield c
    finally:
        app.dependency_overrides.pop(get_session, None)
