# stockcount/db/engine.py
# 统一引擎工厂：PG 下注入 application_name；SQLite 打开外键约束
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

__all__ = ["create_async_engine_safe"]


def _connect_args_for(url_str: str) -> dict[str, Any]:
    """
    返回后端专属 connect_args：
    - PostgreSQL(psycopg): application_name
    - SQLite: 仅 check_same_thread
    """
    backend = make_url(url_str).get_backend_name()

    if backend.startswith("postgresql"):
        return {"application_name": "stockcount"}

    if backend.startswith("sqlite"):
        return {"check_same_thread": False}

    return {}


def _enable_sqlite_fk(engine: AsyncEngine) -> None:
    # SQLite 默认不校验外键，ON DELETE CASCADE 也不会生效
    @event.listens_for(engine.sync_engine, "connect")
    def _fk_on(dbapi_connection, _record):  # pragma: no cover - 驱动回调
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_async_engine_safe(url_str: str, *, echo: bool = False, **extra: Any) -> AsyncEngine:
    """Async 引擎（'postgresql+psycopg' 或 'sqlite+aiosqlite'）。"""
    u = make_url(url_str)
    backend = u.get_backend_name()

    kwargs: dict[str, Any] = {"echo": echo}
    if backend.startswith("postgresql"):
        kwargs["pool_pre_ping"] = True
    connect_args = _connect_args_for(url_str)
    if connect_args:
        kwargs["connect_args"] = connect_args
    kwargs.update(extra)

    engine = create_async_engine(url_str, **kwargs)
    if backend.startswith("sqlite"):
        _enable_sqlite_fk(engine)
    return engine
