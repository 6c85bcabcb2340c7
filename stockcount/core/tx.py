# stockcount/core/tx.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.asyncio import AsyncSession

from stockcount.services.errors import TransactionConflict

log = logging.getLogger("stockcount.tx")

# PG: serialization_failure / deadlock_detected / lock_not_available
_CONFLICT_SQLSTATES = {"40001", "40P01", "55P03"}


def is_conflict(exc: DBAPIError) -> bool:
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code in _CONFLICT_SQLSTATES:
        return True
    # SQLite 写锁
    return "database is locked" in str(orig or exc).lower()


@asynccontextmanager
async def tx_scope(session: AsyncSession) -> AsyncIterator[AsyncSession]:
    """
    引擎统一事务边界：
    - 外层已开启事务 → 直接复用（不开独立的嵌套事务），提交 / 回滚由外层负责；
    - 否则 begin/commit，异常整体回滚。
    存储层冲突统一翻译为 TransactionConflict，不做内部重试。
    """
    try:
        if session.in_transaction():
            yield session
        else:
            async with session.begin():
                yield session
    except DBAPIError as e:
        if is_conflict(e):
            log.warning("transaction conflict: %s", e.orig)
            raise TransactionConflict(
                "并发修改冲突，请重试。", context={"sqlstate": getattr(e.orig, "sqlstate", None)}
            ) from e
        raise
