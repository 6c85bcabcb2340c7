# stockcount/db/types.py
"""Database-agnostic column types (SQLite for dev/tests, PostgreSQL in production)."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator

UTC = timezone.utc


class UtcDateTime(TypeDecorator):
    """
    时区感知的 UTC 时间：
    - 写入：naive 视为 UTC，aware 统一换算到 UTC
    - 读取：SQLite 会丢时区，这里补回 UTC，保证两种后端返回一致
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)
