# stockcount/core/clock.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

UTC = timezone.utc

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


def resolve_now(now: Optional[datetime], clock: Clock = utc_now) -> datetime:
    """
    单次操作内唯一的逻辑时间：
    - 调用方显式传入 now → 原样使用（补齐 UTC 时区）
    - 否则从 clock 取一次
    """
    ts = now if now is not None else clock()
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    return ts
