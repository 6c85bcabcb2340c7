# stockcount/models/enums.py
from __future__ import annotations

from enum import Enum


class BatchStatus(str, Enum):
    """
    批次生命周期：

    - ACTIVE    在库可消耗
    - ARCHIVED  已耗尽（消耗到 0 或盘点归零）
    - EXPIRED   已过期，不参与消耗

    消耗路径只会 ACTIVE → ARCHIVED；只有盘点对账可以把批次显式改回 ACTIVE。
    """

    ACTIVE = "active"
    ARCHIVED = "archived"
    EXPIRED = "expired"


class ConsumptionMethod(str, Enum):
    """
    批次消耗顺序：

    - FIFO  先进先出：received_at 升序
    - LIFO  后进先出：received_at 降序
    - FEFO  先到期先出：expiry_at 升序（NULL 最后），received_at 升序兜底
    """

    FIFO = "FIFO"
    LIFO = "LIFO"
    FEFO = "FEFO"

    @classmethod
    def parse(cls, value: "ConsumptionMethod | str") -> "ConsumptionMethod":
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().upper())


__all__ = ["BatchStatus", "ConsumptionMethod"]
