# stockcount/schemas/count.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from stockcount.schemas.common import _Base
from stockcount.schemas.item import ItemOut


class CountSessionOut(_Base):
    id: int
    started_at: datetime
    finished_at: Optional[datetime] = None
    is_open: bool


class ItemCountIn(_Base):
    """
    盘点录入：
      - batch_id 为空 → 商品级（与台账整体比较）
      - batch_id 非空 → 指定批次（对账时直接覆盖该批次数量）
    """

    item_id: int = Field(..., description="商品ID")
    batch_id: Optional[int] = Field(default=None, description="批次ID（可选）")
    counted_qty: float = Field(..., ge=0, allow_inf_nan=False, description="实盘数量（绝对量）")


class ItemCountOut(_Base):
    id: int
    count_id: int
    item_id: int
    batch_id: Optional[int] = None
    counted_qty: float
    counted_at: datetime


class CountDriftOut(_Base):
    count_id: int
    item_id: int
    qty_change: float
    drift_at: datetime


class CountProgressOut(_Base):
    total_items: int
    total_counted: int


class ItemTallyOut(ItemOut):
    completed_counts: int


class AdjustmentOut(_Base):
    item_id: int
    batch_id: Optional[int] = None
    kind: str
    counted_qty: float
    ledger_qty: float
    delta: float
    created_batch_id: Optional[int] = None


class FinishResponse(_Base):
    count: CountSessionOut
    adjustments: List[AdjustmentOut]
