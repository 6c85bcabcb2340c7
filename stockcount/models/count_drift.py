# stockcount/models/count_drift.py
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Float, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from stockcount.db.base import Base
from stockcount.db.types import UtcDateTime


class CountDrift(Base):
    """
    盘点漂移：某商品在进行中的盘点里已被盘过，之后库存又发生变化的净变动量。

    主键 (count_id, item_id)；qty_change 为带符号累计值。
    重新录入该商品或盘点完成时清除。
    """

    __tablename__ = "count_drifts"

    count_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("count_sessions.id", ondelete="CASCADE"),
        primary_key=True,
    )
    item_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("items.id", ondelete="CASCADE"),
        primary_key=True,
    )
    qty_change: Mapped[float] = mapped_column(Float, nullable=False)
    drift_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<CountDrift count={self.count_id} item={self.item_id} delta={self.qty_change}>"
