# stockcount/models/item_count.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, Float, ForeignKey, Index, Integer, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from stockcount.db.base import Base
from stockcount.db.types import UtcDateTime


class ItemCount(Base):
    """
    盘点录入：业务键 (count_id, item_id, batch_id)

    - batch_id 为 NULL：商品级（通用）盘点，每个商品每次盘点至多一条
    - batch_id 非空：指定批次盘点，可多条
    同一业务键重复录入 → 原地更新 counted_qty / counted_at。
    """

    __tablename__ = "item_counts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    count_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("count_sessions.id", ondelete="CASCADE"),
        nullable=False,
    )
    item_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("items.id", ondelete="CASCADE"),
        nullable=False,
    )
    batch_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("batches.id", ondelete="CASCADE"),
        nullable=True,
    )

    counted_qty: Mapped[float] = mapped_column(Float, nullable=False)
    counted_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)

    __table_args__ = (
        CheckConstraint("counted_qty >= 0", name="counted_qty_non_negative"),
        # 批次级：唯一
        UniqueConstraint("count_id", "item_id", "batch_id", name="uq_item_counts_key"),
        # 商品级：NULL 在唯一约束里互不相等，单独用部分唯一索引兜住
        Index(
            "uq_item_counts_generic",
            "count_id",
            "item_id",
            unique=True,
            sqlite_where=text("batch_id IS NULL"),
            postgresql_where=text("batch_id IS NULL"),
        ),
        Index("ix_item_counts_item_id", "item_id"),
    )

    @property
    def is_generic(self) -> bool:
        return self.batch_id is None

    def __repr__(self) -> str:
        return (
            f"<ItemCount count={self.count_id} item={self.item_id} "
            f"batch={self.batch_id} qty={self.counted_qty}>"
        )
