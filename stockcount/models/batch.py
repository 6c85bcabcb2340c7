# stockcount/models/batch.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import CheckConstraint, Enum, Float, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from stockcount.db.base import Base
from stockcount.db.types import UtcDateTime
from stockcount.models.enums import BatchStatus


class Batch(Base):
    """
    批次：某商品一次到货的一份数量，独立消耗、独立盘点。

    字段：
        - item_id        所属商品（非空，创建后不可改）
        - qty            当前数量（REAL，恒 >= 0）
        - unit_buy_price 进货单价（只存储）
        - status         active / archived / expired
        - location_id    库位（未指定时继承商品默认）
        - supplier_id    供应商（未指定时继承商品默认）
        - received_at    入库时间（FIFO / LIFO 排序依据）
        - stockout_at    耗尽时间（消耗到 0 时记录）
        - expiry_at      到期时间（FEFO 排序依据，可空）
    """

    __tablename__ = "batches"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    item_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("items.id", ondelete="CASCADE"),
        nullable=False,
    )

    qty: Mapped[float] = mapped_column(Float, nullable=False)
    unit_buy_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    status: Mapped[BatchStatus] = mapped_column(
        Enum(
            BatchStatus,
            name="batch_status",
            native_enum=False,
            length=16,
            values_callable=lambda e: [m.value for m in e],
            validate_strings=True,
        ),
        nullable=False,
        default=BatchStatus.ACTIVE,
    )

    location_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("locations.id", ondelete="SET NULL"),
        nullable=True,
    )
    supplier_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("suppliers.id", ondelete="SET NULL"),
        nullable=True,
    )

    received_at: Mapped[datetime] = mapped_column(UtcDateTime, nullable=False)
    stockout_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    expiry_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("qty >= 0", name="qty_non_negative"),
        Index("ix_batches_item_status", "item_id", "status"),
        Index("ix_batches_item_received", "item_id", "received_at"),
        Index("ix_batches_expiry_at", "expiry_at"),
    )

    @property
    def is_active(self) -> bool:
        return self.status is BatchStatus.ACTIVE

    def __repr__(self) -> str:
        return (
            f"<Batch id={self.id} item={self.item_id} qty={self.qty} "
            f"status={self.status.value if self.status else None} "
            f"recv={self.received_at} exp={self.expiry_at}>"
        )
