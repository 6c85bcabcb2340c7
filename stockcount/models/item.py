# stockcount/models/item.py
from __future__ import annotations

from typing import Optional

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, Text, true
from sqlalchemy.orm import Mapped, mapped_column

from stockcount.db.base import Base


class Item(Base):
    """
    Item 主数据模型 —— 对齐 public.items:

        id                        INTEGER PRIMARY KEY
        name                      VARCHAR(128) NOT NULL
        uom                       VARCHAR(32)  NOT NULL          （计量单位）
        category_id               INTEGER NULL REFERENCES categories(id) ON DELETE SET NULL
        description               TEXT NULL
        image_url                 TEXT NULL
        warning_qty               REAL NULL                      （低库存预警阈值）
        target_sale_price         REAL NULL
        target_margin_is_percent  BOOLEAN NOT NULL DEFAULT true
        target_margin             REAL NULL
        default_supplier_id       INTEGER NULL REFERENCES suppliers(id) ON DELETE SET NULL
        default_location_id       INTEGER NULL REFERENCES locations(id) ON DELETE SET NULL

    删除商品会级联删除其批次 / 盘点记录 / 漂移 / 形态（见各子表外键）。
    """

    __tablename__ = "items"

    # ---------- 主键 ----------
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # ---------- 基础字段 ----------
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    uom: Mapped[str] = mapped_column(String(32), nullable=False)

    category_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # ---------- 预警 / 定价（只存储，不参与成本核算） ----------
    warning_qty: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    target_sale_price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    target_margin_is_percent: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        server_default=true(),
    )
    target_margin: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # ---------- 默认供应商 / 库位（新批次未指定时继承） ----------
    default_supplier_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("suppliers.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    default_location_id: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("locations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Item id={self.id} name={self.name!r} uom={self.uom!r}>"
