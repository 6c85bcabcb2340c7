# stockcount/models/item_form.py
from __future__ import annotations

from sqlalchemy import Float, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from stockcount.db.base import Base


class ItemForm(Base):
    """
    商品的另一种“形态”标识（如整箱条码）：

    - id 为外部码（条码 / 箱码），可直接用来查商品
    - qty_multiplier：一个该形态折合多少个基本单位
    """

    __tablename__ = "item_forms"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    item_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    qty_multiplier: Mapped[float] = mapped_column(Float, nullable=False)

    def __repr__(self) -> str:
        return f"<ItemForm id={self.id!r} item={self.item_id} x{self.qty_multiplier}>"
