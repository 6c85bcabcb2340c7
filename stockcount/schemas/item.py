# stockcount/schemas/item.py
from __future__ import annotations

from typing import Annotated, Optional

from pydantic import Field, field_validator

from stockcount.schemas.common import _Base


class ItemBase(_Base):
    description: Optional[str] = Field(default=None, description="描述")
    image_url: Optional[str] = Field(default=None, description="图片地址")
    category_id: Optional[int] = Field(default=None, description="分类ID")
    warning_qty: Optional[float] = Field(default=None, ge=0, description="低库存预警阈值")
    target_sale_price: Optional[float] = Field(default=None, ge=0, description="目标售价")
    target_margin_is_percent: bool = Field(default=True, description="target_margin 是否为百分比")
    target_margin: Optional[float] = Field(default=None, description="目标毛利")
    default_supplier_id: Optional[int] = Field(default=None, description="默认供应商（新批次继承）")
    default_location_id: Optional[int] = Field(default=None, description="默认库位（新批次继承）")


class ItemCreate(ItemBase):
    name: Annotated[str, Field(min_length=1, max_length=128, description="商品名称")]
    uom: Annotated[str, Field(min_length=1, max_length=32, description="计量单位")]

    @field_validator("name", "uom", mode="before")
    @classmethod
    def _trim(cls, v: str) -> str:
        return v.strip() if isinstance(v, str) else v


class ItemUpdate(_Base):
    """部分更新：只提交需要改的字段"""

    name: Optional[Annotated[str, Field(min_length=1, max_length=128)]] = None
    uom: Optional[Annotated[str, Field(min_length=1, max_length=32)]] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    category_id: Optional[int] = None
    warning_qty: Optional[float] = Field(default=None, ge=0)
    target_sale_price: Optional[float] = Field(default=None, ge=0)
    target_margin_is_percent: Optional[bool] = None
    target_margin: Optional[float] = None
    default_supplier_id: Optional[int] = None
    default_location_id: Optional[int] = None


class ItemOut(ItemBase):
    id: int
    name: str
    uom: str


class ItemQtyOut(ItemOut):
    total_qty: float = Field(..., description="指定状态批次的数量合计")


class ItemFormCreate(_Base):
    id: Annotated[str, Field(min_length=1, max_length=64, description="形态ID（条码 / 箱码）")]
    qty_multiplier: float = Field(..., gt=0, description="折合基本单位数量")


class ItemFormUpdate(_Base):
    qty_multiplier: float = Field(..., gt=0)


class ItemFormOut(_Base):
    id: str
    item_id: int
    qty_multiplier: float
