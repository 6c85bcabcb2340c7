# stockcount/schemas/batch.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import Field

from stockcount.models.enums import BatchStatus
from stockcount.schemas.common import _Base


class BatchCreate(_Base):
    """入库：未指定库位 / 供应商时继承商品默认值；received_at 由服务端取当前时间"""

    item_id: int = Field(..., description="商品ID")
    qty: float = Field(..., ge=0, allow_inf_nan=False, description="数量")
    unit_buy_price: Optional[float] = Field(default=None, ge=0, description="进货单价")
    status: BatchStatus = Field(default=BatchStatus.ACTIVE)
    location_id: Optional[int] = None
    supplier_id: Optional[int] = None
    expiry_at: Optional[datetime] = Field(default=None, description="到期时间（FEFO 依据）")

    model_config = _Base.model_config | {
        "json_schema_extra": {
            "example": {
                "item_id": 1,
                "qty": 24,
                "unit_buy_price": 3.5,
                "expiry_at": "2026-04-01T00:00:00Z",
            }
        }
    }


class BatchUpdate(_Base):
    """
    只改描述性字段。qty / status 走消耗、到期与盘点对账；
    item_id / received_at / stockout_at 不可修改。多余字段直接 422。
    """

    unit_buy_price: Optional[float] = Field(default=None, ge=0)
    location_id: Optional[int] = None
    supplier_id: Optional[int] = None
    expiry_at: Optional[datetime] = None

    model_config = _Base.model_config | {"extra": "forbid"}


class BatchOut(_Base):
    id: int
    item_id: int
    qty: float
    unit_buy_price: Optional[float] = None
    status: BatchStatus
    location_id: Optional[int] = None
    supplier_id: Optional[int] = None
    received_at: datetime
    stockout_at: Optional[datetime] = None
    expiry_at: Optional[datetime] = None
