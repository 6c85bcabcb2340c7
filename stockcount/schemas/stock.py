# stockcount/schemas/stock.py
from __future__ import annotations

from typing import List, Optional, Union

from pydantic import Field

from stockcount.models.enums import ConsumptionMethod
from stockcount.schemas.batch import BatchOut
from stockcount.schemas.common import _Base


class ConsumeRequest(_Base):
    item_id: Union[int, str] = Field(..., description="商品ID 或 形态ID")
    quantity: float = Field(..., ge=0, allow_inf_nan=False, description="消耗数量")
    method: Optional[ConsumptionMethod] = Field(default=None, description="FIFO / LIFO / FEFO；缺省取配置")


class ConsumeResponse(_Base):
    item_id: Union[int, str]
    requested: float
    consumed: float
    remainder: float = Field(..., description="未能扣减的数量；> 0 表示库存不足")
    fulfilled: bool


class ExpireResponse(_Base):
    expired: List[BatchOut]
