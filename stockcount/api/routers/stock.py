# stockcount/api/routers/stock.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from stockcount.api.deps import get_session, get_stock_service, order_by_query
from stockcount.models.enums import BatchStatus
from stockcount.models.item import Item
from stockcount.schemas.batch import BatchOut
from stockcount.schemas.item import ItemOut, ItemQtyOut
from stockcount.schemas.stock import ConsumeRequest, ConsumeResponse, ExpireResponse
from stockcount.services.stock_service import ItemWithQty, StockService

router = APIRouter(prefix="/stock", tags=["stock"])


def _qty_out(row: ItemWithQty) -> ItemQtyOut:
    return ItemQtyOut(**ItemOut.model_validate(row.item).model_dump(), total_qty=row.total_qty)


@router.post("/consume", response_model=ConsumeResponse, status_code=status.HTTP_200_OK)
async def consume(
    req: ConsumeRequest,
    session: AsyncSession = Depends(get_session),
    stock: StockService = Depends(get_stock_service),
) -> ConsumeResponse:
    """
    按策略扣减库存。库存不足不报错：remainder > 0 表示未能扣减的部分，
    由调用方决定后续处理。
    """
    remainder = await stock.consume(session, req.item_id, req.quantity, req.method)
    return ConsumeResponse(
        item_id=req.item_id,
        requested=req.quantity,
        consumed=req.quantity - remainder,
        remainder=remainder,
        fulfilled=remainder == 0,
    )


@router.post("/expire", response_model=ExpireResponse)
async def expire_due(
    session: AsyncSession = Depends(get_session),
    stock: StockService = Depends(get_stock_service),
) -> ExpireResponse:
    """把已到期的 active 批次标记为 expired"""
    expired = await stock.expire_due(session)
    return ExpireResponse(expired=[BatchOut.model_validate(b) for b in expired])


@router.get("/items", response_model=List[ItemQtyOut])
async def list_item_qty(
    status_: BatchStatus = Query(default=BatchStatus.ACTIVE, alias="status"),
    q: Optional[str] = Query(default=None, description="名称 / 描述模糊搜索"),
    category_id: Optional[int] = Query(default=None),
    limit: int = Query(default=50, ge=1),
    offset: int = Query(default=0, ge=0),
    order_by: Optional[List[dict]] = Depends(order_by_query),
    session: AsyncSession = Depends(get_session),
    stock: StockService = Depends(get_stock_service),
):
    """商品 + 指定状态批次数量合计；默认 active 按数量升序（缺货在前）"""
    if q:
        rows = await stock.find_items(session, q, status_, limit, offset, order_by)
    else:
        where = None
        if category_id is not None:
            where = Item.category_id == category_id
        rows = await stock.get_items(session, status_, limit, offset, order_by, where)
    return [_qty_out(r) for r in rows]


@router.get("/items/{ref}", response_model=ItemQtyOut)
async def get_item_qty(
    ref: str,
    status_: BatchStatus = Query(default=BatchStatus.ACTIVE, alias="status"),
    session: AsyncSession = Depends(get_session),
    stock: StockService = Depends(get_stock_service),
):
    return _qty_out(await stock.get_item_with_qty(session, ref, status_))
