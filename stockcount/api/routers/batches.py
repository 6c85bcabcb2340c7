# stockcount/api/routers/batches.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from stockcount.api.deps import get_batch_service, get_session, get_stock_service, order_by_query
from stockcount.core.config import get_settings
from stockcount.models.enums import BatchStatus
from stockcount.schemas.batch import BatchCreate, BatchOut, BatchUpdate
from stockcount.services.batch_service import BatchService
from stockcount.services.stock_service import StockService

router = APIRouter(prefix="/batches", tags=["batches"])


@router.post("", response_model=BatchOut, status_code=status.HTTP_201_CREATED)
async def receive_batch(
    batch_in: BatchCreate,
    session: AsyncSession = Depends(get_session),
    stock: StockService = Depends(get_stock_service),
):
    """入库：新建批次，并计入进行中盘点的漂移"""
    return await stock.receive(session, batch_in.model_dump(exclude_unset=True))


@router.get("/by-item/{item_id}", response_model=List[BatchOut])
async def list_batches(
    item_id: int,
    status_: Optional[BatchStatus] = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1),
    offset: int = Query(default=0, ge=0),
    order_by: Optional[List[dict]] = Depends(order_by_query),
    session: AsyncSession = Depends(get_session),
    svc: BatchService = Depends(get_batch_service),
):
    return await svc.list_by_item(
        session,
        item_id,
        status=status_,
        order_by=order_by or "received_at",
        limit=limit,
        offset=offset,
    )


@router.get("/by-item/{item_id}/summary", response_model=List[BatchOut])
async def batch_summary(
    item_id: int,
    limit: Optional[int] = Query(default=None, ge=1),
    session: AsyncSession = Depends(get_session),
    svc: BatchService = Depends(get_batch_service),
):
    """批次速览：过期 > 在库（最老在前）> 已耗尽（最近耗尽在前）"""
    return await svc.get_batch_summary(session, item_id, limit or get_settings().BATCH_SUMMARY_LIMIT)


@router.get("/{batch_id}", response_model=BatchOut)
async def get_batch(
    batch_id: int,
    session: AsyncSession = Depends(get_session),
    svc: BatchService = Depends(get_batch_service),
):
    obj = await svc.get_one(session, batch_id)
    if obj is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Batch not found")
    return obj


@router.patch("/{batch_id}", response_model=BatchOut)
async def update_batch(
    batch_id: int,
    batch_in: BatchUpdate,
    session: AsyncSession = Depends(get_session),
    svc: BatchService = Depends(get_batch_service),
):
    return await svc.update(session, batch_id, batch_in.model_dump(exclude_unset=True))
