# stockcount/api/routers/counts.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from stockcount.api.deps import (
    get_count_service,
    get_reconcile_service,
    get_session,
    order_by_query,
)
from stockcount.models.item import Item
from stockcount.schemas.count import (
    AdjustmentOut,
    CountDriftOut,
    CountProgressOut,
    CountSessionOut,
    FinishResponse,
    ItemCountIn,
    ItemCountOut,
    ItemTallyOut,
)
from stockcount.schemas.item import ItemOut
from stockcount.services.count_service import CountService
from stockcount.services.reconcile_service import ReconcileService

router = APIRouter(prefix="/counts", tags=["counts"])


# ==========================
# 会话
# ==========================


@router.post("", response_model=CountSessionOut, status_code=status.HTTP_201_CREATED)
async def start_count(
    session: AsyncSession = Depends(get_session),
    svc: CountService = Depends(get_count_service),
):
    return await svc.start(session)


@router.get("", response_model=List[CountSessionOut])
async def list_counts(
    order_by: Optional[List[dict]] = Depends(order_by_query),
    session: AsyncSession = Depends(get_session),
    svc: CountService = Depends(get_count_service),
):
    return await svc.list(session, order_by or "started_at")


@router.get("/active-for-item/{item_id}", response_model=List[int])
async def active_counts_for_item(
    item_id: int,
    session: AsyncSession = Depends(get_session),
    svc: CountService = Depends(get_count_service),
):
    """已录入过该商品、且仍在进行中的盘点ID"""
    return await svc.get_active_counts_for_item(session, item_id)


@router.get("/{count_id}", response_model=CountSessionOut)
async def get_count(
    count_id: int,
    session: AsyncSession = Depends(get_session),
    svc: CountService = Depends(get_count_service),
):
    obj = await svc.get_one(session, count_id)
    if obj is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Count not found")
    return obj


@router.delete("/{count_id}", response_model=CountSessionOut)
async def delete_count(
    count_id: int,
    session: AsyncSession = Depends(get_session),
    svc: CountService = Depends(get_count_service),
):
    return await svc.remove(session, count_id)


@router.post("/{count_id}/finish", response_model=FinishResponse)
async def finish_count(
    count_id: int,
    session: AsyncSession = Depends(get_session),
    svc: ReconcileService = Depends(get_reconcile_service),
) -> FinishResponse:
    """
    完成盘点并对账（单事务）：
      1) 指定批次的录入：直接覆盖批次数量
      2) 商品级录入：与剩余 active 台账比较，少补扣、多补建盘盈批次
      3) 清除本次盘点漂移
    任一步失败整体回滚，盘点保持进行中。
    """
    result = await svc.finish(session, count_id)
    return FinishResponse(
        count=CountSessionOut.model_validate(result.count),
        adjustments=[AdjustmentOut.model_validate(a) for a in result.adjustments],
    )


# ==========================
# 录入 / 进度 / 漂移
# ==========================


@router.post("/{count_id}/entries", response_model=ItemCountOut)
async def record_count(
    count_id: int,
    entry_in: ItemCountIn,
    session: AsyncSession = Depends(get_session),
    svc: CountService = Depends(get_count_service),
):
    """同一 (item_id, batch_id) 重复录入 → 覆盖；同时清除该商品在本次盘点里的漂移"""
    return await svc.record_count(
        session, count_id, entry_in.item_id, entry_in.batch_id, entry_in.counted_qty
    )


@router.get("/{count_id}/entries", response_model=List[ItemCountOut])
async def list_entries(
    count_id: int,
    session: AsyncSession = Depends(get_session),
    svc: CountService = Depends(get_count_service),
):
    return await svc.get_item_counts(session, count_id)


@router.get("/{count_id}/progress", response_model=CountProgressOut)
async def count_progress(
    count_id: int,
    category_id: Optional[int] = Query(default=None, description="只统计该分类下的商品"),
    session: AsyncSession = Depends(get_session),
    svc: CountService = Depends(get_count_service),
):
    where = Item.category_id == category_id if category_id is not None else None
    return await svc.get_progress(session, count_id, where)


@router.get("/{count_id}/items", response_model=List[ItemTallyOut])
async def count_items(
    count_id: int,
    category_id: Optional[int] = Query(default=None),
    limit: int = Query(default=50, ge=1),
    offset: int = Query(default=0, ge=0),
    order_by: Optional[List[dict]] = Depends(order_by_query),
    session: AsyncSession = Depends(get_session),
    svc: CountService = Depends(get_count_service),
):
    """商品列表 + 本次盘点录入条数；默认未盘的在前"""
    where = Item.category_id == category_id if category_id is not None else None
    rows = await svc.get_items(session, count_id, limit, offset, order_by or "completed_counts", where)
    return [
        ItemTallyOut(**ItemOut.model_validate(r.item).model_dump(), completed_counts=r.completed_counts)
        for r in rows
    ]


@router.get("/{count_id}/drifts", response_model=List[CountDriftOut])
async def list_drifts(
    count_id: int,
    session: AsyncSession = Depends(get_session),
    svc: CountService = Depends(get_count_service),
):
    return await svc.get_drifts(session, count_id)
