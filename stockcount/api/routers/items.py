# stockcount/api/routers/items.py
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from stockcount.api.deps import get_item_form_service, get_item_service, get_session, order_by_query
from stockcount.schemas.common import DeleteImpactOut
from stockcount.schemas.item import (
    ItemCreate,
    ItemFormCreate,
    ItemFormOut,
    ItemFormUpdate,
    ItemOut,
    ItemUpdate,
)
from stockcount.services.item_service import ItemFormService, ItemService

router = APIRouter(prefix="/items", tags=["items"])


# ---------------------------------------------------------
# 1) 创建
# ---------------------------------------------------------
@router.post("", response_model=ItemOut, status_code=status.HTTP_201_CREATED)
async def create_item(
    item_in: ItemCreate,
    session: AsyncSession = Depends(get_session),
    svc: ItemService = Depends(get_item_service),
):
    return await svc.insert(session, item_in.model_dump(exclude_unset=True))


# ---------------------------------------------------------
# 2) 查询
# ---------------------------------------------------------
@router.get("", response_model=List[ItemOut])
async def list_items(
    q: Optional[str] = Query(default=None, description="名称 / 描述模糊搜索"),
    limit: int = Query(default=50, ge=1),
    offset: int = Query(default=0, ge=0),
    order_by: Optional[List[dict]] = Depends(order_by_query),
    session: AsyncSession = Depends(get_session),
    svc: ItemService = Depends(get_item_service),
):
    if q:
        return await svc.find(session, q, limit, offset, order_by or "name")
    return await svc.get(session, limit, offset, order_by or "name")


@router.get("/{ref}", response_model=ItemOut)
async def get_item(
    ref: str,
    session: AsyncSession = Depends(get_session),
    svc: ItemService = Depends(get_item_service),
):
    """ref 可以是商品ID，也可以是形态ID（条码 / 箱码）"""
    return await svc.get_one(session, ref)


@router.get("/{item_id}/delete-impact", response_model=DeleteImpactOut)
async def get_delete_impact(
    item_id: int,
    session: AsyncSession = Depends(get_session),
    svc: ItemService = Depends(get_item_service),
):
    return DeleteImpactOut(batches=await svc.get_delete_impact(session, item_id))


# ---------------------------------------------------------
# 3) 更新 / 删除
# ---------------------------------------------------------
@router.patch("/{item_id}", response_model=ItemOut)
async def update_item(
    item_id: int,
    item_in: ItemUpdate,
    session: AsyncSession = Depends(get_session),
    svc: ItemService = Depends(get_item_service),
):
    return await svc.update(session, item_id, item_in.model_dump(exclude_unset=True))


@router.delete("/{item_id}", response_model=ItemOut)
async def delete_item(
    item_id: int,
    session: AsyncSession = Depends(get_session),
    svc: ItemService = Depends(get_item_service),
):
    return await svc.remove(session, item_id)


# ---------------------------------------------------------
# 4) 商品形态
# ---------------------------------------------------------
@router.get("/{item_id}/forms", response_model=List[ItemFormOut])
async def list_forms(
    item_id: int,
    session: AsyncSession = Depends(get_session),
    svc: ItemFormService = Depends(get_item_form_service),
):
    return await svc.get_from_item(session, item_id)


@router.post("/{item_id}/forms", response_model=ItemFormOut, status_code=status.HTTP_201_CREATED)
async def create_form(
    item_id: int,
    form_in: ItemFormCreate,
    session: AsyncSession = Depends(get_session),
    svc: ItemFormService = Depends(get_item_form_service),
):
    return await svc.insert(
        session, form_id=form_in.id, item_id=item_id, qty_multiplier=form_in.qty_multiplier
    )


@router.patch("/forms/{form_id}", response_model=ItemFormOut)
async def update_form(
    form_id: str,
    form_in: ItemFormUpdate,
    session: AsyncSession = Depends(get_session),
    svc: ItemFormService = Depends(get_item_form_service),
):
    return await svc.update(session, form_id, qty_multiplier=form_in.qty_multiplier)


@router.delete("/forms/{form_id}", response_model=ItemFormOut)
async def delete_form(
    form_id: str,
    session: AsyncSession = Depends(get_session),
    svc: ItemFormService = Depends(get_item_form_service),
):
    return await svc.remove(session, form_id)
