# stockcount/services/item_service.py
from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional, Union

from sqlalchemy import ColumnElement, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from stockcount.core.tx import tx_scope
from stockcount.models.batch import Batch
from stockcount.models.count_drift import CountDrift
from stockcount.models.item import Item
from stockcount.models.item_count import ItemCount
from stockcount.models.item_form import ItemForm
from stockcount.services.errors import InvalidArgument, NotFound
from stockcount.services.utils.order_by import OrderByInput, build_order_by, columns_of
from stockcount.services.utils.paging import check_fields, check_page

log = logging.getLogger("stockcount.item")

ITEM_WRITABLE = (
    "name",
    "uom",
    "category_id",
    "description",
    "image_url",
    "warning_qty",
    "target_sale_price",
    "target_margin_is_percent",
    "target_margin",
    "default_supplier_id",
    "default_location_id",
)

ItemRef = Union[int, str]


class ItemService:
    """
    商品主数据（Item Store）：

    - get_one 同时接受商品 ID 与形态 ID（ItemForm.id），找不到一律 NotFound；
    - 删除商品时显式清理其漂移 / 盘点录入 / 批次 / 形态（外键也声明了 CASCADE）。
    """

    async def insert(self, session: AsyncSession, data: Mapping[str, Any]) -> Item:
        values = check_fields(data, ITEM_WRITABLE, what="item")
        if not str(values.get("name") or "").strip() or not str(values.get("uom") or "").strip():
            raise InvalidArgument("商品必须提供 name 与 uom")

        async with tx_scope(session):
            obj = Item(**values)
            session.add(obj)
            await session.flush()
        log.info("item created: id=%s name=%r", obj.id, obj.name)
        return obj

    async def update(self, session: AsyncSession, item_id: int, partial: Mapping[str, Any]) -> Item:
        values = check_fields(partial, ITEM_WRITABLE, what="item")
        async with tx_scope(session):
            obj = await session.get(Item, item_id)
            if obj is None:
                raise NotFound(f"商品不存在：id={item_id}", context={"item_id": item_id})
            for k, v in values.items():
                setattr(obj, k, v)
            await session.flush()
        return obj

    async def remove(self, session: AsyncSession, item_id: int) -> Item:
        async with tx_scope(session):
            obj = await session.get(Item, item_id)
            if obj is None:
                raise NotFound(f"商品不存在：id={item_id}", context={"item_id": item_id})

            # 子表先删：漂移 → 盘点录入（引用批次）→ 批次 → 形态
            await session.execute(delete(CountDrift).where(CountDrift.item_id == item_id))
            await session.execute(delete(ItemCount).where(ItemCount.item_id == item_id))
            await session.execute(delete(Batch).where(Batch.item_id == item_id))
            await session.execute(delete(ItemForm).where(ItemForm.item_id == item_id))
            await session.delete(obj)
            await session.flush()
        log.info("item removed: id=%s", item_id)
        return obj

    async def get_delete_impact(self, session: AsyncSession, item_id: int) -> int:
        """删除该商品会连带删除的批次数量。"""
        total = await session.scalar(
            select(func.count()).select_from(Batch).where(Batch.item_id == item_id)
        )
        return int(total or 0)

    async def find_one(self, session: AsyncSession, id_or_form_id: ItemRef) -> Optional[Item]:
        item_id = _as_item_id(id_or_form_id)
        if item_id is not None:
            obj = await session.get(Item, item_id)
            if obj is not None:
                return obj

        # 形态 ID（条码 / 箱码）
        stmt = (
            select(Item)
            .join(ItemForm, ItemForm.item_id == Item.id)
            .where(ItemForm.id == str(id_or_form_id))
            .limit(1)
        )
        return (await session.execute(stmt)).scalars().first()

    async def get_one(self, session: AsyncSession, id_or_form_id: ItemRef) -> Item:
        obj = await self.find_one(session, id_or_form_id)
        if obj is None:
            raise NotFound(f"商品不存在：{id_or_form_id}", context={"item": id_or_form_id})
        return obj

    async def get(
        self,
        session: AsyncSession,
        limit: int,
        offset: int = 0,
        order_by: OrderByInput | None = "name",
        where: Optional[ColumnElement[bool]] = None,
    ) -> List[Item]:
        limit, offset = check_page(limit, offset)
        stmt = select(Item)
        if where is not None:
            stmt = stmt.where(where)
        stmt = stmt.order_by(*build_order_by(order_by, columns_of(Item)), Item.id.asc())
        return list((await session.execute(stmt.limit(limit).offset(offset))).scalars().all())

    async def find(
        self,
        session: AsyncSession,
        query: str,
        limit: int,
        offset: int = 0,
        order_by: OrderByInput | None = "name",
    ) -> List[Item]:
        """名称 / 描述模糊搜索（大小写不敏感）。"""
        return await self.get(session, limit, offset, order_by, where=search_filter(query))


class ItemFormService:
    """商品形态的增删改；按形态 ID 查商品走 ItemService.get_one。"""

    async def insert(
        self, session: AsyncSession, *, form_id: str, item_id: int, qty_multiplier: float
    ) -> ItemForm:
        if float(qty_multiplier) <= 0:
            raise InvalidArgument("qty_multiplier 必须大于 0", context={"qty_multiplier": qty_multiplier})
        async with tx_scope(session):
            if await session.get(Item, item_id) is None:
                raise NotFound(f"商品不存在：id={item_id}", context={"item_id": item_id})
            obj = ItemForm(id=form_id.strip(), item_id=item_id, qty_multiplier=float(qty_multiplier))
            session.add(obj)
            await session.flush()
        return obj

    async def update(self, session: AsyncSession, form_id: str, *, qty_multiplier: float) -> ItemForm:
        if float(qty_multiplier) <= 0:
            raise InvalidArgument("qty_multiplier 必须大于 0", context={"qty_multiplier": qty_multiplier})
        async with tx_scope(session):
            obj = await session.get(ItemForm, form_id)
            if obj is None:
                raise NotFound(f"商品形态不存在：{form_id}", context={"form_id": form_id})
            obj.qty_multiplier = float(qty_multiplier)
            await session.flush()
        return obj

    async def remove(self, session: AsyncSession, form_id: str) -> ItemForm:
        async with tx_scope(session):
            obj = await session.get(ItemForm, form_id)
            if obj is None:
                raise NotFound(f"商品形态不存在：{form_id}", context={"form_id": form_id})
            await session.delete(obj)
            await session.flush()
        return obj

    async def get_from_item(self, session: AsyncSession, item_id: int) -> List[ItemForm]:
        stmt = select(ItemForm).where(ItemForm.item_id == item_id).order_by(ItemForm.id.asc())
        return list((await session.execute(stmt)).scalars().all())


def search_filter(query: str) -> ColumnElement[bool]:
    q_like = f"%{(query or '').strip().lower()}%"
    return or_(
        func.lower(Item.name).like(q_like),
        func.lower(func.coalesce(Item.description, "")).like(q_like),
    )


def _as_item_id(value: ItemRef) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    s = str(value).strip()
    return int(s) if s.isdigit() else None
