# stockcount/services/stock_service.py
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import ColumnElement, and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stockcount.core.clock import Clock, resolve_now, utc_now
from stockcount.core.config import get_settings
from stockcount.core.tx import tx_scope
from stockcount.models.batch import Batch
from stockcount.models.enums import BatchStatus, ConsumptionMethod
from stockcount.models.item import Item
from stockcount.services.batch_service import BatchService, parse_status
from stockcount.services.count_service import QTY_DIGITS, CountService
from stockcount.services.errors import InvalidArgument
from stockcount.services.item_service import ItemRef, ItemService, search_filter
from stockcount.services.utils.order_by import OrderByInput, build_order_by, columns_of
from stockcount.services.utils.paging import check_page, check_qty

log = logging.getLogger("stockcount.stock")

# 各消耗策略的批次顺序；id 升序兜底，保证同键时顺序稳定
CONSUMPTION_ORDERS: Mapping[ConsumptionMethod, Tuple[ColumnElement[Any], ...]] = {
    ConsumptionMethod.FIFO: (Batch.received_at.asc(), Batch.id.asc()),
    ConsumptionMethod.LIFO: (Batch.received_at.desc(), Batch.id.asc()),
    ConsumptionMethod.FEFO: (
        Batch.expiry_at.asc().nulls_last(),
        Batch.received_at.asc(),
        Batch.id.asc(),
    ),
}


@dataclass(frozen=True)
class ItemWithQty:
    item: Item
    total_qty: float


def parse_method(value: ConsumptionMethod | str | None) -> ConsumptionMethod:
    if value is None:
        value = get_settings().DEFAULT_CONSUMPTION_METHOD
    try:
        return ConsumptionMethod.parse(value)
    except ValueError:
        raise InvalidArgument(
            f"未知消耗策略：{value!r}", context={"allowed": [m.value for m in ConsumptionMethod]}
        ) from None


class StockService:
    """
    库存消耗引擎（Consumption Engine）

    - consume(...)：按 FIFO / LIFO / FEFO 顺序从 active 批次扣减；
        * 批次扣到 0 → archived + stockout_at = now
        * 库存不足不报错，返回未扣完的余量（软失败）
        * 扣减与漂移记录在同一事务内
    - receive(...)：新建批次 + 记 +qty 漂移
    - expire_due(...)：到期批次 active → expired，记负向漂移
    - 数量查询：get_item_qty / get_item_with_qty / get_items / find_items
    """

    def __init__(
        self,
        *,
        items: ItemService | None = None,
        batches: BatchService | None = None,
        counts: CountService | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.items = items or ItemService()
        self.batches = batches or BatchService(self.items, clock=clock)
        self.counts = counts or CountService(self.items, clock=clock)
        self.clock = clock

    # ------------------------------------------------------------------
    # 写
    # ------------------------------------------------------------------

    async def consume(
        self,
        session: AsyncSession,
        item_id: ItemRef,
        quantity: float,
        method: ConsumptionMethod | str | None = None,
        where: Optional[ColumnElement[bool]] = None,
        *,
        now: Optional[datetime] = None,
    ) -> float:
        """
        扣减某商品 quantity 个单位，返回未能扣减的余量（0 表示全部满足）。

        where 追加在 “status = active” 之后，用于排除对账已覆盖的批次等。
        """
        quantity = check_qty(quantity, field="quantity")
        policy = parse_method(method)
        ts = resolve_now(now, self.clock)
        remaining = quantity

        async with tx_scope(session):
            item = await self.items.get_one(session, item_id)

            cond: ColumnElement[bool] = Batch.status == BatchStatus.ACTIVE
            if where is not None:
                cond = and_(cond, where)

            batches = await self.batches.all_by_item(
                session,
                item.id,
                order_by=CONSUMPTION_ORDERS[policy],
                where=cond,
                for_update=True,
            )

            touched = 0
            for batch in batches:
                if remaining <= 0:
                    break
                take = min(batch.qty, remaining)
                if take <= 0:
                    continue
                batch.qty = round(batch.qty - take, QTY_DIGITS)
                remaining = round(remaining - take, QTY_DIGITS)
                touched += 1
                if batch.qty == 0:
                    batch.status = BatchStatus.ARCHIVED
                    batch.stockout_at = ts
            await session.flush()

            consumed = round(quantity - remaining, QTY_DIGITS)
            if consumed > 0:
                await self.counts.record_drift(session, item.id, -consumed, now=ts)

        log.info(
            "consume: item=%s method=%s requested=%s consumed=%s remainder=%s batches=%d",
            item.id,
            policy.value,
            quantity,
            consumed,
            remaining,
            touched,
        )
        return remaining

    async def receive(
        self,
        session: AsyncSession,
        data: Mapping[str, Any],
        *,
        now: Optional[datetime] = None,
        inherit_defaults: bool = True,
    ) -> Batch:
        """入库：新建批次；active 批次的数量计入进行中盘点的漂移。"""
        ts = resolve_now(now, self.clock)
        async with tx_scope(session):
            batch = await self.batches.insert(session, data, now=ts, inherit_defaults=inherit_defaults)
            if batch.status is BatchStatus.ACTIVE and batch.qty > 0:
                await self.counts.record_drift(session, batch.item_id, batch.qty, now=ts)
        return batch

    async def expire_due(self, session: AsyncSession, *, now: Optional[datetime] = None) -> List[Batch]:
        """active 且 expiry_at <= now 的批次 → expired；按商品汇总记负向漂移。"""
        ts = resolve_now(now, self.clock)
        async with tx_scope(session):
            stmt = (
                select(Batch)
                .where(
                    Batch.status == BatchStatus.ACTIVE,
                    Batch.expiry_at.is_not(None),
                    Batch.expiry_at <= ts,
                )
                .order_by(Batch.item_id.asc(), Batch.id.asc())
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            expired = list((await session.execute(stmt)).scalars().all())

            lost: Dict[int, float] = defaultdict(float)
            for batch in expired:
                batch.status = BatchStatus.EXPIRED
                lost[batch.item_id] += batch.qty
            await session.flush()

            for item_id, qty in lost.items():
                if qty > 0:
                    await self.counts.record_drift(session, item_id, -qty, now=ts)

        if expired:
            log.info("expired %d batches across %d items", len(expired), len(lost))
        return expired

    # ------------------------------------------------------------------
    # 读
    # ------------------------------------------------------------------

    async def get_item_qty(
        self,
        session: AsyncSession,
        item_id: int,
        status: BatchStatus | str = BatchStatus.ACTIVE,
        where: Optional[ColumnElement[bool]] = None,
    ) -> float:
        """某商品指定状态批次的数量合计（无批次 → 0）"""
        stmt = select(func.coalesce(func.sum(Batch.qty), 0.0)).where(
            Batch.item_id == item_id,
            Batch.status == parse_status(status),
        )
        if where is not None:
            stmt = stmt.where(where)
        return float(await session.scalar(stmt) or 0.0)

    async def get_item_with_qty(
        self,
        session: AsyncSession,
        id_or_form_id: ItemRef,
        status: BatchStatus | str = BatchStatus.ACTIVE,
    ) -> ItemWithQty:
        item = await self.items.get_one(session, id_or_form_id)
        return ItemWithQty(item=item, total_qty=await self.get_item_qty(session, item.id, status))

    async def get_items(
        self,
        session: AsyncSession,
        status: BatchStatus | str,
        limit: int,
        offset: int = 0,
        order_by: OrderByInput | None = None,
        where: Optional[ColumnElement[bool]] = None,
    ) -> List[ItemWithQty]:
        """
        商品列表 + 指定状态批次的数量合计（total_qty）。

        未指定排序时：active → total_qty 升序（缺货在前），其它状态 → 降序。
        """
        limit, offset = check_page(limit, offset)
        status = parse_status(status)
        if order_by is None:
            order_by = {"key": "total_qty", "dir": "asc" if status is BatchStatus.ACTIVE else "desc"}

        total_qty = func.coalesce(func.sum(Batch.qty), 0.0).label("total_qty")
        stmt = (
            select(Item, total_qty)
            .outerjoin(Batch, and_(Batch.item_id == Item.id, Batch.status == status))
            .group_by(Item.id)
        )
        if where is not None:
            stmt = stmt.where(where)

        columns = {**columns_of(Item), "total_qty": total_qty}
        stmt = stmt.order_by(*build_order_by(order_by, columns), Item.id.asc()).limit(limit).offset(offset)

        rows = (await session.execute(stmt)).all()
        return [ItemWithQty(item=item, total_qty=float(qty or 0.0)) for item, qty in rows]

    async def find_items(
        self,
        session: AsyncSession,
        query: str,
        status: BatchStatus | str,
        limit: int,
        offset: int = 0,
        order_by: OrderByInput | None = None,
    ) -> List[ItemWithQty]:
        """名称 / 描述模糊搜索（大小写不敏感）+ 数量合计"""
        return await self.get_items(session, status, limit, offset, order_by, where=search_filter(query))
