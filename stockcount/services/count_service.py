# stockcount/services/count_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import ColumnElement, and_, delete, distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stockcount.core.clock import Clock, resolve_now, utc_now
from stockcount.core.config import get_settings
from stockcount.core.tx import tx_scope
from stockcount.models.batch import Batch
from stockcount.models.count_drift import CountDrift
from stockcount.models.count_session import CountSession
from stockcount.models.item import Item
from stockcount.models.item_count import ItemCount
from stockcount.services.errors import CountSessionClosed, InvalidArgument, NotFound
from stockcount.services.item_service import ItemService
from stockcount.services.utils.order_by import OrderByInput, build_order_by, columns_of
from stockcount.services.utils.paging import check_page, check_qty

if TYPE_CHECKING:
    from stockcount.services.reconcile_service import ReconcileResult

log = logging.getLogger("stockcount.count")

# 浮点累计误差收敛位数（与消耗一致）
QTY_DIGITS = 9


@dataclass(frozen=True)
class CountProgress:
    total_items: int
    total_counted: int


@dataclass(frozen=True)
class ItemTally:
    """商品 + 其在某次盘点里的录入条数"""

    item: Item
    completed_counts: int


class CountService:
    """
    盘点会话（Count Session Manager）

    状态：open → finished（finish 触发对账）；删除与状态无关。

    漂移（drift）：
      - 某商品在进行中的盘点里已被录入过，之后库存又变动 → 记到 count_drifts，带符号累计；
      - 重新录入该商品（record_count）或盘点完成时清除；
      - 调用方（消耗 / 入库 / 对账）在同一事务里调用 record_drift。
    """

    def __init__(
        self,
        items: ItemService | None = None,
        *,
        keep_zero_drift: Optional[bool] = None,
        lock_finished: Optional[bool] = None,
        clock: Clock = utc_now,
    ) -> None:
        settings = get_settings()
        self.items = items or ItemService()
        self.keep_zero_drift = settings.DRIFT_KEEP_ZERO if keep_zero_drift is None else keep_zero_drift
        self.lock_finished = settings.LOCK_FINISHED_COUNTS if lock_finished is None else lock_finished
        self.clock = clock

    # ------------------------------------------------------------------
    # 会话生命周期
    # ------------------------------------------------------------------

    async def start(self, session: AsyncSession, *, now: Optional[datetime] = None) -> CountSession:
        ts = resolve_now(now, self.clock)
        async with tx_scope(session):
            count = CountSession(started_at=ts)
            session.add(count)
            await session.flush()
        log.info("count started: id=%s", count.id)
        return count

    async def finish(
        self, session: AsyncSession, count_id: int, *, now: Optional[datetime] = None
    ) -> "ReconcileResult":
        """完成盘点 = 对账；见 ReconcileService.finish。"""
        from stockcount.services.reconcile_service import ReconcileService

        return await ReconcileService(counts=self, clock=self.clock).finish(session, count_id, now=now)

    async def remove(self, session: AsyncSession, count_id: int) -> CountSession:
        async with tx_scope(session):
            count = await self.require(session, count_id)
            await session.execute(delete(CountDrift).where(CountDrift.count_id == count_id))
            await session.execute(delete(ItemCount).where(ItemCount.count_id == count_id))
            await session.delete(count)
            await session.flush()
        log.info("count removed: id=%s", count_id)
        return count

    async def get_one(self, session: AsyncSession, count_id: int) -> Optional[CountSession]:
        return await session.get(CountSession, count_id)

    async def require(self, session: AsyncSession, count_id: int) -> CountSession:
        count = await session.get(CountSession, count_id)
        if count is None:
            raise NotFound(f"盘点不存在：id={count_id}", context={"count_id": count_id})
        return count

    async def list(
        self,
        session: AsyncSession,
        order_by: OrderByInput | None = "started_at",
        where: Optional[ColumnElement[bool]] = None,
    ) -> List[CountSession]:
        stmt = select(CountSession)
        if where is not None:
            stmt = stmt.where(where)
        stmt = stmt.order_by(*build_order_by(order_by, columns_of(CountSession)), CountSession.id.asc())
        return list((await session.execute(stmt)).scalars().all())

    # ------------------------------------------------------------------
    # 录入
    # ------------------------------------------------------------------

    async def record_count(
        self,
        session: AsyncSession,
        count_id: int,
        item_id: int,
        batch_id: Optional[int],
        counted_qty: float,
        *,
        now: Optional[datetime] = None,
    ) -> ItemCount:
        """
        录入一条盘点结果（业务键 count_id + item_id + batch_id；batch_id=None 为商品级）。

        同键重复录入 → 原地覆盖数量与时间；同时清掉该商品在本次盘点里的漂移。
        """
        counted_qty = check_qty(counted_qty, field="counted_qty")
        ts = resolve_now(now, self.clock)

        async with tx_scope(session):
            count = await self.require(session, count_id)
            if not count.is_open and self.lock_finished:
                raise CountSessionClosed(
                    f"盘点已完成：id={count_id}", context={"count_id": count_id}
                )

            item = await self.items.get_one(session, item_id)

            if batch_id is not None:
                batch = await session.get(Batch, batch_id)
                if batch is None:
                    raise NotFound(f"批次不存在：id={batch_id}", context={"batch_id": batch_id})
                if batch.item_id != item.id:
                    raise InvalidArgument(
                        "批次不属于该商品",
                        context={"batch_id": batch_id, "item_id": item.id, "batch_item_id": batch.item_id},
                    )

            key_batch = ItemCount.batch_id.is_(None) if batch_id is None else ItemCount.batch_id == batch_id
            stmt = select(ItemCount).where(
                ItemCount.count_id == count_id,
                ItemCount.item_id == item.id,
                key_batch,
            )
            entry = (await session.execute(stmt)).scalars().first()
            if entry is None:
                entry = ItemCount(
                    count_id=count_id,
                    item_id=item.id,
                    batch_id=batch_id,
                    counted_qty=counted_qty,
                    counted_at=ts,
                )
                session.add(entry)
            else:
                entry.counted_qty = counted_qty
                entry.counted_at = ts

            await self.clear_drifts(session, count_id, item.id)
            await session.flush()

        log.info(
            "item counted: count=%s item=%s batch=%s qty=%s",
            count_id,
            item.id,
            batch_id,
            entry.counted_qty,
        )
        return entry

    async def get_item_counts(self, session: AsyncSession, count_id: int) -> List[ItemCount]:
        stmt = select(ItemCount).where(ItemCount.count_id == count_id).order_by(ItemCount.id.asc())
        return list((await session.execute(stmt)).scalars().all())

    # ------------------------------------------------------------------
    # 漂移
    # ------------------------------------------------------------------

    async def get_active_counts_for_item(self, session: AsyncSession, item_id: int) -> List[int]:
        """已录入过该商品、且仍在进行中的盘点 ID（升序）"""
        stmt = (
            select(distinct(CountSession.id))
            .join(ItemCount, ItemCount.count_id == CountSession.id)
            .where(ItemCount.item_id == item_id, CountSession.finished_at.is_(None))
            .order_by(CountSession.id.asc())
        )
        return [int(x) for x in (await session.execute(stmt)).scalars().all()]

    async def record_drift(
        self,
        session: AsyncSession,
        item_id: int,
        qty_change: float,
        *,
        now: Optional[datetime] = None,
    ) -> List[CountDrift]:
        """
        对所有“已盘过该商品的进行中盘点”累计漂移：

          qty_change == 0                → 不做任何事
          该盘点尚无此商品的漂移行      → 新建 qty_change
          已有                           → 原值 + qty_change

        累计到 0 的行默认保留；keep_zero_drift=False 时删除。
        """
        delta = float(qty_change)
        if delta == 0:
            return []
        ts = resolve_now(now, self.clock)

        touched: List[CountDrift] = []
        async with tx_scope(session):
            for count_id in await self.get_active_counts_for_item(session, item_id):
                drift = await session.get(CountDrift, (count_id, item_id))
                if drift is None:
                    drift = CountDrift(count_id=count_id, item_id=item_id, qty_change=delta, drift_at=ts)
                    session.add(drift)
                else:
                    drift.qty_change = round(drift.qty_change + delta, QTY_DIGITS)
                    drift.drift_at = ts

                if drift.qty_change == 0 and not self.keep_zero_drift:
                    if drift in session.new:
                        session.expunge(drift)
                    else:
                        await session.delete(drift)
                    continue
                touched.append(drift)
            await session.flush()

        if touched:
            log.debug("drift recorded: item=%s delta=%s counts=%s", item_id, delta, [d.count_id for d in touched])
        return touched

    async def get_drifts(self, session: AsyncSession, count_id: int) -> List[CountDrift]:
        stmt = select(CountDrift).where(CountDrift.count_id == count_id).order_by(CountDrift.item_id.asc())
        return list((await session.execute(stmt)).scalars().all())

    async def clear_drifts(
        self, session: AsyncSession, count_id: int, item_id: Optional[int] = None
    ) -> int:
        """删除某盘点（可选：某商品）的漂移行，返回删除条数。"""
        conds = [CountDrift.count_id == count_id]
        if item_id is not None:
            conds.append(CountDrift.item_id == item_id)
        async with tx_scope(session):
            res = await session.execute(delete(CountDrift).where(and_(*conds)))
        return int(res.rowcount or 0)

    # ------------------------------------------------------------------
    # 进度 / 列表
    # ------------------------------------------------------------------

    async def get_progress(
        self,
        session: AsyncSession,
        count_id: int,
        where: Optional[ColumnElement[bool]] = None,
    ) -> CountProgress:
        """
        盘点进度：
          total_items   范围内的商品总数（where 作用于 Item）
          total_counted 其中在本次盘点里至少录入过一次的商品数
        """
        await self.require(session, count_id)

        total_stmt = select(func.count(Item.id))
        counted_stmt = (
            select(func.count(distinct(ItemCount.item_id)))
            .join(Item, Item.id == ItemCount.item_id)
            .where(ItemCount.count_id == count_id)
        )
        if where is not None:
            total_stmt = total_stmt.where(where)
            counted_stmt = counted_stmt.where(where)

        total_items = int(await session.scalar(total_stmt) or 0)
        total_counted = int(await session.scalar(counted_stmt) or 0)
        return CountProgress(total_items=total_items, total_counted=total_counted)

    async def get_items(
        self,
        session: AsyncSession,
        count_id: int,
        limit: int,
        offset: int = 0,
        order_by: OrderByInput | None = "completed_counts",
        where: Optional[ColumnElement[bool]] = None,
    ) -> List[ItemTally]:
        """商品列表 + 每个商品在本次盘点里的录入条数（可按 completed_counts 排序）"""
        limit, offset = check_page(limit, offset)
        completed = func.count(ItemCount.id).label("completed_counts")

        stmt = (
            select(Item, completed)
            .outerjoin(
                ItemCount,
                and_(ItemCount.item_id == Item.id, ItemCount.count_id == count_id),
            )
            .group_by(Item.id)
        )
        if where is not None:
            stmt = stmt.where(where)

        columns = {**columns_of(Item), "completed_counts": completed}
        stmt = stmt.order_by(*build_order_by(order_by, columns), Item.id.asc()).limit(limit).offset(offset)

        rows = (await session.execute(stmt)).all()
        return [ItemTally(item=item, completed_counts=int(n)) for item, n in rows]
