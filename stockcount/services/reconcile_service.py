# stockcount/services/reconcile_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Literal, Optional

from sqlalchemy import ColumnElement, select
from sqlalchemy.ext.asyncio import AsyncSession

from stockcount.core.clock import Clock, resolve_now, utc_now
from stockcount.core.tx import tx_scope
from stockcount.models.batch import Batch
from stockcount.models.count_session import CountSession
from stockcount.models.enums import BatchStatus, ConsumptionMethod
from stockcount.models.item_count import ItemCount
from stockcount.services.count_service import QTY_DIGITS, CountService
from stockcount.services.errors import CountSessionClosed, LedgerInconsistency, NotFound
from stockcount.services.stock_service import StockService, parse_method

log = logging.getLogger("stockcount.reconcile")

AdjustmentKind = Literal["override", "consume", "receive", "none"]


@dataclass(frozen=True)
class Adjustment:
    """
    单条盘点录入的对账结果：

    - override  指定批次：数量直接覆盖为盘点值
    - consume   商品级：台账多于实盘，按消耗策略补扣
    - receive   商品级：实盘多于台账，补建一个盘盈批次
    - none      商品级：一致，不动
    """

    item_id: int
    batch_id: Optional[int]
    kind: AdjustmentKind
    counted_qty: float
    ledger_qty: float
    delta: float
    created_batch_id: Optional[int] = None


@dataclass
class ReconcileResult:
    count: CountSession
    adjustments: List[Adjustment] = field(default_factory=list)

    @property
    def changed(self) -> List[Adjustment]:
        return [a for a in self.adjustments if a.delta != 0]


class ReconcileService:
    """
    盘点完成 → 对账（Reconciliation Processor）

    同一事务内：
      1) 校验盘点存在且未完成，写 finished_at = now
      2) 指定批次的录入先处理：覆盖数量，0 → archived，否则 active
      3) 商品级录入：与“除上一步已覆盖批次之外”的 active 台账比较，
         少了按策略补扣，多了补建盘盈批次
      4) 清掉本次盘点的全部漂移
    任何一步失败整体回滚，盘点保持进行中。
    """

    def __init__(
        self,
        stock: StockService | None = None,
        counts: CountService | None = None,
        *,
        method: ConsumptionMethod | str | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.counts = counts or CountService(clock=clock)
        self.stock = stock or StockService(items=self.counts.items, counts=self.counts, clock=clock)
        self.method = parse_method(method)
        self.clock = clock

    async def finish(
        self, session: AsyncSession, count_id: int, *, now: Optional[datetime] = None
    ) -> ReconcileResult:
        ts = resolve_now(now, self.clock)

        async with tx_scope(session):
            count = await session.get(CountSession, count_id)
            if count is None:
                raise NotFound(f"盘点不存在：id={count_id}", context={"count_id": count_id})
            if not count.is_open:
                raise CountSessionClosed(f"盘点已完成：id={count_id}", context={"count_id": count_id})

            # 先落完成时间：对账本身产生的库存变动不再计入本次盘点的漂移
            count.finished_at = ts
            await session.flush()

            entries = await self.counts.get_item_counts(session, count_id)
            scoped = [e for e in entries if e.batch_id is not None]
            generic = [e for e in entries if e.batch_id is None]

            result = ReconcileResult(count=count)
            for entry in scoped:
                result.adjustments.append(await self._override_batch(session, entry, ts))

            # 指定批次已按实盘覆盖，商品级比较时排除
            exclude: Optional[ColumnElement[bool]] = None
            if scoped:
                exclude = Batch.id.not_in(sorted({e.batch_id for e in scoped}))

            # AsyncSession 不可并发使用，逐条执行
            for entry in generic:
                result.adjustments.append(await self._reconcile_item(session, entry, exclude, ts))

            await self.counts.clear_drifts(session, count_id)
            await session.flush()

        log.info(
            "count finished: id=%s scoped=%d generic=%d changed=%d",
            count_id,
            len(scoped),
            len(generic),
            len(result.changed),
        )
        return result

    async def _override_batch(self, session: AsyncSession, entry: ItemCount, ts: datetime) -> Adjustment:
        stmt = (
            select(Batch)
            .where(Batch.id == entry.batch_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        batch = (await session.execute(stmt)).scalars().first()
        if batch is None:
            raise NotFound(f"批次不存在：id={entry.batch_id}", context={"batch_id": entry.batch_id})

        before_active = batch.qty if batch.status is BatchStatus.ACTIVE else 0.0
        counted = float(entry.counted_qty)

        batch.qty = counted
        if counted == 0:
            if batch.status is not BatchStatus.ARCHIVED:
                batch.stockout_at = ts
            batch.status = BatchStatus.ARCHIVED
        else:
            batch.status = BatchStatus.ACTIVE
            batch.stockout_at = None
        await session.flush()

        # 可用量变化照常计入其它进行中盘点的漂移
        delta = round(counted - before_active, QTY_DIGITS)
        if delta != 0:
            await self.counts.record_drift(session, batch.item_id, delta, now=ts)

        return Adjustment(
            item_id=entry.item_id,
            batch_id=batch.id,
            kind="override",
            counted_qty=counted,
            ledger_qty=before_active,
            delta=delta,
        )

    async def _reconcile_item(
        self,
        session: AsyncSession,
        entry: ItemCount,
        exclude: Optional[ColumnElement[bool]],
        ts: datetime,
    ) -> Adjustment:
        counted = float(entry.counted_qty)
        ledger = await self.stock.get_item_qty(session, entry.item_id, BatchStatus.ACTIVE, where=exclude)
        offset = round(counted - ledger, QTY_DIGITS)

        if offset == 0:
            return Adjustment(entry.item_id, None, "none", counted, ledger, 0.0)

        if offset < 0:
            left = await self.stock.consume(
                session, entry.item_id, -offset, self.method, where=exclude, now=ts
            )
            if left != 0:
                raise LedgerInconsistency(
                    f"对账补扣不足：item={entry.item_id} 余量 {left}",
                    context={
                        "count_id": entry.count_id,
                        "item_id": entry.item_id,
                        "counted_qty": counted,
                        "ledger_qty": ledger,
                        "remainder": left,
                    },
                )
            return Adjustment(entry.item_id, None, "consume", counted, ledger, offset)

        # 盘盈：未归类库存，不带供应商 / 库位
        found = await self.stock.receive(
            session,
            {"item_id": entry.item_id, "qty": offset},
            now=ts,
            inherit_defaults=False,
        )
        return Adjustment(entry.item_id, None, "receive", counted, ledger, offset, created_batch_id=found.id)
