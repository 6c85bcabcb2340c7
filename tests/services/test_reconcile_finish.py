# tests/services/test_reconcile_finish.py
from __future__ import annotations

from datetime import datetime
from typing import Optional

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tests.helpers.inventory import (
    T0,
    at,
    drift_of,
    qty_of,
    seed_batch,
    seed_item,
    status_of,
    stockout_of,
)

from stockcount.models import Batch, BatchStatus, CountSession
from stockcount.services.count_service import CountService
from stockcount.services.errors import CountSessionClosed, LedgerInconsistency, NotFound
from stockcount.services.master_data import supplier_service
from stockcount.services.reconcile_service import ReconcileService
from stockcount.services.stock_service import StockService

pytestmark = pytest.mark.contract

NOW = at(days=10)


async def _finished_at(session: AsyncSession, count_id: int) -> Optional[datetime]:
    return await session.scalar(select(CountSession.finished_at).where(CountSession.id == count_id))


async def _batch_count(session: AsyncSession, item: int) -> int:
    return int(await session.scalar(select(func.count()).select_from(Batch).where(Batch.item_id == item)))


@pytest.mark.asyncio
async def test_generic_count_below_ledger_consumes_difference(session: AsyncSession):
    """
    A=10（day1）, B=5（day2），先消耗 12 → B 剩 3；
    商品级盘点 1 → 偏差 -2 → FIFO 补扣 → B 剩 1
    """
    item = await seed_item(session, "X")
    a = await seed_batch(session, item=item, qty=10, received_at=at(days=1))
    b = await seed_batch(session, item=item, qty=5, received_at=at(days=2))
    await session.commit()

    counts = CountService()
    assert await StockService(counts=counts).consume(session, item, 12, now=at(days=3)) == 0

    count = await counts.start(session, now=at(days=4))
    await counts.record_count(session, count.id, item, None, 1, now=at(days=4))
    result = await counts.finish(session, count.id, now=NOW)

    assert await qty_of(session, b) == 1
    assert await status_of(session, b) is BatchStatus.ACTIVE
    assert await qty_of(session, a) == 0
    assert await stockout_of(session, a) == at(days=3)

    [adj] = result.adjustments
    assert (adj.kind, adj.counted_qty, adj.ledger_qty, adj.delta) == ("consume", 1, 3, -2)
    assert result.count.finished_at == NOW
    assert await _finished_at(session, count.id) == NOW
    assert await counts.get_drifts(session, count.id) == []


@pytest.mark.asyncio
async def test_found_stock_creates_unattributed_batch(session: AsyncSession):
    sup = await supplier_service().insert(session, {"name": "ACME"})
    item = await seed_item(session, default_supplier_id=sup.id)
    old = await seed_batch(session, item=item, qty=0, status=BatchStatus.ARCHIVED, stockout_at=T0)
    await session.commit()

    counts = CountService()
    count = await counts.start(session, now=T0)
    await counts.record_count(session, count.id, item, None, 5, now=T0)
    result = await counts.finish(session, count.id, now=NOW)

    [adj] = result.adjustments
    assert adj.kind == "receive"
    assert adj.delta == 5
    assert adj.created_batch_id is not None

    found = await session.get(Batch, adj.created_batch_id)
    assert found.qty == 5
    assert found.status is BatchStatus.ACTIVE
    assert found.received_at == NOW
    assert found.supplier_id is None
    assert found.location_id is None

    assert await _batch_count(session, item) == 2
    assert await qty_of(session, old) == 0
    assert await stockout_of(session, old) == T0


@pytest.mark.asyncio
async def test_zero_offset_only_clears_drift(session: AsyncSession):
    item = await seed_item(session)
    a = await seed_batch(session, item=item, qty=2, received_at=at(days=1))
    b = await seed_batch(session, item=item, qty=4, received_at=at(days=2))
    await session.commit()

    counts = CountService()
    count = await counts.start(session, now=T0)
    await counts.record_count(session, count.id, item, None, 5, now=T0)
    await StockService(counts=counts).consume(session, item, 1, now=at(days=3))
    assert await drift_of(session, count.id, item) == -1
    await session.commit()

    result = await counts.finish(session, count.id, now=NOW)

    [adj] = result.adjustments
    assert (adj.kind, adj.delta) == ("none", 0)
    assert result.changed == []
    assert await qty_of(session, a) == 1
    assert await qty_of(session, b) == 4
    assert await _batch_count(session, item) == 2
    assert await drift_of(session, count.id, item) is None


@pytest.mark.asyncio
async def test_batch_counts_override_and_are_excluded_from_item_count(session: AsyncSession):
    """
    A=10（day1）指定批次盘为 7；商品级盘点 3 只与 B=5 比较 → 从 B 补扣 2，
    即使 FIFO 顺序本该先动 A
    """
    item = await seed_item(session)
    a = await seed_batch(session, item=item, qty=10, received_at=at(days=1))
    b = await seed_batch(session, item=item, qty=5, received_at=at(days=2))
    await session.commit()

    counts = CountService()
    count = await counts.start(session, now=T0)
    await counts.record_count(session, count.id, item, a, 7, now=T0)
    await counts.record_count(session, count.id, item, None, 3, now=T0)
    result = await counts.finish(session, count.id, now=NOW)

    assert await qty_of(session, a) == 7
    assert await qty_of(session, b) == 3
    assert [(x.kind, x.batch_id, x.delta) for x in result.adjustments] == [
        ("override", a, -3),
        ("consume", None, -2),
    ]


@pytest.mark.asyncio
async def test_batch_override_status_transitions(session: AsyncSession):
    item = await seed_item(session)
    emptied = await seed_batch(session, item=item, qty=4, received_at=at(days=1))
    revived = await seed_batch(session, item=item, qty=0, status=BatchStatus.ARCHIVED, stockout_at=at(days=2))
    expired = await seed_batch(session, item=item, qty=3, status=BatchStatus.EXPIRED, expiry_at=at(days=2))
    gone = await seed_batch(session, item=item, qty=0, status=BatchStatus.ARCHIVED, stockout_at=at(days=1))
    await session.commit()

    counts = CountService()
    count = await counts.start(session, now=T0)
    await counts.record_count(session, count.id, item, emptied, 0, now=T0)
    await counts.record_count(session, count.id, item, revived, 2, now=T0)
    await counts.record_count(session, count.id, item, expired, 3, now=T0)
    await counts.record_count(session, count.id, item, gone, 0, now=T0)
    result = await counts.finish(session, count.id, now=NOW)

    # 盘为 0 → archived，stockout = 对账时间
    assert await status_of(session, emptied) is BatchStatus.ARCHIVED
    assert await stockout_of(session, emptied) == NOW
    # 盘出数量 → 回到 active，清空 stockout
    assert await status_of(session, revived) is BatchStatus.ACTIVE
    assert await qty_of(session, revived) == 2
    assert await stockout_of(session, revived) is None
    assert await status_of(session, expired) is BatchStatus.ACTIVE
    # 本来就是 archived 的保留原 stockout
    assert await stockout_of(session, gone) == at(days=1)

    assert [x.delta for x in result.adjustments] == [-4, 2, 3, 0]


@pytest.mark.asyncio
async def test_finish_twice_is_rejected_without_side_effects(session: AsyncSession):
    item = await seed_item(session)
    b = await seed_batch(session, item=item, qty=5)
    await session.commit()

    counts = CountService()
    count_id = (await counts.start(session, now=T0)).id
    await counts.record_count(session, count_id, item, None, 4, now=T0)
    await counts.finish(session, count_id, now=NOW)
    assert await qty_of(session, b) == 4
    await session.commit()

    with pytest.raises(CountSessionClosed):
        await counts.finish(session, count_id, now=at(days=20))

    assert await qty_of(session, b) == 4
    assert await _finished_at(session, count_id) == NOW
    await session.commit()

    with pytest.raises(NotFound):
        await ReconcileService().finish(session, 999, now=NOW)


@pytest.mark.asyncio
async def test_adjustments_drift_into_other_open_counts(session: AsyncSession):
    item = await seed_item(session)
    a = await seed_batch(session, item=item, qty=6, received_at=at(days=1))
    b = await seed_batch(session, item=item, qty=4, received_at=at(days=2))
    await session.commit()

    counts = CountService()
    closing = await counts.start(session, now=T0)
    other = await counts.start(session, now=T0)
    await counts.record_count(session, closing.id, item, a, 5, now=T0)
    await counts.record_count(session, closing.id, item, None, 1, now=T0)
    await counts.record_count(session, other.id, item, None, 10, now=T0)

    await counts.finish(session, closing.id, now=NOW)

    # 覆盖 A：-1；商品级补扣 B：-3
    assert await drift_of(session, other.id, item) == -4
    assert await drift_of(session, closing.id, item) is None
    assert await _finished_at(session, other.id) is None


class _ShortStock(StockService):
    """补扣后仍报告余量：模拟台账在读与扣之间不一致"""

    async def consume(self, session, item_id, quantity, method=None, where=None, *, now=None):
        await super().consume(session, item_id, quantity, method, where, now=now)
        return 1.0


@pytest.mark.asyncio
async def test_consume_remainder_rolls_back_whole_finish(session: AsyncSession):
    item = await seed_item(session)
    scoped = await seed_batch(session, item=item, qty=3, received_at=at(days=1))
    b = await seed_batch(session, item=item, qty=5, received_at=at(days=2))
    await session.commit()

    counts = CountService()
    count_id = (await counts.start(session, now=T0)).id
    await counts.record_count(session, count_id, item, scoped, 0, now=T0)
    await counts.record_count(session, count_id, item, None, 2, now=T0)

    reconciler = ReconcileService(stock=_ShortStock(counts=counts), counts=counts)
    with pytest.raises(LedgerInconsistency) as ei:
        await reconciler.finish(session, count_id, now=NOW)
    assert ei.value.context["item_id"] == item

    # 覆盖、补扣、完成时间全部回滚
    assert await _finished_at(session, count_id) is None
    assert await qty_of(session, scoped) == 3
    assert await status_of(session, scoped) is BatchStatus.ACTIVE
    assert await qty_of(session, b) == 5
    assert len(await counts.get_item_counts(session, count_id)) == 2
