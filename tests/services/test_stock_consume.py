# tests/services/test_stock_consume.py
from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from tests.helpers.inventory import (
    T0,
    active_qty,
    at,
    drift_of,
    qty_of,
    seed_batch,
    seed_item,
    status_of,
    stockout_of,
)

from stockcount.models import Batch, BatchStatus, ConsumptionMethod
from stockcount.services.count_service import CountService
from stockcount.services.errors import InvalidArgument, NotFound
from stockcount.services.item_service import ItemFormService
from stockcount.services.master_data import location_service, supplier_service
from stockcount.services.stock_service import StockService

pytestmark = pytest.mark.contract

NOW = at(days=30)


@pytest.mark.asyncio
async def test_fifo_archives_oldest_and_returns_zero(session: AsyncSession):
    """
    A=10（day1）, B=5（day2）；FIFO 消耗 12
    → A 0 / archived / stockout=now，B 3 / active，余量 0
    """
    item = await seed_item(session, "X")
    a = await seed_batch(session, item=item, qty=10, received_at=at(days=1))
    b = await seed_batch(session, item=item, qty=5, received_at=at(days=2))
    await session.commit()

    left = await StockService().consume(session, item, 12, ConsumptionMethod.FIFO, now=NOW)

    assert left == 0
    assert await qty_of(session, a) == 0
    assert await status_of(session, a) is BatchStatus.ARCHIVED
    assert await stockout_of(session, a) == NOW
    assert await qty_of(session, b) == 3
    assert await status_of(session, b) is BatchStatus.ACTIVE
    assert await stockout_of(session, b) is None


@pytest.mark.asyncio
async def test_lifo_takes_newest_first(session: AsyncSession):
    item = await seed_item(session)
    a = await seed_batch(session, item=item, qty=10, received_at=at(days=1))
    b = await seed_batch(session, item=item, qty=5, received_at=at(days=2))
    await session.commit()

    left = await StockService().consume(session, item, 7, "LIFO", now=NOW)

    assert left == 0
    assert await qty_of(session, b) == 0
    assert await status_of(session, b) is BatchStatus.ARCHIVED
    assert await qty_of(session, a) == 8


@pytest.mark.asyncio
async def test_fefo_orders_by_expiry_nulls_last_then_received(session: AsyncSession):
    """
    no_exp：最早入库，但无到期时间 → 最后
    far / near：near 先到期 → 最先
    same_a / same_b：同到期，按入库时间
    """
    item = await seed_item(session)
    no_exp = await seed_batch(session, item=item, qty=1, received_at=at(days=0))
    far = await seed_batch(session, item=item, qty=1, received_at=at(days=1), expiry_at=at(days=90))
    near = await seed_batch(session, item=item, qty=1, received_at=at(days=3), expiry_at=at(days=40))
    same_b = await seed_batch(session, item=item, qty=1, received_at=at(days=5), expiry_at=at(days=60))
    same_a = await seed_batch(session, item=item, qty=1, received_at=at(days=4), expiry_at=at(days=60))
    await session.commit()

    svc = StockService()
    expected = [near, same_a, same_b, far, no_exp]
    for i, batch_id in enumerate(expected, start=1):
        assert await svc.consume(session, item, 1, "fefo", now=NOW) == 0
        await session.commit()
        assert await status_of(session, batch_id) is BatchStatus.ARCHIVED, f"step {i}"
        for later in expected[i:]:
            assert await qty_of(session, later) == 1


@pytest.mark.asyncio
async def test_equal_keys_tie_break_by_id(session: AsyncSession):
    item = await seed_item(session)
    first = await seed_batch(session, item=item, qty=2, received_at=T0)
    second = await seed_batch(session, item=item, qty=2, received_at=T0)
    await session.commit()

    svc = StockService()
    await svc.consume(session, item, 1, "LIFO", now=NOW)
    assert await qty_of(session, first) == 1
    assert await qty_of(session, second) == 2

    await session.commit()
    await svc.consume(session, item, 1, "FIFO", now=NOW)
    assert await qty_of(session, first) == 0
    assert await qty_of(session, second) == 2


@pytest.mark.asyncio
async def test_shortage_returns_remainder_and_empties_stock(session: AsyncSession):
    item = await seed_item(session)
    a = await seed_batch(session, item=item, qty=2, received_at=at(days=1))
    b = await seed_batch(session, item=item, qty=1.5, received_at=at(days=2))
    await session.commit()

    left = await StockService().consume(session, item, 5, now=NOW)

    assert left == pytest.approx(1.5)
    assert await active_qty(session, item) == 0
    assert await status_of(session, a) is BatchStatus.ARCHIVED
    assert await status_of(session, b) is BatchStatus.ARCHIVED


@pytest.mark.asyncio
async def test_non_active_batches_are_never_consumed(session: AsyncSession):
    item = await seed_item(session)
    expired = await seed_batch(session, item=item, qty=4, received_at=at(days=0), status=BatchStatus.EXPIRED)
    archived = await seed_batch(session, item=item, qty=0, received_at=at(days=1), status=BatchStatus.ARCHIVED)
    live = await seed_batch(session, item=item, qty=3, received_at=at(days=2))
    await session.commit()

    left = await StockService().consume(session, item, 5, now=NOW)

    assert left == 2
    assert await qty_of(session, expired) == 4
    assert await status_of(session, expired) is BatchStatus.EXPIRED
    assert await status_of(session, archived) is BatchStatus.ARCHIVED
    assert await qty_of(session, live) == 0


@pytest.mark.asyncio
async def test_where_filter_excludes_batches(session: AsyncSession):
    item = await seed_item(session)
    a = await seed_batch(session, item=item, qty=5, received_at=at(days=1))
    b = await seed_batch(session, item=item, qty=5, received_at=at(days=2))
    await session.commit()

    left = await StockService().consume(session, item, 3, where=Batch.id != a, now=NOW)

    assert left == 0
    assert await qty_of(session, a) == 5
    assert await qty_of(session, b) == 2


@pytest.mark.asyncio
async def test_zero_quantity_is_a_no_op(session: AsyncSession):
    item = await seed_item(session)
    a = await seed_batch(session, item=item, qty=5)
    await session.commit()

    assert await StockService().consume(session, item, 0, now=NOW) == 0
    assert await qty_of(session, a) == 5
    assert await status_of(session, a) is BatchStatus.ACTIVE


@pytest.mark.asyncio
async def test_rejects_negative_quantity_and_unknown_method(session: AsyncSession):
    item = await seed_item(session)
    a = await seed_batch(session, item=item, qty=5)
    await session.commit()

    svc = StockService()
    with pytest.raises(InvalidArgument):
        await svc.consume(session, item, -1, now=NOW)
    with pytest.raises(InvalidArgument):
        await svc.consume(session, item, 1, "RANDOM", now=NOW)
    assert await qty_of(session, a) == 5


@pytest.mark.asyncio
@pytest.mark.parametrize("bad", [float("nan"), float("inf"), "nan", "lots"])
async def test_non_finite_quantity_leaves_stock_and_drift_untouched(session: AsyncSession, bad):
    item = await seed_item(session)
    a = await seed_batch(session, item=item, qty=5, received_at=at(days=1))
    b = await seed_batch(session, item=item, qty=3, received_at=at(days=2))
    await session.commit()

    counts = CountService()
    count_id = (await counts.start(session, now=T0)).id
    await counts.record_count(session, count_id, item, None, 8, now=T0)
    await session.commit()

    with pytest.raises(InvalidArgument):
        await StockService(counts=counts).consume(session, item, bad, now=NOW)

    assert await qty_of(session, a) == 5
    assert await qty_of(session, b) == 3
    assert await status_of(session, a) is BatchStatus.ACTIVE
    assert await active_qty(session, item) == 8
    assert await drift_of(session, count_id, item) is None


@pytest.mark.asyncio
async def test_unknown_item_is_not_found(session: AsyncSession):
    with pytest.raises(NotFound):
        await StockService().consume(session, 4242, 1, now=NOW)


@pytest.mark.asyncio
async def test_consume_by_form_id(session: AsyncSession):
    item = await seed_item(session)
    a = await seed_batch(session, item=item, qty=24)
    await session.commit()

    await ItemFormService().insert(session, form_id="BOX-12", item_id=item, qty_multiplier=12)
    left = await StockService().consume(session, "BOX-12", 4, now=NOW)

    assert left == 0
    assert await qty_of(session, a) == 20


@pytest.mark.asyncio
async def test_fractional_consumption_lands_exactly_on_zero(session: AsyncSession):
    item = await seed_item(session)
    a = await seed_batch(session, item=item, qty=0.1, received_at=at(days=1))
    b = await seed_batch(session, item=item, qty=0.2, received_at=at(days=2))
    await session.commit()

    left = await StockService().consume(session, item, 0.3, now=NOW)

    assert left == 0
    assert await status_of(session, a) is BatchStatus.ARCHIVED
    assert await status_of(session, b) is BatchStatus.ARCHIVED


@pytest.mark.asyncio
async def test_consume_and_receive_record_drift_for_open_counts(session: AsyncSession):
    item = await seed_item(session)
    await seed_batch(session, item=item, qty=10)
    other = await seed_item(session, "OTHER")
    await seed_batch(session, item=other, qty=10)
    await session.commit()

    counts = CountService()
    count = await counts.start(session, now=T0)
    await counts.record_count(session, count.id, item, None, 10, now=T0)

    svc = StockService(counts=counts)
    await svc.consume(session, item, 4, now=NOW)
    assert await drift_of(session, count.id, item) == -4

    await session.commit()
    await svc.receive(session, {"item_id": item, "qty": 6}, now=NOW)
    assert await drift_of(session, count.id, item) == 2

    # 本次盘点没录过的商品不记漂移
    await session.commit()
    await svc.consume(session, other, 1, now=NOW)
    assert await drift_of(session, count.id, other) is None


@pytest.mark.asyncio
async def test_receive_inherits_item_defaults(session: AsyncSession):
    sup = await supplier_service().insert(session, {"name": "ACME"})
    loc = await location_service().insert(session, {"name": "Shelf A"})
    item = await seed_item(session, default_supplier_id=sup.id, default_location_id=loc.id)
    await session.commit()

    svc = StockService()
    batch = await svc.receive(session, {"item_id": item, "qty": 3}, now=NOW)
    assert batch.supplier_id == sup.id
    assert batch.location_id == loc.id
    assert batch.received_at == NOW
    assert batch.status is BatchStatus.ACTIVE

    await session.commit()
    bare = await svc.receive(session, {"item_id": item, "qty": 1}, now=NOW, inherit_defaults=False)
    assert bare.supplier_id is None
    assert bare.location_id is None


@pytest.mark.asyncio
async def test_injected_clock_stamps_every_mutation_once(session: AsyncSession):
    item = await seed_item(session)
    a = await seed_batch(session, item=item, qty=1, received_at=at(days=1))
    b = await seed_batch(session, item=item, qty=1, received_at=at(days=2))
    await session.commit()

    ticks = []

    def clock():
        ticks.append(NOW)
        return NOW

    assert await StockService(clock=clock).consume(session, item, 2) == 0
    assert await stockout_of(session, a) == NOW
    assert await stockout_of(session, b) == NOW
    assert len(ticks) == 1
