# tests/services/test_item_master.py
from __future__ import annotations

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tests.helpers.inventory import T0, seed_batch, seed_item

from stockcount.models import Batch, CountDrift, Item, ItemCount, ItemForm
from stockcount.services.count_service import CountService
from stockcount.services.errors import InvalidArgument, NotFound
from stockcount.services.item_service import ItemFormService, ItemService
from stockcount.services.master_data import category_service, location_service, supplier_service

pytestmark = pytest.mark.contract


async def _rows(session: AsyncSession, model, *conds) -> int:
    stmt = select(func.count()).select_from(model)
    if conds:
        stmt = stmt.where(*conds)
    return int(await session.scalar(stmt))


@pytest.mark.asyncio
async def test_item_crud_and_lookup_by_form(session: AsyncSession):
    items = ItemService()
    forms = ItemFormService()

    cola = await items.insert(session, {"name": "Cola 330ml", "uom": "can", "description": "fizzy"})
    await items.insert(session, {"name": "Water", "uom": "bottle"})
    await forms.insert(session, form_id=" 6901234567890 ", item_id=cola.id, qty_multiplier=1)
    await forms.insert(session, form_id="CASE-24", item_id=cola.id, qty_multiplier=24)

    assert (await items.get_one(session, cola.id)).id == cola.id
    assert (await items.get_one(session, str(cola.id))).id == cola.id
    assert (await items.get_one(session, "CASE-24")).id == cola.id
    assert (await items.get_one(session, "6901234567890")).id == cola.id
    with pytest.raises(NotFound):
        await items.get_one(session, "NO-SUCH-CODE")

    assert [f.id for f in await forms.get_from_item(session, cola.id)] == ["6901234567890", "CASE-24"]

    found = await items.find(session, "FIZZ", limit=10)
    assert [i.id for i in found] == [cola.id]
    assert [i.name for i in await items.get(session, limit=10)] == ["Cola 330ml", "Water"]

    updated = await items.update(session, cola.id, {"warning_qty": 12})
    assert updated.warning_qty == 12

    with pytest.raises(InvalidArgument):
        await items.insert(session, {"name": " ", "uom": "pcs"})
    with pytest.raises(InvalidArgument):
        await items.update(session, cola.id, {"sku": "X"})
    with pytest.raises(InvalidArgument):
        await forms.insert(session, form_id="BAD", item_id=cola.id, qty_multiplier=0)
    with pytest.raises(NotFound):
        await forms.insert(session, form_id="ORPHAN", item_id=999, qty_multiplier=1)


@pytest.mark.asyncio
async def test_item_form_update_and_remove(session: AsyncSession):
    item = await seed_item(session)
    await session.commit()

    forms = ItemFormService()
    await forms.insert(session, form_id="PACK-6", item_id=item, qty_multiplier=6)
    assert (await forms.update(session, "PACK-6", qty_multiplier=8)).qty_multiplier == 8

    await forms.remove(session, "PACK-6")
    assert await _rows(session, ItemForm) == 0
    await session.commit()

    with pytest.raises(NotFound):
        await forms.remove(session, "PACK-6")


@pytest.mark.asyncio
async def test_item_remove_cascades_to_dependants(session: AsyncSession):
    item = await seed_item(session)
    keep = await seed_item(session, "KEEP")
    b = await seed_batch(session, item=item, qty=4)
    await seed_batch(session, item=keep, qty=1)
    session.add(ItemForm(id="BOX", item_id=item, qty_multiplier=10))
    await session.commit()

    counts = CountService()
    count = await counts.start(session, now=T0)
    await counts.record_count(session, count.id, item, b, 4, now=T0)
    await counts.record_count(session, count.id, keep, None, 1, now=T0)
    await counts.record_drift(session, item, 2, now=T0)

    items = ItemService()
    assert await items.get_delete_impact(session, item) == 1
    await session.commit()

    await items.remove(session, item)

    assert await _rows(session, Item, Item.id == item) == 0
    assert await _rows(session, Batch, Batch.item_id == item) == 0
    assert await _rows(session, ItemForm) == 0
    assert await _rows(session, ItemCount, ItemCount.item_id == item) == 0
    assert await _rows(session, CountDrift) == 0
    # 其它商品不受影响
    assert await _rows(session, Batch) == 1
    assert await _rows(session, ItemCount) == 1
    await session.commit()

    with pytest.raises(NotFound):
        await items.remove(session, item)


@pytest.mark.asyncio
async def test_master_data_remove_sets_references_null(session: AsyncSession):
    suppliers = supplier_service()
    locations = location_service()
    categories = category_service()

    sup = await suppliers.insert(session, {"name": "ACME", "email": "sales@acme.test"})
    loc = await locations.insert(session, {"name": "Back room"})
    cat = await categories.insert(session, {"name": "Drinks"})
    item = await seed_item(
        session,
        category_id=cat.id,
        default_supplier_id=sup.id,
        default_location_id=loc.id,
    )
    session.add(Batch(item_id=item, qty=1, received_at=T0, supplier_id=sup.id, location_id=loc.id))
    session.add(Batch(item_id=item, qty=2, received_at=T0, supplier_id=sup.id))
    await session.commit()

    assert await suppliers.get_delete_impact(session, sup.id) == {"items": 1, "batches": 2}
    assert await locations.get_delete_impact(session, loc.id) == {"items": 1, "batches": 1}
    assert await categories.get_delete_impact(session, cat.id) == {"items": 1}
    await session.commit()

    await suppliers.remove(session, sup.id)
    await categories.remove(session, cat.id)

    row = (
        await session.execute(
            select(Item.default_supplier_id, Item.default_location_id, Item.category_id).where(Item.id == item)
        )
    ).one()
    assert tuple(row) == (None, loc.id, None)
    assert await _rows(session, Batch, Batch.supplier_id.is_not(None)) == 0
    assert await _rows(session, Batch, Batch.location_id == loc.id) == 1

    renamed = await locations.update(session, loc.id, {"name": "Front shelf"})
    assert renamed.name == "Front shelf"
    assert [x.name for x in await locations.get(session)] == ["Front shelf"]

    with pytest.raises(InvalidArgument):
        await suppliers.insert(session, {"name": ""})
    with pytest.raises(NotFound):
        await suppliers.remove(session, sup.id)
