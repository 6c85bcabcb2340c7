# stockcount/services/batch_service.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional

from sqlalchemy import ColumnElement, and_, case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stockcount.core.clock import Clock, resolve_now, utc_now
from stockcount.core.tx import tx_scope
from stockcount.models.batch import Batch
from stockcount.models.enums import BatchStatus
from stockcount.services.errors import InvalidArgument, NotFound
from stockcount.services.item_service import ItemService
from stockcount.services.utils.order_by import OrderByInput, build_order_by, columns_of
from stockcount.services.utils.paging import check_fields, check_page, check_qty

log = logging.getLogger("stockcount.batch")

BATCH_INSERTABLE = (
    "item_id",
    "qty",
    "unit_buy_price",
    "status",
    "location_id",
    "supplier_id",
    "expiry_at",
)

# qty / status 只由消耗、到期、对账改动（这些路径会记漂移）；
# item_id / received_at / stockout_at 同样不可通过 update 修改
BATCH_UPDATABLE = (
    "unit_buy_price",
    "location_id",
    "supplier_id",
    "expiry_at",
)

# 批次速览的状态优先级：过期 > 在库 > 已耗尽
SUMMARY_STATUS_PRIORITY: Mapping[BatchStatus, int] = {
    BatchStatus.EXPIRED: 1,
    BatchStatus.ACTIVE: 2,
    BatchStatus.ARCHIVED: 3,
}


class BatchService:
    """
    批次服务（Batch Store）

    提供：
      - insert(...)：建批次；商品必须存在，未指定库位 / 供应商时继承商品默认值
      - update(...)：按 ID 修改价格 / 库位 / 供应商 / 到期时间，不存在 → NotFound
      - remove(...)：按 ID 删除，只允许已无在库数量的批次
      - list_by_item(...)：分页 + 排序（排序键按批次字段校验）
      - all_by_item(...)：不分页，供消耗 / 对账使用，可加行锁
      - get_batch_summary(...)：固定优先级的“批次速览”

    说明：
      - 本服务**不写漂移**；库存变动的漂移由 StockService（receive / consume）负责。
      - 不控事务：写操作通过 tx_scope 复用外层事务，没有外层事务时自行提交。
    """

    def __init__(self, items: ItemService | None = None, *, clock: Clock = utc_now) -> None:
        self.items = items or ItemService()
        self.clock = clock

    # ------------------------------------------------------------------
    # 写
    # ------------------------------------------------------------------

    async def insert(
        self,
        session: AsyncSession,
        data: Mapping[str, Any],
        *,
        now: Optional[datetime] = None,
        inherit_defaults: bool = True,
    ) -> Batch:
        """
        新建批次，received_at = now。

        inherit_defaults=False 用于“盘盈 / 未归类库存”：不继承商品默认库位 / 供应商。
        """
        values = check_fields(data, BATCH_INSERTABLE, what="batch")
        if values.get("item_id") is None:
            raise InvalidArgument("批次必须指定 item_id")
        qty = check_qty(values.get("qty"), field="qty")
        status = parse_status(values.get("status", BatchStatus.ACTIVE))
        ts = resolve_now(now, self.clock)

        async with tx_scope(session):
            item = await self.items.get_one(session, values["item_id"])

            location_id = values.get("location_id")
            supplier_id = values.get("supplier_id")
            if inherit_defaults:
                if location_id is None:
                    location_id = item.default_location_id
                if supplier_id is None:
                    supplier_id = item.default_supplier_id

            batch = Batch(
                item_id=item.id,
                qty=qty,
                unit_buy_price=values.get("unit_buy_price"),
                status=status,
                location_id=location_id,
                supplier_id=supplier_id,
                received_at=ts,
                expiry_at=values.get("expiry_at"),
            )
            session.add(batch)
            await session.flush()

        log.info("batch inserted: id=%s item=%s qty=%s", batch.id, batch.item_id, batch.qty)
        return batch

    async def update(self, session: AsyncSession, batch_id: int, partial: Mapping[str, Any]) -> Batch:
        values = check_fields(partial, BATCH_UPDATABLE, what="batch")

        async with tx_scope(session):
            batch = await self.require(session, batch_id, for_update=True)
            for k, v in values.items():
                setattr(batch, k, v)
            await session.flush()
        return batch

    async def remove(self, session: AsyncSession, batch_id: int) -> Batch:
        """仍有在库数量的 active 批次不能直接删除，须先消耗或经盘点对账归零。"""
        async with tx_scope(session):
            batch = await self.require(session, batch_id, for_update=True)
            if batch.status == BatchStatus.ACTIVE and batch.qty > 0:
                raise InvalidArgument(
                    f"批次仍有在库数量：id={batch_id}",
                    context={"batch_id": batch_id, "qty": batch.qty},
                )
            await session.delete(batch)
            await session.flush()
        log.info("batch removed: id=%s item=%s", batch.id, batch.item_id)
        return batch

    # ------------------------------------------------------------------
    # 读
    # ------------------------------------------------------------------

    async def get_one(self, session: AsyncSession, batch_id: int) -> Optional[Batch]:
        return await session.get(Batch, batch_id)

    async def require(self, session: AsyncSession, batch_id: int, *, for_update: bool = False) -> Batch:
        stmt = select(Batch).where(Batch.id == batch_id)
        if for_update:
            stmt = stmt.with_for_update()
        batch = (await session.execute(stmt)).scalars().first()
        if batch is None:
            raise NotFound(f"批次不存在：id={batch_id}", context={"batch_id": batch_id})
        return batch

    async def list_by_item(
        self,
        session: AsyncSession,
        item_id: int,
        *,
        limit: int,
        offset: int = 0,
        status: Optional[BatchStatus | str] = None,
        order_by: OrderByInput | None = "received_at",
    ) -> List[Batch]:
        limit, offset = check_page(limit, offset)
        order = build_order_by(order_by, columns_of(Batch))

        conds: List[ColumnElement[bool]] = [Batch.item_id == item_id]
        if status is not None:
            conds.append(Batch.status == parse_status(status))

        stmt = (
            select(Batch)
            .where(and_(*conds))
            .order_by(*order, Batch.id.asc())
            .limit(limit)
            .offset(offset)
        )
        return list((await session.execute(stmt)).scalars().all())

    async def all_by_item(
        self,
        session: AsyncSession,
        item_id: int,
        *,
        order_by: Iterable[ColumnElement[Any]] = (),
        where: Optional[ColumnElement[bool]] = None,
        for_update: bool = False,
    ) -> List[Batch]:
        """
        不分页读取某商品全部批次；order_by 为已解析的 ORDER BY 子句。
        for_update=True 时对命中行加行锁（SQLite 下忽略）。
        """
        stmt = select(Batch).where(Batch.item_id == item_id)
        if where is not None:
            stmt = stmt.where(where)
        stmt = stmt.order_by(*order_by)
        if for_update:
            stmt = stmt.with_for_update()
        # populate_existing：锁定读取后以库内最新值覆盖 identity map
        stmt = stmt.execution_options(populate_existing=True)
        return list((await session.execute(stmt)).scalars().all())

    async def get_batch_summary(self, session: AsyncSession, item_id: int, limit: int = 5) -> List[Batch]:
        """
        返回某商品最值得关注的 N 个批次（固定排序，不接受外部排序）：

        1. 状态优先级：expired > active > archived
        2. expired：到期时间降序（最近过期在前），无到期时间排最后
        3. active：入库时间升序（最老的在前）
        4. archived：耗尽时间降序，无耗尽时间时用入库时间
        5. 兜底：id 升序
        """
        if int(limit) < 1:
            raise InvalidArgument("limit 必须 >= 1", context={"limit": limit})

        priority = case(
            *[(Batch.status == s, p) for s, p in SUMMARY_STATUS_PRIORITY.items()],
            else_=len(SUMMARY_STATUS_PRIORITY) + 1,
        )
        expired_key = case((Batch.status == BatchStatus.EXPIRED, Batch.expiry_at), else_=None)
        active_key = case((Batch.status == BatchStatus.ACTIVE, Batch.received_at), else_=None)
        archived_key = case(
            (
                Batch.status == BatchStatus.ARCHIVED,
                func.coalesce(Batch.stockout_at, Batch.received_at),
            ),
            else_=None,
        )

        stmt = (
            select(Batch)
            .where(Batch.item_id == item_id)
            .order_by(
                priority.asc(),
                expired_key.desc().nulls_last(),
                active_key.asc(),
                archived_key.desc().nulls_last(),
                Batch.id.asc(),
            )
            .limit(int(limit))
        )
        return list((await session.execute(stmt)).scalars().all())


def parse_status(value: Any) -> BatchStatus:
    if isinstance(value, BatchStatus):
        return value
    try:
        return BatchStatus(str(value).strip().lower())
    except ValueError:
        raise InvalidArgument(
            f"未知批次状态：{value!r}", context={"allowed": [s.value for s in BatchStatus]}
        ) from None
