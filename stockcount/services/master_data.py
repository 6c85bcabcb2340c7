# stockcount/services/master_data.py
from __future__ import annotations

from typing import Any, Generic, List, Mapping, Optional, Tuple, Type, TypeVar

from sqlalchemy import ColumnElement, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stockcount.core.tx import tx_scope
from stockcount.db.base import Base
from stockcount.models.batch import Batch
from stockcount.models.category import Category
from stockcount.models.item import Item
from stockcount.models.location import Location
from stockcount.models.supplier import Supplier
from stockcount.services.errors import InvalidArgument, NotFound
from stockcount.services.utils.order_by import OrderByInput, build_order_by, columns_of
from stockcount.services.utils.paging import check_fields

M = TypeVar("M", bound=Base)


class MasterDataService(Generic[M]):
    """
    只负责：供应商 / 库位 / 分类 的最小 CRUD。
    删除时引用方外键为 ON DELETE SET NULL；get_delete_impact 给出受影响的商品 / 批次数。
    """

    def __init__(
        self,
        model: Type[M],
        *,
        label: str,
        writable: Tuple[str, ...],
        item_fk: Optional[str] = None,
        batch_fk: Optional[str] = None,
    ) -> None:
        self.model = model
        self.label = label
        self.writable = writable
        self.item_fk = item_fk
        self.batch_fk = batch_fk

    async def insert(self, session: AsyncSession, data: Mapping[str, Any]) -> M:
        values = check_fields(data, self.writable, what=self.label)
        if not str(values.get("name") or "").strip():
            raise InvalidArgument(f"{self.label} 必须提供 name")
        async with tx_scope(session):
            obj = self.model(**values)
            session.add(obj)
            await session.flush()
        return obj

    async def update(self, session: AsyncSession, id: int, partial: Mapping[str, Any]) -> M:
        values = check_fields(partial, self.writable, what=self.label)
        async with tx_scope(session):
            obj = await self._require(session, id)
            for k, v in values.items():
                setattr(obj, k, v)
            await session.flush()
        return obj

    async def remove(self, session: AsyncSession, id: int) -> M:
        async with tx_scope(session):
            obj = await self._require(session, id)
            await session.delete(obj)
            await session.flush()
        return obj

    async def get_one(self, session: AsyncSession, id: int) -> Optional[M]:
        return await session.get(self.model, id)

    async def get(
        self,
        session: AsyncSession,
        order_by: OrderByInput | None = "name",
        where: Optional[ColumnElement[bool]] = None,
    ) -> List[M]:
        stmt = select(self.model)
        if where is not None:
            stmt = stmt.where(where)
        stmt = stmt.order_by(*build_order_by(order_by, columns_of(self.model)))
        return list((await session.execute(stmt)).scalars().all())

    async def get_delete_impact(self, session: AsyncSession, id: int) -> dict[str, int]:
        out: dict[str, int] = {}
        if self.item_fk:
            out["items"] = int(
                await session.scalar(
                    select(func.count()).select_from(Item).where(getattr(Item, self.item_fk) == id)
                )
                or 0
            )
        if self.batch_fk:
            out["batches"] = int(
                await session.scalar(
                    select(func.count()).select_from(Batch).where(getattr(Batch, self.batch_fk) == id)
                )
                or 0
            )
        return out

    async def _require(self, session: AsyncSession, id: int) -> M:
        obj = await session.get(self.model, id)
        if obj is None:
            raise NotFound(f"{self.label} 不存在：id={id}", context={f"{self.label}_id": id})
        return obj


def supplier_service() -> MasterDataService[Supplier]:
    return MasterDataService(
        Supplier,
        label="supplier",
        writable=("name", "contact_name", "phone", "email"),
        item_fk="default_supplier_id",
        batch_fk="supplier_id",
    )


def location_service() -> MasterDataService[Location]:
    return MasterDataService(
        Location,
        label="location",
        writable=("name",),
        item_fk="default_location_id",
        batch_fk="location_id",
    )


def category_service() -> MasterDataService[Category]:
    return MasterDataService(
        Category,
        label="category",
        writable=("name", "description"),
        item_fk="category_id",
    )
