# stockcount/api/routers/master_data.py
# 供应商 / 库位 / 分类：同一套最小 CRUD，按资源生成路由
from typing import Any, Callable, List, Optional, Type

from fastapi import APIRouter, Body, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from stockcount.api.deps import get_session, order_by_query
from stockcount.schemas.common import DeleteImpactOut
from stockcount.schemas.master_data import (
    CategoryIn,
    CategoryOut,
    CategoryUpdate,
    LocationIn,
    LocationOut,
    LocationUpdate,
    SupplierIn,
    SupplierOut,
    SupplierUpdate,
)
from stockcount.services.master_data import (
    MasterDataService,
    category_service,
    location_service,
    supplier_service,
)


def build_master_data_router(
    *,
    prefix: str,
    tag: str,
    service_factory: Callable[[], MasterDataService[Any]],
    in_model: Type[BaseModel],
    update_model: Type[BaseModel],
    out_model: Type[BaseModel],
) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[tag])

    @router.post("", response_model=out_model, status_code=status.HTTP_201_CREATED)
    async def create(
        payload: in_model = Body(...),  # type: ignore[valid-type]
        session: AsyncSession = Depends(get_session),
        svc: MasterDataService[Any] = Depends(service_factory),
    ):
        return await svc.insert(session, payload.model_dump(exclude_unset=True))

    @router.get("", response_model=List[out_model])  # type: ignore[valid-type]
    async def list_all(
        order_by: Optional[List[dict]] = Depends(order_by_query),
        session: AsyncSession = Depends(get_session),
        svc: MasterDataService[Any] = Depends(service_factory),
    ):
        return await svc.get(session, order_by or "name")

    @router.get("/{obj_id}", response_model=out_model)
    async def get_one(
        obj_id: int,
        session: AsyncSession = Depends(get_session),
        svc: MasterDataService[Any] = Depends(service_factory),
    ):
        obj = await svc.get_one(session, obj_id)
        if obj is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{tag} not found")
        return obj

    @router.get("/{obj_id}/delete-impact", response_model=DeleteImpactOut)
    async def delete_impact(
        obj_id: int,
        session: AsyncSession = Depends(get_session),
        svc: MasterDataService[Any] = Depends(service_factory),
    ):
        return DeleteImpactOut(**await svc.get_delete_impact(session, obj_id))

    @router.patch("/{obj_id}", response_model=out_model)
    async def update(
        obj_id: int,
        payload: update_model = Body(...),  # type: ignore[valid-type]
        session: AsyncSession = Depends(get_session),
        svc: MasterDataService[Any] = Depends(service_factory),
    ):
        return await svc.update(session, obj_id, payload.model_dump(exclude_unset=True))

    @router.delete("/{obj_id}", response_model=out_model)
    async def remove(
        obj_id: int,
        session: AsyncSession = Depends(get_session),
        svc: MasterDataService[Any] = Depends(service_factory),
    ):
        return await svc.remove(session, obj_id)

    return router


suppliers_router = build_master_data_router(
    prefix="/suppliers",
    tag="suppliers",
    service_factory=supplier_service,
    in_model=SupplierIn,
    update_model=SupplierUpdate,
    out_model=SupplierOut,
)

locations_router = build_master_data_router(
    prefix="/locations",
    tag="locations",
    service_factory=location_service,
    in_model=LocationIn,
    update_model=LocationUpdate,
    out_model=LocationOut,
)

categories_router = build_master_data_router(
    prefix="/categories",
    tag="categories",
    service_factory=category_service,
    in_model=CategoryIn,
    update_model=CategoryUpdate,
    out_model=CategoryOut,
)
