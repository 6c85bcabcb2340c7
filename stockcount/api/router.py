# stockcount/api/router.py
from __future__ import annotations

from fastapi import APIRouter

from stockcount.api.routers import batches, counts, items, master_data, stock

api_router = APIRouter()

# 主数据
api_router.include_router(items.router)
api_router.include_router(master_data.suppliers_router)
api_router.include_router(master_data.locations_router)
api_router.include_router(master_data.categories_router)

# 批次 / 库存
api_router.include_router(batches.router)
api_router.include_router(stock.router)

# 盘点
api_router.include_router(counts.router)
