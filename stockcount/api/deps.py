# stockcount/api/deps.py
from __future__ import annotations

from typing import List, Optional

from fastapi import Query

from stockcount.db.session import get_session
from stockcount.services.batch_service import BatchService
from stockcount.services.count_service import CountService
from stockcount.services.item_service import ItemFormService, ItemService
from stockcount.services.reconcile_service import ReconcileService
from stockcount.services.stock_service import StockService

__all__ = [
    "get_session",
    "get_item_service",
    "get_item_form_service",
    "get_batch_service",
    "get_stock_service",
    "get_count_service",
    "get_reconcile_service",
    "order_by_query",
]


# ---------------------------
# 服务依赖（测试可 dependency_overrides 替换）
# ---------------------------


def get_item_service() -> ItemService:
    return ItemService()


def get_item_form_service() -> ItemFormService:
    return ItemFormService()


def get_batch_service() -> BatchService:
    return BatchService()


def get_stock_service() -> StockService:
    return StockService()


def get_count_service() -> CountService:
    return CountService()


def get_reconcile_service() -> ReconcileService:
    return ReconcileService()


# ---------------------------
# 排序参数：?order_by=name&order_by=total_qty:desc
# ---------------------------


def order_by_query(
    order_by: Optional[List[str]] = Query(
        default=None,
        description="排序：key 或 key:asc / key:desc，可重复，按出现顺序生效",
    ),
) -> Optional[List[dict]]:
    if not order_by:
        return None
    out: List[dict] = []
    for raw in order_by:
        key, _, direction = raw.partition(":")
        out.append({"key": key, "dir": direction or "asc"})
    return out
