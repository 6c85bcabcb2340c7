# stockcount/services/utils/paging.py
from __future__ import annotations

import math
from typing import Any, Iterable, Mapping, Tuple

from stockcount.core.config import get_settings
from stockcount.services.errors import InvalidArgument


def check_page(limit: int, offset: int = 0) -> Tuple[int, int]:
    max_limit = get_settings().PAGINATION_MAX_LIMIT
    if int(limit) < 1 or int(limit) > max_limit:
        raise InvalidArgument(f"limit 必须在 1..{max_limit} 之间", context={"limit": limit})
    if int(offset) < 0:
        raise InvalidArgument("offset 不能为负数", context={"offset": offset})
    return int(limit), int(offset)


def check_fields(data: Mapping[str, Any], allowed: Iterable[str], *, what: str) -> dict[str, Any]:
    """只放行白名单字段；多余字段直接 InvalidArgument，避免静默丢弃。"""
    allowed_set = set(allowed)
    unknown = sorted(k for k in data if k not in allowed_set)
    if unknown:
        raise InvalidArgument(f"{what} 不支持的字段：{', '.join(unknown)}", context={"fields": unknown})
    return dict(data)


def check_qty(value: Any, *, field: str) -> float:
    """数量必须是有限、非负的数字；NaN / inf 一律拒绝。"""
    if value is None:
        raise InvalidArgument(f"必须指定 {field}", context={field: value})
    try:
        qty = float(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f"{field} 不是数字：{value!r}", context={field: value}) from None
    if not math.isfinite(qty):
        raise InvalidArgument(f"{field} 必须是有限数值", context={field: str(qty)})
    if qty < 0:
        raise InvalidArgument(f"{field} 不能为负数", context={field: qty})
    return qty
