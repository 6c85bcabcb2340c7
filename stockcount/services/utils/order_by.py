# stockcount/services/utils/order_by.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Literal, Mapping, Sequence, Union

from sqlalchemy import ColumnElement

from stockcount.services.errors import InvalidArgument

Direction = Literal["asc", "desc"]

# 外部输入形态：'key' | {'key': 'k', 'dir': 'desc'} | 以上两者组成的列表
OrderByInput = Union[str, Mapping[str, Any], "OrderTerm", Sequence[Union[str, Mapping[str, Any], "OrderTerm"]]]


@dataclass(frozen=True)
class OrderTerm:
    key: str
    direction: Direction = "asc"


def parse_order_by(value: OrderByInput | None) -> List[OrderTerm]:
    """
    把多态的排序输入归一为 OrderTerm 列表：
    - 未指定方向 → asc
    - 同一 key 重复出现 → 只保留第一次
    """
    if value is None:
        return []

    if isinstance(value, (str, OrderTerm)) or isinstance(value, Mapping):
        raw: Iterable[Any] = [value]
    else:
        raw = value

    seen: set[str] = set()
    out: List[OrderTerm] = []
    for i, col in enumerate(raw):
        term = _to_term(col, i)
        if term.key in seen:
            continue
        seen.add(term.key)
        out.append(term)
    return out


def _to_term(col: Any, i: int) -> OrderTerm:
    if isinstance(col, OrderTerm):
        return col
    if isinstance(col, str):
        key, direction = col, "asc"
    elif isinstance(col, Mapping):
        key = col.get("key")
        direction = col.get("dir") or col.get("direction") or "asc"
    else:
        raise InvalidArgument(f"无法识别的排序项：{col!r}", context={"path": f"order_by[{i}]"})

    key = str(key or "").strip()
    direction = str(direction).strip().lower()
    if not key:
        raise InvalidArgument("排序键不能为空", context={"path": f"order_by[{i}]"})
    if direction not in ("asc", "desc"):
        raise InvalidArgument(
            f"排序方向只能是 asc / desc：{direction!r}", context={"path": f"order_by[{i}].dir"}
        )
    return OrderTerm(key=key, direction=direction)  # type: ignore[arg-type]


def build_order_by(
    value: OrderByInput | None,
    columns: Mapping[str, ColumnElement[Any]],
) -> List[ColumnElement[Any]]:
    """
    排序输入 → SQL ORDER BY 子句（与输入同序）。
    key 必须落在 columns 里，否则 InvalidArgument。
    """
    clauses: List[ColumnElement[Any]] = []
    for term in parse_order_by(value):
        col = columns.get(term.key)
        if col is None:
            raise InvalidArgument(
                f"不支持的排序键：{term.key}",
                context={"key": term.key, "allowed": sorted(columns)},
            )
        clauses.append(col.asc() if term.direction == "asc" else col.desc())
    return clauses


def columns_of(model: Any) -> dict[str, ColumnElement[Any]]:
    """ORM 模型的可排序列：{属性名: 列}"""
    return {c.key: getattr(model, c.key) for c in model.__table__.columns}
