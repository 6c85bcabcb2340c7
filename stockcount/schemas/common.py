# stockcount/schemas/common.py
from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class _Base(BaseModel):
    """
    - from_attributes: 允许 ORM 对象直接序列化
    - extra="ignore": 忽略冗余字段
    - populate_by_name: 支持别名/字段名互填
    """

    model_config = ConfigDict(
        from_attributes=True,
        extra="ignore",
        populate_by_name=True,
    )


class DeleteImpactOut(_Base):
    """删除前的影响面：会被连带删除 / 置空的行数"""

    items: int = 0
    batches: int = 0
