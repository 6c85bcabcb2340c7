# stockcount/db/base.py
from __future__ import annotations

import importlib
import logging

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase, configure_mappers

log = logging.getLogger("stockcount.models")

# 约束命名统一，alembic 生成的名字稳定
NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_N_name)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """全局唯一 ORM Base"""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


_INITIALIZED: bool = False  # 防重复初始化

# 按依赖顺序显式导入，保证字符串关系目标类已注册
MODEL_MODULES = (
    "stockcount.models.supplier",
    "stockcount.models.location",
    "stockcount.models.category",
    "stockcount.models.item",
    "stockcount.models.item_form",
    "stockcount.models.batch",
    "stockcount.models.count_session",
    "stockcount.models.item_count",
    "stockcount.models.count_drift",
)


def init_models(*, force: bool = False) -> None:
    """
    集中导入模型 + 固化关系映射：
      1) 按 MODEL_MODULES 顺序导入
      2) 统一 configure_mappers()
    """
    global _INITIALIZED
    if _INITIALIZED and not force:
        log.debug("init_models() called again; already initialized, skipping.")
        return

    for mod in MODEL_MODULES:
        importlib.import_module(mod)

    configure_mappers()
    _INITIALIZED = True
    log.info("ORM models initialized & mappers configured (loaded %d modules)", len(MODEL_MODULES))
