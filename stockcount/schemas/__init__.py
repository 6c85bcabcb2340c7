# stockcount/schemas/__init__.py
"""
Schemas package

不做聚合导出，使用时从具体模块显式导入，例如：
    from stockcount.schemas.item import ItemOut
    from stockcount.schemas.count import ItemCountIn
"""

__all__: list[str] = []
