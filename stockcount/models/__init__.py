# stockcount/models/__init__.py
from stockcount.models.batch import Batch
from stockcount.models.category import Category
from stockcount.models.count_drift import CountDrift
from stockcount.models.count_session import CountSession
from stockcount.models.enums import BatchStatus, ConsumptionMethod
from stockcount.models.item import Item
from stockcount.models.item_count import ItemCount
from stockcount.models.item_form import ItemForm
from stockcount.models.location import Location
from stockcount.models.supplier import Supplier

__all__ = [
    "Batch",
    "BatchStatus",
    "Category",
    "ConsumptionMethod",
    "CountDrift",
    "CountSession",
    "Item",
    "ItemCount",
    "ItemForm",
    "Location",
    "Supplier",
]
