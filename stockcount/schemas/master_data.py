# stockcount/schemas/master_data.py
from __future__ import annotations

from typing import Annotated, Optional

from pydantic import Field

from stockcount.schemas.common import _Base

Name = Annotated[str, Field(min_length=1, max_length=128)]


class SupplierIn(_Base):
    name: Name
    contact_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class SupplierUpdate(_Base):
    name: Optional[Name] = None
    contact_name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


class SupplierOut(SupplierIn):
    id: int


class LocationIn(_Base):
    name: Name


class LocationUpdate(_Base):
    name: Optional[Name] = None


class LocationOut(LocationIn):
    id: int


class CategoryIn(_Base):
    name: Name
    description: Optional[str] = None


class CategoryUpdate(_Base):
    name: Optional[Name] = None
    description: Optional[str] = None


class CategoryOut(CategoryIn):
    id: int
