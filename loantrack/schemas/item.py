#!/usr/bin/env python
"""
    Item Schema for Loantrack,
    including the item DTOs and the list filter parameters.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from loantrack.core.models import ItemStatus
from loantrack.schemas.common import enum_name, parse_enum, parse_enum_filter

SORT_FIELDS = {
    "name": "Name",
    "code": "Code",
    "category": "Category",
    "status": "Status",
    "createddate": "CreatedDate",
}
MIN_PAGE_SIZE = 5
MAX_PAGE_SIZE = 100
# keeps the row offset inside a signed 64-bit SQL integer
MAX_PAGE = (2 ** 63 - 1) // MAX_PAGE_SIZE


class Item(BaseModel):
    id: int
    code: str
    name: str
    category: str
    status: str
    location: Optional[str] = None
    created_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("status", mode="before")
    @classmethod
    def _status_name(cls, value):
        return enum_name(value)


class CreateItem(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=100)
    category: str = Field(..., min_length=1, max_length=50)
    status: ItemStatus = ItemStatus.Available
    location: Optional[str] = Field(None, max_length=100)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "code": "LP-100",
                "name": "Laptop 14in",
                "category": "Electronics",
                "status": "Available",
                "location": "Shelf A3",
            }
        }
    )

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value):
        return parse_enum(ItemStatus, value) or ItemStatus.Available

    @field_validator("code", "name", "category", mode="after")
    @classmethod
    def _strip(cls, value):
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class UpdateItem(CreateItem):
    pass


class ItemFilterParameters(BaseModel):
    """Search, filter, sort and page parameters for the item list.

    Out-of-range values are clamped rather than rejected. ``page`` is kept
    within [1, MAX_PAGE] and ``page_size`` within [5, 100]. An unknown sort
    field falls back to Name and an unknown direction to ascending. An
    unrecognised ``status`` is dropped so the list is not filtered by it.
    """
    search: Optional[str] = None
    category: Optional[str] = None
    status: Optional[ItemStatus] = None
    sort_by: Optional[str] = "Name"
    sort_order: Optional[str] = "asc"
    page: int = 1
    page_size: int = 10

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value):
        return parse_enum_filter(ItemStatus, value)

    @model_validator(mode="after")
    def _clamp(self):
        self.search = (self.search or "").strip() or None
        self.category = (self.category or "").strip() or None
        self.page = min(max(self.page, 1), MAX_PAGE)
        self.page_size = min(max(self.page_size, MIN_PAGE_SIZE), MAX_PAGE_SIZE)
        self.sort_by = SORT_FIELDS.get((self.sort_by or "").strip().lower(), "Name")
        order = (self.sort_order or "").strip().lower()
        self.sort_order = order if order in ("asc", "desc") else "asc"
        return self
