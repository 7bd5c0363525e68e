#!/usr/bin/env python
"""
    Shared schema helpers for Loantrack,
    including the generic paged result.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import enum
import logging
import math
from typing import Generic, List, TypeVar
from pydantic import BaseModel, computed_field

T = TypeVar("T")

logger = logging.getLogger(__name__)


def enum_name(value):
    return value.name if isinstance(value, enum.Enum) else value


def parse_enum(enum_cls, value):
    """Accepts a member, its name (any case) or its integer value."""
    if value is None or value == "" or isinstance(value, enum_cls):
        return value or None
    if isinstance(value, int):
        return enum_cls(value)
    text = str(value).strip()
    if text.lstrip("-").isdigit():
        return enum_cls(int(text))
    for member in enum_cls:
        if member.name.lower() == text.lower():
            return member
    raise ValueError(f"'{value}' is not a valid {enum_cls.__name__}")


def parse_enum_filter(enum_cls, value):
    """Like parse_enum, but an unrecognised value means no filter."""
    try:
        return parse_enum(enum_cls, value)
    except ValueError:
        logger.debug("Ignoring unknown %s filter %r", enum_cls.__name__, value)
        return None


class PagedResult(BaseModel, Generic[T]):
    items: List[T] = []
    current_page: int
    page_size: int
    total_items: int
    total_pages: int

    @computed_field
    @property
    def has_previous_page(self) -> bool:
        return self.current_page > 1

    @computed_field
    @property
    def has_next_page(self) -> bool:
        return self.current_page < self.total_pages

    @computed_field
    @property
    def start_item(self) -> int:
        offset = (self.current_page - 1) * self.page_size
        return 0 if offset >= self.total_items else offset + 1

    @computed_field
    @property
    def end_item(self) -> int:
        if self.start_item == 0:
            return 0
        return min(self.current_page * self.page_size, self.total_items)

    @classmethod
    def create(cls, items, total_items: int, current_page: int, page_size: int):
        return cls(
            items=items,
            total_items=total_items,
            current_page=current_page,
            page_size=page_size,
            total_pages=math.ceil(total_items / page_size),
        )
