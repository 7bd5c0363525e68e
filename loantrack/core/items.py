"""
    Item catalog for Loantrack: CRUD plus the search, filter, sort and
    paginate pipeline behind the item list.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import logging
from sqlalchemy import case
from loantrack.core.audit import ActorContext, AuditService
from loantrack.core.exceptions import Result
from loantrack.core.models import Item, ItemStatus
from loantrack.schemas.common import PagedResult
from loantrack.schemas.item import (
    Item as ItemDto,
    CreateItem,
    UpdateItem,
    ItemFilterParameters,
)

logger = logging.getLogger(__name__)

# Statuses sort by lifecycle position, not alphabetically
STATUS_ORDER = case(
    *[(Item.status == status, status.value) for status in ItemStatus],
    else_=len(ItemStatus),
)

SORT_COLUMNS = {
    "Name": Item.name,
    "Code": Item.code,
    "Category": Item.category,
    "Status": STATUS_ORDER,
    "CreatedDate": Item.created_date,
}


def item_values(item):
    return {
        "code": item.code,
        "name": item.name,
        "category": item.category,
        "status": item.status,
        "location": item.location,
    }


class ItemService:

    def __init__(self, uow):
        self.uow = uow
        self.audit = AuditService(uow)

    def get_items_paged(self, params: ItemFilterParameters) -> Result:
        """Filters, sorts and pages the catalog in a single pass over the database."""
        q = self.uow.items.filtered(params.search, params.category, params.status)
        total = q.count()

        column = SORT_COLUMNS.get(params.sort_by, Item.name)
        if params.sort_order == "desc":
            q = q.order_by(column.desc(), Item.id.desc())
        else:
            q = q.order_by(column.asc(), Item.id.asc())

        offset = (params.page - 1) * params.page_size
        rows = [] if offset >= total else q.offset(offset).limit(params.page_size).all()
        return Result.success(PagedResult[ItemDto].create(
            [ItemDto.model_validate(i) for i in rows],
            total_items=total,
            current_page=params.page,
            page_size=params.page_size,
        ))

    def get_filtered(self, params: ItemFilterParameters) -> Result:
        rows = self.uow.items.filtered(
            params.search, params.category, params.status
        ).order_by(Item.name, Item.id).all()
        return Result.success([ItemDto.model_validate(i) for i in rows])

    def get_all(self) -> Result:
        rows = self.uow.items.query().order_by(Item.name, Item.id).all()
        return Result.success([ItemDto.model_validate(i) for i in rows])

    def get(self, item_id: int) -> Result:
        item = self.uow.items.get(item_id)
        if item is None:
            return Result.not_found(f"Item with ID {item_id} not found")
        return Result.success(ItemDto.model_validate(item))

    def get_categories(self) -> Result:
        return Result.success(self.uow.items.categories())

    def search(self, term: str) -> Result:
        term = (term or "").strip()
        if not term:
            return self.get_all()
        return Result.success([ItemDto.model_validate(i) for i in self.uow.items.search(term)])

    def get_by_category(self, category: str) -> Result:
        return Result.success(
            [ItemDto.model_validate(i) for i in self.uow.items.get_by_category(category)])

    def get_by_status(self, status: ItemStatus) -> Result:
        return Result.success(
            [ItemDto.model_validate(i) for i in self.uow.items.get_by_status(status)])

    def is_item_available_for_loan(self, item_id: int) -> bool:
        item = self.uow.items.get(item_id)
        if item is None or item.status != ItemStatus.Available:
            return False
        return not self.uow.loans.has_active_loan(item_id)

    def create(self, actor: ActorContext, data: CreateItem) -> Result:
        if self.uow.items.code_exists(data.code):
            return Result.conflict(f"Item code '{data.code}' already exists")

        with self.uow.atomic(actor):
            item = self.uow.items.add(Item(
                code=data.code,
                name=data.name,
                category=data.category,
                status=data.status,
                location=data.location,
            ))
            self.uow.flush(actor)
            self.audit.record(
                actor, "Items", "CREATE", item.id,
                None, item_values(item), "Item created")
        logger.info("Created item %s", item.code)
        return Result.success(ItemDto.model_validate(item))

    def update(self, actor: ActorContext, item_id: int, data: UpdateItem) -> Result:
        item = self.uow.items.get(item_id)
        if item is None:
            return Result.not_found(f"Item with ID {item_id} not found")
        if self.uow.items.code_exists_for_other_item(data.code, item_id):
            return Result.conflict(f"Item code '{data.code}' already exists")

        old_values = item_values(item)
        with self.uow.atomic(actor):
            item.code = data.code
            item.name = data.name
            item.category = data.category
            item.status = data.status
            item.location = data.location
            self.audit.record(
                actor, "Items", "UPDATE", item.id,
                old_values, item_values(item), "Item updated")
        return Result.success(ItemDto.model_validate(item))

    def delete(self, actor: ActorContext, item_id: int) -> Result:
        item = self.uow.items.get(item_id)
        if item is None:
            return Result.not_found(f"Item with ID {item_id} not found")
        if self.uow.loans.has_active_loan(item_id):
            return Result.conflict("Cannot delete item with active loans")

        old_values = item_values(item)
        with self.uow.atomic(actor):
            if self.uow.loans.detach_closed(item_id=item_id):
                self.uow.flush(actor)
            self.uow.items.delete(item)
            self.audit.record(
                actor, "Items", "DELETE", item_id,
                old_values, None, "Item deleted")
        logger.info("Deleted item %s", old_values["code"])
        return Result.success()
