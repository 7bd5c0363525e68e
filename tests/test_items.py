#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
    tests.test_items
    ~~~~~~~~~~~~~~~~

    Item catalog: CRUD, and the search, filter, sort and paging pipeline.

    :copyright: (c) 2025 by Authors.
    :license: see LICENSE for more details.
"""

import json
import math
import pytest
from pydantic import ValidationError

from loantrack.core.audit import SYSTEM_ACTOR
from loantrack.core.exceptions import ErrorKind
from loantrack.core.items import ItemService
from loantrack.core.loans import LoanService
from loantrack.core.models import AuditLog, ItemStatus
from loantrack.schemas.common import PagedResult
from loantrack.schemas.item import MAX_PAGE, CreateItem, UpdateItem, ItemFilterParameters
from conftest import make_item


@pytest.fixture
def service(uow):
    return ItemService(uow)


@pytest.fixture
def catalog(uow):
    return [
        make_item(uow, "LP-100", name="Laptop", category="Electronics", location="Shelf A"),
        make_item(uow, "PR-200", name="Projector", category="Electronics",
                  status=ItemStatus.Maintenance),
        make_item(uow, "CH-300", name="Chair", category="Furniture", location="Room 5"),
        make_item(uow, "TB-400", name="Table", category="furniture",
                  status=ItemStatus.Decommissioned),
        make_item(uow, "CB-500", name="HDMI cable", category="Accessories",
                  status=ItemStatus.OnLoan, location="Drawer_1"),
    ]


def page(service, **kwargs):
    result = service.get_items_paged(ItemFilterParameters(**kwargs))
    assert result.ok
    return result.value


def test_filter_parameters_are_clamped():
    params = ItemFilterParameters(page=-3, page_size=1000, sort_by="nonsense",
                                  sort_order="sideways", search="  ", category="")
    assert params.page == 1
    assert params.page_size == 100
    assert params.sort_by == "Name"
    assert params.sort_order == "asc"
    assert params.search is None
    assert params.category is None

    params = ItemFilterParameters(page_size=2, sort_by="createddate", sort_order="DESC")
    assert params.page_size == 5
    assert params.sort_by == "CreatedDate"
    assert params.sort_order == "desc"


def test_filter_parameters_parse_status():
    assert ItemFilterParameters(status="onloan").status == ItemStatus.OnLoan
    assert ItemFilterParameters(status="2").status == ItemStatus.Maintenance
    assert ItemFilterParameters(status="").status is None
    assert ItemFilterParameters(status="Lost").status is None
    assert ItemFilterParameters(status="9").status is None
    with pytest.raises(ValidationError):
        CreateItem(code="X-1", name="X", category="Misc", status="Lost")


def test_paged_result_bounds():
    empty = PagedResult.create([], total_items=0, current_page=1, page_size=10)
    assert empty.total_pages == 0
    assert empty.start_item == 0
    assert empty.end_item == 0
    assert not empty.has_previous_page
    assert not empty.has_next_page

    middle = PagedResult.create([], total_items=23, current_page=2, page_size=10)
    assert middle.total_pages == 3
    assert (middle.start_item, middle.end_item) == (11, 20)
    assert middle.has_previous_page and middle.has_next_page

    last = PagedResult.create([], total_items=23, current_page=3, page_size=10)
    assert last.end_item == 23
    assert not last.has_next_page

    beyond = PagedResult.create([], total_items=23, current_page=4, page_size=10)
    assert (beyond.start_item, beyond.end_item) == (0, 0)
    assert beyond.has_previous_page
    assert not beyond.has_next_page


def test_default_listing_sorted_by_name(service, catalog):
    result = page(service)
    assert [i.name for i in result.items] == ["Chair", "HDMI cable", "Laptop", "Projector", "Table"]
    assert result.total_items == 5
    assert result.total_pages == 1


def test_search_matches_any_text_field(service, catalog):
    assert [i.code for i in page(service, search="shelf").items] == ["LP-100"]
    assert [i.code for i in page(service, search="pr-2").items] == ["PR-200"]
    assert {i.code for i in page(service, search="FURN").items} == {"CH-300", "TB-400"}
    assert page(service, search="nothing like this").total_items == 0


def test_search_treats_wildcards_literally(service, catalog):
    assert [i.code for i in page(service, search="_1").items] == ["CB-500"]
    assert page(service, search="%").total_items == 0


def test_category_filter_is_case_insensitive(service, catalog):
    result = page(service, category="FURNITURE")
    assert [i.code for i in result.items] == ["CH-300", "TB-400"]


def test_filters_are_conjunctive(service, catalog):
    result = page(service, category="electronics", status=ItemStatus.Maintenance)
    assert [i.code for i in result.items] == ["PR-200"]
    assert page(service, category="electronics", search="chair").total_items == 0


def test_status_sorts_by_lifecycle(service, catalog):
    asc = [i.status for i in page(service, sort_by="status").items]
    assert asc == ["Available", "Available", "OnLoan", "Maintenance", "Decommissioned"]
    desc = [i.status for i in page(service, sort_by="Status", sort_order="desc").items]
    assert desc == list(reversed(asc))


def test_sort_by_code_descending(service, catalog):
    codes = [i.code for i in page(service, sort_by="code", sort_order="desc").items]
    assert codes == sorted(codes, reverse=True)


def test_created_date_paging(uow, service):
    for n in range(1, 13):
        make_item(uow, f"EL-{n:02d}", category="Electronics")

    result = page(service, category="Electronics", sort_by="CreatedDate",
                  sort_order="desc", page=2, page_size=5)
    assert [i.code for i in result.items] == ["EL-07", "EL-06", "EL-05", "EL-04", "EL-03"]
    assert result.total_items == 12
    assert result.total_pages == 3
    assert (result.start_item, result.end_item) == (6, 10)


@pytest.mark.parametrize("page_size", [5, 7, 10])
def test_page_count_matches_total(uow, service, page_size):
    for n in range(1, 15):
        make_item(uow, f"P-{n:02d}")
    result = page(service, page_size=page_size)
    assert result.total_pages == math.ceil(14 / page_size)
    assert len(result.items) == page_size


def test_page_past_the_end_is_empty(service, catalog):
    result = page(service, page=9)
    assert result.items == []
    assert result.total_items == 5
    assert result.current_page == 9
    assert (result.start_item, result.end_item) == (0, 0)


def test_huge_page_number_is_capped(service, catalog):
    result = page(service, page=10 ** 18, page_size=100)
    assert result.items == []
    assert result.current_page == MAX_PAGE
    assert (result.start_item, result.end_item) == (0, 0)
    assert ItemFilterParameters(page=10 ** 18).page == MAX_PAGE


def test_create_and_audit(uow, service):
    item = make_item(uow, "LP-100", name="Laptop", location="Shelf A")
    assert item.status == "Available"
    assert service.get(item.id).value.code == "LP-100"

    entity = uow.items.get(item.id)
    assert entity.created_by == "System"
    assert entity.created_date is not None
    assert entity.modified_date is None

    entry = uow.audit_logs.get_by_table_and_primary_key("Items", item.id)[0]
    assert entry.action == "CREATE"
    assert json.loads(entry.new_values)["code"] == "LP-100"
    assert entry.old_values is None


def test_create_duplicate_code(uow, service):
    make_item(uow, "LP-100")
    result = service.create(SYSTEM_ACTOR, CreateItem(code="LP-100", name="Other", category="X"))
    assert result.error.kind == ErrorKind.CONFLICT
    assert uow.items.count() == 1


def test_update(uow, service, admin):
    actor = SYSTEM_ACTOR.with_user(uow.users.get(admin.id))
    item = make_item(uow, "LP-100", name="Laptop")
    make_item(uow, "PR-200")

    clash = service.update(actor, item.id, UpdateItem(code="PR-200", name="Laptop", category="Electronics"))
    assert clash.error.kind == ErrorKind.CONFLICT

    updated = service.update(actor, item.id, UpdateItem(
        code="LP-101", name="Laptop 15in", category="Electronics", status="Maintenance")).value
    assert updated.code == "LP-101"
    assert updated.status == "Maintenance"

    entity = uow.items.get(item.id)
    assert entity.modified_by == "admin@example.com"
    assert entity.created_by == "System"

    entry = uow.audit_logs.get_by_table_and_primary_key("Items", item.id)[0]
    assert entry.action == "UPDATE"
    assert json.loads(entry.old_values)["code"] == "LP-100"
    assert json.loads(entry.new_values)["status"] == "Maintenance"

    missing = service.update(actor, 999, UpdateItem(code="Z", name="Z", category="Z"))
    assert missing.error.kind == ErrorKind.NOT_FOUND


def test_delete_blocked_by_active_loan(uow, service, operator, admin):
    actor = SYSTEM_ACTOR.with_user(uow.users.get(admin.id))
    item = make_item(uow, "LP-100")
    loans = LoanService(uow)
    loan = loans.create_loan(SYSTEM_ACTOR, operator.id, item.id).value

    assert service.delete(actor, item.id).error.kind == ErrorKind.CONFLICT

    loans.approve_or_reject(actor, loan.id, False)
    assert service.delete(actor, item.id).ok
    assert uow.items.get(item.id) is None

    kept = uow.loans.get(loan.id)
    assert kept is not None and kept.item_id is None
    assert loans.get(loan.id).value.item_name == "Unknown"
    assert uow.audit_logs.count(AuditLog.table_name == "Items", AuditLog.action == "DELETE") == 1

    assert service.delete(actor, item.id).error.kind == ErrorKind.NOT_FOUND


def test_lookups(service, catalog):
    assert service.get_categories().value == ["Accessories", "Electronics", "Furniture", "furniture"]
    assert [i.code for i in service.search("lap").value] == ["LP-100"]
    assert len(service.search("  ").value) == 5
    assert [i.code for i in service.get_by_category("electronics").value] == ["LP-100", "PR-200"]
    assert [i.code for i in service.get_by_status(ItemStatus.OnLoan).value] == ["CB-500"]
    assert len(service.get_all().value) == 5
    assert [i.code for i in service.get_filtered(
        ItemFilterParameters(status="Available")).value] == ["CH-300", "LP-100"]


def test_availability(service, catalog):
    by_code = {i.code: i.id for i in catalog}
    assert service.is_item_available_for_loan(by_code["LP-100"])
    assert not service.is_item_available_for_loan(by_code["PR-200"])
    assert not service.is_item_available_for_loan(999)
    assert service.get(999).error.kind == ErrorKind.NOT_FOUND
