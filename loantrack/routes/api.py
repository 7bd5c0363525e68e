#!/usr/bin/env python

"""
    API routes for Loantrack,
    including authentication, items, loans, users, roles, audit and reports.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import datetime
import logging
from typing import Optional
from fastapi import (
    APIRouter,
    Body,
    Cookie,
    Depends,
    HTTPException,
    Query,
    Request,
    status,
)
from fastapi.responses import Response
from sqlalchemy.orm import Session
from loantrack import configs
from loantrack.core import auth
from loantrack.core.audit import ActorContext, AuditService
from loantrack.core.db import get_session
from loantrack.core.exceptions import ErrorKind, Result
from loantrack.core.items import ItemService
from loantrack.core.loans import LoanService
from loantrack.core.models import LoanStatus
from loantrack.core.reports import ReportService
from loantrack.core.uow import UnitOfWork
from loantrack.core.users import RoleService, UserService
from loantrack.schemas.audit import AuditLog as AuditLogDto
from loantrack.schemas.common import parse_enum_filter
from loantrack.schemas.item import CreateItem, UpdateItem, ItemFilterParameters
from loantrack.schemas.loan import CreateLoan, ApproveLoan, ReturnLoan
from loantrack.schemas.role import CreateRole
from loantrack.schemas.user import (
    User as UserDto,
    CreateUser,
    UpdateUser,
    ChangeRole,
    Login,
    Register,
)

logger = logging.getLogger(__name__)

router = APIRouter()

STATUS_CODES = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.CONFLICT: 409,
    ErrorKind.VALIDATION: 422,
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.UNAUTHORIZED: 403,
    ErrorKind.UNEXPECTED: 500,
}


def respond(result: Result):
    """Unwraps a service result or raises the matching HTTP error."""
    if result.ok:
        return result.value
    raise HTTPException(status_code=STATUS_CODES[result.error.kind], detail=result.error.message)


def client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def get_uow(db: Session = Depends(get_session)) -> UnitOfWork:
    return UnitOfWork(db)


def get_actor(request: Request, uow: UnitOfWork = Depends(get_uow),
              session: Optional[str] = Cookie(None)) -> ActorContext:
    """Resolves the caller from the session cookie, or a Bearer token carrying it."""
    ip = client_ip(request)
    anonymous = ActorContext(ip_address=ip, user_agent=request.headers.get("user-agent"))
    if not session:
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            session = auth_header.split(" ")[1]

    data = auth.verify_session_cookie(session, ip)
    if not data:
        return anonymous
    # The cookie only identifies; role and active flag are always re-read
    user = uow.users.get(data["id"])
    if user is None or not user.is_active:
        return anonymous
    return anonymous.with_user(user)


def require_user(actor: ActorContext = Depends(get_actor)) -> ActorContext:
    if not actor.is_authenticated:
        raise HTTPException(status_code=401, detail="Authentication required")
    return actor


def require_admin(actor: ActorContext = Depends(require_user)) -> ActorContext:
    if actor.role != configs.ADMIN_ROLE:
        raise HTTPException(status_code=403, detail="Administrator role required")
    return actor


def is_admin(actor: ActorContext) -> bool:
    return actor.role == configs.ADMIN_ROLE


def download(result: Result) -> Response:
    report = respond(result)
    return Response(
        content=report.content,
        media_type=report.content_type,
        headers={"Content-Disposition": f'attachment; filename="{report.file_name}"'},
    )


# Authentication

@router.post("/auth/login")
def login(request: Request, response: Response, credentials: Login,
          uow: UnitOfWork = Depends(get_uow),
          actor: ActorContext = Depends(get_actor)):
    user = respond(auth.AuthService(uow).login(actor, credentials.email, credentials.password))
    max_age = configs.REMEMBER_ME_TTL if credentials.remember_me else configs.COOKIE_TTL
    session_cookie = auth.create_session_cookie(
        user, client_ip(request), remember_me=credentials.remember_me)
    response.set_cookie(
        key=configs.COOKIE_NAME,
        value=session_cookie,
        max_age=max_age,
        httponly=True,
        secure=configs.SCHEME == "https",
        samesite="Lax",
        path="/",
    )
    return user


@router.post("/auth/register", status_code=status.HTTP_201_CREATED)
def register(data: Register, uow: UnitOfWork = Depends(get_uow),
             actor: ActorContext = Depends(get_actor)):
    return respond(auth.AuthService(uow).register(actor, data.name, data.email, data.password))


@router.post("/auth/logout")
def logout(response: Response, uow: UnitOfWork = Depends(get_uow),
           actor: ActorContext = Depends(get_actor)):
    respond(auth.AuthService(uow).logout(actor))
    response.delete_cookie(
        key=configs.COOKIE_NAME,
        path="/",
        secure=configs.SCHEME == "https",
        samesite="Lax",
    )
    return {"success": True, "message": "Logged out successfully"}


@router.get("/auth/me")
def me(uow: UnitOfWork = Depends(get_uow), actor: ActorContext = Depends(require_user)):
    return respond(UserService(uow).get(actor.user_id))


@router.get("/dashboard")
def dashboard(uow: UnitOfWork = Depends(get_uow), actor: ActorContext = Depends(require_user)):
    return respond(LoanService(uow).get_dashboard())


# Items

@router.get("/items")
def get_items(search: Optional[str] = None, category: Optional[str] = None,
              item_status: Optional[str] = Query(None, alias="status"),
              sort_by: Optional[str] = "Name",
              sort_order: Optional[str] = "asc", page: int = 1, page_size: int = 10,
              uow: UnitOfWork = Depends(get_uow),
              actor: ActorContext = Depends(require_user)):
    params = ItemFilterParameters(
        search=search, category=category, status=item_status,
        sort_by=sort_by, sort_order=sort_order, page=page, page_size=page_size)
    return respond(ItemService(uow).get_items_paged(params))


@router.get("/items/categories")
def get_categories(uow: UnitOfWork = Depends(get_uow),
                   actor: ActorContext = Depends(require_user)):
    return respond(ItemService(uow).get_categories())


@router.get("/items/search")
def search_items(term: Optional[str] = None, category: Optional[str] = None,
                 item_status: Optional[str] = Query(None, alias="status"),
                 uow: UnitOfWork = Depends(get_uow),
                 actor: ActorContext = Depends(require_user)):
    """Unpaged item list by name order, narrowed by any of term, category and status."""
    items = ItemService(uow)
    params = ItemFilterParameters(search=term, category=category, status=item_status)
    if params.category and not (params.search or params.status):
        return respond(items.get_by_category(params.category))
    if params.status and not (params.search or params.category):
        return respond(items.get_by_status(params.status))
    if params.category or params.status:
        return respond(items.get_filtered(params))
    return respond(items.search(params.search))


@router.get("/items/{item_id}")
def get_item(item_id: int, uow: UnitOfWork = Depends(get_uow),
             actor: ActorContext = Depends(require_user)):
    return respond(ItemService(uow).get(item_id))


@router.get("/items/{item_id}/availability")
def get_item_availability(item_id: int, uow: UnitOfWork = Depends(get_uow),
                          actor: ActorContext = Depends(require_user)):
    items = ItemService(uow)
    respond(items.get(item_id))
    return {"item_id": item_id, "available": items.is_item_available_for_loan(item_id)}


@router.get("/items/{item_id}/loans")
def get_item_loans(item_id: int, active: bool = False,
                   uow: UnitOfWork = Depends(get_uow),
                   actor: ActorContext = Depends(require_admin)):
    loans = LoanService(uow)
    if active:
        return respond(loans.get_active_by_item(item_id))
    return respond(loans.get_by_item(item_id))


@router.post("/items", status_code=status.HTTP_201_CREATED)
def create_item(data: CreateItem, uow: UnitOfWork = Depends(get_uow),
                actor: ActorContext = Depends(require_admin)):
    return respond(ItemService(uow).create(actor, data))


@router.put("/items/{item_id}")
def update_item(item_id: int, data: UpdateItem, uow: UnitOfWork = Depends(get_uow),
                actor: ActorContext = Depends(require_admin)):
    return respond(ItemService(uow).update(actor, item_id, data))


@router.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_item(item_id: int, uow: UnitOfWork = Depends(get_uow),
                actor: ActorContext = Depends(require_admin)):
    respond(ItemService(uow).delete(actor, item_id))


# Loans

@router.get("/loans")
def get_loans(from_date: Optional[datetime.datetime] = None,
              to_date: Optional[datetime.datetime] = None,
              loan_status: Optional[str] = Query(None, alias="status"),
              uow: UnitOfWork = Depends(get_uow),
              actor: ActorContext = Depends(require_user)):
    """Administrators see every loan; everyone else only their own.

    An unrecognised ``status`` is ignored, as on the item list.
    """
    loans = LoanService(uow)
    loan_status = parse_enum_filter(LoanStatus, loan_status)
    if not is_admin(actor):
        return respond(loans.get_by_user(actor.user_id, loan_status))
    if from_date or to_date:
        return respond(loans.get_by_date_range(
            from_date or datetime.datetime.min, to_date or datetime.datetime.max, loan_status))
    if loan_status is not None:
        return respond(loans.get_by_status(loan_status))
    return respond(loans.get_all())


@router.get("/loans/mine")
def get_my_loans(uow: UnitOfWork = Depends(get_uow),
                 actor: ActorContext = Depends(require_user)):
    return respond(LoanService(uow).get_by_user(actor.user_id))


@router.get("/loans/pending")
def get_pending_loans(uow: UnitOfWork = Depends(get_uow),
                      actor: ActorContext = Depends(require_admin)):
    return respond(LoanService(uow).get_pending())


@router.get("/loans/overdue")
def get_overdue_loans(uow: UnitOfWork = Depends(get_uow),
                      actor: ActorContext = Depends(require_admin)):
    return respond(LoanService(uow).get_overdue())


@router.get("/loans/{loan_id}")
def get_loan(loan_id: int, uow: UnitOfWork = Depends(get_uow),
             actor: ActorContext = Depends(require_user)):
    loan = respond(LoanService(uow).get(loan_id))
    if not is_admin(actor) and loan.user_id != actor.user_id:
        raise HTTPException(status_code=403, detail="Not your loan")
    return loan


@router.post("/loans", status_code=status.HTTP_201_CREATED)
def create_loan(data: CreateLoan, uow: UnitOfWork = Depends(get_uow),
                actor: ActorContext = Depends(require_user)):
    return respond(LoanService(uow).create_loan(
        actor, actor.user_id, data.item_id, data.delivery_date, data.comments))


@router.post("/loans/{loan_id}/review")
def review_loan(loan_id: int, data: ApproveLoan, uow: UnitOfWork = Depends(get_uow),
                actor: ActorContext = Depends(require_admin)):
    return respond(LoanService(uow).approve_or_reject(actor, loan_id, data.approved, data.comments))


@router.post("/loans/{loan_id}/deliver")
def deliver_loan(loan_id: int, uow: UnitOfWork = Depends(get_uow),
                 actor: ActorContext = Depends(require_admin)):
    return respond(LoanService(uow).deliver(actor, loan_id))


@router.post("/loans/{loan_id}/return")
def return_loan(loan_id: int, data: Optional[ReturnLoan] = Body(None),
                uow: UnitOfWork = Depends(get_uow),
                actor: ActorContext = Depends(require_admin)):
    data = data or ReturnLoan()
    return respond(LoanService(uow).return_loan(actor, loan_id, data.return_date, data.comments))


# Users and roles

@router.get("/users")
def get_users(role_id: Optional[int] = None, uow: UnitOfWork = Depends(get_uow),
              actor: ActorContext = Depends(require_admin)):
    users = UserService(uow)
    if role_id is not None:
        return respond(users.get_by_role(role_id))
    return respond(users.get_all())


@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(data: CreateUser, uow: UnitOfWork = Depends(get_uow),
                actor: ActorContext = Depends(require_admin)):
    return respond(UserService(uow).create(actor, data))


@router.get("/users/{user_id}")
def get_user(user_id: int, uow: UnitOfWork = Depends(get_uow),
             actor: ActorContext = Depends(require_admin)):
    return respond(UserService(uow).get(user_id))


@router.put("/users/{user_id}")
def update_user(user_id: int, data: UpdateUser, uow: UnitOfWork = Depends(get_uow),
                actor: ActorContext = Depends(require_admin)):
    return respond(UserService(uow).update(actor, user_id, data))


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: int, uow: UnitOfWork = Depends(get_uow),
                actor: ActorContext = Depends(require_admin)):
    respond(UserService(uow).delete(actor, user_id))


@router.put("/users/{user_id}/role")
def change_user_role(user_id: int, data: ChangeRole, uow: UnitOfWork = Depends(get_uow),
                     actor: ActorContext = Depends(require_admin)):
    return respond(UserService(uow).change_role(actor, user_id, data.role_id))


@router.get("/roles")
def get_roles(uow: UnitOfWork = Depends(get_uow),
              actor: ActorContext = Depends(require_admin)):
    return respond(RoleService(uow).get_all())


@router.post("/roles", status_code=status.HTTP_201_CREATED)
def create_role(data: CreateRole, uow: UnitOfWork = Depends(get_uow),
                actor: ActorContext = Depends(require_admin)):
    return respond(RoleService(uow).create(actor, data))


@router.delete("/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_role(role_id: int, uow: UnitOfWork = Depends(get_uow),
                actor: ActorContext = Depends(require_admin)):
    respond(RoleService(uow).delete(actor, role_id))


# Audit

@router.get("/audit")
def get_audit(table_name: Optional[str] = None, primary_key: Optional[str] = None,
              from_date: Optional[datetime.datetime] = None,
              to_date: Optional[datetime.datetime] = None,
              uow: UnitOfWork = Depends(get_uow),
              actor: ActorContext = Depends(require_admin)):
    """Trail of one record when table_name and primary_key are given, else a date range."""
    audit = AuditService(uow)
    if table_name and primary_key:
        logs = respond(audit.get_audit_trail(table_name, primary_key))
    else:
        logs = respond(audit.get_system_activity(
            from_date or datetime.datetime.min, to_date or datetime.datetime.max))
    return [AuditLogDto.model_validate(log) for log in logs]


@router.get("/audit/activity")
def get_activity(action_by: str, from_date: Optional[datetime.datetime] = None,
                 to_date: Optional[datetime.datetime] = None,
                 uow: UnitOfWork = Depends(get_uow),
                 actor: ActorContext = Depends(require_admin)):
    logs = respond(AuditService(uow).get_user_activity(action_by, from_date, to_date))
    return [AuditLogDto.model_validate(log) for log in logs]


# Reports

@router.get("/reports/inventory.pdf")
def inventory_report(uow: UnitOfWork = Depends(get_uow),
                     actor: ActorContext = Depends(require_admin)):
    return download(ReportService(uow).inventory_status_pdf(actor))


@router.get("/reports/items.pdf")
def items_report(uow: UnitOfWork = Depends(get_uow),
                 actor: ActorContext = Depends(require_admin)):
    return download(ReportService(uow).items_pdf(actor))


@router.get("/reports/loans.xlsx")
def loans_report(uow: UnitOfWork = Depends(get_uow),
                 actor: ActorContext = Depends(require_admin)):
    return download(ReportService(uow).loans_xlsx(actor))


@router.get("/reports/activity.xlsx")
def activity_report(from_date: Optional[datetime.datetime] = None,
                    to_date: Optional[datetime.datetime] = None,
                    uow: UnitOfWork = Depends(get_uow),
                    actor: ActorContext = Depends(require_admin)):
    return download(ReportService(uow).user_activity_xlsx(actor, from_date, to_date))
