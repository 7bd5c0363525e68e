"""
    Loan lifecycle for Loantrack.

    A loan moves Pending -> Approved | Rejected, Approved -> Delivered and
    Delivered -> Returned; Rejected and Returned are terminal. The item is
    held (OnLoan) from the request until the loan is rejected or returned.
    Every transition commits the loan, the item and its audit record in one
    transaction.

    :copyright: (c) 2025 by AUTHORS
    :license: see LICENSE for more details
"""

import datetime
import logging
from typing import Optional
from loantrack import configs
from loantrack.core.audit import ActorContext, AuditService
from loantrack.core.exceptions import Result
from loantrack.core.items import ItemService
from loantrack.core.models import Item, ItemStatus, Loan, LoanStatus
from loantrack.core.utils import append_comment, as_utc, utcnow
from loantrack.schemas.loan import Loan as LoanDto, Dashboard

logger = logging.getLogger(__name__)

RECENT_LOANS = 5


def to_dtos(loans):
    return [LoanDto.from_entity(loan) for loan in loans]


class LoanService:

    def __init__(self, uow, items: ItemService = None):
        self.uow = uow
        self.audit = AuditService(uow)
        self.items = items or ItemService(uow)

    def _load(self, loan_id: int):
        return self.uow.loans.get(loan_id)

    def create_loan(self, actor: ActorContext, user_id: int, item_id: int,
                    delivery_date=None, comments=None) -> Result:
        user = self.uow.users.get(user_id)
        if user is None or not user.is_active:
            return Result.not_found(f"Active user with ID {user_id} not found")
        item = self.uow.items.get(item_id)
        if item is None:
            return Result.not_found(f"Item with ID {item_id} not found")
        if not self.items.is_item_available_for_loan(item_id):
            return Result.conflict("Item is not available for loan")

        with self.uow.atomic(actor):
            loan = self.uow.loans.add(Loan(
                user=user,
                item=item,
                request_date=utcnow(),
                delivery_date=as_utc(delivery_date),
                status=LoanStatus.Pending,
                comments=append_comment(None, comments),
            ))
            item.status = ItemStatus.OnLoan
            self.uow.flush(actor)
            self.audit.record(
                actor, "Loans", "CREATE", loan.id,
                None, {
                    "user_id": user.id,
                    "user_name": user.name,
                    "item_id": item.id,
                    "item_name": item.name,
                    "request_date": loan.request_date,
                    "status": loan.status,
                },
                "Loan request created")
        logger.info("Loan %s requested for item %s by user %s", loan.id, item.code, user.id)
        return Result.success(LoanDto.from_entity(loan))

    def approve_or_reject(self, actor: ActorContext, loan_id: int, approved: bool,
                          comments=None) -> Result:
        loan = self._load(loan_id)
        if loan is None:
            return Result.not_found(f"Loan with ID {loan_id} not found")
        if loan.status != LoanStatus.Pending:
            return Result.conflict("Only pending loans can be approved or rejected")

        old_status = loan.status
        with self.uow.atomic(actor):
            loan.status = LoanStatus.Approved if approved else LoanStatus.Rejected
            loan.comments = append_comment(loan.comments, comments)
            if not approved and loan.item is not None:
                loan.item.status = ItemStatus.Available
            self.audit.record(
                actor, "Loans", "APPROVE" if approved else "REJECT", loan.id,
                {"old_status": old_status},
                {"new_status": loan.status, "comments": comments},
                f"Loan {'approved' if approved else 'rejected'}")
        return Result.success(LoanDto.from_entity(loan))

    def deliver(self, actor: ActorContext, loan_id: int) -> Result:
        loan = self._load(loan_id)
        if loan is None:
            return Result.not_found(f"Loan with ID {loan_id} not found")
        if loan.status != LoanStatus.Approved:
            return Result.conflict("Only approved loans can be delivered")

        old_status = loan.status
        with self.uow.atomic(actor):
            loan.status = LoanStatus.Delivered
            loan.delivery_date = utcnow()
            self.audit.record(
                actor, "Loans", "DELIVER", loan.id,
                {"old_status": old_status},
                {"new_status": loan.status, "delivery_date": loan.delivery_date},
                "Item delivered to user")
        return Result.success(LoanDto.from_entity(loan))

    def return_loan(self, actor: ActorContext, loan_id: int, return_date=None,
                    comments=None) -> Result:
        loan = self._load(loan_id)
        if loan is None:
            return Result.not_found(f"Loan with ID {loan_id} not found")
        if loan.status != LoanStatus.Delivered:
            return Result.conflict("Only delivered loans can be returned")

        old_values = {"status": loan.status, "return_date": loan.return_date}
        with self.uow.atomic(actor):
            loan.status = LoanStatus.Returned
            loan.return_date = as_utc(return_date) or utcnow()
            loan.comments = append_comment(loan.comments, comments)
            if loan.item is not None:
                loan.item.status = ItemStatus.Available
            self.audit.record(
                actor, "Loans", "RETURN", loan.id,
                old_values,
                {"status": loan.status, "return_date": loan.return_date, "comments": comments},
                "Item returned")
        return Result.success(LoanDto.from_entity(loan))

    def get(self, loan_id: int) -> Result:
        loan = self._load(loan_id)
        if loan is None:
            return Result.not_found(f"Loan with ID {loan_id} not found")
        return Result.success(LoanDto.from_entity(loan))

    def get_all(self) -> Result:
        return Result.success(to_dtos(self.uow.loans.get_all()))

    def get_by_user(self, user_id: int, status: Optional[LoanStatus] = None) -> Result:
        return Result.success(to_dtos(self.uow.loans.get_by_user(user_id, status)))

    def get_by_status(self, status: LoanStatus) -> Result:
        return Result.success(to_dtos(self.uow.loans.get_by_status(status)))

    def get_pending(self) -> Result:
        return Result.success(to_dtos(self.uow.loans.get_pending()))

    def get_active_by_item(self, item_id: int) -> Result:
        return Result.success(to_dtos(self.uow.loans.get_active_by_item(item_id)))

    def get_by_item(self, item_id: int) -> Result:
        if self.uow.items.get(item_id) is None:
            return Result.not_found(f"Item with ID {item_id} not found")
        return Result.success(to_dtos(self.uow.loans.get_by_item(item_id)))

    def overdue_cutoff(self):
        return utcnow() - datetime.timedelta(days=configs.OVERDUE_DAYS)

    def get_overdue(self) -> Result:
        return Result.success(to_dtos(self.uow.loans.get_overdue(self.overdue_cutoff())))

    def get_by_date_range(self, from_date, to_date, status: Optional[LoanStatus] = None) -> Result:
        from_date, to_date = as_utc(from_date), as_utc(to_date)
        if from_date > to_date:
            return Result.invalid("from_date must not be after to_date")
        return Result.success(to_dtos(
            self.uow.loans.get_by_date_range(from_date, to_date, status)))

    def get_dashboard(self) -> Result:
        uow = self.uow
        return Result.success(Dashboard(
            total_items=uow.items.count(),
            available_items=uow.items.count(Item.status == ItemStatus.Available),
            items_on_loan=uow.items.count(Item.status == ItemStatus.OnLoan),
            total_users=uow.users.count(),
            active_loans=uow.loans.count(Loan.status == LoanStatus.Delivered),
            pending_loans=uow.loans.count(Loan.status == LoanStatus.Pending),
            recent_loans=to_dtos(uow.loans.get_recent(RECENT_LOANS)),
            overdue_loans=to_dtos(uow.loans.get_overdue(self.overdue_cutoff())),
        ))
