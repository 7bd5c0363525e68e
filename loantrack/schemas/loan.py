from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional
from datetime import datetime
from loantrack.schemas.common import enum_name

UNKNOWN = "Unknown"


class Loan(BaseModel):
    id: int
    user_id: Optional[int] = None
    user_name: str = UNKNOWN
    item_id: Optional[int] = None
    item_name: str = UNKNOWN
    item_code: str = UNKNOWN
    request_date: datetime
    delivery_date: Optional[datetime] = None
    return_date: Optional[datetime] = None
    status: str
    comments: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("status", mode="before")
    @classmethod
    def _status_name(cls, value):
        return enum_name(value)

    @classmethod
    def from_entity(cls, loan):
        return cls(
            id=loan.id,
            user_id=loan.user_id,
            user_name=loan.user.name if loan.user else UNKNOWN,
            item_id=loan.item_id,
            item_name=loan.item.name if loan.item else UNKNOWN,
            item_code=loan.item.code if loan.item else UNKNOWN,
            request_date=loan.request_date,
            delivery_date=loan.delivery_date,
            return_date=loan.return_date,
            status=loan.status,
            comments=loan.comments,
        )


class CreateLoan(BaseModel):
    item_id: int = Field(..., gt=0)
    delivery_date: Optional[datetime] = None
    comments: Optional[str] = Field(None, max_length=500)


class ApproveLoan(BaseModel):
    approved: bool
    comments: Optional[str] = Field(None, max_length=500)


class ReturnLoan(BaseModel):
    return_date: Optional[datetime] = None
    comments: Optional[str] = Field(None, max_length=500)


class Dashboard(BaseModel):
    total_items: int
    available_items: int
    items_on_loan: int
    total_users: int
    active_loans: int
    pending_loans: int
    recent_loans: List[Loan] = []
    overdue_loans: List[Loan] = []
