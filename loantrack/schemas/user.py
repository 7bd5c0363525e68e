from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime


class User(BaseModel):
    id: int
    name: str
    email: str
    role_name: Optional[str] = None
    is_active: bool
    created_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CreateUser(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr = Field(..., max_length=100)
    password: str = Field(..., min_length=6, max_length=72)
    role_id: int = Field(..., gt=0)

    @field_validator("name", mode="after")
    @classmethod
    def _strip_name(cls, value):
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class UpdateUser(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr = Field(..., max_length=100)
    role_id: int = Field(..., gt=0)
    is_active: bool = True


class ChangeRole(BaseModel):
    role_id: int = Field(..., gt=0)


class Login(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
    remember_me: bool = False


class Register(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr = Field(..., max_length=100)
    password: str = Field(..., min_length=6, max_length=72)
