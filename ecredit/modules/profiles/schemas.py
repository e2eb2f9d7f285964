from pydantic import BaseModel, Field, EmailStr
from datetime import datetime
from decimal import Decimal
from typing import Optional


class ProfileBase(BaseModel):
    email: Optional[EmailStr] = None
    full_name: Optional[str] = Field(None, max_length=200)
    phone: Optional[str] = Field(None, max_length=30)
    avatar_url: Optional[str] = Field(None, max_length=1024)


class ProfileCreate(ProfileBase):
    id: Optional[str] = Field(None, max_length=64)  # defaults to the caller
    credit_score: Optional[int] = None
    loan_limit: Optional[Decimal] = None
    is_admin: Optional[bool] = None


class ProfileUpdate(ProfileBase):
    credit_score: Optional[int] = None
    loan_limit: Optional[Decimal] = None
    is_admin: Optional[bool] = None


class ProfileResponse(ProfileBase):
    id: str
    email: Optional[str]
    credit_score: Optional[int]
    loan_limit: Decimal
    is_admin: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
