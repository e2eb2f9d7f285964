from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any


class ActivityCreate(BaseModel):
    activity_type: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1)
    amount: Optional[Decimal] = None
    details: Optional[Dict[str, Any]] = None
    user_id: Optional[str] = None  # defaults to the caller


class ActivityResponse(BaseModel):
    id: int
    user_id: str
    activity_type: str
    description: str
    amount: Optional[Decimal]
    details: Optional[Dict[str, Any]]
    created_at: datetime

    class Config:
        from_attributes = True
