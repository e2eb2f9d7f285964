from pydantic import BaseModel
from typing import Optional


class Identity(BaseModel):
    """Caller identity for one request, as verified by the identity provider"""
    user_id: Optional[str] = None
    email: Optional[str] = None

    class Config:
        frozen = True

    @property
    def is_anonymous(self) -> bool:
        return not self.user_id


class SessionResponse(BaseModel):
    user_id: str
    email: Optional[str]
    is_admin: bool
