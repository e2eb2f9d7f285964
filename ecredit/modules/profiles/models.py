from sqlalchemy import Column, Integer, String, Boolean, DateTime, Numeric
from sqlalchemy.sql import func
from ecredit.core.database import Base


class Profile(Base):
    """Account holder; the primary key is the identity provider's subject id"""
    __tablename__ = "profiles"

    id = Column(String(64), primary_key=True, index=True)
    
    email = Column(String(255), nullable=True, index=True)
    full_name = Column(String(200), nullable=True)
    phone = Column(String(30), nullable=True)
    avatar_url = Column(String(1024), nullable=True)  # opaque blob store reference
    
    # Plain attributes maintained by admins
    credit_score = Column(Integer, nullable=True)
    loan_limit = Column(Numeric(15, 2), nullable=False, default=0)
    
    is_admin = Column(Boolean, nullable=False, default=False)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<Profile(id={self.id}, email={self.email}, is_admin={self.is_admin})>"
