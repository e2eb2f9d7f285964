from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Numeric, Text, JSON
from sqlalchemy.sql import func
from ecredit.core.database import Base


class ActivityRecord(Base):
    """Append-only activity log entry"""
    __tablename__ = "activity_log"

    id = Column(Integer, primary_key=True, index=True)
    
    # Identity the record is attributed to; may differ from the acting admin
    user_id = Column(String(64), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    
    activity_type = Column(String(100), nullable=False, index=True)  # loan_application, loan_approve, ...
    description = Column(Text, nullable=False)
    amount = Column(Numeric(15, 2), nullable=True)
    details = Column("metadata", JSON, nullable=True)
    
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    
    def __repr__(self):
        return f"<ActivityRecord(id={self.id}, type={self.activity_type}, user_id={self.user_id})>"
