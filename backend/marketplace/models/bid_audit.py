from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from marketplace.models.base import Base


class BidAuditEvent(Base):
    """Audit trail: who did what on a bid and when."""
    __tablename__ = "bid_audit_events"

    id = Column(Integer, primary_key=True, index=True)
    bid_id = Column(String(36), ForeignKey("bids.id", ondelete="CASCADE"), nullable=False, index=True)
    action = Column(String(50), nullable=False)  # created, updated, withdrawn, accepted, rejected
    actor = Column(String(36), nullable=True)   # user id of the acting principal
    detail = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    bid = relationship("Bid", back_populates="audit_events")
