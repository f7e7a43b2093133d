from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from marketplace.models.base import Base, new_id


class BidStatus:
    ACTIVE = "active"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"

    # Statuses that block the same exporter from bidding again on a requirement.
    OPEN = (ACTIVE, ACCEPTED)


_OPEN_BID_CLAUSE = text("status IN ('active', 'accepted')")


class Bid(Base):
    __tablename__ = "bids"
    __table_args__ = (
        Index(
            "uq_bids_open_exporter_requirement",
            "exporter_id",
            "requirement_id",
            unique=True,
            postgresql_where=_OPEN_BID_CLAUSE,
            sqlite_where=_OPEN_BID_CLAUSE,
        ),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    requirement_id = Column(String(36), ForeignKey("requirements.id"), nullable=False, index=True)
    exporter_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    price = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False)
    delivery_time = Column(Integer, nullable=False)
    delivery_time_unit = Column(String(10), nullable=False)  # "days" | "weeks" | "months"
    payment_terms = Column(Text, nullable=False, default="")
    delivery_terms = Column(Text, nullable=False, default="")
    additional_notes = Column(Text, nullable=False, default="")
    valid_until = Column(DateTime(timezone=True), nullable=True)
    status = Column(String(20), default=BidStatus.ACTIVE, nullable=False, index=True)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    requirement = relationship("Requirement", back_populates="bids")
    exporter = relationship("User")
    audit_events = relationship(
        "BidAuditEvent",
        back_populates="bid",
        order_by="BidAuditEvent.created_at",
        cascade="all, delete-orphan",
    )
