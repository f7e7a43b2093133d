from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from marketplace.models.base import Base, new_id


class RequirementStatus:
    ACTIVE = "active"
    CLOSED = "closed"
    AWARDED = "awarded"


class Requirement(Base):
    __tablename__ = "requirements"

    id = Column(String(36), primary_key=True, default=new_id)
    importer_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(String(100), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit = Column(String(50), nullable=False)
    target_price = Column(Float, nullable=True)
    currency = Column(String(3), nullable=False, default="USD")
    delivery_location = Column(String(255), nullable=False)
    bid_deadline = Column(DateTime(timezone=True), nullable=False)
    delivery_deadline = Column(DateTime(timezone=True), nullable=False)
    payment_terms = Column(Text, nullable=False, default="")
    delivery_terms = Column(Text, nullable=False, default="")
    status = Column(String(20), default=RequirementStatus.ACTIVE, nullable=False, index=True)
    bid_count = Column(Integer, default=0, nullable=False)
    awarded_bid_id = Column(String(36), nullable=True)  # set once, by bid acceptance
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    importer = relationship("User")
    bids = relationship("Bid", back_populates="requirement", order_by="Bid.created_at")

    __mapper_args__ = {"version_id_col": version}
