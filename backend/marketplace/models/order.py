from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from marketplace.models.base import Base, new_id

ORDER_PHASES = (
    "confirmation",
    "payment",
    "production",
    "inspection",
    "shipping",
    "delivery",
)


class OrderStatus:
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DISPUTED = "disputed"

    ALL = (ACTIVE, COMPLETED, CANCELLED, DISPUTED)


class PhaseStatus:
    NOT_STARTED = "not_started"
    PENDING = "pending"
    COMPLETED = "completed"


class Order(Base):
    __tablename__ = "orders"

    id = Column(String(36), primary_key=True, default=new_id)
    bid_id = Column(String(36), ForeignKey("bids.id"), nullable=False, unique=True)
    requirement_id = Column(String(36), ForeignKey("requirements.id"), nullable=False, index=True)
    exporter_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    importer_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)

    # Commercial terms denormalized from the requirement and the accepted bid
    title = Column(String(200), nullable=False)
    category = Column(String(100), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit = Column(String(50), nullable=False)
    price = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False)
    total_value = Column(Float, nullable=False)
    delivery_location = Column(String(255), nullable=False)
    delivery_time = Column(Integer, nullable=False)
    delivery_time_unit = Column(String(10), nullable=False)
    estimated_delivery = Column(DateTime(timezone=True), nullable=False)
    payment_terms = Column(Text, nullable=False, default="")
    delivery_terms = Column(Text, nullable=False, default="")

    current_phase = Column(String(20), nullable=False, default=ORDER_PHASES[0])
    status = Column(String(20), nullable=False, default=OrderStatus.ACTIVE, index=True)
    cancellation_reason = Column(Text, nullable=True)
    cancelled_by = Column(String(36), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    phases = relationship(
        "OrderPhase",
        back_populates="order",
        order_by="OrderPhase.position",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": version}

    def phase(self, name: str) -> "OrderPhase":
        for record in self.phases:
            if record.name == name:
                return record
        raise KeyError(name)


class OrderPhase(Base):
    """Per-phase tracking record; one row for every entry in ORDER_PHASES."""
    __tablename__ = "order_phases"
    __table_args__ = (UniqueConstraint("order_id", "name", name="uq_order_phases_order_name"),)

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(20), nullable=False)
    position = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=PhaseStatus.NOT_STARTED)
    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=False, default="")
    updated_by = Column(String(36), nullable=True)

    order = relationship("Order", back_populates="phases")
    documents = relationship(
        "OrderDocument",
        back_populates="phase",
        order_by="OrderDocument.uploaded_at",
        cascade="all, delete-orphan",
    )


class OrderDocument(Base):
    """Document reference attached to an order phase. Storage of the file itself is external."""
    __tablename__ = "order_documents"

    id = Column(String(36), primary_key=True, default=new_id)
    phase_id = Column(Integer, ForeignKey("order_phases.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    url = Column(String(1024), nullable=True)
    content_type = Column(String(100), nullable=True)
    size = Column(Integer, nullable=True)
    uploaded_by = Column(String(36), nullable=False)
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now())

    phase = relationship("OrderPhase", back_populates="documents")
