from marketplace.models.base import Base
from marketplace.models.user import User, UserRole
from marketplace.models.requirement import Requirement, RequirementStatus
from marketplace.models.bid import Bid, BidStatus
from marketplace.models.bid_audit import BidAuditEvent
from marketplace.models.order import ORDER_PHASES, Order, OrderDocument, OrderPhase, OrderStatus, PhaseStatus

__all__ = [
    "Base",
    "User",
    "UserRole",
    "Requirement",
    "RequirementStatus",
    "Bid",
    "BidStatus",
    "BidAuditEvent",
    "ORDER_PHASES",
    "Order",
    "OrderPhase",
    "OrderDocument",
    "OrderStatus",
    "PhaseStatus",
]
