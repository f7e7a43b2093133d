"""Session-backed stores for the marketplace aggregates.

Core services receive a ``Repositories`` bundle instead of touching the session
directly, so they can run against any session (Postgres in production, in-memory
SQLite in tests).
"""
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from marketplace.models import Bid, BidAuditEvent, Order, Requirement, User


class Repository:
    model = None

    def __init__(self, db: Session):
        self.db = db

    def get(self, entity_id: str):
        return self.db.query(self.model).filter(self.model.id == entity_id).first()

    def list(self, **filters) -> list:
        query = self.db.query(self.model)
        for field, value in filters.items():
            query = query.filter(getattr(self.model, field) == value)
        return query.all()

    def add(self, entity):
        self.db.add(entity)
        self.db.flush()
        return entity

    def delete(self, entity) -> None:
        self.db.delete(entity)
        self.db.flush()


def _page(query, page: int, limit: int) -> tuple[list, int]:
    total = query.count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, total


def _ordering(column, sort_order: str):
    return column.asc() if sort_order == "asc" else column.desc()


class UserRepository(Repository):
    model = User

    def get_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email).first()


class RequirementRepository(Repository):
    model = Requirement

    SORTABLE = ("created_at", "updated_at", "bid_deadline", "delivery_deadline", "quantity")

    def search(
        self,
        *,
        status: str = "active",
        category: Optional[str] = None,
        importer_id: Optional[str] = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Requirement], int]:
        query = self.db.query(Requirement)
        if status != "all":
            query = query.filter(Requirement.status == status)
        if category:
            query = query.filter(Requirement.category.ilike(f"%{category}%"))
        if importer_id:
            query = query.filter(Requirement.importer_id == importer_id)
        column = getattr(Requirement, sort_by if sort_by in self.SORTABLE else "created_at")
        query = query.order_by(_ordering(column, sort_order), Requirement.id)
        return _page(query, page, limit)


class BidRepository(Repository):
    model = Bid

    def for_requirement(self, requirement_id: str, statuses: Optional[Iterable[str]] = None) -> list[Bid]:
        query = self.db.query(Bid).filter(Bid.requirement_id == requirement_id)
        if statuses is not None:
            query = query.filter(Bid.status.in_(list(statuses)))
        return query.order_by(Bid.created_at, Bid.id).all()

    def for_exporter(
        self,
        exporter_id: str,
        *,
        status: str = "all",
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Bid], int]:
        query = self.db.query(Bid).filter(Bid.exporter_id == exporter_id)
        if status != "all":
            query = query.filter(Bid.status == status)
        column = Bid.updated_at if sort_by == "updated_at" else Bid.created_at
        query = query.order_by(_ordering(column, sort_order), Bid.id)
        return _page(query, page, limit)

    def audit_trail(self, bid_id: str) -> list[BidAuditEvent]:
        return (
            self.db.query(BidAuditEvent)
            .filter(BidAuditEvent.bid_id == bid_id)
            .order_by(BidAuditEvent.created_at, BidAuditEvent.id)
            .all()
        )


class OrderRepository(Repository):
    model = Order

    def for_bid(self, bid_id: str) -> Optional[Order]:
        return self.db.query(Order).filter(Order.bid_id == bid_id).first()

    def for_party(
        self,
        user_id: str,
        *,
        status: str = "all",
        phase: str = "all",
        sort_by: str = "created_at",
        sort_order: str = "desc",
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Order], int]:
        query = self.db.query(Order).filter((Order.exporter_id == user_id) | (Order.importer_id == user_id))
        if status != "all":
            query = query.filter(Order.status == status)
        if phase != "all":
            query = query.filter(Order.current_phase == phase)
        column = {
            "updated_at": Order.updated_at,
            "estimated_delivery": Order.estimated_delivery,
            "total_value": Order.total_value,
        }.get(sort_by, Order.created_at)
        query = query.order_by(_ordering(column, sort_order), Order.id)
        return _page(query, page, limit)

    def all_for_party(self, user_id: str) -> list[Order]:
        return self.db.query(Order).filter((Order.exporter_id == user_id) | (Order.importer_id == user_id)).all()


@dataclass
class Repositories:
    db: Session
    users: UserRepository
    requirements: RequirementRepository
    bids: BidRepository
    orders: OrderRepository

    @classmethod
    def from_session(cls, db: Session) -> "Repositories":
        return cls(
            db=db,
            users=UserRepository(db),
            requirements=RequirementRepository(db),
            bids=BidRepository(db),
            orders=OrderRepository(db),
        )
