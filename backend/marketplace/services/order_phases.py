"""Order lifecycle: creation from an accepted bid, phase progression, documents, cancellation.

Phases run strictly in ORDER_PHASES order. While an order is active exactly one
phase is pending (the current one), every earlier phase is completed and every
later phase is not started. Completing the delivery phase completes the order.
"""
import logging
from datetime import datetime, timedelta
from typing import Iterable, Optional

from transitions import Machine

from marketplace.config import settings
from marketplace.models import (
    ORDER_PHASES,
    BidStatus,
    Order,
    OrderDocument,
    OrderPhase,
    OrderStatus,
    PhaseStatus,
    UserRole,
)
from marketplace.repositories import Repositories
from marketplace.schemas.order import OrderDocumentIn
from marketplace.services.clock import as_utc, utcnow
from marketplace.services.errors import (
    InvalidPayloadError,
    NotFoundError,
    PermissionDeniedError,
    StateConflictError,
)
from marketplace.services.normalizer import to_base_days
from marketplace.services.principal import Principal
from marketplace.services.reliability import delivered_on_time

logger = logging.getLogger(__name__)

FINAL_PHASE = ORDER_PHASES[-1]


def phase_index(name: str) -> int:
    try:
        return ORDER_PHASES.index(name)
    except ValueError:
        raise InvalidPayloadError(f"Invalid phase: {name}") from None


class OrderPhaseMachine:
    """Drives ``order.current_phase`` and the per-phase records through ORDER_PHASES.

    Triggers (keyword arguments ``actor_id`` and ``now`` are required):
      - ``advance``: complete the current phase and open the next one.
      - ``finish``: complete the final phase in place.
    """

    def __init__(self, order: Order):
        self.order = order
        self.machine = Machine(
            model=self,
            states=list(ORDER_PHASES),
            initial=order.current_phase,
            auto_transitions=False,
            send_event=True,
        )
        for source, dest in zip(ORDER_PHASES, ORDER_PHASES[1:]):
            self.machine.add_transition("advance", source, dest, before="_complete_phase", after="_open_phase")
        self.machine.add_transition("finish", FINAL_PHASE, FINAL_PHASE, before="_complete_phase")

    def _complete_phase(self, event):
        record = self.order.phase(self.state)
        if record.status == PhaseStatus.PENDING:
            record.status = PhaseStatus.COMPLETED
            record.completed_at = event.kwargs["now"]
            record.updated_by = event.kwargs["actor_id"]

    def _open_phase(self, event):
        self.order.current_phase = self.state
        record = self.order.phase(self.state)
        record.status = PhaseStatus.PENDING
        record.started_at = event.kwargs["now"]
        record.updated_by = event.kwargs["actor_id"]
        logger.info("Order %s entered phase %s", self.order.id, self.state)


def _new_phases(now: datetime) -> list[OrderPhase]:
    return [
        OrderPhase(
            name=name,
            position=position,
            status=PhaseStatus.PENDING if position == 0 else PhaseStatus.NOT_STARTED,
            started_at=now if position == 0 else None,
            notes="",
        )
        for position, name in enumerate(ORDER_PHASES)
    ]


def _document(payload: OrderDocumentIn, actor_id: str, now: datetime) -> OrderDocument:
    return OrderDocument(
        name=payload.name,
        url=payload.url,
        content_type=payload.content_type,
        size=payload.size,
        uploaded_by=actor_id,
        uploaded_at=now,
    )


def create_order_from_bid(
    repos: Repositories,
    importer: Principal,
    bid_id: str,
    now: Optional[datetime] = None,
) -> Order:
    now = now or utcnow()
    bid = repos.bids.get(bid_id)
    if bid is None:
        raise NotFoundError("Bid not found")
    requirement = repos.requirements.get(bid.requirement_id)
    if requirement is None:
        raise NotFoundError("Requirement not found")
    if requirement.importer_id != importer.id:
        raise PermissionDeniedError("Unauthorized to create an order for this bid")
    if bid.status != BidStatus.ACCEPTED:
        raise StateConflictError("Only an accepted bid can become an order")
    if repos.orders.for_bid(bid.id) is not None:
        raise StateConflictError("An order already exists for this bid")

    order = Order(
        bid_id=bid.id,
        requirement_id=requirement.id,
        exporter_id=bid.exporter_id,
        importer_id=requirement.importer_id,
        title=requirement.title,
        category=requirement.category,
        quantity=requirement.quantity,
        unit=requirement.unit,
        price=bid.price,
        currency=bid.currency,
        total_value=bid.price * requirement.quantity,
        delivery_location=requirement.delivery_location,
        delivery_time=bid.delivery_time,
        delivery_time_unit=bid.delivery_time_unit,
        estimated_delivery=now + timedelta(days=to_base_days(bid.delivery_time, bid.delivery_time_unit)),
        payment_terms=bid.payment_terms or requirement.payment_terms or "",
        delivery_terms=bid.delivery_terms or requirement.delivery_terms or "",
        current_phase=ORDER_PHASES[0],
        status=OrderStatus.ACTIVE,
        created_at=now,
        updated_at=now,
        phases=_new_phases(now),
    )
    repos.orders.add(order)
    logger.info("Order created: %s from bid %s (%s %s)", order.id, bid.id, order.total_value, order.currency)
    return order


def get_party_order(repos: Repositories, principal: Principal, order_id: str) -> Order:
    order = repos.orders.get(order_id)
    if order is None:
        raise NotFoundError("Order not found")
    if principal.id not in (order.exporter_id, order.importer_id):
        raise PermissionDeniedError("Unauthorized to access this order")
    return order


def _ensure_active(order: Order, action: str) -> None:
    if order.status != OrderStatus.ACTIVE:
        raise StateConflictError(f"Cannot {action} {order.status} order")


def advance_order_phase(
    repos: Repositories,
    principal: Principal,
    order_id: str,
    phase: Optional[str] = None,
    notes: Optional[str] = None,
    documents: Iterable[OrderDocumentIn] = (),
    estimated_delivery: Optional[datetime] = None,
    now: Optional[datetime] = None,
) -> Order:
    """Move an order to ``phase`` (the current one or the next) and update the current phase.

    A target equal to the current phase keeps the order where it is, except on the
    final phase, where it completes delivery and with it the order. Notes, documents
    and the revised delivery estimate apply to whichever phase is current afterwards.
    """
    now = now or utcnow()
    order = get_party_order(repos, principal, order_id)
    _ensure_active(order, "update")

    if phase is not None:
        current = phase_index(order.current_phase)
        target = phase_index(phase)
        if target < current:
            raise StateConflictError("Cannot move to previous phase")
        if target > current + 1:
            raise StateConflictError("Cannot skip phases")
        machine = OrderPhaseMachine(order)
        if target == current + 1:
            machine.advance(actor_id=principal.id, now=now)
        elif phase == FINAL_PHASE:
            machine.finish(actor_id=principal.id, now=now)

    record = order.phase(order.current_phase)
    if notes:
        record.notes = notes
    for payload in documents:
        record.documents.append(_document(payload, principal.id, now))
    if estimated_delivery is not None:
        order.estimated_delivery = as_utc(estimated_delivery)
    record.updated_by = principal.id
    order.updated_at = now

    if order.current_phase == FINAL_PHASE and record.status == PhaseStatus.COMPLETED:
        order.status = OrderStatus.COMPLETED
        logger.info("Order completed: %s", order.id)

    repos.db.flush()
    logger.info("Order updated: %s phase=%s by %s", order.id, order.current_phase, principal.id)
    return order


def attach_documents(
    repos: Repositories,
    principal: Principal,
    order_id: str,
    phase: str,
    documents: Iterable[OrderDocumentIn],
    now: Optional[datetime] = None,
) -> list[OrderDocument]:
    """Append documents to any phase of an active order without touching its status."""
    now = now or utcnow()
    phase_index(phase)
    documents = list(documents)
    if not documents:
        raise InvalidPayloadError("No documents supplied")
    order = get_party_order(repos, principal, order_id)
    _ensure_active(order, "attach documents to")

    record = order.phase(phase)
    attached = [_document(payload, principal.id, now) for payload in documents]
    record.documents.extend(attached)
    record.updated_by = principal.id
    order.updated_at = now
    repos.db.flush()
    logger.info("Attached %s documents to order %s phase %s", len(attached), order.id, phase)
    return attached


def cancel_order(
    repos: Repositories,
    principal: Principal,
    order_id: str,
    reason: str = "",
    now: Optional[datetime] = None,
) -> Order:
    now = now or utcnow()
    order = get_party_order(repos, principal, order_id)
    _ensure_active(order, "cancel")
    if phase_index(order.current_phase) > settings.CANCELLABLE_PHASE_LIMIT:
        raise StateConflictError(f"Cannot cancel order in {order.current_phase} phase")

    order.status = OrderStatus.CANCELLED
    order.cancellation_reason = reason or ""
    order.cancelled_by = principal.id
    order.cancelled_at = now
    order.updated_at = now
    repos.db.flush()
    logger.info("Order cancelled: %s by %s during %s", order.id, principal.id, order.current_phase)
    return order


def order_stats(repos: Repositories, principal: Principal) -> dict:
    orders = repos.orders.all_for_party(principal.id)
    completed = [o for o in orders if o.status == OrderStatus.COMPLETED]
    stats = {
        "total": len(orders),
        **{status: sum(1 for o in orders if o.status == status) for status in OrderStatus.ALL},
        "phases": {
            name: sum(1 for o in orders if o.current_phase == name and o.status == OrderStatus.ACTIVE)
            for name in ORDER_PHASES
        },
        "total_value": sum(o.total_value or 0 for o in completed),
    }
    if principal.role == UserRole.EXPORTER:
        stats["average_order_value"] = (
            sum(o.total_value or 0 for o in orders) / len(orders) if orders else 0.0
        )
        stats["on_time_delivery_rate"] = (
            round(sum(1 for o in completed if delivered_on_time(o)) / len(completed) * 100, 2)
            if completed else 0.0
        )
    return stats
