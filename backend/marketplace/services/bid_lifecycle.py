"""Bid state transitions: submit, update, withdraw, accept.

    active -> withdrawn | accepted | rejected

accepted, rejected and withdrawn are terminal. Every function here mutates the
session without committing; the caller commits the whole command at once (see
locking.serialized), so a failed precondition never leaves partial state.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from marketplace.models import Bid, BidAuditEvent, BidStatus, Requirement, RequirementStatus
from marketplace.repositories import Repositories
from marketplace.schemas.bid import BidCreate, BidUpdate
from marketplace.services.clock import as_utc, utcnow
from marketplace.services.errors import (
    IntegrityViolationError,
    NotFoundError,
    PermissionDeniedError,
    StateConflictError,
)
from marketplace.services.integrity import validate_bid_integrity
from marketplace.services.principal import Principal

logger = logging.getLogger(__name__)


@dataclass
class Acceptance:
    bid: Bid
    rejected: list[Bid]
    requirement: Requirement


def _audit(bid: Bid, action: str, actor_id: str, now: datetime, detail: Optional[str] = None) -> None:
    bid.audit_events.append(BidAuditEvent(action=action, actor=actor_id, detail=detail, created_at=now))


def _ensure_open_for_bids(requirement: Optional[Requirement], now: datetime) -> Requirement:
    if requirement is None or requirement.status != RequirementStatus.ACTIVE:
        raise StateConflictError("Requirement is not accepting bids")
    if now > as_utc(requirement.bid_deadline):
        raise StateConflictError("Bid deadline has passed")
    return requirement


def _owned_bid(repos: Repositories, exporter: Principal, bid_id: str) -> Bid:
    bid = repos.bids.get(bid_id)
    if bid is None:
        raise NotFoundError("Bid not found")
    if bid.exporter_id != exporter.id:
        raise PermissionDeniedError("Unauthorized to modify this bid")
    return bid


def submit_bid(
    repos: Repositories,
    exporter: Principal,
    payload: BidCreate,
    now: Optional[datetime] = None,
) -> Bid:
    now = now or utcnow()
    requirement = repos.requirements.get(payload.requirement_id)
    if requirement is None:
        raise NotFoundError("Requirement not found")
    _ensure_open_for_bids(requirement, now)
    if requirement.importer_id == exporter.id:
        raise StateConflictError("Cannot bid on your own requirement")

    bid = Bid(
        requirement_id=requirement.id,
        exporter_id=exporter.id,
        price=payload.price,
        currency=payload.currency,
        delivery_time=payload.delivery_time,
        delivery_time_unit=payload.delivery_time_unit,
        payment_terms=payload.payment_terms,
        delivery_terms=payload.delivery_terms,
        additional_notes=payload.additional_notes,
        valid_until=as_utc(payload.valid_until),
        status=BidStatus.ACTIVE,
        created_at=now,
        updated_at=now,
    )
    check = validate_bid_integrity(bid, repos.bids.for_requirement(requirement.id), requirement)
    if not check.valid:
        logger.info("Bid rejected for requirement %s from exporter %s: %s", requirement.id, exporter.id, check.reason)
        raise IntegrityViolationError(check.reason)

    _audit(bid, "created", exporter.id, now)
    repos.bids.add(bid)
    requirement.bid_count = (requirement.bid_count or 0) + 1
    requirement.updated_at = now
    repos.db.flush()
    logger.info("New bid submitted: %s by exporter %s for requirement %s", bid.id, exporter.id, requirement.id)
    return bid


def update_bid(
    repos: Repositories,
    exporter: Principal,
    bid_id: str,
    payload: BidUpdate,
    now: Optional[datetime] = None,
) -> Bid:
    """Revise an active bid before the deadline.

    Integrity rules are not re-run here, so a price cut below the suspicious
    floor goes through on update.
    """
    now = now or utcnow()
    bid = _owned_bid(repos, exporter, bid_id)
    if bid.status != BidStatus.ACTIVE:
        raise StateConflictError("Cannot update inactive bid")
    _ensure_open_for_bids(repos.requirements.get(bid.requirement_id), now)

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "valid_until" in changes:
        changes["valid_until"] = as_utc(changes["valid_until"])
    for field, value in changes.items():
        setattr(bid, field, value)
    bid.updated_at = now
    _audit(bid, "updated", exporter.id, now, detail=", ".join(sorted(changes)) or None)
    repos.db.flush()
    logger.info("Bid updated: %s by exporter %s", bid.id, exporter.id)
    return bid


def withdraw_bid(
    repos: Repositories,
    exporter: Principal,
    bid_id: str,
    now: Optional[datetime] = None,
) -> Bid:
    now = now or utcnow()
    bid = _owned_bid(repos, exporter, bid_id)
    if bid.status != BidStatus.ACTIVE:
        raise StateConflictError("Cannot withdraw inactive bid")

    bid.status = BidStatus.WITHDRAWN
    bid.updated_at = now
    _audit(bid, "withdrawn", exporter.id, now)
    requirement = repos.requirements.get(bid.requirement_id)
    if requirement is not None:
        requirement.bid_count = max((requirement.bid_count or 0) - 1, 0)
        requirement.updated_at = now
    repos.db.flush()
    logger.info("Bid withdrawn: %s by exporter %s", bid.id, exporter.id)
    return bid


def accept_bid(
    repos: Repositories,
    importer: Principal,
    bid_id: str,
    now: Optional[datetime] = None,
) -> Acceptance:
    """Accept one bid, reject its active siblings and award the requirement.

    All preconditions are checked before the first write.
    """
    now = now or utcnow()
    bid = repos.bids.get(bid_id)
    if bid is None:
        raise NotFoundError("Bid not found")
    requirement = repos.requirements.get(bid.requirement_id)
    if requirement is None or requirement.importer_id != importer.id:
        raise PermissionDeniedError("Unauthorized to accept this bid")
    if requirement.status != RequirementStatus.ACTIVE:
        raise StateConflictError("Requirement is not active")
    if bid.status != BidStatus.ACTIVE:
        raise StateConflictError("Bid is not active")

    siblings = [
        other
        for other in repos.bids.for_requirement(requirement.id, statuses=[BidStatus.ACTIVE])
        if other.id != bid.id
    ]

    bid.status = BidStatus.ACCEPTED
    bid.accepted_at = now
    bid.updated_at = now
    _audit(bid, "accepted", importer.id, now)
    for other in siblings:
        other.status = BidStatus.REJECTED
        other.updated_at = now
        _audit(other, "rejected", importer.id, now, detail=f"bid {bid.id} accepted")
    requirement.status = RequirementStatus.AWARDED
    requirement.awarded_bid_id = bid.id
    requirement.updated_at = now
    repos.db.flush()
    logger.info(
        "Bid accepted: %s by importer %s for requirement %s (%s rejected)",
        bid.id, importer.id, requirement.id, len(siblings),
    )
    return Acceptance(bid=bid, rejected=siblings, requirement=requirement)


def get_visible_bid(repos: Repositories, viewer: Principal, bid_id: str) -> Bid:
    """A bid as seen by its exporter or the owner of its requirement."""
    bid = repos.bids.get(bid_id)
    if bid is None:
        raise NotFoundError("Bid not found")
    if viewer.id != bid.exporter_id:
        requirement = repos.requirements.get(bid.requirement_id)
        if requirement is None or requirement.importer_id != viewer.id:
            raise PermissionDeniedError("Unauthorized to view this bid")
    return bid


def bid_stats(repos: Repositories, exporter: Principal) -> dict:
    bids = repos.bids.list(exporter_id=exporter.id)
    counts = {status: sum(1 for b in bids if b.status == status) for status in (
        BidStatus.ACTIVE, BidStatus.ACCEPTED, BidStatus.REJECTED, BidStatus.WITHDRAWN,
    )}
    win_rate = round(counts[BidStatus.ACCEPTED] / len(bids) * 100, 2) if bids else 0.0
    return {"total": len(bids), **counts, "win_rate": win_rate}
