import logging
from datetime import datetime
from typing import Optional

from marketplace.models import Requirement, RequirementStatus
from marketplace.repositories import Repositories
from marketplace.schemas.requirement import RequirementCreate, RequirementUpdate
from marketplace.services.clock import as_utc, utcnow
from marketplace.services.errors import NotFoundError, PermissionDeniedError, StateConflictError
from marketplace.services.principal import Principal

logger = logging.getLogger(__name__)


def create_requirement(
    repos: Repositories,
    importer: Principal,
    payload: RequirementCreate,
    now: Optional[datetime] = None,
) -> Requirement:
    now = now or utcnow()
    bid_deadline = as_utc(payload.bid_deadline)
    delivery_deadline = as_utc(payload.delivery_deadline)
    if bid_deadline <= now:
        raise StateConflictError("Bid deadline must be in the future")
    if delivery_deadline <= bid_deadline:
        raise StateConflictError("Delivery deadline must be after bid deadline")

    requirement = Requirement(
        importer_id=importer.id,
        title=payload.title,
        description=payload.description,
        category=payload.category,
        quantity=payload.quantity,
        unit=payload.unit,
        target_price=payload.target_price,
        currency=payload.currency,
        delivery_location=payload.delivery_location,
        bid_deadline=bid_deadline,
        delivery_deadline=delivery_deadline,
        payment_terms=payload.payment_terms,
        delivery_terms=payload.delivery_terms,
        status=RequirementStatus.ACTIVE,
        bid_count=0,
        created_at=now,
        updated_at=now,
    )
    repos.requirements.add(requirement)
    logger.info("Requirement created: %s by importer %s", requirement.id, importer.id)
    return requirement


def get_owned_requirement(repos: Repositories, importer: Principal, requirement_id: str) -> Requirement:
    requirement = repos.requirements.get(requirement_id)
    if requirement is None:
        raise NotFoundError("Requirement not found")
    if requirement.importer_id != importer.id:
        raise PermissionDeniedError("Unauthorized to modify this requirement")
    return requirement


def update_requirement(
    repos: Repositories,
    importer: Principal,
    requirement_id: str,
    payload: RequirementUpdate,
    now: Optional[datetime] = None,
) -> Requirement:
    """Revise an open requirement. Deadlines are re-checked against the merged values."""
    now = now or utcnow()
    requirement = get_owned_requirement(repos, importer, requirement_id)
    if requirement.status in (RequirementStatus.CLOSED, RequirementStatus.AWARDED):
        raise StateConflictError("Cannot update closed or awarded requirement")

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    for field in ("bid_deadline", "delivery_deadline"):
        if field in changes:
            changes[field] = as_utc(changes[field])
    if "bid_deadline" in changes and changes["bid_deadline"] <= now:
        raise StateConflictError("Bid deadline must be in the future")
    bid_deadline = changes.get("bid_deadline", as_utc(requirement.bid_deadline))
    delivery_deadline = changes.get("delivery_deadline", as_utc(requirement.delivery_deadline))
    if delivery_deadline <= bid_deadline:
        raise StateConflictError("Delivery deadline must be after bid deadline")

    for field, value in changes.items():
        setattr(requirement, field, value)
    requirement.updated_at = now
    repos.db.flush()
    logger.info("Requirement updated: %s by importer %s (%s)", requirement.id, importer.id, ", ".join(sorted(changes)))
    return requirement


def delete_requirement(repos: Repositories, importer: Principal, requirement_id: str) -> None:
    """Remove a requirement nobody has bid on. Withdrawn bids still count as history."""
    requirement = get_owned_requirement(repos, importer, requirement_id)
    if requirement.bid_count or repos.bids.for_requirement(requirement.id):
        raise StateConflictError("Cannot delete requirement with existing bids")
    repos.requirements.delete(requirement)
    logger.info("Requirement deleted: %s by importer %s", requirement_id, importer.id)


def close_requirement(
    repos: Repositories,
    importer: Principal,
    requirement_id: str,
    now: Optional[datetime] = None,
) -> Requirement:
    """Stop accepting bids. Only an active requirement can be closed; awarded ones stay awarded."""
    requirement = get_owned_requirement(repos, importer, requirement_id)
    if requirement.status != RequirementStatus.ACTIVE:
        raise StateConflictError(f"Cannot close a requirement that is {requirement.status}")
    requirement.status = RequirementStatus.CLOSED
    requirement.updated_at = now or utcnow()
    repos.db.flush()
    logger.info("Requirement closed: %s by importer %s", requirement.id, importer.id)
    return requirement


def requirement_stats(repos: Repositories, importer: Principal) -> dict:
    owned = repos.requirements.list(importer_id=importer.id)
    return {
        "total": len(owned),
        "active": sum(1 for r in owned if r.status == RequirementStatus.ACTIVE),
        "closed": sum(1 for r in owned if r.status == RequirementStatus.CLOSED),
        "awarded": sum(1 for r in owned if r.status == RequirementStatus.AWARDED),
        "total_bids": sum(r.bid_count or 0 for r in owned),
    }
