"""Multi-criteria ranking of the bids on a requirement.

Order: cheapest USD price first, then shortest delivery in days, then the most
reliable exporter. Python's sort is stable, so bids equal on all three keys keep
their input order.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional

from marketplace.models import Bid, BidStatus, Requirement, UserRole
from marketplace.repositories import Repositories
from marketplace.services.errors import NotFoundError, PermissionDeniedError
from marketplace.services.normalizer import to_base_currency, to_base_days
from marketplace.services.principal import Principal
from marketplace.services.reliability import ReliabilityEstimator

logger = logging.getLogger(__name__)

# What an exporter may see of a competitor's bid.
PUBLIC_BID_FIELDS = ("id", "exporter_id", "price", "currency", "delivery_time", "delivery_time_unit", "created_at")
FULL_BID_FIELDS = PUBLIC_BID_FIELDS + (
    "requirement_id",
    "payment_terms",
    "delivery_terms",
    "additional_notes",
    "valid_until",
    "status",
    "updated_at",
)


@dataclass(frozen=True)
class RankedBid:
    bid: Bid
    rank: int
    price_usd: float
    delivery_days: float
    exporter_reliability: float


def rank_bids(bids: Iterable[Bid], reliability: Callable[[str], float]) -> list[RankedBid]:
    scored = []
    for bid in bids:
        scored.append((
            to_base_currency(bid.price, bid.currency),
            to_base_days(bid.delivery_time, bid.delivery_time_unit),
            reliability(bid.exporter_id),
            bid,
        ))
    scored.sort(key=lambda row: (row[0], row[1], -row[2]))
    return [
        RankedBid(bid=bid, rank=position, price_usd=price, delivery_days=days, exporter_reliability=score)
        for position, (price, days, score, bid) in enumerate(scored, start=1)
    ]


def visible_fields(bid: Bid, viewer: Principal, requirement: Requirement) -> dict:
    if viewer.id == requirement.importer_id or viewer.id == bid.exporter_id:
        fields = FULL_BID_FIELDS
    else:
        fields = PUBLIC_BID_FIELDS
    return {name: getattr(bid, name) for name in fields}


def bids_for_requirement(
    repos: Repositories,
    viewer: Principal,
    requirement_id: str,
    include_ranking: bool = True,
    now: Optional[datetime] = None,
) -> tuple[Requirement, list[dict]]:
    """Active bids on a requirement as the viewer may see them, ranked unless asked otherwise.

    The requirement owner sees every bid in full. An exporter must have bid on the
    requirement and sees competitors through PUBLIC_BID_FIELDS only.
    """
    requirement = repos.requirements.get(requirement_id)
    if requirement is None:
        raise NotFoundError("Requirement not found")

    if viewer.id != requirement.importer_id:
        is_bidder = viewer.role == UserRole.EXPORTER and any(
            bid.exporter_id == viewer.id for bid in repos.bids.for_requirement(requirement_id)
        )
        if not is_bidder:
            raise PermissionDeniedError("Unauthorized to view these bids")

    bids = repos.bids.for_requirement(requirement_id, statuses=[BidStatus.ACTIVE])
    if not include_ranking:
        return requirement, [visible_fields(bid, viewer, requirement) for bid in bids]

    rows = []
    for ranked in rank_bids(bids, ReliabilityEstimator(repos, now=now)):
        row = visible_fields(ranked.bid, viewer, requirement)
        row.update(
            rank=ranked.rank,
            price_usd=ranked.price_usd,
            delivery_days=ranked.delivery_days,
            exporter_reliability=ranked.exporter_reliability,
        )
        rows.append(row)
    logger.info("Ranked %s bids on requirement %s for %s", len(rows), requirement_id, viewer.id)
    return requirement, rows
