"""Anti-fraud checks run on a bid before it is admitted."""
from dataclasses import dataclass
from typing import Iterable, Optional

from marketplace.config import settings
from marketplace.models import Bid, BidStatus, Requirement
from marketplace.services.normalizer import to_base_currency

DUPLICATE_BID = "Exporter has already submitted a bid for this requirement"
SUSPICIOUS_PRICE = "Bid price is suspiciously low"


@dataclass(frozen=True)
class IntegrityResult:
    valid: bool
    reason: Optional[str] = None


def validate_bid_integrity(
    candidate: Bid,
    existing_bids: Iterable[Bid],
    requirement: Optional[Requirement],
    min_price_ratio: Optional[float] = None,
) -> IntegrityResult:
    """Check a candidate bid against snapshots of the requirement and its bids.

    Rules run in order and the first failure wins:

    1. The exporter may not hold another active or accepted bid on the same
       requirement. Withdrawn and rejected bids do not count.
    2. When the requirement declares a target price, the bid's USD price must be
       at least ``min_price_ratio`` of the target's USD price (default from
       ``SUSPICIOUS_PRICE_RATIO``).
    """
    for bid in existing_bids:
        if (
            bid.exporter_id == candidate.exporter_id
            and bid.requirement_id == candidate.requirement_id
            and bid.status in BidStatus.OPEN
            and bid.id != candidate.id
        ):
            return IntegrityResult(False, DUPLICATE_BID)

    if requirement is not None and requirement.target_price:
        ratio = settings.SUSPICIOUS_PRICE_RATIO if min_price_ratio is None else min_price_ratio
        target_usd = to_base_currency(requirement.target_price, requirement.currency)
        bid_usd = to_base_currency(candidate.price, candidate.currency)
        if bid_usd < target_usd * ratio:
            return IntegrityResult(False, SUSPICIOUS_PRICE)

    return IntegrityResult(True)
