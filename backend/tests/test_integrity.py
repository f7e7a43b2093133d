import pytest

from marketplace.models import Bid, BidStatus, Requirement
from marketplace.services.integrity import (
    DUPLICATE_BID,
    SUSPICIOUS_PRICE,
    validate_bid_integrity,
)


def _requirement(target_price=4.0, currency="USD") -> Requirement:
    return Requirement(id="req-1", importer_id="imp-1", target_price=target_price, currency=currency)


def _bid(price=5.0, currency="USD", exporter_id="exp-1", status=BidStatus.ACTIVE, bid_id=None) -> Bid:
    return Bid(
        id=bid_id,
        requirement_id="req-1",
        exporter_id=exporter_id,
        price=price,
        currency=currency,
        delivery_time=10,
        delivery_time_unit="days",
        status=status,
    )


@pytest.mark.parametrize(
    "price, valid",
    [(0.39, False), (0.40, True), (0.41, True), (0.30, False), (0.50, True)],
)
def test_suspicious_price_floor_is_ten_percent_of_target(price, valid) -> None:
    result = validate_bid_integrity(_bid(price=price), [], _requirement(), min_price_ratio=0.1)
    assert result.valid is valid
    assert result.reason == (None if valid else SUSPICIOUS_PRICE)


def test_price_floor_compares_in_usd() -> None:
    # 100 USD target -> 10 USD floor; 9 EUR is 9.9 USD
    requirement = _requirement(target_price=100.0)
    assert not validate_bid_integrity(_bid(price=9.0, currency="EUR"), [], requirement, 0.1).valid
    assert validate_bid_integrity(_bid(price=9.1, currency="EUR"), [], requirement, 0.1).valid


def test_no_target_price_skips_price_check() -> None:
    result = validate_bid_integrity(_bid(price=0.01), [], _requirement(target_price=None))
    assert result.valid


@pytest.mark.parametrize("status", [BidStatus.ACTIVE, BidStatus.ACCEPTED])
def test_open_bid_from_same_exporter_is_duplicate(status) -> None:
    existing = [_bid(status=status, bid_id="bid-1")]
    result = validate_bid_integrity(_bid(), existing, _requirement())
    assert not result.valid
    assert result.reason == DUPLICATE_BID


@pytest.mark.parametrize("status", [BidStatus.WITHDRAWN, BidStatus.REJECTED])
def test_closed_bids_do_not_block_resubmission(status) -> None:
    existing = [_bid(status=status, bid_id="bid-1")]
    assert validate_bid_integrity(_bid(), existing, _requirement()).valid


def test_other_exporters_bids_are_not_duplicates() -> None:
    existing = [_bid(exporter_id="exp-2", bid_id="bid-1")]
    assert validate_bid_integrity(_bid(), existing, _requirement()).valid


def test_duplicate_rule_runs_before_price_rule() -> None:
    existing = [_bid(bid_id="bid-1")]
    result = validate_bid_integrity(_bid(price=0.01), existing, _requirement())
    assert result.reason == DUPLICATE_BID
