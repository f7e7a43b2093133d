import threading

import pytest
from sqlalchemy.exc import IntegrityError

from marketplace.models import Bid, BidStatus
from marketplace.services.errors import ConcurrencyConflictError, StateConflictError
from marketplace.services.locking import KeyedLock, requirement_key, serialized


def _raw_bid(requirement, exporter, status=BidStatus.ACTIVE) -> Bid:
    return Bid(
        requirement_id=requirement.id,
        exporter_id=exporter.id,
        price=5.0,
        currency="USD",
        delivery_time=7,
        delivery_time_unit="days",
        status=status,
    )


def test_same_key_shares_one_lock() -> None:
    locks = KeyedLock()
    entered = threading.Event()
    release = threading.Event()
    order = []

    def holder():
        with locks.hold("requirement:1"):
            entered.set()
            release.wait(timeout=5)
            order.append("first")

    thread = threading.Thread(target=holder)
    thread.start()
    entered.wait(timeout=5)

    with locks.hold("requirement:2"):
        order.append("other key")
    release.set()
    with locks.hold("requirement:1"):
        order.append("second")
    thread.join(timeout=5)

    assert order == ["other key", "first", "second"]
    assert len(locks) == 0


def test_released_keys_are_forgotten() -> None:
    locks = KeyedLock()
    with locks.hold("order:1"):
        with locks.hold("order:2"):
            assert len(locks) == 2
        assert len(locks) == 1
    assert len(locks) == 0

    with pytest.raises(RuntimeError):
        with locks.hold("order:1"):
            raise RuntimeError("boom")
    assert len(locks) == 0


def test_schema_rejects_second_open_bid(repos, importer, exporter, make_requirement) -> None:
    requirement = make_requirement(importer)
    with serialized(repos.db, requirement_key(requirement.id)):
        repos.bids.add(_raw_bid(requirement, exporter))

    with pytest.raises(ConcurrencyConflictError):
        with serialized(repos.db, requirement_key(requirement.id)):
            repos.db.add(_raw_bid(requirement, exporter, status=BidStatus.ACCEPTED))

    with serialized(repos.db, requirement_key(requirement.id)):
        repos.bids.add(_raw_bid(requirement, exporter, status=BidStatus.WITHDRAWN))
    assert len(repos.bids.for_requirement(requirement.id)) == 2


def test_failed_command_is_rolled_back(repos, importer, make_requirement) -> None:
    requirement = make_requirement(importer)

    with pytest.raises(StateConflictError):
        with serialized(repos.db, requirement_key(requirement.id)):
            requirement.title = "Changed title"
            raise StateConflictError("nope")

    assert repos.requirements.get(requirement.id).title == "Organic basmati rice"


def test_integrity_error_is_a_conflict(db) -> None:
    with pytest.raises(ConcurrencyConflictError):
        with serialized(db, "requirement:x"):
            raise IntegrityError("INSERT", {}, Exception("unique"))
