from fastapi import APIRouter, Depends, Query

from marketplace.api.deps import get_principal, get_repositories, require_role
from marketplace.models import UserRole
from marketplace.repositories import Repositories
from marketplace.schemas.bid import (
    AcceptBidResponse,
    BidAuditEventResponse,
    BidCreate,
    BidResponse,
    BidStats,
    BidUpdate,
    ExporterBid,
    ExporterBidList,
    RankedBidRow,
    RequirementBids,
)
from marketplace.schemas.common import Pagination
from marketplace.schemas.order import OrderResponse
from marketplace.schemas.requirement import RequirementRef, RequirementResponse
from marketplace.services import bid_lifecycle, order_phases
from marketplace.services.errors import NotFoundError
from marketplace.services.locking import requirement_key, serialized
from marketplace.services.principal import Principal
from marketplace.services.ranking import bids_for_requirement

router = APIRouter(tags=["bids"])

exporter_only = require_role(UserRole.EXPORTER)
importer_only = require_role(UserRole.IMPORTER)


def _requirement_id_of(repos: Repositories, bid_id: str) -> str:
    bid = repos.bids.get(bid_id)
    if not bid:
        raise NotFoundError("Bid not found")
    return bid.requirement_id


@router.post("/bids", response_model=BidResponse, status_code=201)
def submit_bid(
    payload: BidCreate,
    exporter: Principal = Depends(exporter_only),
    repos: Repositories = Depends(get_repositories),
):
    with serialized(repos.db, requirement_key(payload.requirement_id)):
        bid = bid_lifecycle.submit_bid(repos, exporter, payload)
    return BidResponse.model_validate(bid)


@router.get("/bids/my", response_model=ExporterBidList)
def list_my_bids(
    status: str = "all",
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    exporter: Principal = Depends(exporter_only),
    repos: Repositories = Depends(get_repositories),
):
    items, total = repos.bids.for_exporter(
        exporter.id, status=status, sort_by=sort_by, sort_order=sort_order, page=page, limit=limit,
    )
    return ExporterBidList(
        bids=[ExporterBid.model_validate(b) for b in items],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/bids/stats", response_model=BidStats)
def get_bid_stats(
    exporter: Principal = Depends(exporter_only),
    repos: Repositories = Depends(get_repositories),
):
    return bid_lifecycle.bid_stats(repos, exporter)


@router.get("/requirements/{requirement_id}/bids", response_model=RequirementBids)
def list_requirement_bids(
    requirement_id: str,
    include_ranking: bool = True,
    viewer: Principal = Depends(get_principal),
    repos: Repositories = Depends(get_repositories),
):
    """Active bids on a requirement, ranked by price, delivery time and exporter reliability."""
    requirement, rows = bids_for_requirement(repos, viewer, requirement_id, include_ranking=include_ranking)
    return RequirementBids(
        bids=[RankedBidRow.model_validate(row) for row in rows],
        total=len(rows),
        requirement=RequirementRef.model_validate(requirement),
    )


@router.get("/bids/{bid_id}", response_model=BidResponse)
def get_bid(
    bid_id: str,
    viewer: Principal = Depends(get_principal),
    repos: Repositories = Depends(get_repositories),
):
    return BidResponse.model_validate(bid_lifecycle.get_visible_bid(repos, viewer, bid_id))


@router.get("/bids/{bid_id}/audit", response_model=list[BidAuditEventResponse])
def get_bid_audit(
    bid_id: str,
    viewer: Principal = Depends(get_principal),
    repos: Repositories = Depends(get_repositories),
):
    """Audit trail for a bid: created, updated, withdrawn, accepted, rejected."""
    bid = bid_lifecycle.get_visible_bid(repos, viewer, bid_id)
    return [BidAuditEventResponse.model_validate(e) for e in repos.bids.audit_trail(bid.id)]


@router.put("/bids/{bid_id}", response_model=BidResponse)
def update_bid(
    bid_id: str,
    payload: BidUpdate,
    exporter: Principal = Depends(exporter_only),
    repos: Repositories = Depends(get_repositories),
):
    with serialized(repos.db, requirement_key(_requirement_id_of(repos, bid_id))):
        bid = bid_lifecycle.update_bid(repos, exporter, bid_id, payload)
    return BidResponse.model_validate(bid)


@router.delete("/bids/{bid_id}", response_model=BidResponse)
def withdraw_bid(
    bid_id: str,
    exporter: Principal = Depends(exporter_only),
    repos: Repositories = Depends(get_repositories),
):
    with serialized(repos.db, requirement_key(_requirement_id_of(repos, bid_id))):
        bid = bid_lifecycle.withdraw_bid(repos, exporter, bid_id)
    return BidResponse.model_validate(bid)


@router.put("/bids/{bid_id}/accept", response_model=AcceptBidResponse)
def accept_bid(
    bid_id: str,
    create_order: bool = True,
    importer: Principal = Depends(importer_only),
    repos: Repositories = Depends(get_repositories),
):
    """Accept a bid, reject the other active bids and, by default, open the order."""
    order = None
    with serialized(repos.db, requirement_key(_requirement_id_of(repos, bid_id))):
        acceptance = bid_lifecycle.accept_bid(repos, importer, bid_id)
        if create_order:
            order = order_phases.create_order_from_bid(repos, importer, bid_id)
    return AcceptBidResponse(
        bid=BidResponse.model_validate(acceptance.bid),
        rejected_bids=[BidResponse.model_validate(b) for b in acceptance.rejected],
        requirement=RequirementResponse.model_validate(acceptance.requirement),
        order=OrderResponse.model_validate(order) if order is not None else None,
    )
