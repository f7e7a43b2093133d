from fastapi import APIRouter, Depends, Query

from marketplace.api.deps import get_principal, get_repositories, require_role
from marketplace.models import UserRole
from marketplace.repositories import Repositories
from marketplace.schemas.common import Pagination, Phase
from marketplace.schemas.order import (
    AttachedDocuments,
    OrderCancel,
    OrderDetailResponse,
    OrderDocumentResponse,
    OrderDocumentsAttach,
    OrderList,
    OrderPhaseUpdate,
    OrderResponse,
    OrderStats,
)
from marketplace.services import order_phases
from marketplace.services.errors import NotFoundError
from marketplace.services.locking import order_key, requirement_key, serialized
from marketplace.services.principal import Principal

router = APIRouter(prefix="/orders", tags=["orders"])


@router.get("", response_model=OrderList)
def list_orders(
    status: str = "all",
    phase: str = "all",
    sort_by: str = "created_at",
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    principal: Principal = Depends(get_principal),
    repos: Repositories = Depends(get_repositories),
):
    items, total = repos.orders.for_party(
        principal.id, status=status, phase=phase, sort_by=sort_by, sort_order=sort_order, page=page, limit=limit,
    )
    return OrderList(
        orders=[OrderResponse.model_validate(o) for o in items],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/stats", response_model=OrderStats)
def get_order_stats(
    principal: Principal = Depends(get_principal),
    repos: Repositories = Depends(get_repositories),
):
    return order_phases.order_stats(repos, principal)


@router.get("/{order_id}", response_model=OrderDetailResponse)
def get_order(
    order_id: str,
    principal: Principal = Depends(get_principal),
    repos: Repositories = Depends(get_repositories),
):
    order = order_phases.get_party_order(repos, principal, order_id)
    user_role = UserRole.EXPORTER if order.exporter_id == principal.id else UserRole.IMPORTER
    return OrderDetailResponse(**OrderResponse.model_validate(order).model_dump(), user_role=user_role)


@router.post("/from-bid/{bid_id}", response_model=OrderResponse, status_code=201)
def create_order(
    bid_id: str,
    importer: Principal = Depends(require_role(UserRole.IMPORTER)),
    repos: Repositories = Depends(get_repositories),
):
    """Open an order for an accepted bid that was accepted with create_order=false."""
    bid = repos.bids.get(bid_id)
    if not bid:
        raise NotFoundError("Bid not found")
    with serialized(repos.db, requirement_key(bid.requirement_id)):
        order = order_phases.create_order_from_bid(repos, importer, bid_id)
    return OrderResponse.model_validate(order)


@router.put("/{order_id}/phase", response_model=OrderResponse)
def update_order_phase(
    order_id: str,
    payload: OrderPhaseUpdate,
    principal: Principal = Depends(get_principal),
    repos: Repositories = Depends(get_repositories),
):
    with serialized(repos.db, order_key(order_id)):
        order = order_phases.advance_order_phase(
            repos,
            principal,
            order_id,
            phase=payload.phase,
            notes=payload.notes,
            documents=payload.documents,
            estimated_delivery=payload.estimated_delivery,
        )
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/phases/{phase}/documents", response_model=AttachedDocuments, status_code=201)
def attach_phase_documents(
    order_id: str,
    phase: Phase,
    payload: OrderDocumentsAttach,
    principal: Principal = Depends(get_principal),
    repos: Repositories = Depends(get_repositories),
):
    with serialized(repos.db, order_key(order_id)):
        documents = order_phases.attach_documents(repos, principal, order_id, phase, payload.documents)
    return AttachedDocuments(
        phase=phase,
        documents=[OrderDocumentResponse.model_validate(d) for d in documents],
    )


@router.put("/{order_id}/cancel", response_model=OrderResponse)
def cancel_order(
    order_id: str,
    payload: OrderCancel,
    principal: Principal = Depends(get_principal),
    repos: Repositories = Depends(get_repositories),
):
    with serialized(repos.db, order_key(order_id)):
        order = order_phases.cancel_order(repos, principal, order_id, reason=payload.reason)
    return OrderResponse.model_validate(order)
