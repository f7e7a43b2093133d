from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from marketplace.schemas.common import Currency, Pagination, TimeUnit
from marketplace.schemas.order import OrderResponse
from marketplace.schemas.requirement import RequirementRef, RequirementResponse


class BidCreate(BaseModel):
    requirement_id: str = Field(min_length=1)
    price: float = Field(gt=0)
    currency: Currency
    delivery_time: int = Field(ge=1)
    delivery_time_unit: TimeUnit
    payment_terms: str = ""
    delivery_terms: str = ""
    additional_notes: str = Field(default="", max_length=1000)
    valid_until: Optional[datetime] = None


class BidUpdate(BaseModel):
    price: Optional[float] = Field(default=None, gt=0)
    currency: Optional[Currency] = None
    delivery_time: Optional[int] = Field(default=None, ge=1)
    delivery_time_unit: Optional[TimeUnit] = None
    payment_terms: Optional[str] = None
    delivery_terms: Optional[str] = None
    additional_notes: Optional[str] = Field(default=None, max_length=1000)
    valid_until: Optional[datetime] = None


class BidAuditEventResponse(BaseModel):
    id: int
    bid_id: str
    action: str
    actor: Optional[str] = None
    detail: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class BidResponse(BaseModel):
    id: str
    requirement_id: str
    exporter_id: str
    price: float
    currency: str
    delivery_time: int
    delivery_time_unit: str
    payment_terms: str = ""
    delivery_terms: str = ""
    additional_notes: str = ""
    valid_until: Optional[datetime] = None
    status: str
    accepted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RankedBidRow(BaseModel):
    """A bid as seen by one viewer. Competitors' bids only carry the public fields."""
    id: str
    exporter_id: str
    price: float
    currency: str
    delivery_time: int
    delivery_time_unit: str
    created_at: Optional[datetime] = None
    requirement_id: Optional[str] = None
    payment_terms: Optional[str] = None
    delivery_terms: Optional[str] = None
    additional_notes: Optional[str] = None
    valid_until: Optional[datetime] = None
    status: Optional[str] = None
    updated_at: Optional[datetime] = None
    rank: Optional[int] = None
    price_usd: Optional[float] = None
    delivery_days: Optional[float] = None
    exporter_reliability: Optional[float] = None


class RequirementBids(BaseModel):
    bids: List[RankedBidRow]
    total: int
    requirement: RequirementRef


class ExporterBid(BidResponse):
    requirement: Optional[RequirementRef] = None


class ExporterBidList(BaseModel):
    bids: List[ExporterBid]
    pagination: Pagination


class BidStats(BaseModel):
    total: int
    active: int
    accepted: int
    rejected: int
    withdrawn: int
    win_rate: float


class AcceptBidResponse(BaseModel):
    bid: BidResponse
    rejected_bids: List[BidResponse] = []
    requirement: RequirementResponse
    order: Optional[OrderResponse] = None
