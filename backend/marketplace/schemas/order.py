from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from marketplace.schemas.common import Pagination, Phase


class OrderDocumentIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    url: Optional[str] = Field(default=None, max_length=1024)
    content_type: Optional[str] = Field(default=None, max_length=100)
    size: Optional[int] = Field(default=None, ge=0)


class OrderPhaseUpdate(BaseModel):
    phase: Optional[Phase] = None
    notes: Optional[str] = Field(default=None, max_length=2000)
    documents: List[OrderDocumentIn] = []
    estimated_delivery: Optional[datetime] = None


class OrderDocumentsAttach(BaseModel):
    documents: List[OrderDocumentIn] = Field(min_length=1)


class OrderCancel(BaseModel):
    reason: str = Field(default="", max_length=1000)


class OrderDocumentResponse(BaseModel):
    id: str
    name: str
    url: Optional[str] = None
    content_type: Optional[str] = None
    size: Optional[int] = None
    uploaded_by: str
    uploaded_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class OrderPhaseResponse(BaseModel):
    name: str
    position: int
    status: str
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    notes: str = ""
    updated_by: Optional[str] = None
    documents: List[OrderDocumentResponse] = []

    class Config:
        from_attributes = True


class OrderResponse(BaseModel):
    id: str
    bid_id: str
    requirement_id: str
    exporter_id: str
    importer_id: str
    title: str
    category: str
    quantity: int
    unit: str
    price: float
    currency: str
    total_value: float
    delivery_location: str
    delivery_time: int
    delivery_time_unit: str
    estimated_delivery: datetime
    payment_terms: str = ""
    delivery_terms: str = ""
    current_phase: str
    status: str
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    phases: List[OrderPhaseResponse] = []

    class Config:
        from_attributes = True


class OrderDetailResponse(OrderResponse):
    user_role: str


class AttachedDocuments(BaseModel):
    phase: str
    documents: List[OrderDocumentResponse]


class OrderList(BaseModel):
    orders: List[OrderResponse]
    pagination: Pagination


class OrderStats(BaseModel):
    total: int
    active: int
    completed: int
    cancelled: int
    disputed: int
    phases: dict[str, int]
    total_value: float
    average_order_value: Optional[float] = None
    on_time_delivery_rate: Optional[float] = None
