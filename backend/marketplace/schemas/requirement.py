from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from marketplace.schemas.common import Currency, Pagination
from marketplace.services.clock import as_utc


class RequirementCreate(BaseModel):
    title: str = Field(min_length=5, max_length=200)
    description: str = Field(default="", max_length=2000)
    category: str = Field(min_length=1, max_length=100)
    quantity: int = Field(ge=1)
    unit: str = Field(min_length=1, max_length=50)
    target_price: Optional[float] = Field(default=None, gt=0)
    currency: Currency = "USD"
    delivery_location: str = Field(min_length=1, max_length=255)
    bid_deadline: datetime
    delivery_deadline: datetime
    payment_terms: str = ""
    delivery_terms: str = ""

    @model_validator(mode="after")
    def check_deadlines(self):
        if as_utc(self.delivery_deadline) <= as_utc(self.bid_deadline):
            raise ValueError("Delivery deadline must be after bid deadline")
        return self


class RequirementUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=5, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    quantity: Optional[int] = Field(default=None, ge=1)
    unit: Optional[str] = Field(default=None, min_length=1, max_length=50)
    target_price: Optional[float] = Field(default=None, gt=0)
    currency: Optional[Currency] = None
    delivery_location: Optional[str] = Field(default=None, min_length=1, max_length=255)
    bid_deadline: Optional[datetime] = None
    delivery_deadline: Optional[datetime] = None
    payment_terms: Optional[str] = None
    delivery_terms: Optional[str] = None

    @model_validator(mode="after")
    def check_deadlines(self):
        if self.bid_deadline and self.delivery_deadline:
            if as_utc(self.delivery_deadline) <= as_utc(self.bid_deadline):
                raise ValueError("Delivery deadline must be after bid deadline")
        return self


class RequirementResponse(BaseModel):
    id: str
    importer_id: str
    title: str
    description: str = ""
    category: str
    quantity: int
    unit: str
    target_price: Optional[float] = None
    currency: str
    delivery_location: str
    bid_deadline: datetime
    delivery_deadline: datetime
    payment_terms: str = ""
    delivery_terms: str = ""
    status: str
    bid_count: int = 0
    awarded_bid_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RequirementRef(BaseModel):
    id: str
    title: str
    category: Optional[str] = None
    quantity: Optional[int] = None
    unit: Optional[str] = None
    bid_deadline: datetime
    status: str

    class Config:
        from_attributes = True


class RequirementList(BaseModel):
    requirements: List[RequirementResponse]
    pagination: Pagination


class RequirementStats(BaseModel):
    total: int
    active: int
    closed: int
    awarded: int
    total_bids: int
