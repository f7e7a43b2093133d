from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field


class UserCreate(BaseModel):
    email: EmailStr
    role: Literal["exporter", "importer"]
    company_name: str = Field(min_length=1, max_length=255)
    contact_person: Optional[str] = Field(default=None, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=64)
    country: Optional[str] = Field(default=None, max_length=100)


class UserResponse(BaseModel):
    id: str
    email: str
    role: str
    company_name: str
    contact_person: Optional[str] = None
    phone: Optional[str] = None
    country: Optional[str] = None
    is_active: bool = True
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
