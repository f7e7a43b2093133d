from sqlalchemy import Boolean, Column, DateTime, String
from sqlalchemy.sql import func

from marketplace.models.base import Base, new_id


class UserRole:
    EXPORTER = "exporter"
    IMPORTER = "importer"

    ALL = (EXPORTER, IMPORTER)


class User(Base):
    """Marketplace participant. Credentials live with the external auth service."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), nullable=False, unique=True, index=True)
    role = Column(String(20), nullable=False)  # "exporter" | "importer"
    company_name = Column(String(255), nullable=False)
    contact_person = Column(String(255), nullable=True)
    phone = Column(String(64), nullable=True)
    country = Column(String(100), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
