from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func

from pharmacy.db.base import Base


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    phone = Column(String(15), nullable=False, default="")
    email = Column(String(255), nullable=False, default="")
    address = Column(String(200), nullable=False, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    is_active = Column(Boolean, nullable=False, default=True)
