from datetime import date, datetime, timezone

from sqlalchemy import Column, Integer, String, Text, Numeric, Boolean, Date, DateTime
from sqlalchemy.sql import func

from pharmacy.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Medicine(Base):
    """
    Inventory record for a sellable medicine.

    CONCURRENCY NOTE:
    - lock_version is the concurrency token: every UPDATE bumps it and is issued
      with ``WHERE lock_version = <loaded value>``, so a write based on stale
      state fails with StaleDataError instead of overwriting a concurrent change.
    - quantity is only moved by sales (decrement) and purchases (increment),
      both under a row lock. It never goes below zero.
    - Inactive medicines are soft-deleted: they cannot be sold or purchased.
    """
    __tablename__ = "medicines"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    category = Column(String(100), nullable=False, index=True)
    price = Column(Numeric(18, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=0)
    expiry_date = Column(Date, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    lock_version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    __mapper_args__ = {"version_id_col": lock_version}

    @property
    def is_expired(self) -> bool:
        return self.expiry_date is not None and self.expiry_date < date.today()

    def __repr__(self) -> str:
        return f"<Medicine id={self.id} name={self.name!r} qty={self.quantity}>"
