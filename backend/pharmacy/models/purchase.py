from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, DateTime, CheckConstraint
from sqlalchemy.orm import relationship

from pharmacy.db.base import Base


class Purchase(Base):
    """Stock received from a supplier. Recording one increments the medicine quantity."""
    __tablename__ = "purchases"
    __table_args__ = (CheckConstraint("quantity > 0", name="ck_purchases_quantity_positive"),)

    id = Column(Integer, primary_key=True, index=True)
    medicine_id = Column(Integer, ForeignKey("medicines.id", ondelete="RESTRICT"), nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    unit_cost = Column(Numeric(18, 2), nullable=False)
    total_cost = Column(Numeric(18, 2), nullable=False)
    supplier = Column(String(100), nullable=False, default="")
    purchase_date = Column(DateTime(timezone=True), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    medicine = relationship("Medicine")
    user = relationship("User")
