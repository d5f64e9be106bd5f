from sqlalchemy import Column, Integer, String, ForeignKey, Numeric, DateTime, CheckConstraint
from sqlalchemy.orm import relationship

from pharmacy.db.base import Base


class Sale(Base):
    """
    A committed point-of-sale transaction.

    Written once by the sale coordinator together with its items and never
    updated afterwards. total_amount is the sum of the items' total_price.
    """
    __tablename__ = "sales"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    total_amount = Column(Numeric(18, 2), nullable=False, default=0)
    sale_date = Column(DateTime(timezone=True), nullable=False, index=True)
    # Client-supplied key; a retried request with the same key returns the first sale.
    idempotency_key = Column(String(64), unique=True, nullable=True)

    customer = relationship("Customer")
    user = relationship("User")
    items = relationship("SaleItem", back_populates="sale", order_by="SaleItem.id")


class SaleItem(Base):
    """One cart line. unit_price is a copy of the medicine price at sale time."""
    __tablename__ = "sale_items"
    __table_args__ = (CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),)

    id = Column(Integer, primary_key=True, index=True)
    sale_id = Column(Integer, ForeignKey("sales.id"), nullable=False, index=True)
    medicine_id = Column(Integer, ForeignKey("medicines.id", ondelete="RESTRICT"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(18, 2), nullable=False)
    total_price = Column(Numeric(18, 2), nullable=False)

    sale = relationship("Sale", back_populates="items")
    medicine = relationship("Medicine")
