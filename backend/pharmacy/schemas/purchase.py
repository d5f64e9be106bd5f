from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field


class PurchaseCreate(BaseModel):
    medicine_id: int
    quantity: int = Field(..., ge=1)
    unit_cost: Decimal = Field(..., ge=Decimal("0"), max_digits=18, decimal_places=2)
    supplier: str = Field("", max_length=100)


class PurchaseResponse(BaseModel):
    id: int
    medicine_id: int
    medicine_name: str
    quantity: int
    unit_cost: Decimal
    total_cost: Decimal
    supplier: str
    purchase_date: datetime
    user_id: int

    @classmethod
    def from_purchase(cls, purchase) -> "PurchaseResponse":
        return cls(
            id=purchase.id,
            medicine_id=purchase.medicine_id,
            medicine_name=purchase.medicine.name,
            quantity=purchase.quantity,
            unit_cost=purchase.unit_cost,
            total_cost=purchase.total_cost,
            supplier=purchase.supplier,
            purchase_date=purchase.purchase_date,
            user_id=purchase.user_id,
        )
