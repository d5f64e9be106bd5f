from datetime import datetime
from decimal import Decimal
from typing import List
from pydantic import BaseModel, Field


class SaleItemCreate(BaseModel):
    medicine_id: int
    quantity: int = Field(..., ge=1)


class SaleCreate(BaseModel):
    customer_id: int
    items: List[SaleItemCreate] = Field(..., min_length=1)


class SaleItemResponse(BaseModel):
    medicine_id: int
    medicine_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


class SaleResponse(BaseModel):
    id: int
    customer_id: int
    user_id: int
    total_amount: Decimal
    sale_date: datetime
    items: List[SaleItemResponse] = []

    @classmethod
    def from_sale(cls, sale, with_items: bool = True) -> "SaleResponse":
        return cls(
            id=sale.id,
            customer_id=sale.customer_id,
            user_id=sale.user_id,
            total_amount=sale.total_amount,
            sale_date=sale.sale_date,
            items=[
                SaleItemResponse(
                    medicine_id=item.medicine_id,
                    medicine_name=item.medicine.name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total_price=item.total_price,
                )
                for item in sale.items
            ] if with_items else [],
        )
