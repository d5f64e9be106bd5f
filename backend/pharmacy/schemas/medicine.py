from datetime import date
from decimal import Decimal
from pydantic import BaseModel, Field

from pharmacy.core.config import settings


class MedicineCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    category: str = Field(..., min_length=1, max_length=100)
    price: Decimal = Field(..., ge=Decimal("0.01"), max_digits=18, decimal_places=2)
    quantity: int = Field(..., ge=0)
    expiry_date: date


class MedicineUpdate(BaseModel):
    """Catalogue fields only. Stock moves through sales and purchases."""
    name: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    category: str = Field(..., min_length=1, max_length=100)
    price: Decimal = Field(..., ge=Decimal("0.01"), max_digits=18, decimal_places=2)
    expiry_date: date
    # Concurrency token from the last read; the update is rejected if it moved.
    lock_version: int


class MedicineResponse(BaseModel):
    id: int
    name: str
    description: str = ""
    category: str
    price: Decimal
    quantity: int
    expiry_date: date
    lock_version: int
    is_expired: bool
    is_low_stock: bool = False

    class Config:
        from_attributes = True

    @classmethod
    def from_medicine(cls, medicine) -> "MedicineResponse":
        response = cls.model_validate(medicine)
        response.is_low_stock = medicine.quantity < settings.LOW_STOCK_THRESHOLD
        return response
