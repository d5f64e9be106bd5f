from datetime import date
from decimal import Decimal
from typing import List
from pydantic import BaseModel


class DailySalesResponse(BaseModel):
    date: date
    total_sales: Decimal
    count: int

    class Config:
        from_attributes = True


class SalesReportResponse(BaseModel):
    start_date: date
    end_date: date
    total_revenue: Decimal
    daily_sales: List[DailySalesResponse] = []

    class Config:
        from_attributes = True
