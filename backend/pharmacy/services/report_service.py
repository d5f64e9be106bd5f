"""Sales reporting. Read-only roll-ups of committed sales."""
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import List

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from pharmacy.models.sale import Sale
from pharmacy.core.money import money


@dataclass
class DailySales:
    date: date
    total_sales: Decimal
    count: int


@dataclass
class SalesReport:
    start_date: date
    end_date: date
    total_revenue: Decimal
    daily_sales: List[DailySales] = field(default_factory=list)


def _as_date(value) -> date:
    # SQLite returns func.date() as an ISO string, PostgreSQL as a date.
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def sales_report(db: Session, start_date: date, end_date: date) -> SalesReport:
    """Daily totals for sales dated within [start_date, end_date], both days inclusive."""
    if end_date < start_date:
        raise ValueError("end_date must not be before start_date")

    window_start = datetime.combine(start_date, time.min)
    window_end = datetime.combine(end_date + timedelta(days=1), time.min)
    day = func.date(Sale.sale_date).label("day")

    rows = db.execute(
        select(
            day,
            func.sum(Sale.total_amount).label("total"),
            func.count(Sale.id).label("count"),
        )
        .where(Sale.sale_date >= window_start, Sale.sale_date < window_end)
        .group_by(day)
        .order_by(day)
    ).all()

    daily = [
        DailySales(date=_as_date(row.day), total_sales=money(row.total or 0), count=row.count)
        for row in rows
    ]
    return SalesReport(
        start_date=start_date,
        end_date=end_date,
        total_revenue=money(sum((d.total_sales for d in daily), Decimal("0"))),
        daily_sales=daily,
    )
