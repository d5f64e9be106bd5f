"""Ledger store: append-only sale and sale-item records."""
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from pharmacy.core.exceptions import TransientStoreError
from pharmacy.models.sale import Sale, SaleItem


@dataclass(frozen=True)
class SaleLine:
    medicine_id: int
    quantity: int
    unit_price: Decimal
    total_price: Decimal


def create_sale(
    db: Session,
    customer_id: int,
    user_id: int,
    timestamp: datetime,
    idempotency_key: Optional[str] = None,
) -> int:
    """Insert the sale header (total filled in later) and return its id."""
    sale = Sale(
        customer_id=customer_id,
        user_id=user_id,
        sale_date=timestamp,
        total_amount=Decimal("0.00"),
        idempotency_key=idempotency_key,
    )
    db.add(sale)
    try:
        db.flush()  # Get ID without committing
    except IntegrityError as exc:
        if idempotency_key is None:
            raise
        # Another attempt with the same key committed first. Retrying the whole
        # unit of work will find and return that sale.
        raise TransientStoreError(
            "A sale with this idempotency key is being recorded concurrently",
            idempotency_key=idempotency_key,
        ) from exc
    return sale.id


def append_sale_items(db: Session, sale_id: int, items: Iterable[SaleLine]) -> List[SaleItem]:
    rows = [
        SaleItem(
            sale_id=sale_id,
            medicine_id=line.medicine_id,
            quantity=line.quantity,
            unit_price=line.unit_price,
            total_price=line.total_price,
        )
        for line in items
    ]
    db.add_all(rows)
    db.flush()
    return rows


def set_sale_total(db: Session, sale_id: int, amount: Decimal) -> None:
    sale = db.get(Sale, sale_id)
    sale.total_amount = amount
    db.flush()


def get_sale(db: Session, sale_id: int) -> Optional[Sale]:
    stmt = (
        select(Sale)
        .where(Sale.id == sale_id)
        .options(selectinload(Sale.items).selectinload(SaleItem.medicine))
        .execution_options(populate_existing=True)
    )
    return db.scalars(stmt).first()


def find_by_idempotency_key(db: Session, key: str) -> Optional[Sale]:
    stmt = (
        select(Sale)
        .where(Sale.idempotency_key == key)
        .options(selectinload(Sale.items).selectinload(SaleItem.medicine))
    )
    return db.scalars(stmt).first()


def list_customer_sales(db: Session, customer_id: int) -> List[Sale]:
    stmt = select(Sale).where(Sale.customer_id == customer_id).order_by(Sale.sale_date.desc(), Sale.id.desc())
    return list(db.scalars(stmt).all())
