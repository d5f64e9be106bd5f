"""Purchase recording. Stock increments take the same row lock as sales."""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from pharmacy.models.purchase import Purchase
from pharmacy.services import inventory_service
from pharmacy.core.money import money

logger = logging.getLogger(__name__)


def record_purchase(
    db: Session,
    medicine_id: int,
    quantity: int,
    unit_cost: Decimal,
    supplier: str,
    user_id: int,
    now: Optional[datetime] = None,
) -> Purchase:
    """Lock the medicine, add ``quantity`` to stock and write the purchase row.

    Runs inside a unit of work; an inactive or unknown medicine aborts it.
    """
    medicine = inventory_service.increment_quantity(db, medicine_id, quantity)
    unit_cost = money(unit_cost)
    purchase = Purchase(
        medicine_id=medicine.id,
        quantity=quantity,
        unit_cost=unit_cost,
        total_cost=money(unit_cost * quantity),
        supplier=(supplier or "").strip(),
        purchase_date=now or datetime.now(timezone.utc),
        user_id=user_id,
    )
    db.add(purchase)
    db.flush()
    logger.info(
        f"Purchase {purchase.id}: +{quantity} x medicine {medicine.id} "
        f"(now {medicine.quantity}) from {purchase.supplier or 'unknown supplier'}"
    )
    return purchase


def get_purchase(db: Session, purchase_id: int) -> Optional[Purchase]:
    stmt = select(Purchase).where(Purchase.id == purchase_id).options(selectinload(Purchase.medicine))
    return db.scalars(stmt).first()


def list_purchases(db: Session, limit: int = 100) -> List[Purchase]:
    stmt = (
        select(Purchase)
        .options(selectinload(Purchase.medicine))
        .order_by(Purchase.purchase_date.desc(), Purchase.id.desc())
        .limit(limit)
    )
    return list(db.scalars(stmt).all())
