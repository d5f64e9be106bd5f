"""Sale transaction coordinator.

Turns a cart into a committed Sale while keeping stock consistent when many
tills sell the same medicines at once:

1. lock every medicine in the cart (ascending id order),
2. create the sale header,
3. validate and decrement stock line by line, snapshotting the unit price,
4. write the items and the total.

``process_sale`` expects a session opened by ``run_in_transaction`` and never
commits or retries itself. Any exception leaves the caller to roll back, so a
failed attempt has no visible effect and the whole call can be re-run.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from pharmacy.core.exceptions import (
    CartValidationError,
    CustomerNotFound,
    InsufficientStock,
    InvariantViolation,
    MedicineInactive,
    MedicineNotFound,
)
from pharmacy.core.money import money
from pharmacy.models.customer import Customer
from pharmacy.models.sale import Sale
from pharmacy.services import inventory_service, ledger_service
from pharmacy.services.ledger_service import SaleLine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartLine:
    medicine_id: int
    quantity: int


def validate_cart(lines: Iterable) -> Tuple[CartLine, ...]:
    """
    Normalise and check a cart before any transaction opens.

    Accepts CartLine objects, ``(medicine_id, quantity)`` pairs or anything with
    ``medicine_id``/``quantity`` attributes. Order and repeats are preserved.
    """
    cart: List[CartLine] = []
    for position, line in enumerate(lines or ()):
        if isinstance(line, (tuple, list)):
            medicine_id, quantity = line
        else:
            medicine_id, quantity = line.medicine_id, line.quantity
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise CartValidationError(
                f"Line {position + 1}: quantity must be a positive integer",
                line=position + 1,
                medicine_id=medicine_id,
                quantity=quantity,
            )
        cart.append(CartLine(medicine_id=int(medicine_id), quantity=quantity))
    if not cart:
        raise CartValidationError("A sale needs at least one item")
    return tuple(cart)


def _same_request(sale: Sale, customer_id: int, cart: Sequence[CartLine]) -> bool:
    recorded = [(item.medicine_id, item.quantity) for item in sale.items]
    return sale.customer_id == customer_id and recorded == [(line.medicine_id, line.quantity) for line in cart]


def _replay(db: Session, key: str, customer_id: int, cart: Sequence[CartLine]) -> Optional[Sale]:
    sale = ledger_service.find_by_idempotency_key(db, key)
    if sale is None:
        return None
    if not _same_request(sale, customer_id, cart):
        raise CartValidationError(
            "Idempotency key was already used for a different sale",
            idempotency_key=key,
            sale_id=sale.id,
        )
    logger.info(f"Idempotent replay of sale {sale.id} (key={key})")
    return sale


def _check_line(medicine, line: CartLine) -> None:
    if medicine is None:
        raise MedicineNotFound(line.medicine_id)
    if not medicine.is_active:
        raise MedicineInactive(line.medicine_id, name=medicine.name)
    if medicine.quantity < line.quantity:
        raise InsufficientStock(line.medicine_id, line.quantity, medicine.quantity, name=medicine.name)


def _verify_totals(sale: Sale) -> None:
    running = Decimal("0.00")
    for item in sale.items:
        if money(item.unit_price * item.quantity) != money(item.total_price):
            raise InvariantViolation(
                f"Sale {sale.id} item {item.id}: {item.quantity} x {item.unit_price} != {item.total_price}"
            )
        running += money(item.total_price)
    if money(sale.total_amount) != running:
        raise InvariantViolation(f"Sale {sale.id}: total {sale.total_amount} != sum of items {running}")


def process_sale(
    db: Session,
    customer_id: int,
    operator_id: int,
    lines: Iterable,
    idempotency_key: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Sale:
    """
    Sell ``lines`` to ``customer_id`` on behalf of the authenticated operator.

    Repeated medicines are processed line by line against the running stock,
    never merged. Raises MedicineNotFound, MedicineInactive or
    InsufficientStock for the first offending line; the caller's rollback
    undoes the header, any items and any decrements already made.
    """
    cart = validate_cart(lines)

    if idempotency_key:
        replayed = _replay(db, idempotency_key, customer_id, cart)
        if replayed is not None:
            return replayed

    customer = db.get(Customer, customer_id)
    if customer is None or not customer.is_active:
        raise CustomerNotFound(customer_id)

    locked = inventory_service.lock_and_fetch(db, {line.medicine_id for line in cart})

    sale_id = ledger_service.create_sale(
        db,
        customer_id=customer_id,
        user_id=operator_id,
        timestamp=now or datetime.now(timezone.utc),
        idempotency_key=idempotency_key,
    )

    total = Decimal("0.00")
    sale_lines: List[SaleLine] = []
    for line in cart:
        medicine = locked.get(line.medicine_id)
        _check_line(medicine, line)
        inventory_service.decrement_quantity(db, medicine.id, line.quantity)

        unit_price = money(medicine.price)
        line_total = money(unit_price * line.quantity)
        total += line_total
        sale_lines.append(SaleLine(medicine.id, line.quantity, unit_price, line_total))

    ledger_service.append_sale_items(db, sale_id, sale_lines)
    ledger_service.set_sale_total(db, sale_id, total)

    sale = ledger_service.get_sale(db, sale_id)
    _verify_totals(sale)

    logger.info(
        f"Sale {sale.id} recorded: customer={customer_id}, operator={operator_id}, "
        f"lines={len(cart)}, total={total}"
    )
    return sale
