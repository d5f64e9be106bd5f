from datetime import datetime, timezone
from decimal import Decimal

import pytest

from conftest import no_sleep, quantity_of
from pharmacy.core.exceptions import (
    CartValidationError,
    CustomerNotFound,
    InsufficientStock,
    MedicineInactive,
    MedicineNotFound,
)
from pharmacy.core.money import money
from pharmacy.db.session import run_in_transaction
from pharmacy.models import Medicine, Sale, SaleItem
from pharmacy.services import sale_service
from pharmacy.services.sale_service import CartLine, process_sale, validate_cart


def _sell(session_factory, customer, operator, lines, **kwargs):
    def work(db):
        sale = process_sale(db, customer.id, operator.id, lines, **kwargs)
        return {
            "id": sale.id,
            "total": sale.total_amount,
            "items": [(i.medicine_id, i.quantity, i.unit_price, i.total_price) for i in sale.items],
        }

    return run_in_transaction(work, session_factory=session_factory, sleep=no_sleep)


def _count(session_factory, model):
    session = session_factory()
    try:
        return session.query(model).count()
    finally:
        session.close()


def test_money_rounds_half_up():
    assert money("2.345") == Decimal("2.35")
    assert money(Decimal("7")) == Decimal("7.00")


def test_validate_cart_accepts_pairs_and_objects():
    cart = validate_cart([(1, 2), CartLine(3, 1), (1, 4)])
    assert cart == (CartLine(1, 2), CartLine(3, 1), CartLine(1, 4))


@pytest.mark.parametrize("lines", [[], None])
def test_validate_cart_rejects_empty(lines):
    with pytest.raises(CartValidationError):
        validate_cart(lines)


@pytest.mark.parametrize("quantity", [0, -1, 1.5, True])
def test_validate_cart_rejects_bad_quantity(quantity):
    with pytest.raises(CartValidationError) as exc:
        validate_cart([(1, quantity)])
    assert exc.value.detail["line"] == 1


def test_sale_decrements_stock_and_records_total(session_factory, make_medicine, customer, operator):
    medicine = make_medicine(price="5.00", quantity=10)

    result = _sell(session_factory, customer, operator, [(medicine.id, 3)])

    assert result["total"] == Decimal("15.00")
    assert result["items"] == [(medicine.id, 3, Decimal("5.00"), Decimal("15.00"))]
    assert quantity_of(session_factory, medicine.id) == 7


def test_insufficient_stock_leaves_quantity_untouched(session_factory, make_medicine, customer, operator):
    medicine = make_medicine(name="Ibuprofen", quantity=2)

    with pytest.raises(InsufficientStock) as exc:
        _sell(session_factory, customer, operator, [(medicine.id, 5)])

    assert (exc.value.medicine_id, exc.value.requested, exc.value.available) == (medicine.id, 5, 2)
    assert quantity_of(session_factory, medicine.id) == 2
    assert _count(session_factory, Sale) == 0


def test_repeated_medicine_is_checked_against_running_stock(session_factory, make_medicine, customer, operator):
    medicine = make_medicine(quantity=4)

    with pytest.raises(InsufficientStock) as exc:
        _sell(session_factory, customer, operator, [(medicine.id, 2), (medicine.id, 3)])

    assert exc.value.requested == 3
    assert exc.value.available == 2
    assert quantity_of(session_factory, medicine.id) == 4
    assert _count(session_factory, Sale) == 0
    assert _count(session_factory, SaleItem) == 0


def test_repeated_medicine_lines_are_kept_separate(session_factory, make_medicine, customer, operator):
    medicine = make_medicine(price="1.10", quantity=10)

    result = _sell(session_factory, customer, operator, [(medicine.id, 2), (medicine.id, 3)])

    assert [item[1] for item in result["items"]] == [2, 3]
    assert result["total"] == Decimal("5.50")
    assert quantity_of(session_factory, medicine.id) == 5


def test_failure_on_later_line_rolls_back_earlier_lines(session_factory, make_medicine, customer, operator):
    plenty = make_medicine(name="Cetirizine", quantity=50)
    scarce = make_medicine(name="Amoxicillin", quantity=1)

    with pytest.raises(InsufficientStock):
        _sell(session_factory, customer, operator, [(plenty.id, 5), (scarce.id, 2)])

    assert quantity_of(session_factory, plenty.id) == 50
    assert quantity_of(session_factory, scarce.id) == 1
    assert _count(session_factory, Sale) == 0


def test_unknown_medicine(session_factory, make_medicine, customer, operator):
    medicine = make_medicine(quantity=5)

    with pytest.raises(MedicineNotFound) as exc:
        _sell(session_factory, customer, operator, [(medicine.id, 1), (9999, 1)])

    assert exc.value.medicine_id == 9999
    assert quantity_of(session_factory, medicine.id) == 5


def test_inactive_medicine_cannot_be_sold(session_factory, make_medicine, customer, operator):
    medicine = make_medicine(quantity=5, is_active=False)

    with pytest.raises(MedicineInactive):
        _sell(session_factory, customer, operator, [(medicine.id, 1)])

    assert quantity_of(session_factory, medicine.id) == 5


def test_unknown_or_inactive_customer(session_factory, make_medicine, make_customer, operator):
    medicine = make_medicine()
    gone = make_customer(name="Moved Away", is_active=False)

    with pytest.raises(CustomerNotFound):
        _sell(session_factory, gone, operator, [(medicine.id, 1)])
    assert _count(session_factory, Sale) == 0


def test_unit_price_is_snapshotted(session_factory, db, make_medicine, customer, operator):
    medicine = make_medicine(price="4.25", quantity=10)
    result = _sell(session_factory, customer, operator, [(medicine.id, 2)])

    db.get(Medicine, medicine.id).price = Decimal("9.99")
    db.commit()

    item = db.query(SaleItem).filter(SaleItem.sale_id == result["id"]).one()
    assert item.unit_price == Decimal("4.25")
    assert item.total_price == Decimal("8.50")


def test_total_is_sum_of_line_totals(session_factory, make_medicine, customer, operator):
    a = make_medicine(name="A", price="0.35", quantity=10)
    b = make_medicine(name="B", price="12.40", quantity=10)

    result = _sell(session_factory, customer, operator, [(a.id, 3), (b.id, 2)])

    assert result["total"] == sum(item[3] for item in result["items"])


def test_sale_records_operator_and_timestamp(session_factory, db, make_medicine, customer, operator):
    medicine = make_medicine()
    when = datetime(2026, 3, 14, 9, 30, tzinfo=timezone.utc)

    result = _sell(session_factory, customer, operator, [(medicine.id, 1)], now=when)

    sale = db.get(Sale, result["id"])
    assert sale.user_id == operator.id
    assert sale.customer_id == customer.id
    assert sale.sale_date.replace(tzinfo=None) == when.replace(tzinfo=None)


def test_idempotency_key_replays_the_first_sale(session_factory, make_medicine, customer, operator):
    medicine = make_medicine(quantity=10)

    first = _sell(session_factory, customer, operator, [(medicine.id, 2)], idempotency_key="till-1-0001")
    second = _sell(session_factory, customer, operator, [(medicine.id, 2)], idempotency_key="till-1-0001")

    assert second["id"] == first["id"]
    assert quantity_of(session_factory, medicine.id) == 8
    assert _count(session_factory, Sale) == 1


def test_idempotency_key_reused_for_different_cart(session_factory, make_medicine, customer, operator):
    medicine = make_medicine(quantity=10)
    _sell(session_factory, customer, operator, [(medicine.id, 2)], idempotency_key="till-1-0002")

    with pytest.raises(CartValidationError):
        _sell(session_factory, customer, operator, [(medicine.id, 3)], idempotency_key="till-1-0002")
    assert quantity_of(session_factory, medicine.id) == 8


def test_invariant_check_is_applied(monkeypatch, session_factory, make_medicine, customer, operator):
    medicine = make_medicine(quantity=10)
    calls = []
    original = sale_service._verify_totals

    def spy(sale):
        calls.append(sale.id)
        original(sale)

    monkeypatch.setattr(sale_service, "_verify_totals", spy)
    result = _sell(session_factory, customer, operator, [(medicine.id, 1)])
    assert calls == [result["id"]]
