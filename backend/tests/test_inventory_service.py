from datetime import date
from decimal import Decimal

import pytest

from conftest import no_sleep, quantity_of
from pharmacy.core.exceptions import InsufficientStock, MedicineInactive, MedicineNotFound, StaleRecordError
from pharmacy.db.locking import lock_order, lock_rows
from pharmacy.db.session import run_in_transaction
from pharmacy.models import Medicine
from pharmacy.services import inventory_service


def test_lock_order_is_ascending_and_distinct():
    assert lock_order([7, 3, 7, 1]) == [1, 3, 7]
    assert lock_order(set()) == []


def test_lock_rows_returns_existing_rows_by_id(session_factory, make_medicine):
    a = make_medicine(name="A")
    b = make_medicine(name="B")

    def work(db):
        rows = lock_rows(db, Medicine, [b.id, 424242, a.id])
        return sorted(rows), rows[a.id].name

    ids, name = run_in_transaction(work, session_factory=session_factory, sleep=no_sleep)
    assert ids == sorted([a.id, b.id])
    assert name == "A"


def test_empty_lock_set_takes_no_lock(session_factory):
    assert run_in_transaction(lambda db: lock_rows(db, Medicine, []), session_factory=session_factory) == {}


def test_decrement_refuses_to_go_negative(session_factory, make_medicine):
    medicine = make_medicine(quantity=3)

    def work(db):
        inventory_service.lock_and_fetch(db, [medicine.id])
        inventory_service.decrement_quantity(db, medicine.id, 4)

    with pytest.raises(InsufficientStock):
        run_in_transaction(work, session_factory=session_factory, sleep=no_sleep)
    assert quantity_of(session_factory, medicine.id) == 3


def test_decrement_rejects_non_positive_amount(db, make_medicine):
    medicine = make_medicine()
    with pytest.raises(ValueError):
        inventory_service.decrement_quantity(db, medicine.id, 0)


def test_increment_rejects_inactive_and_unknown(session_factory, make_medicine):
    retired = make_medicine(is_active=False, quantity=1)

    with pytest.raises(MedicineInactive):
        run_in_transaction(
            lambda db: inventory_service.increment_quantity(db, retired.id, 5), session_factory=session_factory
        )
    with pytest.raises(MedicineNotFound):
        run_in_transaction(
            lambda db: inventory_service.increment_quantity(db, 31337, 5), session_factory=session_factory
        )
    assert quantity_of(session_factory, retired.id) == 1


def _edit(**overrides):
    changes = {
        "name": "Paracetamol 650mg",
        "description": "Stronger",
        "category": "Analgesic",
        "price": Decimal("6.00"),
        "expiry_date": date(2030, 1, 1),
    }
    changes.update(overrides)
    return changes


def test_update_bumps_lock_version(db, make_medicine):
    medicine = make_medicine()

    updated = inventory_service.update_medicine(db, medicine.id, _edit(), expected_version=medicine.lock_version)

    assert updated.name == "Paracetamol 650mg"
    assert updated.price == Decimal("6.00")
    assert updated.lock_version == medicine.lock_version + 1


def test_update_with_stale_version_is_rejected(session_factory, db, make_medicine, customer, operator):
    from pharmacy.services.sale_service import process_sale

    medicine = make_medicine(quantity=10)
    read_version = medicine.lock_version

    # A sale lands between the client's read and its edit.
    run_in_transaction(
        lambda s: process_sale(s, customer.id, operator.id, [(medicine.id, 4)]).id,
        session_factory=session_factory,
        sleep=no_sleep,
    )

    with pytest.raises(StaleRecordError) as exc:
        inventory_service.update_medicine(db, medicine.id, _edit(), expected_version=read_version)
    assert exc.value.status_code == 409
    assert quantity_of(session_factory, medicine.id) == 6


def test_update_edit_read_before_a_concurrent_sale_is_stale(session_factory, db, make_medicine, customer, operator):
    from pharmacy.services.sale_service import process_sale

    medicine = make_medicine(quantity=10)
    # The edit session reads the row first, then a sale commits elsewhere.
    assert db.get(Medicine, medicine.id).lock_version == medicine.lock_version
    run_in_transaction(
        lambda s: process_sale(s, customer.id, operator.id, [(medicine.id, 4)]).id,
        session_factory=session_factory,
        sleep=no_sleep,
    )

    with pytest.raises(StaleRecordError) as exc:
        inventory_service.update_medicine(
            db, medicine.id, {"price": Decimal("9.99")}, expected_version=medicine.lock_version
        )
    assert exc.value.status_code == 409
    assert exc.value.detail["current_version"] == medicine.lock_version + 1
    db.rollback()
    assert quantity_of(session_factory, medicine.id) == 6
    assert db.get(Medicine, medicine.id).price == Decimal("5.00")


def test_update_cannot_change_stock(db, make_medicine):
    medicine = make_medicine(quantity=10)

    with pytest.raises(ValueError):
        inventory_service.update_medicine(db, medicine.id, _edit(quantity=999), expected_version=medicine.lock_version)
    db.rollback()
    assert db.get(Medicine, medicine.id).quantity == 10
    assert db.get(Medicine, medicine.id).name == "Paracetamol 500mg"


def test_update_rejects_unknown_field(db, make_medicine):
    medicine = make_medicine()
    with pytest.raises(ValueError):
        inventory_service.update_medicine(db, medicine.id, {"lock_version": 99}, expected_version=medicine.lock_version)


def test_deactivate_is_soft(db, make_medicine):
    medicine = make_medicine()

    inventory_service.deactivate_medicine(db, medicine.id)

    row = db.get(Medicine, medicine.id)
    assert row is not None
    assert row.is_active is False
    with pytest.raises(MedicineNotFound):
        inventory_service.get_active_medicine(db, medicine.id)
