from decimal import Decimal

import pytest

from conftest import no_sleep, quantity_of
from pharmacy.core.exceptions import MedicineInactive, MedicineNotFound
from pharmacy.db.session import run_in_transaction
from pharmacy.services import purchase_service


def _receive(session_factory, medicine_id, quantity, unit_cost, user_id, supplier="Medline Distributors"):
    def work(db):
        purchase = purchase_service.record_purchase(db, medicine_id, quantity, unit_cost, supplier, user_id)
        return purchase.id, purchase.total_cost

    return run_in_transaction(work, session_factory=session_factory, sleep=no_sleep)


def test_purchase_adds_stock_and_costs(session_factory, db, make_medicine, operator):
    medicine = make_medicine(quantity=4)

    purchase_id, total = _receive(session_factory, medicine.id, 20, Decimal("1.125"), operator.id)

    assert total == Decimal("22.60")
    assert quantity_of(session_factory, medicine.id) == 24
    purchase = purchase_service.get_purchase(db, purchase_id)
    assert purchase.unit_cost == Decimal("1.13")
    assert purchase.medicine.name == medicine.name
    assert purchase.supplier == "Medline Distributors"


def test_purchase_of_inactive_medicine_is_rejected(session_factory, make_medicine, operator):
    medicine = make_medicine(quantity=4, is_active=False)

    with pytest.raises(MedicineInactive):
        _receive(session_factory, medicine.id, 10, Decimal("1.00"), operator.id)
    assert quantity_of(session_factory, medicine.id) == 4


def test_purchase_of_unknown_medicine(session_factory, operator):
    with pytest.raises(MedicineNotFound):
        _receive(session_factory, 404, 10, Decimal("1.00"), operator.id)


def test_list_purchases_newest_first(session_factory, db, make_medicine, operator):
    medicine = make_medicine()
    first, _ = _receive(session_factory, medicine.id, 1, Decimal("1.00"), operator.id)
    second, _ = _receive(session_factory, medicine.id, 2, Decimal("1.00"), operator.id)

    assert [p.id for p in purchase_service.list_purchases(db)][:2] == [second, first]
