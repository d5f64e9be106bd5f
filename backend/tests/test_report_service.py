from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from conftest import no_sleep
from pharmacy.db.session import run_in_transaction
from pharmacy.services.report_service import sales_report
from pharmacy.services.sale_service import process_sale


def _sell_on(session_factory, customer, operator, medicine, quantity, when):
    run_in_transaction(
        lambda db: process_sale(db, customer.id, operator.id, [(medicine.id, quantity)], now=when).id,
        session_factory=session_factory,
        sleep=no_sleep,
    )


def test_daily_totals_within_inclusive_window(session_factory, db, make_medicine, customer, operator):
    medicine = make_medicine(price="2.50", quantity=100)
    _sell_on(session_factory, customer, operator, medicine, 2, datetime(2026, 5, 1, 9, 0, tzinfo=timezone.utc))
    _sell_on(session_factory, customer, operator, medicine, 1, datetime(2026, 5, 1, 18, 0, tzinfo=timezone.utc))
    _sell_on(session_factory, customer, operator, medicine, 4, datetime(2026, 5, 3, 23, 59, tzinfo=timezone.utc))
    _sell_on(session_factory, customer, operator, medicine, 9, datetime(2026, 5, 4, 0, 0, tzinfo=timezone.utc))

    report = sales_report(db, date(2026, 5, 1), date(2026, 5, 3))

    assert [(d.date, d.total_sales, d.count) for d in report.daily_sales] == [
        (date(2026, 5, 1), Decimal("7.50"), 2),
        (date(2026, 5, 3), Decimal("10.00"), 1),
    ]
    assert report.total_revenue == Decimal("17.50")


def test_empty_window(db):
    report = sales_report(db, date(2026, 1, 1), date(2026, 1, 31))
    assert report.daily_sales == []
    assert report.total_revenue == Decimal("0.00")


def test_reversed_window_is_rejected(db):
    with pytest.raises(ValueError):
        sales_report(db, date(2026, 2, 1), date(2026, 1, 1))
