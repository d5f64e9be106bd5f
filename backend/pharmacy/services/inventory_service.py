"""Catalog store: medicine stock reads and writes.

Every quantity change goes through a row lock (see pharmacy.db.locking).
Field edits go through the lock_version concurrency token instead.
"""
import logging
from decimal import Decimal
from typing import Any, Dict, Iterable

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from pharmacy.core.exceptions import (
    InsufficientStock,
    MedicineInactive,
    MedicineNotFound,
    StaleRecordError,
    TransientStoreError,
)
from pharmacy.db.locking import lock_rows
from pharmacy.db.session import is_transient
from pharmacy.models.medicine import Medicine

logger = logging.getLogger(__name__)

# Stock is moved only by sales and purchases.
EDITABLE_FIELDS = ("name", "description", "category", "price", "expiry_date")


def lock_and_fetch(db: Session, ids: Iterable[int]) -> Dict[int, Medicine]:
    """Lock the medicine rows for the current transaction and return them by id."""
    return lock_rows(db, Medicine, ids)


def _locked_medicine(db: Session, medicine_id: int) -> Medicine:
    medicine = lock_and_fetch(db, [medicine_id]).get(medicine_id)
    if medicine is None:
        raise MedicineNotFound(medicine_id)
    return medicine


def decrement_quantity(db: Session, medicine_id: int, amount: int) -> Medicine:
    """Take ``amount`` units out of stock. Caller must already hold the row lock."""
    if amount <= 0:
        raise ValueError(f"Decrement amount must be positive, got {amount}")
    medicine = db.get(Medicine, medicine_id)
    if medicine is None:
        raise MedicineNotFound(medicine_id)
    if medicine.quantity < amount:
        raise InsufficientStock(medicine_id, amount, medicine.quantity, name=medicine.name)
    medicine.quantity -= amount
    return medicine


def increment_quantity(db: Session, medicine_id: int, amount: int) -> Medicine:
    """Add received stock. Locks the row itself; inactive medicines are rejected."""
    if amount <= 0:
        raise ValueError(f"Increment amount must be positive, got {amount}")
    medicine = _locked_medicine(db, medicine_id)
    if not medicine.is_active:
        raise MedicineInactive(medicine_id, name=medicine.name)
    medicine.quantity += amount
    return medicine


def get_active_medicine(db: Session, medicine_id: int) -> Medicine:
    medicine = db.get(Medicine, medicine_id)
    if medicine is None or not medicine.is_active:
        raise MedicineNotFound(medicine_id)
    return medicine


def _check_version(medicine: Medicine, expected_version: int) -> None:
    if medicine.lock_version != expected_version:
        raise StaleRecordError("Medicine", medicine.id, expected_version, medicine.lock_version)


def _flush_versioned(db: Session, medicine: Medicine, expected_version: int) -> None:
    try:
        db.flush()
    except StaleDataError as exc:
        # The row changed between our read and our UPDATE.
        db.rollback()
        raise StaleRecordError("Medicine", medicine.id, expected_version) from exc
    except OperationalError as exc:
        # SQLite refuses to write from a snapshot older than the last commit.
        if not is_transient(exc):
            raise
        db.rollback()
        current = db.get(Medicine, medicine.id)
        if current is None or current.lock_version != expected_version:
            raise StaleRecordError(
                "Medicine", medicine.id, expected_version, current.lock_version if current else None
            ) from exc
        raise TransientStoreError("The database is busy. Please retry the request.") from exc


def update_medicine(
    db: Session,
    medicine_id: int,
    changes: Dict[str, Any],
    expected_version: int,
) -> Medicine:
    """
    Apply a field edit based on a previously read ``lock_version``.

    Rejected with StaleRecordError when anyone (including a sale) wrote the
    row after the client read it.
    """
    medicine = get_active_medicine(db, medicine_id)
    _check_version(medicine, expected_version)

    unknown = sorted(set(changes) - set(EDITABLE_FIELDS))
    if unknown:
        raise ValueError(f"Fields cannot be edited: {', '.join(unknown)}")

    for field, value in changes.items():
        if field == "price":
            value = Decimal(str(value))
        setattr(medicine, field, value)

    _flush_versioned(db, medicine, expected_version)
    db.commit()
    db.refresh(medicine)
    logger.info(f"Medicine {medicine.id} updated to version {medicine.lock_version}: {sorted(changes)}")
    return medicine


def deactivate_medicine(db: Session, medicine_id: int) -> Medicine:
    """Soft delete. Sales history keeps referencing the row."""
    medicine = db.get(Medicine, medicine_id)
    if medicine is None:
        raise MedicineNotFound(medicine_id)
    if medicine.is_active:
        medicine.is_active = False
        _flush_versioned(db, medicine, medicine.lock_version)
        db.commit()
        db.refresh(medicine)
        logger.info(f"Medicine {medicine.id} deactivated")
    return medicine
