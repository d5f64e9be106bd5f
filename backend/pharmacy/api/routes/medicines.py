"""Medicines: inventory catalogue CRUD.

Only active medicines are listed. DELETE is a soft delete so past sales keep
their references. PUT carries the lock_version the client last read.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from pharmacy.api.deps import get_db, get_current_user
from pharmacy.core.audit import AuditLog
from pharmacy.core.exceptions import BusinessError
from pharmacy.models.medicine import Medicine
from pharmacy.models.user import User
from pharmacy.schemas.medicine import MedicineCreate, MedicineResponse, MedicineUpdate
from pharmacy.services import inventory_service

router = APIRouter()


@router.get("", response_model=List[MedicineResponse])
def list_medicines(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    medicines = db.query(Medicine).filter(Medicine.is_active.is_(True)).order_by(Medicine.name).all()
    return [MedicineResponse.from_medicine(m) for m in medicines]


@router.get("/search", response_model=List[MedicineResponse])
def search_medicines(
    name: Optional[str] = Query(None),
    category: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Case-insensitive substring search on name and/or category."""
    q = db.query(Medicine).filter(Medicine.is_active.is_(True))
    if name:
        q = q.filter(Medicine.name.ilike(f"%{name}%"))
    if category:
        q = q.filter(Medicine.category.ilike(f"%{category}%"))
    return [MedicineResponse.from_medicine(m) for m in q.order_by(Medicine.name).all()]


@router.get("/{medicine_id}", response_model=MedicineResponse)
def get_medicine(medicine_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    medicine = db.get(Medicine, medicine_id)
    if not medicine or not medicine.is_active:
        raise BusinessError.not_found("Medicine")
    return MedicineResponse.from_medicine(medicine)


@router.post("", response_model=MedicineResponse, status_code=status.HTTP_201_CREATED)
def create_medicine(
    data: MedicineCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    medicine = Medicine(
        name=data.name.strip(),
        description=data.description,
        category=data.category.strip(),
        price=data.price,
        quantity=data.quantity,
        expiry_date=data.expiry_date,
    )
    db.add(medicine)
    db.commit()
    db.refresh(medicine)

    AuditLog.log_action("create", "medicine", medicine.id, current_user.id, changes={"name": medicine.name})
    return MedicineResponse.from_medicine(medicine)


@router.put("/{medicine_id}", response_model=MedicineResponse)
def update_medicine(
    medicine_id: int,
    data: MedicineUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Full update. Rejected with 409 if the row changed since ``lock_version`` was read."""
    changes = data.model_dump(exclude={"lock_version"})
    changes["name"] = changes["name"].strip()
    changes["category"] = changes["category"].strip()
    try:
        medicine = inventory_service.update_medicine(db, medicine_id, changes, data.lock_version)
    except ValueError as e:
        raise BusinessError.bad_request(str(e))

    AuditLog.log_action(
        "update", "medicine", medicine.id, current_user.id,
        changes={"fields": sorted(changes), "lock_version": medicine.lock_version},
    )
    return MedicineResponse.from_medicine(medicine)


@router.delete("/{medicine_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_medicine(medicine_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    inventory_service.deactivate_medicine(db, medicine_id)
    AuditLog.log_action("deactivate", "medicine", medicine_id, current_user.id)
