"""Purchases: stock received from suppliers."""
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session, sessionmaker

from pharmacy.api.deps import get_db, get_current_user, get_session_factory
from pharmacy.core.audit import AuditLog
from pharmacy.core.exceptions import BusinessError
from pharmacy.db.session import run_in_transaction
from pharmacy.models.user import User
from pharmacy.schemas.purchase import PurchaseCreate, PurchaseResponse
from pharmacy.services import purchase_service

router = APIRouter()


@router.post("", response_model=PurchaseResponse, status_code=status.HTTP_201_CREATED)
def create_purchase(
    data: PurchaseCreate,
    current_user: User = Depends(get_current_user),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    """Record a delivery and add it to stock under the medicine's row lock."""
    operator_id = current_user.id

    def work(db: Session) -> PurchaseResponse:
        purchase = purchase_service.record_purchase(
            db,
            medicine_id=data.medicine_id,
            quantity=data.quantity,
            unit_cost=data.unit_cost,
            supplier=data.supplier,
            user_id=operator_id,
        )
        return PurchaseResponse.from_purchase(purchase)

    response = run_in_transaction(work, session_factory=session_factory)
    AuditLog.log_purchase(response.id, operator_id, response.medicine_id, response.quantity)
    return response


@router.get("", response_model=List[PurchaseResponse])
def list_purchases(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return [PurchaseResponse.from_purchase(p) for p in purchase_service.list_purchases(db)]


@router.get("/{purchase_id}", response_model=PurchaseResponse)
def get_purchase(purchase_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    purchase = purchase_service.get_purchase(db, purchase_id)
    if not purchase:
        raise BusinessError.not_found("Purchase")
    return PurchaseResponse.from_purchase(purchase)
