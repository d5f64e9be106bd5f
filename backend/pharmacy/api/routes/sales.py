"""Sales: point-of-sale checkout and sale lookups.

POST /sales runs the coordinator as a serializable unit of work with the
configured retry policy. Send an ``Idempotency-Key`` header to make client
retries safe: a repeated key returns the sale recorded the first time.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.orm import Session, sessionmaker

from pharmacy.api.deps import get_db, get_current_user, get_session_factory
from pharmacy.core.audit import AuditLog
from pharmacy.core.exceptions import BusinessError, DomainError
from pharmacy.db.session import run_in_transaction
from pharmacy.models.user import User
from pharmacy.schemas.sale import SaleCreate, SaleResponse
from pharmacy.services import ledger_service, sale_service

router = APIRouter()


@router.post("", response_model=SaleResponse, status_code=status.HTTP_201_CREATED)
def create_sale(
    data: SaleCreate,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key", max_length=64),
    current_user: User = Depends(get_current_user),
    session_factory: sessionmaker = Depends(get_session_factory),
):
    cart = sale_service.validate_cart(data.items)
    operator_id = current_user.id

    def work(db: Session) -> SaleResponse:
        sale = sale_service.process_sale(
            db,
            customer_id=data.customer_id,
            operator_id=operator_id,
            lines=cart,
            idempotency_key=idempotency_key,
        )
        return SaleResponse.from_sale(sale)

    try:
        response = run_in_transaction(work, session_factory=session_factory)
    except DomainError as e:
        AuditLog.log_sale_rejected(operator_id, data.customer_id, e.code, e.detail)
        raise

    AuditLog.log_sale_committed(response.id, operator_id, data.customer_id, response.total_amount, len(response.items))
    return response


@router.get("/customer/{customer_id}", response_model=List[SaleResponse])
def list_customer_sales(
    customer_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Sale headers for one customer, newest first (items omitted)."""
    return [SaleResponse.from_sale(s, with_items=False) for s in ledger_service.list_customer_sales(db, customer_id)]


@router.get("/{sale_id}", response_model=SaleResponse)
def get_sale(sale_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    sale = ledger_service.get_sale(db, sale_id)
    if not sale:
        raise BusinessError.not_found("Sale")
    return SaleResponse.from_sale(sale)
