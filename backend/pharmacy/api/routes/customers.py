"""Customers CRUD with soft delete."""
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from pharmacy.api.deps import get_db, get_current_user
from pharmacy.core.audit import AuditLog
from pharmacy.core.exceptions import BusinessError
from pharmacy.models.customer import Customer
from pharmacy.models.user import User
from pharmacy.schemas.customer import CustomerCreate, CustomerResponse

router = APIRouter()


def _get_active_customer(db: Session, customer_id: int) -> Customer:
    customer = db.get(Customer, customer_id)
    if not customer or not customer.is_active:
        raise BusinessError.not_found("Customer")
    return customer


@router.get("", response_model=List[CustomerResponse])
def list_customers(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return db.query(Customer).filter(Customer.is_active.is_(True)).order_by(Customer.name).all()


@router.get("/count", response_model=int)
def count_customers(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    """Counts every customer ever registered, including deactivated ones."""
    return db.query(func.count(Customer.id)).scalar() or 0


@router.get("/{customer_id}", response_model=CustomerResponse)
def get_customer(customer_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return _get_active_customer(db, customer_id)


@router.post("", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
def create_customer(
    data: CustomerCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    customer = Customer(
        name=data.name.strip(),
        phone=data.phone.strip(),
        email=data.email.strip(),
        address=data.address.strip(),
    )
    db.add(customer)
    db.commit()
    db.refresh(customer)
    AuditLog.log_action("create", "customer", customer.id, current_user.id)
    return customer


@router.put("/{customer_id}", response_model=CustomerResponse)
def update_customer(
    customer_id: int,
    data: CustomerCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    customer = _get_active_customer(db, customer_id)
    customer.name = data.name.strip()
    customer.phone = data.phone.strip()
    customer.email = data.email.strip()
    customer.address = data.address.strip()
    db.commit()
    db.refresh(customer)
    AuditLog.log_action("update", "customer", customer.id, current_user.id)
    return customer


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_customer(customer_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    customer = _get_active_customer(db, customer_id)
    customer.is_active = False
    db.commit()
    AuditLog.log_action("deactivate", "customer", customer_id, current_user.id)
