"""Admin-only endpoints: user management and sales reports."""
from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from pharmacy.api.deps import get_db, require_role
from pharmacy.core.audit import AuditLog
from pharmacy.core.exceptions import BusinessError
from pharmacy.models.user import User, ROLE_ADMIN
from pharmacy.schemas.report import SalesReportResponse
from pharmacy.schemas.user import UserResponse
from pharmacy.services import report_service

router = APIRouter()

require_admin = require_role(ROLE_ADMIN)


def _set_active(db: Session, user_id: int, active: bool, admin: User) -> None:
    user = db.get(User, user_id)
    if not user:
        raise BusinessError.not_found("User")
    if user.id == admin.id and not active:
        raise BusinessError.bad_request("Admins cannot deactivate their own account")
    user.is_active = active
    db.commit()
    AuditLog.log_permission_change(user_id=user.id, changed_by=admin.id, permission="active", granted=active)


@router.get("/users", response_model=List[UserResponse])
def list_users(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    return db.query(User).order_by(User.id).all()


@router.get("/users/count", response_model=int)
def count_users(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    """Counts every account, including deactivated ones."""
    return db.query(func.count(User.id)).scalar() or 0


@router.post("/users/{user_id}/activate", status_code=status.HTTP_204_NO_CONTENT)
def activate_user(user_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    _set_active(db, user_id, True, admin)


@router.post("/users/{user_id}/deactivate", status_code=status.HTTP_204_NO_CONTENT)
def deactivate_user(user_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    _set_active(db, user_id, False, admin)


@router.get("/reports/sales", response_model=SalesReportResponse)
def sales_report(
    start_date: date = Query(..., description="First day included"),
    end_date: date = Query(..., description="Last day included"),
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    """Revenue and sale count per day."""
    try:
        report = report_service.sales_report(db, start_date, end_date)
    except ValueError as e:
        raise BusinessError.bad_request(str(e))
    return SalesReportResponse.model_validate(report)
