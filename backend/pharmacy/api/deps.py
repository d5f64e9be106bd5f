"""FastAPI dependencies: DB session and current user from JWT.

Supports JWT from:
1. Authorization header (for API clients)
2. httpOnly cookie (for web frontend)
"""
from typing import Callable, Generator, Optional

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from pharmacy.core.audit import AuditLog
from pharmacy.core.config import settings
from pharmacy.core.exceptions import BusinessError
from pharmacy.core.security import decode_access_token
from pharmacy.db.session import SessionLocal
from pharmacy.models.user import User

security = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_factory():
    """Session factory for units of work. Overridden in tests."""
    return SessionLocal


def get_current_user_id(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> int:
    """
    Extract user ID from JWT token.
    Header takes precedence over cookie.
    """
    token = None

    if credentials:
        token = credentials.credentials
    elif settings.AUTH_COOKIE_NAME in request.cookies:
        token = request.cookies[settings.AUTH_COOKIE_NAME]

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    sub = decode_access_token(token)
    if not sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return int(sub)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")


def get_current_user(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
) -> User:
    """Load current user from DB. Deactivated users lose access immediately."""
    user = db.get(User, user_id)
    if not user or not user.is_active:
        raise BusinessError.unauthorized(f"user {user_id} missing or inactive")
    return user


def require_role(*roles: str) -> Callable[..., User]:
    """Dependency factory: the current user must hold one of ``roles``."""

    def _checker(request: Request, current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            AuditLog.log_access_denied(
                action=request.method.lower(),
                resource_type=request.url.path,
                user_id=current_user.id,
                reason=f"role {current_user.role} not in {list(roles)}",
            )
            raise BusinessError.forbidden(f"user {current_user.id} lacks role {roles}")
        return current_user

    return _checker
