"""Auth: register and login.

- Password hashing with bcrypt
- Password strength validation
- httpOnly, SameSite cookie alongside the bearer token in the body
"""
from datetime import datetime, timedelta, timezone

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from pharmacy.api.deps import get_db, get_current_user
from pharmacy.core.audit import AuditLog
from pharmacy.core.security import verify_password, get_password_hash, create_access_token
from pharmacy.core.config import settings
from pharmacy.models.user import User
from pharmacy.schemas.user import UserCreate, UserLogin, UserResponse, Token

router = APIRouter()


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _issue_token(user: User, response: Response) -> Token:
    expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    token = create_access_token(
        subject=str(user.id),
        claims={"name": user.username, "email": user.email, "role": user.role},
        expires_delta=expires_delta,
    )
    response.set_cookie(
        key=settings.AUTH_COOKIE_NAME,
        value=token,
        max_age=int(expires_delta.total_seconds()),
        secure=settings.SECURE_COOKIES,
        httponly=True,
        samesite=settings.SAME_SITE_COOKIE,
    )
    return Token(
        access_token=token,
        username=user.username,
        email=user.email,
        role=user.role,
        expires_at=datetime.now(timezone.utc) + expires_delta,
    )


@router.post("/register", response_model=Token)
def register(data: UserCreate, request: Request, response: Response, db: Session = Depends(get_db)):
    """
    Register a new user and log them in.

    Password requirements:
    - Minimum MIN_PASSWORD_LENGTH characters
    - At least one number
    """
    if db.query(User).filter(User.username == data.username).first():
        raise HTTPException(status_code=400, detail="Username already exists")
    if db.query(User).filter(User.email == data.email).first():
        raise HTTPException(status_code=400, detail="Email already exists")

    if len(data.password) < settings.MIN_PASSWORD_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"Password must be at least {settings.MIN_PASSWORD_LENGTH} characters"
        )
    if settings.REQUIRE_NUMBERS and not any(c.isdigit() for c in data.password):
        raise HTTPException(status_code=400, detail="Password must contain at least one number")

    user = User(
        username=data.username,
        email=data.email,
        hashed_password=get_password_hash(data.password),
        role=data.role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    AuditLog.log_authentication("register", user.username, _client_ip(request), True)
    return _issue_token(user, response)


@router.post("/login", response_model=Token)
def login(data: UserLogin, request: Request, response: Response, db: Session = Depends(get_db)):
    """
    Login by username. Generic error message to prevent user enumeration.
    """
    user = db.query(User).filter(User.username == data.username, User.is_active.is_(True)).first()
    if not user or not verify_password(data.password, user.hashed_password):
        AuditLog.log_authentication(
            "failed_login", data.username, _client_ip(request), False, reason="Invalid credentials"
        )
        raise HTTPException(status_code=401, detail="Invalid credentials")

    AuditLog.log_authentication("login", user.username, _client_ip(request), True)
    return _issue_token(user, response)


@router.post("/logout")
def logout(request: Request, response: Response, current_user: User = Depends(get_current_user)):
    """Logout by clearing the httpOnly cookie."""
    response.delete_cookie(
        key=settings.AUTH_COOKIE_NAME,
        secure=settings.SECURE_COOKIES,
        httponly=True,
        samesite=settings.SAME_SITE_COOKIE,
    )
    AuditLog.log_authentication("logout", current_user.username, _client_ip(request), True)
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    """Get current authenticated user."""
    return current_user
