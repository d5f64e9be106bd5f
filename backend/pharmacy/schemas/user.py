from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, field_validator

from pharmacy.models.user import ROLES, ROLE_STAFF


class UserCreate(BaseModel):
    username: str
    email: EmailStr
    password: str
    role: str = ROLE_STAFF

    @field_validator('username')
    @classmethod
    def username_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v or len(v) > 50:
            raise ValueError('Username must be 1-50 characters')
        return v

    @field_validator('role')
    @classmethod
    def role_known(cls, v: str) -> str:
        if v not in ROLES:
            raise ValueError(f"Role must be one of: {', '.join(ROLES)}")
        return v


class UserLogin(BaseModel):
    username: str
    password: str


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    role: str
    is_active: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    username: str
    email: str
    role: str
    expires_at: datetime
