from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.sql import func

from pharmacy.db.base import Base

ROLE_STAFF = "Staff"
ROLE_ADMIN = "Admin"
ROLES = (ROLE_STAFF, ROLE_ADMIN)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(50), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=ROLE_STAFF)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    is_active = Column(Boolean, nullable=False, default=True)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN
