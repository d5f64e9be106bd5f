"""Create all tables. Run on app startup.

Seeds a default Admin with a random password (never hardcoded) when the users
table is empty. The password is printed once; change it after first login.
"""
import logging
import secrets

from sqlalchemy.engine import Engine

from pharmacy.db.base import Base
from pharmacy.db.session import engine as default_engine, make_session_factory
from pharmacy.models import user, customer, medicine, sale, purchase  # noqa: F401 - register models
from pharmacy.models.user import User, ROLE_ADMIN
from pharmacy.core.security import get_password_hash

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_USERNAME = "admin"


def init_db(bind: Engine = None, seed_admin: bool = True) -> None:
    bind = bind or default_engine
    Base.metadata.create_all(bind=bind)
    if not seed_admin:
        return

    db = make_session_factory(bind)()
    try:
        if db.query(User).count() == 0:
            default_password = secrets.token_urlsafe(16)
            db.add(User(
                username=DEFAULT_ADMIN_USERNAME,
                email="admin@pharmacy.local",
                hashed_password=get_password_hash(default_password),
                role=ROLE_ADMIN,
            ))
            db.commit()

            print("\n" + "=" * 70)
            print("DEFAULT ADMIN USER CREATED")
            print("=" * 70)
            print(f"Username: {DEFAULT_ADMIN_USERNAME}")
            print(f"Password: {default_password}")
            print("\nChange this password immediately after first login!")
            print("=" * 70 + "\n")
            logger.warning("Default admin user created; rotate its password")
    finally:
        db.close()
