"""Application configuration with security-first defaults.

Environment variables override all defaults.
SECRET_KEY must be set in production - startup fails fast when it is missing.
"""

import os
from pathlib import Path
from typing import List


# Load .env for local development (safe no-op if not installed)
try:
    from dotenv import load_dotenv  # type: ignore

    _BACKEND_DIR = Path(__file__).resolve().parents[2]
    load_dotenv(dotenv_path=_BACKEND_DIR / ".env", override=False)
except ImportError:
    pass


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _split_csv(raw: str, default: List[str]) -> List[str]:
    parts = [p.strip() for p in (raw or "").split(",")]
    return [p for p in parts if p] or default


def normalize_database_url(url: str) -> str:
    """Accept Heroku/Render style ``postgres://`` URLs.

    SQLAlchemy only understands ``postgresql://``; the psycopg (v3) driver is
    selected explicitly so the plain scheme does not fall back to psycopg2.
    """
    url = url.strip()
    if url.startswith("postgres://"):
        return "postgresql+psycopg://" + url[len("postgres://"):]
    if url.startswith("postgresql://"):
        return "postgresql+psycopg://" + url[len("postgresql://"):]
    return url


class Settings:
    def __init__(self) -> None:
        self.ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
        self.DEBUG: bool = self.ENVIRONMENT == "development"
        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

        # Database
        self.DATABASE_URL: str = normalize_database_url(
            os.getenv("DATABASE_URL", "sqlite:///./pharmacy.db")
        )
        # Retry policy for transient store failures (lock timeouts, serialization
        # conflicts, dropped connections). Applied by the caller of a unit of work.
        self.DB_RETRY_ATTEMPTS: int = _env_int("DB_RETRY_ATTEMPTS", 5)
        self.DB_RETRY_BACKOFF_SECONDS: float = _env_float("DB_RETRY_BACKOFF_SECONDS", 0.05)
        self.DB_RETRY_MAX_DELAY_SECONDS: float = _env_float("DB_RETRY_MAX_DELAY_SECONDS", 30.0)
        self.DB_LOCK_TIMEOUT_MS: int = _env_int("DB_LOCK_TIMEOUT_MS", 5000)

        # JWT
        secret = os.getenv("SECRET_KEY")
        if not secret:
            if self.ENVIRONMENT == "production":
                raise ValueError(
                    "SECRET_KEY must be set in production environment. "
                    "Generate with: python -c 'import secrets; print(secrets.token_urlsafe(32))'"
                )
            import warnings
            warnings.warn(
                "SECRET_KEY not set in environment. Using development default. "
                "Set SECRET_KEY in .env to a strong random value.",
                RuntimeWarning,
            )
            secret = "development-only-weak-default-change-in-production"
        elif len(secret) < 32 and self.ENVIRONMENT == "production":
            raise ValueError("SECRET_KEY must be at least 32 characters long")
        self.SECRET_KEY: str = secret
        self.ALGORITHM: str = "HS256"
        self.ACCESS_TOKEN_EXPIRE_MINUTES: int = _env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24)
        self.JWT_ISSUER: str = os.getenv("JWT_ISSUER", "pharmacy-api")
        self.JWT_AUDIENCE: str = os.getenv("JWT_AUDIENCE", "pharmacy-clients")
        self.AUTH_COOKIE_NAME: str = "pharmacy_token"

        # CORS (specific origins only, no wildcards)
        self.CORS_ORIGINS: List[str] = _split_csv(
            os.getenv("CORS_ORIGINS", ""),
            default=["http://localhost:3000", "http://127.0.0.1:3000"],
        )
        self.ALLOWED_HOSTS: List[str] = _split_csv(
            os.getenv("ALLOWED_HOSTS", ""),
            default=["localhost", "127.0.0.1", "testserver"],
        )

        # Cookies
        self.SECURE_COOKIES: bool = self.ENVIRONMENT == "production"
        self.SAME_SITE_COOKIE: str = "strict"

        # Rate limiting
        self.RATE_LIMIT_REQUESTS: int = _env_int("RATE_LIMIT_REQUESTS", 100)
        self.RATE_LIMIT_WINDOW_SECONDS: int = _env_int("RATE_LIMIT_WINDOW_SECONDS", 60)

        # Password policy
        self.MIN_PASSWORD_LENGTH: int = _env_int("MIN_PASSWORD_LENGTH", 8)
        self.REQUIRE_NUMBERS: bool = True

        # Inventory
        self.LOW_STOCK_THRESHOLD: int = _env_int("LOW_STOCK_THRESHOLD", 10)


settings = Settings()
