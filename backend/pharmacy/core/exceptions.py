"""
Error taxonomy and safe HTTP error helpers.

Domain errors (PharmacyError subclasses) carry the identifying medicine and
quantities so callers can show a useful message. They are translated into
HTTP responses by the handlers registered in ``pharmacy.main``.

BusinessError keeps generic, non-leaky messages for auth and lookup failures:
generic messages externally, detailed logging internally.
"""
from typing import Any, Dict, Optional

from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


class PharmacyError(Exception):
    """Base class for errors surfaced verbatim to API clients."""

    code = "pharmacy_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **detail: Any):
        super().__init__(message)
        self.message = message
        self.detail: Dict[str, Any] = detail

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message, **self.detail}


class CartValidationError(PharmacyError):
    """Malformed sale request (empty cart, non-positive quantity). Raised before any transaction opens."""

    code = "invalid_cart"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class DomainError(PharmacyError):
    """Business rule failure. Aborts the in-flight transaction."""


class MedicineNotFound(DomainError):
    code = "medicine_not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, medicine_id: int):
        super().__init__(f"Medicine {medicine_id} not found", medicine_id=medicine_id)
        self.medicine_id = medicine_id


class CustomerNotFound(DomainError):
    code = "customer_not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, customer_id: int):
        super().__init__(f"Customer {customer_id} not found", customer_id=customer_id)
        self.customer_id = customer_id


class MedicineInactive(DomainError):
    code = "medicine_inactive"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, medicine_id: int, name: Optional[str] = None):
        label = name or f"Medicine {medicine_id}"
        super().__init__(f"{label} is no longer available", medicine_id=medicine_id)
        self.medicine_id = medicine_id


class InsufficientStock(DomainError):
    code = "insufficient_stock"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, medicine_id: int, requested: int, available: int, name: Optional[str] = None):
        label = name or f"medicine {medicine_id}"
        super().__init__(
            f"Insufficient stock for {label}: requested {requested}, available {available}",
            medicine_id=medicine_id,
            requested=requested,
            available=available,
        )
        self.medicine_id = medicine_id
        self.requested = requested
        self.available = available


class StaleRecordError(PharmacyError):
    """Update based on an outdated concurrency token."""

    code = "stale_record"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, resource: str, resource_id: int, expected: Optional[int] = None, current: Optional[int] = None):
        super().__init__(
            f"{resource} {resource_id} was modified by another request; reload and retry",
            resource=resource,
            resource_id=resource_id,
            expected_version=expected,
            current_version=current,
        )


class TransientStoreError(PharmacyError):
    """Lock timeout, serialization failure or lost connection. Safe to retry the whole unit of work."""

    code = "store_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class InvariantViolation(Exception):
    """Programming error: a computed invariant did not hold. Never recovered from."""


class BusinessError:
    """HTTP exceptions with safe (non-leaky) messages."""

    @staticmethod
    def not_found(resource: str = "Resource", reason: str = "") -> HTTPException:
        """
        404 for a missing (or soft-deleted) record.

        Example:
            if not customer:
                raise BusinessError.not_found("Customer")
        """
        if reason:
            logger.warning(f"Not found: {resource} - {reason}")

        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource} not found",
        )

    @staticmethod
    def unauthorized(reason: str = "") -> HTTPException:
        """
        Generic 401 for all authentication failures.

        Same response for wrong password, unknown or deactivated user.
        """
        logger.warning(f"Unauthorized access attempt: {reason}")
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication failed",
            headers={"WWW-Authenticate": "Bearer"},
        )

    @staticmethod
    def forbidden(reason: str = "") -> HTTPException:
        logger.warning(f"Forbidden access: {reason}")
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied",
        )

    @staticmethod
    def bad_request(detail: str) -> HTTPException:
        """
        400 for input validation errors.

        OK to include specific details here since user caused the issue.
        Examples: "Username already exists", "Quantity must be positive"
        """
        logger.info(f"Bad request: {detail}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )

