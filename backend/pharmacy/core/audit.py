"""
Audit logging for security-critical and stock-moving operations.

Every entry is a single JSON line on the ``audit`` logger so it can be shipped
to centralized logging. Passwords and tokens are never logged.
"""
import logging
import json
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional, Dict

# Separate logger for audit events (can be shipped to centralized logging)
audit_logger = logging.getLogger("audit")


def _emit(entry: Dict[str, Any], level: int = logging.INFO) -> None:
    entry = {"timestamp": datetime.now(timezone.utc).isoformat(), **entry}
    audit_logger.log(level, json.dumps(entry, default=str))


class AuditLog:
    """Central audit logging for security and inventory events."""

    @staticmethod
    def log_authentication(
        action: str,  # "login", "logout", "register", "failed_login"
        username: str,
        ip_address: str,
        success: bool,
        reason: str = "",
    ):
        """
        Log authentication events.

        Usage:
            AuditLog.log_authentication("login", "alice", "192.168.1.1", True)
            AuditLog.log_authentication("failed_login", "alice", "192.168.1.1", False, reason="Invalid password")
        """
        entry = {
            "event_type": f"auth.{action}",
            "username": username,
            "ip_address": ip_address,
            "success": success,
        }
        if reason and not success:
            entry["reason"] = reason
        _emit(entry, logging.INFO if success else logging.WARNING)

    @staticmethod
    def log_action(
        action: str,  # "create", "update", "deactivate", "activate"
        resource_type: str,  # "medicine", "customer", "user"
        resource_id: int,
        user_id: int,
        changes: Optional[Dict[str, Any]] = None,
    ):
        """
        Log changes to master data: who, what, when.

        Usage:
            AuditLog.log_action("deactivate", "medicine", 456, current_user.id)
        """
        entry = {
            "event_type": f"{resource_type}.{action}",
            "user_id": user_id,
            "resource_id": resource_id,
        }
        if changes:
            entry["changes"] = changes
        _emit(entry)

    @staticmethod
    def log_sale_committed(sale_id: int, user_id: int, customer_id: int, total: Decimal, lines: int):
        _emit({
            "event_type": "sale.committed",
            "sale_id": sale_id,
            "user_id": user_id,
            "customer_id": customer_id,
            "total_amount": total,
            "lines": lines,
        })

    @staticmethod
    def log_sale_rejected(user_id: int, customer_id: int, error: str, detail: Dict[str, Any]):
        """Domain rejection (unknown/inactive medicine, insufficient stock)."""
        _emit({
            "event_type": "sale.rejected",
            "user_id": user_id,
            "customer_id": customer_id,
            "error": error,
            **detail,
        }, logging.WARNING)

    @staticmethod
    def log_purchase(purchase_id: int, user_id: int, medicine_id: int, quantity: int):
        _emit({
            "event_type": "purchase.recorded",
            "purchase_id": purchase_id,
            "user_id": user_id,
            "medicine_id": medicine_id,
            "quantity": quantity,
        })

    @staticmethod
    def log_access_denied(
        action: str,
        resource_type: str,
        user_id: int,
        reason: str,
        resource_id: Optional[int] = None,
    ):
        """
        Log denied access attempts (e.g. staff calling admin endpoints).
        """
        _emit({
            "event_severity": "WARNING",
            "event_type": "access_denied",
            "action": action,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "user_id": user_id,
            "reason": reason,
        }, logging.WARNING)

    @staticmethod
    def log_permission_change(user_id: int, changed_by: int, permission: str, granted: bool):
        """
        Log account activation/deactivation and role changes.

        Usage:
            AuditLog.log_permission_change(user_id=2, changed_by=1, permission="active", granted=False)
        """
        _emit({
            "event_type": "permissions.changed",
            "user_id": user_id,
            "changed_by": changed_by,
            "permission": permission,
            "granted": granted,
        })
