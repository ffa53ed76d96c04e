"""
Audit logging for stock-affecting operations.

Every stock mutation, order transition and cross-session notification is
written as one JSON line to the "audit" logger so the change history can be
reconstructed independently of the record store.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

# Separate logger for audit events (can be shipped to centralized logging)
audit_logger = logging.getLogger("audit")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class AuditLog:
    """Central audit logging for inventory events."""

    @staticmethod
    def log_stock_change(
        action: str,  # "reserve", "release", "compensate"
        product_id: str,
        previous_stock: int,
        new_stock: int,
        order_id: Optional[str] = None,
    ):
        """
        Log a single product stock write.

        Usage:
            AuditLog.log_stock_change("reserve", "prod_1", 10, 7, order_id=None)
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": f"stock.{action}",
            "product_id": product_id,
            "previous_stock": previous_stock,
            "new_stock": new_stock,
            "delta": new_stock - previous_stock,
        }
        if order_id:
            log_entry["order_id"] = order_id

        audit_logger.info(json.dumps(log_entry))

    @staticmethod
    def log_order_event(
        action: str,  # "create", "cancel", "accept", "reject", ...
        order_id: str,
        actor_id: Optional[str] = None,
        actor_role: Optional[str] = None,
        changes: Optional[Dict[str, Any]] = None,
    ):
        """
        Log an order lifecycle transition.

        Usage:
            AuditLog.log_order_event("cancel", "ord_1", actor_id="u1", actor_role="customer",
                                     changes={"reason": "customer request"})
        """
        log_entry = {
            "timestamp": _now(),
            "event_type": f"order.{action}",
            "order_id": order_id,
            "actor_id": actor_id,
            "actor_role": actor_role,
        }
        if changes:
            log_entry["changes"] = changes

        audit_logger.info(json.dumps(log_entry, default=str))

    @staticmethod
    def log_compensation_failure(
        operation: str,
        original_error: str,
        compensation_error: str,
        pending_changes: List[Dict[str, Any]],
    ):
        """
        Log a failed compensation. Stock is inconsistent until an operator
        reconciles `pending_changes` by hand.
        """
        log_entry = {
            "timestamp": _now(),
            "event_severity": "CRITICAL",
            "event_type": "stock.compensation_failed",
            "operation": operation,
            "original_error": original_error,
            "compensation_error": compensation_error,
            "pending_changes": pending_changes,
        }

        audit_logger.error(json.dumps(log_entry, default=str))

    @staticmethod
    def log_notification(
        notification_id: int,
        target_user_id: str,
        notification_type: str,
        sender_id: Optional[str] = None,
    ):
        """Log creation of a cross-session notification."""
        log_entry = {
            "timestamp": _now(),
            "event_type": "notification.create",
            "notification_id": notification_id,
            "target_user_id": target_user_id,
            "type": notification_type,
            "sender_id": sender_id,
        }

        audit_logger.info(json.dumps(log_entry))
