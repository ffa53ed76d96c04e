"""
Cross-session notifications over the shared record store.

There is no push channel. A session that changes another role's view of an
order appends a notification to the shared list; the target's session picks
it up on its next poll (see notification_poller.py), raises UI events through
the injected Notifier and flips the entries to read.

Lifecycle: unread -> read, and unread/read -> cleared (clear_all only).
A notification is never un-read and never removed one by one.
"""
import logging
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional, Protocol, Tuple

from pydantic import ValidationError

from eudora.core.audit import AuditLog
from eudora.core.config import settings
from eudora.db.record_store import RecordStore
from eudora.schemas.notifications import (
    BadgeEvent,
    BadgeKind,
    Notification,
    NotificationType,
    NotifierEvent,
    SessionContext,
    ToastEvent,
)
from eudora.services.stock_ledger import parse_quantity

logger = logging.getLogger(__name__)

BADGE_CAP = 99

# Title and message template per type; {order} is the order number
NOTIFICATION_TEXT: Dict[NotificationType, Tuple[str, str]] = {
    NotificationType.ORDER_ACCEPTED: (
        "Order accepted",
        "The pharmacy accepted order {order} and is preparing your medicines.",
    ),
    NotificationType.ORDER_REJECTED: (
        "Order rejected",
        "Order {order} was rejected.",
    ),
    NotificationType.ORDER_CANCELLED: (
        "Order cancelled",
        "Order {order} was cancelled.",
    ),
    NotificationType.ORDER_READY: (
        "Order ready",
        "Order {order} is ready for pickup.",
    ),
    NotificationType.ORDER_COMPLETED: (
        "Order delivered",
        "Order {order} has been delivered.",
    ),
    NotificationType.SYSTEM: (
        "System notice",
        "Order {order} was updated.",
    ),
}


def order_notification_text(
    notification_type: NotificationType, order_number: str, reason: Optional[str] = None
) -> Tuple[str, str]:
    title, template = NOTIFICATION_TEXT[notification_type]
    message = template.format(order=order_number)
    if reason:
        message = f"{message} Reason: {reason}"
    return title, message


def badge_label(count: int) -> str:
    return f"{BADGE_CAP}+" if count > BADGE_CAP else str(count)


def badge_event(badge: BadgeKind, count: int) -> BadgeEvent:
    return BadgeEvent(badge=badge, count=count, label=badge_label(count), visible=count > 0)


class Notifier(Protocol):
    """The single UI capability the core calls. The app wires a concrete one."""

    def emit(self, event: NotifierEvent) -> None:
        ...


class LoggingNotifier:
    """Writes events to the log. Default for headless sessions."""

    def emit(self, event: NotifierEvent) -> None:
        if isinstance(event, ToastEvent):
            n = event.notification
            logger.info(f"[Notifications] Toast for {n.target_user_id}: {n.title} - {n.message}")
        else:
            logger.info(f"[Notifications] {event.badge.value} badge: {event.label} (visible={event.visible})")


class CollectingNotifier:
    """Keeps emitted events in memory so callers can return or inspect them."""

    def __init__(self):
        self.events: List[NotifierEvent] = []

    def emit(self, event: NotifierEvent) -> None:
        self.events.append(event)

    @property
    def toasts(self) -> List[ToastEvent]:
        return [e for e in self.events if isinstance(e, ToastEvent)]

    @property
    def badges(self) -> List[BadgeEvent]:
        return [e for e in self.events if isinstance(e, BadgeEvent)]


class NotificationService:
    def __init__(self, store: RecordStore, notifier: Optional[Notifier] = None):
        self.store = store
        self.notifier = notifier or LoggingNotifier()

    def _load(self) -> List[dict]:
        return self.store.get(settings.NOTIFICATIONS_KEY) or []

    def _save(self, notifications: List[dict]):
        self.store.set(settings.NOTIFICATIONS_KEY, notifications)

    @staticmethod
    def _parse(raw: dict) -> Optional[Notification]:
        """Validate a stored entry written by any session. None if it is malformed."""
        try:
            return Notification.model_validate(raw)
        except ValidationError as e:
            logger.warning(
                f"[Notifications] Skipping malformed notification {raw.get('id')}: "
                f"{e.error_count()} validation errors"
            )
            return None

    @staticmethod
    def _next_id(notifications: List[dict]) -> int:
        # Creation time in ms, kept strictly increasing within the list
        candidate = int(time.time() * 1000)
        last = max((int(n.get("id") or 0) for n in notifications), default=0)
        return max(candidate, last + 1)

    def create_notification(
        self,
        target_user_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        order_id: Optional[str] = None,
        sender: Optional[SessionContext] = None,
    ) -> Notification:
        """Append one notification. Never merges with or replaces existing entries."""
        notifications = self._load()
        notification = Notification(
            id=self._next_id(notifications),
            target_user_id=str(target_user_id),
            type=notification_type,
            title=title,
            message=message,
            order_id=order_id,
            created_at=datetime.now(timezone.utc),
            read=False,
            sender_id=sender.user_id if sender else None,
            sender_type=sender.role if sender else None,
            sender_name=(sender.display_name or sender.user_id) if sender else None,
        )
        notifications.append(notification.to_record())
        self._save(notifications)

        AuditLog.log_notification(
            notification.id, notification.target_user_id, notification_type.value,
            sender_id=notification.sender_id,
        )
        logger.debug(
            f"[Notifications] Created {notification_type.value} for user {target_user_id} "
            f"({len(notifications)} in store)"
        )
        return notification

    def check_for_notifications(self, ctx: SessionContext) -> List[Notification]:
        """
        One poll tick for the session's user.

        Raises the unread badge (count taken before marking), one toast per
        unread notification, then marks them read and writes the list back.
        Entries that fail validation are marked read without a toast.
        """
        notifications = self._load()
        matched = [
            raw for raw in notifications
            if str(raw.get("targetUserId")) == ctx.user_id and not raw.get("read")
        ]
        logger.debug(f"[Notifications] Poll for user {ctx.user_id}: {len(matched)} unread")

        # Parse everything before raising any event; malformed entries are
        # retired (marked read) without a toast so they never block the poll
        delivered = []
        for raw in matched:
            notification = self._parse(raw)
            if notification is not None:
                delivered.append(notification)
            raw["read"] = True

        self.notifier.emit(badge_event(BadgeKind.NOTIFICATIONS, len(delivered)))
        for notification in delivered:
            self.notifier.emit(ToastEvent(notification=notification))

        if matched:
            self._save(notifications)
        return delivered

    def mark_all_read(self, ctx: SessionContext) -> int:
        """Mark every notification of the user read (notification center opened)."""
        notifications = self._load()
        changed = 0
        for raw in notifications:
            if str(raw.get("targetUserId")) == ctx.user_id and not raw.get("read"):
                raw["read"] = True
                changed += 1
        if changed:
            self._save(notifications)
        self.notifier.emit(badge_event(BadgeKind.NOTIFICATIONS, 0))
        return changed

    def list_notifications(self, ctx: SessionContext, limit: Optional[int] = None) -> List[Notification]:
        """Newest first, for the notification center."""
        limit = settings.NOTIFICATION_CENTER_LIMIT if limit is None else limit
        parsed = (
            self._parse(raw) for raw in self._load()
            if str(raw.get("targetUserId")) == ctx.user_id
        )
        own = [n for n in parsed if n is not None]
        own.sort(key=lambda n: (n.created_at, n.id), reverse=True)
        return own[:limit]

    def unread_count(self, ctx: SessionContext) -> int:
        return sum(
            1 for raw in self._load()
            if str(raw.get("targetUserId")) == ctx.user_id and not raw.get("read")
        )

    def update_cart_badge(self, ctx: SessionContext) -> int:
        """Cart badge = sum of item quantities in the user's cart. Independent of notifications."""
        carts = self.store.get(settings.CART_KEY) or {}
        cart = carts.get(ctx.user_id) or {}
        count = sum(parse_quantity(item.get("quantity")) or 0 for item in cart.get("items") or [])
        self.notifier.emit(badge_event(BadgeKind.CART, count))
        return count

    def clear_all(self) -> int:
        """Drop every notification for every user. The only deletion path."""
        removed = len(self._load())
        self._save([])
        self.notifier.emit(badge_event(BadgeKind.NOTIFICATIONS, 0))
        logger.info(f"[Notifications] Cleared {removed} notifications")
        return removed
