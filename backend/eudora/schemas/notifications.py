from datetime import datetime
from enum import Enum
from typing import Literal, Optional, Union

from eudora.schemas.inventory import CamelModel


class UserRole(str, Enum):
    CUSTOMER = "customer"
    PHARMACY = "pharmacy"
    RIDER = "rider"
    ADMIN = "admin"
    SYSTEM = "system"


class NotificationType(str, Enum):
    ORDER_ACCEPTED = "order_accepted"
    ORDER_REJECTED = "order_rejected"
    ORDER_CANCELLED = "order_cancelled"
    ORDER_READY = "order_ready"
    ORDER_COMPLETED = "order_completed"
    SYSTEM = "system"


class SessionContext(CamelModel):
    """Who the current session belongs to. Passed explicitly, never global."""

    user_id: str
    role: UserRole = UserRole.CUSTOMER
    display_name: Optional[str] = None


SYSTEM_CONTEXT = SessionContext(user_id="system", role=UserRole.SYSTEM, display_name="System")


class Notification(CamelModel):
    id: int
    target_user_id: str
    type: NotificationType
    title: str
    message: str
    order_id: Optional[str] = None
    created_at: datetime
    read: bool = False
    sender_id: Optional[str] = None
    sender_type: Optional[UserRole] = None
    sender_name: Optional[str] = None


class NotificationCreate(CamelModel):
    target_user_id: str
    type: NotificationType = NotificationType.SYSTEM
    title: str
    message: str
    order_id: Optional[str] = None


class BadgeKind(str, Enum):
    NOTIFICATIONS = "notifications"
    CART = "cart"


class ToastEvent(CamelModel):
    event: Literal["toast"] = "toast"
    notification: Notification
    play_sound: bool = True


class BadgeEvent(CamelModel):
    event: Literal["badge"] = "badge"
    badge: BadgeKind
    count: int
    label: str
    visible: bool


NotifierEvent = Union[ToastEvent, BadgeEvent]
