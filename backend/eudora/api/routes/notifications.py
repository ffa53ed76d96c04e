"""Cross-session notification routes for clients without their own poller."""
from typing import Optional

from fastapi import APIRouter, Depends

from eudora.api.deps import get_session_context, get_store
from eudora.db.record_store import RecordStore
from eudora.schemas.notifications import NotificationCreate, SessionContext
from eudora.services.notification_service import CollectingNotifier, NotificationService

router = APIRouter()


@router.get("")
def list_notifications(
    limit: Optional[int] = None,
    ctx: SessionContext = Depends(get_session_context),
    store: RecordStore = Depends(get_store),
):
    """Notification center: newest first, read and unread."""
    service = NotificationService(store, CollectingNotifier())
    notifications = service.list_notifications(ctx, limit)
    return {
        "unread": service.unread_count(ctx),
        "notifications": [n.to_record() for n in notifications],
    }


@router.post("")
def create_notification(
    body: NotificationCreate,
    ctx: SessionContext = Depends(get_session_context),
    store: RecordStore = Depends(get_store),
):
    service = NotificationService(store, CollectingNotifier())
    notification = service.create_notification(
        body.target_user_id, body.type, body.title, body.message, order_id=body.order_id, sender=ctx,
    )
    return notification.to_record()


@router.post("/poll")
def poll_notifications(
    ctx: SessionContext = Depends(get_session_context),
    store: RecordStore = Depends(get_store),
):
    """One poll tick; returns the UI events it raised."""
    notifier = CollectingNotifier()
    service = NotificationService(store, notifier)
    delivered = service.check_for_notifications(ctx)
    return {
        "delivered": len(delivered),
        "events": [event.to_record() for event in notifier.events],
    }


@router.post("/read-all")
def mark_all_read(
    ctx: SessionContext = Depends(get_session_context),
    store: RecordStore = Depends(get_store),
):
    service = NotificationService(store, CollectingNotifier())
    return {"marked": service.mark_all_read(ctx)}


@router.delete("")
def clear_notifications(
    ctx: SessionContext = Depends(get_session_context),
    store: RecordStore = Depends(get_store),
):
    service = NotificationService(store, CollectingNotifier())
    return {"cleared": service.clear_all()}


@router.get("/cart-badge")
def cart_badge(
    ctx: SessionContext = Depends(get_session_context),
    store: RecordStore = Depends(get_store),
):
    notifier = CollectingNotifier()
    NotificationService(store, notifier).update_cart_badge(ctx)
    return notifier.badges[-1].to_record()
