"""FastAPI dependencies: shared record store and the caller's session context.

Authentication is handled by the storefront's auth layer in front of this
service; it forwards the session identity in X-User-Id / X-User-Role.
"""
from typing import Optional

from fastapi import Depends, Header

from eudora.core.exceptions import BusinessError
from eudora.db.record_store import RecordStore, SqlRecordStore
from eudora.db.session import SessionLocal
from eudora.schemas.notifications import SessionContext, UserRole
from eudora.services.inventory_api import InventoryAPI
from eudora.services.notification_service import LoggingNotifier

_store: Optional[RecordStore] = None


def get_store() -> RecordStore:
    """Process-wide store. Every request reads and writes the same collections."""
    global _store
    if _store is None:
        _store = SqlRecordStore(SessionLocal)
    return _store


def get_session_context(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
    x_user_name: Optional[str] = Header(None),
) -> SessionContext:
    if not x_user_id:
        raise BusinessError.unauthorized("X-User-Id header missing")
    try:
        role = UserRole(x_user_role) if x_user_role else UserRole.CUSTOMER
    except ValueError:
        raise BusinessError.bad_request(f"Unknown role: {x_user_role}")
    return SessionContext(user_id=x_user_id, role=role, display_name=x_user_name)


def get_inventory_api(store: RecordStore = Depends(get_store)) -> InventoryAPI:
    return InventoryAPI(store, LoggingNotifier())
