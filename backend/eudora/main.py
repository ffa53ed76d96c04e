"""
Eudora Backend: order/inventory reconciliation for the pharmacy storefront.

ARCHITECTURE:
- Storefront sessions (customer, pharmacy, rider, admin dashboards)
- Shared record store: whole collections, no transactions, last writer wins
- Order engine: the only writer of product stock
- Notifications: appended to the shared list, picked up by each session's poller

CONSISTENCY MODEL:
- Within one call: stock changes and the order record commit together or
  are compensated
- Across sessions: eventual, poll-based. No locking.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from eudora.api.deps import get_store
from eudora.api.routes import inventory, notifications
from eudora.core.config import settings
from eudora.db.init_db import init_db
from eudora.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    1. Initialize database tables and empty collections
    2. Clear stale cross-session notifications (if configured)
    """
    logger.info("[*] Initializing record store...")
    init_db()
    logger.info("[OK] Record store initialized")

    if settings.RESET_NOTIFICATIONS_ON_START:
        NotificationService(get_store()).clear_all()

    yield


app = FastAPI(
    title="Eudora Inventory API",
    description="Order/inventory reconciliation and cross-session notifications.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Accept",
        "Origin",
        "X-User-Id",
        "X-User-Role",
        "X-User-Name",
    ],
    max_age=600,
)

app.include_router(inventory.router, prefix="/inventory", tags=["inventory"])
app.include_router(notifications.router, prefix="/notifications", tags=["notifications"])


@app.get("/health")
def health():
    return {"status": "ok", "environment": settings.ENVIRONMENT}
