"""Run a session poller in the terminal and print what the dashboard would show.

Usage: python watch_notifications.py <user_id> [role]
"""
import asyncio
import logging
import sys

from eudora.db.init_db import init_db
from eudora.schemas.notifications import SessionContext, UserRole
from eudora.services.notification_poller import NotificationPoller
from eudora.services.notification_service import LoggingNotifier, NotificationService


async def watch(ctx: SessionContext):
    store = init_db()
    poller = NotificationPoller(NotificationService(store, LoggingNotifier()), ctx)
    poller.start(reset=False)
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await poller.stop()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    role = UserRole(sys.argv[2]) if len(sys.argv) > 2 else UserRole.CUSTOMER
    try:
        asyncio.run(watch(SessionContext(user_id=sys.argv[1], role=role)))
    except KeyboardInterrupt:
        print("\nStopped.")
