"""
Session poller: fixed-interval checks of the shared store.

Each session runs two independent timers:
1. Notification poll (default every 2000 ms): toasts + unread badge
2. Cart badge poll (default every 1000 ms): cart item count

The timers are not synchronised with each other or with order operations;
a change made by another session shows up within one interval. A failing
tick is logged and the loop keeps going.
"""
import asyncio
import logging
from typing import List, Optional

from eudora.core.config import settings
from eudora.schemas.notifications import SessionContext
from eudora.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


class NotificationPoller:
    def __init__(
        self,
        service: NotificationService,
        ctx: SessionContext,
        notification_interval: Optional[float] = None,
        cart_interval: Optional[float] = None,
    ):
        self.service = service
        self.ctx = ctx
        self.notification_interval = (
            notification_interval
            if notification_interval is not None
            else settings.NOTIFICATION_POLL_INTERVAL_MS / 1000
        )
        self.cart_interval = (
            cart_interval if cart_interval is not None else settings.CART_BADGE_POLL_INTERVAL_MS / 1000
        )
        self._running = False
        self._tasks: List[asyncio.Task] = []

    @property
    def running(self) -> bool:
        return self._running

    def poll_once(self) -> int:
        """Run both checks once. Returns the number of notifications delivered."""
        delivered = self.service.check_for_notifications(self.ctx)
        self.service.update_cart_badge(self.ctx)
        return len(delivered)

    async def _loop(self, name: str, interval: float, tick):
        logger.info(f"[Poller] {name} loop started for {self.ctx.user_id}. Interval: {interval}s")
        loop = asyncio.get_running_loop()
        while self._running:
            try:
                # Store reads and writes block; keep them off the event loop
                await loop.run_in_executor(None, tick, self.ctx)
            except Exception as e:
                logger.error(f"[Poller] {name} tick failed: {e}")
            await asyncio.sleep(interval)

    def start(self, reset: Optional[bool] = None):
        """
        Start both loops on the running event loop.

        A fresh session clears stale notification state first (unless reset
        is disabled) rather than resuming a previous session's backlog.
        """
        if self._running:
            return
        reset = settings.RESET_NOTIFICATIONS_ON_START if reset is None else reset
        if reset:
            self.service.clear_all()

        self._running = True
        self._tasks = [
            asyncio.create_task(
                self._loop("notifications", self.notification_interval, self.service.check_for_notifications)
            ),
            asyncio.create_task(
                self._loop("cart badge", self.cart_interval, self.service.update_cart_badge)
            ),
        ]
        logger.info(f"[Poller] Session poller initialized for {self.ctx.user_id}")

    async def stop(self):
        """Stop both loops. A tick already running in the executor finishes in its thread."""
        self._running = False
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        logger.info(f"[Poller] Session poller stopped for {self.ctx.user_id}")
