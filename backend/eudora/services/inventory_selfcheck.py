"""
Inventory self-check.

Runs the core order/stock scenarios against a scratch in-memory store and
reports pass/fail per scenario. Never touches the live store, so it is safe
to trigger from an admin dashboard.
"""
import logging
from typing import Callable, List, Optional, Tuple

from eudora.core.config import settings
from eudora.core.exceptions import ErrorKind
from eudora.db.record_store import MemoryRecordStore
from eudora.schemas.inventory import OrderStatus, SelfCheckCase, SelfCheckResult
from eudora.schemas.notifications import NotificationType, SessionContext, UserRole
from eudora.services.inventory_report import get_stock_report
from eudora.services.notification_service import CollectingNotifier, NotificationService
from eudora.services.order_engine import OrderEngine

logger = logging.getLogger(__name__)

CUSTOMER = SessionContext(user_id="selfcheck_customer", role=UserRole.CUSTOMER)
PHARMACY = SessionContext(user_id="selfcheck_pharmacy", role=UserRole.PHARMACY)
ADDRESS = {"street": "Via Roma 1", "city": "Milano"}


def _scratch_store() -> MemoryRecordStore:
    return MemoryRecordStore({
        settings.PRODUCTS_KEY: [
            {"id": "P", "name": "Paracetamol 500mg", "price": "2.50", "stock": 10,
             "category": "analgesic", "pharmacyId": PHARMACY.user_id, "isActive": True},
            {"id": "Q", "name": "Amoxicillin 250mg", "price": "8.00", "stock": 2,
             "category": "antibiotic", "requiresPrescription": True,
             "pharmacyId": PHARMACY.user_id, "isActive": True},
        ],
        settings.ORDERS_KEY: [],
        settings.CART_KEY: {},
        settings.NOTIFICATIONS_KEY: [],
    })


def _order(*items: Tuple[str, int]) -> dict:
    return {
        "customerId": CUSTOMER.user_id,
        "pharmacyId": PHARMACY.user_id,
        "deliveryAddress": ADDRESS,
        "items": [{"productId": pid, "quantity": qty} for pid, qty in items],
    }


class _Scenarios:
    def __init__(self):
        self.store = _scratch_store()
        self.notifier = CollectingNotifier()
        self.notifications = NotificationService(self.store, self.notifier)
        self.engine = OrderEngine(self.store, self.notifications)
        self.order_id: Optional[str] = None

    def stock(self, product_id: str) -> int:
        for raw in self.store.get(settings.PRODUCTS_KEY):
            if raw["id"] == product_id:
                return raw["stock"]
        raise KeyError(product_id)

    def order_count(self) -> int:
        return len(self.store.get(settings.ORDERS_KEY))

    def empty_order_rejected(self) -> Tuple[bool, str]:
        result = self.engine.create_order_with_inventory(_order(), CUSTOMER)
        ok = not result.success and result.error_kind == ErrorKind.VALIDATION_ERROR and self.order_count() == 0
        return ok, "; ".join(result.errors)

    def create_reserves_stock(self) -> Tuple[bool, str]:
        result = self.engine.create_order_with_inventory(_order(("P", 3)), CUSTOMER)
        self.order_id = result.order_id
        changes = [(c.product_id, c.previous_stock, c.new_stock, c.delta) for c in result.stock_changes]
        ok = result.success and self.stock("P") == 7 and changes == [("P", 10, 7, -3)]
        return ok, f"stock P={self.stock('P')}, changes={changes}"

    def insufficient_stock_untouched(self) -> Tuple[bool, str]:
        before = self.order_count()
        result = self.engine.create_order_with_inventory(_order(("Q", 5)), CUSTOMER)
        ok = (
            not result.success
            and result.error_kind == ErrorKind.INSUFFICIENT_STOCK
            and self.stock("Q") == 2
            and self.order_count() == before
        )
        return ok, "; ".join(result.errors)

    def cancel_restores_stock(self) -> Tuple[bool, str]:
        result = self.engine.cancel_order_with_inventory(self.order_id, "customer request", CUSTOMER)
        order = self.engine.get_order(self.order_id)
        deltas = [c.delta for c in order.stock_changes] if order else []
        ok = (
            result.success
            and self.stock("P") == 10
            and order.status == OrderStatus.CANCELLED
            and deltas == [-3, 3]
        )
        return ok, f"stock P={self.stock('P')}, deltas={deltas}"

    def repeated_cancel_rejected(self) -> Tuple[bool, str]:
        result = self.engine.cancel_order_with_inventory(self.order_id, "again", CUSTOMER)
        ok = not result.success and result.error_kind == ErrorKind.ALREADY_TERMINAL and self.stock("P") == 10
        return ok, f"stock P={self.stock('P')}"

    def duplicate_items_combined(self) -> Tuple[bool, str]:
        result = self.engine.create_order_with_inventory(_order(("P", 2), ("P", 3)), CUSTOMER)
        deltas = [(c.product_id, c.delta) for c in result.stock_changes]
        ok = result.success and deltas == [("P", -5)] and self.stock("P") == 5
        return ok, f"changes={deltas}"

    def all_or_nothing(self) -> Tuple[bool, str]:
        before_p, before_orders = self.stock("P"), self.order_count()
        result = self.engine.create_order_with_inventory(_order(("P", 1), ("Q", 5)), CUSTOMER)
        ok = not result.success and self.stock("P") == before_p and self.order_count() == before_orders
        return ok, "; ".join(result.errors)

    def notification_delivered_once(self) -> Tuple[bool, str]:
        self.notifications.clear_all()
        self.notifier.events.clear()
        self.notifications.create_notification(
            CUSTOMER.user_id, NotificationType.SYSTEM, "Self-check", "Notification round trip",
        )
        first = self.notifications.check_for_notifications(CUSTOMER)
        toasts_after_first = len(self.notifier.toasts)
        second = self.notifications.check_for_notifications(CUSTOMER)
        stored = self.store.get(settings.NOTIFICATIONS_KEY)
        ok = (
            len(first) == 1
            and toasts_after_first == 1
            and not second
            and len(self.notifier.toasts) == 1
            and all(n["read"] for n in stored)
        )
        return ok, f"first poll={len(first)}, second poll={len(second)}"

    def stock_report_generated(self) -> Tuple[bool, str]:
        report = get_stock_report(self.store)
        ok = report.total_products == 2 and [p.id for p in report.products] == ["Q", "P"]
        return ok, f"{report.total_products} products, {report.low_stock} low"


def run_inventory_tests() -> SelfCheckResult:
    scenarios = _Scenarios()
    cases: List[Tuple[str, Callable[[], Tuple[bool, str]]]] = [
        ("Empty order is rejected", scenarios.empty_order_rejected),
        ("Order reserves stock", scenarios.create_reserves_stock),
        ("Insufficient stock leaves stock untouched", scenarios.insufficient_stock_untouched),
        ("Cancellation restores stock", scenarios.cancel_restores_stock),
        ("Repeated cancellation is rejected", scenarios.repeated_cancel_rejected),
        ("Duplicate items are combined", scenarios.duplicate_items_combined),
        ("Failing item blocks the whole order", scenarios.all_or_nothing),
        ("Notification is delivered once", scenarios.notification_delivered_once),
        ("Stock report is generated", scenarios.stock_report_generated),
    ]

    result = SelfCheckResult()
    for name, case in cases:
        try:
            passed, detail = case()
        except Exception as e:
            logger.error(f"[SelfCheck] '{name}' raised {type(e).__name__}: {e}")
            passed, detail = False, f"{type(e).__name__}: {e}"
        result.tests.append(SelfCheckCase(name=name, passed=passed, detail=detail))

    result.passed = sum(1 for t in result.tests if t.passed)
    result.failed = len(result.tests) - result.passed
    result.summary = f"{result.passed}/{len(result.tests)} tests passed"
    logger.info(f"[SelfCheck] {result.summary}")
    return result
