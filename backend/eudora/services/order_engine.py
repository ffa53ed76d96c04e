"""
Order reconciliation engine.

Keeps stock and order existence consistent on a store that has no
transactions: validate -> check availability -> write stock product by
product -> persist the order. Any failing write after the first stock change
reverses what this call already applied (compensation) before the error is
reported. Cancellation and rejection reverse the order's recorded reserved
entries and append released entries; the stock change log is append-only.

CONCURRENCY: operations run to completion without suspension, but other
sessions read-modify-write the same collections with last-writer-wins
semantics. Two sessions ordering the last units of a product at the same
time can both pass the availability check and both decrement, leaving
negative stock. There is no lock here; the store offers none.
"""
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, FrozenSet, List, NamedTuple, Optional, Tuple

from pydantic import ValidationError as PydanticValidationError

from eudora.core.audit import AuditLog
from eudora.core.config import settings
from eudora.core.exceptions import (
    AlreadyTerminal,
    CompensationFailure,
    ErrorKind,
    InventoryError,
    OrderNotFound,
    OrderValidationError,
    ProductNotFound,
    StorageWriteFailure,
)
from eudora.db.record_store import RecordStore
from eudora.schemas.inventory import (
    DeliveryAddress,
    Order,
    OrderItem,
    OrderResult,
    OrderStatus,
    SimulationResult,
    StockChange,
    StockChangeKind,
    StockCheckResult,
    StockDelta,
    TERMINAL_STATUSES,
)
from eudora.schemas.notifications import SYSTEM_CONTEXT, NotificationType, SessionContext, UserRole
from eudora.services.notification_service import NotificationService, order_notification_text
from eudora.services.stock_ledger import (
    RequestedItem,
    check_availability,
    compute_deltas,
    field_value,
    find_product,
    load_products,
    normalize_items,
    reversal_deltas,
)

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.ACCEPTED, OrderStatus.REJECTED, OrderStatus.CANCELLED}),
    OrderStatus.ACCEPTED: frozenset({OrderStatus.READY, OrderStatus.REJECTED, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REJECTED: frozenset(),
}

# Field stamped when an order enters the status
STATUS_TIMESTAMPS: Dict[OrderStatus, Optional[str]] = {
    OrderStatus.PENDING: None,
    OrderStatus.ACCEPTED: "accepted_at",
    OrderStatus.READY: "ready_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
    OrderStatus.REJECTED: "rejected_at",
}

# Notification sent to the counterpart when an order enters the status
STATUS_NOTIFICATIONS: Dict[OrderStatus, Optional[NotificationType]] = {
    OrderStatus.PENDING: None,
    OrderStatus.ACCEPTED: NotificationType.ORDER_ACCEPTED,
    OrderStatus.READY: NotificationType.ORDER_READY,
    OrderStatus.DELIVERED: NotificationType.ORDER_COMPLETED,
    OrderStatus.CANCELLED: NotificationType.ORDER_CANCELLED,
    OrderStatus.REJECTED: NotificationType.ORDER_REJECTED,
}

RELEASING_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.REJECTED})


class OrderDraft(NamedTuple):
    customer_id: str
    pharmacy_id: str
    items: List[Tuple[RequestedItem, Optional[Decimal], Optional[str]]]  # item, price, name
    delivery_address: Any
    notes: Optional[str]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_price(raw: Any) -> Optional[Decimal]:
    if raw is None or isinstance(raw, bool):
        return None
    try:
        price = Decimal(str(raw))
    except InvalidOperation:
        raise ValueError(raw)
    if not price.is_finite() or price < 0:
        raise ValueError(raw)
    return price


class OrderEngine:
    def __init__(self, store: RecordStore, notifications: Optional[NotificationService] = None):
        self.store = store
        self.notifications = notifications

    # ------------------------------------------------------------------
    # Read-only checks
    # ------------------------------------------------------------------

    def check_stock_availability(self, items: List[Any]) -> StockCheckResult:
        return check_availability(self.store, items)

    def simulate_order(self, items: List[Any]) -> SimulationResult:
        """Pre-flight a cart. Same check as check_stock_availability, never mutates."""
        if not items:
            return SimulationResult(can_proceed=False, errors=["Empty order: no products specified"])
        availability = check_availability(self.store, items)
        return SimulationResult(
            can_proceed=availability.is_available,
            stock_checks=availability.checks,
            errors=availability.errors,
            total_items_requested=availability.total_items_requested,
        )

    def get_order(self, order_id: str) -> Optional[Order]:
        for raw in self._load_orders():
            if str(raw.get("id")) == str(order_id):
                return Order.model_validate(raw)
        return None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_order_with_inventory(self, order_data: Any, ctx: Optional[SessionContext] = None) -> OrderResult:
        ctx = ctx or SYSTEM_CONTEXT
        try:
            return self._create(order_data, ctx)
        except InventoryError as e:
            logger.warning(f"[OrderEngine] Order creation failed ({e.kind.value}): {e.errors}")
            return OrderResult(success=False, errors=e.errors, error_kind=e.kind)
        except Exception as e:
            logger.error(f"[OrderEngine] Unexpected error creating order: {type(e).__name__}: {e}", exc_info=True)
            return OrderResult(
                success=False,
                errors=["An internal error occurred while creating the order."],
                error_kind=ErrorKind.SYSTEM_ERROR,
            )

    def cancel_order_with_inventory(
        self, order_id: str, reason: str = "Cancelled by user", ctx: Optional[SessionContext] = None
    ) -> OrderResult:
        return self._transition(order_id, OrderStatus.CANCELLED, ctx or SYSTEM_CONTEXT, reason)

    def update_order_status(
        self,
        order_id: str,
        new_status: Any,
        ctx: Optional[SessionContext] = None,
        reason: Optional[str] = None,
    ) -> OrderResult:
        try:
            target = OrderStatus(new_status)
        except ValueError:
            return OrderResult(
                success=False,
                order_id=order_id,
                errors=[f"Unknown order status: {new_status}"],
                error_kind=ErrorKind.VALIDATION_ERROR,
            )
        return self._transition(order_id, target, ctx or SYSTEM_CONTEXT, reason)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(self, order_id: str, target: OrderStatus, ctx: SessionContext, reason: Optional[str]) -> OrderResult:
        try:
            return self._apply_transition(order_id, target, ctx, reason)
        except InventoryError as e:
            logger.warning(f"[OrderEngine] Order {order_id} -> {target.value} failed ({e.kind.value}): {e.errors}")
            return OrderResult(success=False, order_id=order_id, errors=e.errors, error_kind=e.kind)
        except Exception as e:
            logger.error(
                f"[OrderEngine] Unexpected error moving order {order_id} to {target.value}: "
                f"{type(e).__name__}: {e}",
                exc_info=True,
            )
            return OrderResult(
                success=False,
                order_id=order_id,
                errors=["An internal error occurred while updating the order."],
                error_kind=ErrorKind.SYSTEM_ERROR,
            )

    def _create(self, order_data: Any, ctx: SessionContext) -> OrderResult:
        draft = self._validate_order_data(order_data)
        requested = [item for item, _, _ in draft.items]

        availability = check_availability(self.store, requested)
        if not availability.is_available:
            logger.info(f"[OrderEngine] Stock check failed: {availability.errors}")
            return OrderResult(
                success=False,
                stock_checks=availability.checks,
                errors=availability.errors,
                error_kind=ErrorKind.INSUFFICIENT_STOCK,
            )

        products = load_products(self.store)
        items = []
        for item, price, name in draft.items:
            product = find_product(products, item.product_id)
            items.append(OrderItem(
                product_id=item.product_id,
                name=name or product.name,
                price=price if price is not None else product.price,
                quantity=item.quantity,
            ))

        order_id = f"ord_{uuid.uuid4().hex[:12]}"
        stock_changes = self._apply_deltas(
            compute_deltas(requested), StockChangeKind.RESERVED, order_id, "create_order"
        )

        now = _now()
        orders = self._load_orders()
        order = Order(
            id=order_id,
            order_number=self._next_order_number(orders, now),
            customer_id=draft.customer_id,
            pharmacy_id=draft.pharmacy_id,
            items=items,
            total=sum((i.price * i.quantity for i in items), Decimal("0")),
            status=OrderStatus.PENDING,
            stock_changes=stock_changes,
            delivery_address=draft.delivery_address,
            notes=draft.notes,
            created_at=now,
            updated_at=now,
        )
        orders.append(order.to_record())
        self._save_orders_or_compensate(orders, stock_changes, "create_order")

        AuditLog.log_order_event(
            "create", order.id, actor_id=ctx.user_id, actor_role=ctx.role.value,
            changes={"order_number": order.order_number, "total": str(order.total)},
        )
        logger.info(f"[OrderEngine] Order {order.order_number} created with {len(stock_changes)} stock changes")

        return OrderResult(
            success=True,
            order_id=order.id,
            order_number=order.order_number,
            order_status=order.status,
            stock_changes=stock_changes,
            stock_checks=availability.checks,
        )

    def _apply_transition(
        self, order_id: str, target: OrderStatus, ctx: SessionContext, reason: Optional[str]
    ) -> OrderResult:
        orders = self._load_orders()
        index, order = self._find_order(orders, order_id)

        if order.status in TERMINAL_STATUSES:
            raise AlreadyTerminal(f"Order {order.order_number} is already {order.status.value}")
        if target not in ALLOWED_TRANSITIONS[order.status]:
            raise OrderValidationError(
                f"Order {order.order_number} cannot move from {order.status.value} to {target.value}"
            )

        released: List[StockChange] = []
        if target in RELEASING_STATUSES:
            released = self._apply_deltas(
                reversal_deltas(order.reserved_changes), StockChangeKind.RELEASED, order.id, f"{target.value}_order"
            )

        now = _now()
        previous_status = order.status
        order.status = target
        order.updated_at = now
        stamp = STATUS_TIMESTAMPS[target]
        if stamp:
            setattr(order, stamp, now)
        if target in RELEASING_STATUSES:
            order.cancel_reason = reason
            order.stock_changes = order.stock_changes + released

        # Keep fields other sessions stored on the order that this model does not know
        orders[index] = {**orders[index], **order.to_record()}
        self._save_orders_or_compensate(orders, released, f"{target.value}_order")

        AuditLog.log_order_event(
            target.value, order.id, actor_id=ctx.user_id, actor_role=ctx.role.value,
            changes={"from": previous_status.value, "to": target.value, "reason": reason},
        )
        logger.info(f"[OrderEngine] Order {order.order_number}: {previous_status.value} -> {target.value}")

        self._notify_counterpart(order, target, ctx, reason)

        return OrderResult(
            success=True,
            order_id=order.id,
            order_number=order.order_number,
            order_status=order.status,
            stock_changes=released,
        )

    def _validate_order_data(self, order_data: Any) -> OrderDraft:
        if not isinstance(order_data, dict):
            raise OrderValidationError("Order data must be an object")

        errors = []
        customer_id = field_value(order_data, "customerId", "customer_id")
        pharmacy_id = field_value(order_data, "pharmacyId", "pharmacy_id")
        if customer_id in (None, ""):
            errors.append("Missing customer id")
        if pharmacy_id in (None, ""):
            errors.append("Missing pharmacy id")

        raw_items = order_data.get("items")
        items = []
        if not isinstance(raw_items, list) or not raw_items:
            errors.append("Empty order: no products specified")
        else:
            for item, raw in zip(normalize_items(raw_items), raw_items):
                if item.product_id is None:
                    errors.append(f"Item {item.position}: missing product id")
                if item.quantity is None:
                    errors.append(f"Item {item.position}: invalid quantity ({item.raw_quantity})")
                try:
                    price = _parse_price(field_value(raw, "price"))
                except ValueError:
                    errors.append(f"Item {item.position}: invalid price ({field_value(raw, 'price')})")
                    price = None
                items.append((item, price, field_value(raw, "name")))

        address = self._validate_address(
            field_value(order_data, "deliveryAddress", "delivery_address"), errors
        )

        if errors:
            raise OrderValidationError("Invalid order", errors=errors)

        return OrderDraft(
            customer_id=str(customer_id),
            pharmacy_id=str(pharmacy_id),
            items=items,
            delivery_address=address,
            notes=order_data.get("notes"),
        )

    @staticmethod
    def _validate_address(raw: Any, errors: List[str]) -> Any:
        if isinstance(raw, str):
            if raw.strip():
                return raw.strip()
        elif isinstance(raw, dict):
            try:
                address = DeliveryAddress.model_validate(raw)
            except PydanticValidationError:
                address = None
            if address and address.street.strip() and address.city.strip():
                return address
        errors.append("Missing or malformed delivery address")
        return None

    def _apply_deltas(
        self, deltas: List[StockDelta], kind: StockChangeKind, order_id: str, operation: str
    ) -> List[StockChange]:
        applied: List[StockChange] = []
        for delta in deltas:
            try:
                applied.append(self._write_stock(delta.product_id, delta.delta, kind, order_id))
            except Exception as e:
                logger.error(
                    f"[OrderEngine] Stock write for {delta.product_id} failed during {operation}; "
                    f"reversing {len(applied)} applied changes"
                )
                self._compensate(applied, e, operation, order_id)
                if isinstance(e, InventoryError):
                    raise
                raise StorageWriteFailure(f"Could not update stock for product {delta.product_id}") from e
        return applied

    def _write_stock(self, product_id: str, delta: int, kind: StockChangeKind, order_id: str) -> StockChange:
        # Read-modify-write of the whole products collection, one product at a time
        products = load_products(self.store)
        for raw in products:
            if str(raw.get("id")) == str(product_id):
                break
        else:
            raise ProductNotFound(f"Product {product_id} not found")

        previous_stock = int(raw.get("stock") or 0)
        new_stock = previous_stock + delta
        now = _now()
        raw["stock"] = new_stock
        raw["updatedAt"] = now.isoformat()
        self.store.set(settings.PRODUCTS_KEY, products)

        AuditLog.log_stock_change(
            "reserve" if kind == StockChangeKind.RESERVED else "release",
            str(product_id), previous_stock, new_stock, order_id=order_id,
        )
        return StockChange(
            product_id=str(product_id),
            product_name=raw.get("name"),
            previous_stock=previous_stock,
            new_stock=new_stock,
            delta=delta,
            kind=kind,
            recorded_at=now,
        )

    def _compensate(self, applied: List[StockChange], original: Exception, operation: str, order_id: str):
        """Undo this call's stock writes, newest first. Attempted once."""
        remaining = list(reversed(applied))
        while remaining:
            change = remaining[0]
            try:
                products = load_products(self.store)
                for raw in products:
                    if str(raw.get("id")) == change.product_id:
                        previous_stock = int(raw.get("stock") or 0)
                        raw["stock"] = previous_stock - change.delta
                        raw["updatedAt"] = _now().isoformat()
                        break
                else:
                    raise ProductNotFound(f"Product {change.product_id} not found")
                self.store.set(settings.PRODUCTS_KEY, products)
            except Exception as e:
                AuditLog.log_compensation_failure(
                    operation, str(original), str(e), [c.to_record() for c in remaining],
                )
                logger.error(
                    f"[OrderEngine] Compensation failed during {operation}: original={original} "
                    f"compensation={e}"
                )
                raise CompensationFailure(original, e) from e
            AuditLog.log_stock_change(
                "compensate", change.product_id, previous_stock, previous_stock - change.delta, order_id=order_id,
            )
            remaining.pop(0)

    def _save_orders_or_compensate(self, orders: List[dict], applied: List[StockChange], operation: str):
        try:
            self.store.set(settings.ORDERS_KEY, orders)
        except Exception as e:
            logger.error(f"[OrderEngine] Saving orders failed during {operation}; reversing stock changes")
            self._compensate(applied, e, operation, order_id="")
            if isinstance(e, InventoryError):
                raise
            raise StorageWriteFailure("Could not save the order") from e

    def _load_orders(self) -> List[dict]:
        return self.store.get(settings.ORDERS_KEY) or []

    @staticmethod
    def _find_order(orders: List[dict], order_id: str) -> Tuple[int, Order]:
        for index, raw in enumerate(orders):
            if str(raw.get("id")) == str(order_id):
                return index, Order.model_validate(raw)
        raise OrderNotFound(f"Order {order_id} not found")

    @staticmethod
    def _next_order_number(orders: List[dict], now: datetime) -> str:
        """ORD + yymmdd + 4-digit daily sequence, unique among stored orders."""
        prefix = f"ORD{now:%y%m%d}"
        existing = {str(o.get("orderNumber")) for o in orders}
        sequence = sum(1 for number in existing if number.startswith(prefix)) + 1
        while f"{prefix}{sequence:04d}" in existing:
            sequence += 1
        return f"{prefix}{sequence:04d}"

    def _notify_counterpart(self, order: Order, status: OrderStatus, ctx: SessionContext, reason: Optional[str]):
        notification_type = STATUS_NOTIFICATIONS[status]
        if self.notifications is None or notification_type is None:
            return
        target = order.pharmacy_id if ctx.role == UserRole.CUSTOMER else order.customer_id
        title, message = order_notification_text(notification_type, order.order_number, reason)
        try:
            self.notifications.create_notification(
                target, notification_type, title, message, order_id=order.id, sender=ctx,
            )
        except Exception as e:
            # The order change is already committed; the counterpart sees it on its next reload
            logger.warning(f"[OrderEngine] Could not notify {target} about order {order.order_number}: {e}")
