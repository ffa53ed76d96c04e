"""
Stock ledger: availability checks and stock deltas.

Everything here only reads the products collection. The order engine is the
sole writer of Product.stock and applies the deltas computed here.
"""
from decimal import Decimal
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

from eudora.core.config import settings
from eudora.core.exceptions import ErrorKind
from eudora.db.record_store import RecordStore
from eudora.schemas.inventory import (
    Product,
    StockChange,
    StockChangeKind,
    StockCheck,
    StockCheckResult,
    StockDelta,
)


class RequestedItem(NamedTuple):
    position: int  # 1-based, as shown to the user
    product_id: Optional[str]
    quantity: Optional[int]  # None unless a positive integer
    raw_quantity: Any


def field_value(item: Any, *names: str) -> Any:
    """Read the first non-null of several keys (camelCase or snake_case) from a dict or object."""
    if isinstance(item, dict):
        for name in names:
            if item.get(name) is not None:
                return item[name]
        return None
    for name in names:
        value = getattr(item, name, None)
        if value is not None:
            return value
    return None


def parse_quantity(value: Any) -> Optional[int]:
    """Return value as a positive int, or None. Fractions and booleans are rejected."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        quantity = value
    elif isinstance(value, (float, Decimal)):
        try:
            quantity = int(value)
        except (ValueError, OverflowError):
            return None
        if value != quantity:
            return None
    elif isinstance(value, str):
        try:
            quantity = int(value.strip())
        except ValueError:
            return None
    else:
        return None
    return quantity if quantity > 0 else None


def normalize_items(items: Iterable[Any]) -> List[RequestedItem]:
    normalized = []
    for position, item in enumerate(items or [], start=1):
        product_id = field_value(item, "productId", "product_id")
        raw_quantity = field_value(item, "quantity")
        normalized.append(RequestedItem(
            position=position,
            product_id=str(product_id) if product_id not in (None, "") else None,
            quantity=parse_quantity(raw_quantity),
            raw_quantity=raw_quantity,
        ))
    return normalized


def load_products(store: RecordStore) -> List[dict]:
    return store.get(settings.PRODUCTS_KEY) or []


def find_product(products: List[dict], product_id: str) -> Optional[Product]:
    for raw in products:
        if str(raw.get("id")) == str(product_id):
            return Product.model_validate(raw)
    return None


def combine_quantities(items: Iterable[Any]) -> Dict[str, int]:
    """Sum quantities per productId, keeping first-seen order. Invalid items are skipped."""
    combined: Dict[str, int] = {}
    for item in normalize_items(items):
        if item.product_id is None or item.quantity is None:
            continue
        combined[item.product_id] = combined.get(item.product_id, 0) + item.quantity
    return combined


def check_availability(store: RecordStore, items: Iterable[Any]) -> StockCheckResult:
    """
    Check every requested item against current stock.

    Items referencing the same product are combined before checking, so one
    product gets one check. All failures are reported, in item order.
    """
    requested = normalize_items(items)
    products = load_products(store)

    # (position, check, error message or None)
    entries = []
    combined: Dict[str, int] = {}
    first_position: Dict[str, int] = {}

    for item in requested:
        if item.product_id is None:
            entries.append((
                item.position,
                StockCheck(requested=item.quantity or 0, kind=ErrorKind.PRODUCT_NOT_FOUND),
                f"Item {item.position}: missing product id",
            ))
        elif item.quantity is None:
            entries.append((
                item.position,
                StockCheck(product_id=item.product_id, kind=ErrorKind.INVALID_QUANTITY),
                f"Item {item.position}: invalid quantity ({item.raw_quantity})",
            ))
        else:
            first_position.setdefault(item.product_id, item.position)
            combined[item.product_id] = combined.get(item.product_id, 0) + item.quantity

    for product_id, quantity in combined.items():
        position = first_position[product_id]
        product = find_product(products, product_id)

        if product is None:
            entries.append((
                position,
                StockCheck(product_id=product_id, requested=quantity, shortfall=quantity,
                           kind=ErrorKind.PRODUCT_NOT_FOUND),
                f"Product {product_id} not found",
            ))
            continue

        if not product.is_active:
            entries.append((
                position,
                StockCheck(product_id=product_id, product_name=product.name, requested=quantity,
                           available=0, shortfall=quantity, kind=ErrorKind.PRODUCT_NOT_FOUND),
                f"Product {product.name} is no longer available",
            ))
            continue

        available = max(product.stock, 0)
        satisfied = quantity <= available
        check = StockCheck(
            product_id=product_id,
            product_name=product.name,
            requested=quantity,
            available=available,
            satisfied=satisfied,
            kind=None if satisfied else ErrorKind.INSUFFICIENT_STOCK,
            shortfall=max(0, quantity - available),
        )
        error = None if satisfied else (
            f"Insufficient stock for {product.name}: requested {quantity}, available {available}"
        )
        entries.append((position, check, error))

    entries.sort(key=lambda entry: entry[0])
    checks = [check for _, check, _ in entries]
    errors = [error for _, _, error in entries if error]

    return StockCheckResult(
        is_available=bool(checks) and not errors,
        checks=checks,
        errors=errors,
        total_items_requested=sum(combined.values()),
    )


def compute_deltas(items: Iterable[Any], release: bool = False) -> List[StockDelta]:
    """One delta per product: -quantity to apply an order, +quantity to reverse it."""
    sign = 1 if release else -1
    return [
        StockDelta(product_id=product_id, delta=sign * quantity)
        for product_id, quantity in combine_quantities(items).items()
    ]


def reversal_deltas(stock_changes: Iterable[StockChange]) -> List[StockDelta]:
    """Deltas that undo an order's reserved entries, whatever its items say today."""
    totals: Dict[str, int] = {}
    for change in stock_changes:
        if change.kind != StockChangeKind.RESERVED:
            continue
        totals[change.product_id] = totals.get(change.product_id, 0) - change.delta
    return [StockDelta(product_id=pid, delta=delta) for pid, delta in totals.items() if delta]
