"""Read-only stock report and order statistics for dashboards."""
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Optional

from eudora.core.config import settings
from eudora.db.record_store import RecordStore
from eudora.schemas.inventory import (
    Order,
    OrderStatistics,
    OrderStatus,
    Product,
    ProductSales,
    ProductStockEntry,
    StatisticsOptions,
    StatisticsPeriod,
    StockReport,
    StockReportFilters,
    StockStatus,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# Orders whose total is not revenue
NON_REVENUE_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.REJECTED})


def money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT)


def stock_status(stock: int, low_threshold: int) -> StockStatus:
    if stock <= 0:
        return StockStatus.OUT_OF_STOCK
    if stock <= low_threshold:
        return StockStatus.LOW_STOCK
    return StockStatus.IN_STOCK


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def get_stock_report(store: RecordStore, filters: Optional[StockReportFilters] = None) -> StockReport:
    """
    Stock level per product, lowest stock first.

    Counters cover every product of the requested pharmacy; the status filter
    only narrows the product list.
    """
    filters = filters or StockReportFilters()
    threshold = (
        filters.low_stock_threshold
        if filters.low_stock_threshold is not None
        else settings.LOW_STOCK_THRESHOLD
    )
    report = StockReport(low_stock_threshold=threshold, generated_at=datetime.now(timezone.utc))

    for raw in store.get(settings.PRODUCTS_KEY) or []:
        product = Product.model_validate(raw)
        if filters.pharmacy_id and product.pharmacy_id != filters.pharmacy_id:
            continue

        status = stock_status(product.stock, threshold)
        report.total_products += 1
        if status == StockStatus.IN_STOCK:
            report.in_stock += 1
        elif status == StockStatus.LOW_STOCK:
            report.low_stock += 1
        else:
            report.out_of_stock += 1

        if filters.status and status != filters.status:
            continue
        report.products.append(ProductStockEntry(
            id=product.id,
            name=product.name,
            stock=product.stock,
            status=status,
            low_stock=product.stock <= threshold,
            category=product.category,
            pharmacy_id=product.pharmacy_id,
            price=money(product.price),
            is_active=product.is_active,
        ))

    report.products.sort(key=lambda p: p.stock)
    return report


def get_order_statistics(store: RecordStore, options: Optional[StatisticsOptions] = None) -> OrderStatistics:
    """
    Order counts per status and revenue for orders created in [start, end].

    Both bounds are inclusive and optional. Revenue excludes cancelled
    orders and also rejected ones, whose stock is released the same way.
    An empty period yields zeroed aggregates.
    """
    options = options or StatisticsOptions()
    start = _as_utc(options.start_date) if options.start_date else None
    end = _as_utc(options.end_date) if options.end_date else None

    by_status: Dict[str, int] = {status.value: 0 for status in OrderStatus}
    revenue = Decimal("0")
    revenue_orders = 0
    items_sold = 0
    sales: Dict[str, ProductSales] = {}
    total_orders = 0

    for raw in store.get(settings.ORDERS_KEY) or []:
        order = Order.model_validate(raw)
        created = _as_utc(order.created_at)
        if start and created < start:
            continue
        if end and created > end:
            continue

        total_orders += 1
        by_status[order.status.value] += 1
        if order.status in NON_REVENUE_STATUSES:
            continue

        revenue += order.total
        revenue_orders += 1
        for item in order.items:
            items_sold += item.quantity
            entry = sales.setdefault(item.product_id, ProductSales(product_id=item.product_id, product_name=item.name))
            entry.quantity_sold += item.quantity
            entry.revenue += item.price * item.quantity

    stock_impact = sorted(sales.values(), key=lambda s: s.quantity_sold, reverse=True)
    for entry in stock_impact:
        entry.revenue = money(entry.revenue)

    return OrderStatistics(
        period=StatisticsPeriod(start_date=start, end_date=end),
        total_orders=total_orders,
        by_status=by_status,
        total_revenue=money(revenue),
        average_order_value=money(revenue / revenue_orders) if revenue_orders else money(Decimal("0")),
        total_items_sold=items_sold,
        stock_impact=stock_impact,
    )


def debug_inventory_state(store: RecordStore) -> dict:
    """Snapshot for troubleshooting a session: counts, stock report and statistics."""
    products = store.get(settings.PRODUCTS_KEY) or []
    orders = store.get(settings.ORDERS_KEY) or []
    report = get_stock_report(store)
    statistics = get_order_statistics(store)

    logger.debug(f"[InventoryReport] {len(products)} products, {len(orders)} orders")
    logger.debug(f"[InventoryReport] Stock report: {report.to_record()}")
    logger.debug(f"[InventoryReport] Order statistics: {statistics.to_record()}")

    return {
        "products": len(products),
        "orders": len(orders),
        "stockReport": report.to_record(),
        "orderStats": statistics.to_record(),
    }
