"""Tests for the stock report and order statistics."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from conftest import order_payload
from eudora.core.config import settings
from eudora.db.record_store import MemoryRecordStore
from eudora.schemas.inventory import StatisticsOptions, StockReportFilters, StockStatus
from eudora.services.inventory_report import (
    debug_inventory_state,
    get_order_statistics,
    get_stock_report,
    stock_status,
)


def raw_order(order_id, status, created_at, items, total):
    return {
        "id": order_id,
        "orderNumber": f"ORD240101{order_id[-4:]}",
        "customerId": "customer_1",
        "pharmacyId": "pharmacy_1",
        "items": [
            {"productId": pid, "name": name, "price": price, "quantity": qty}
            for pid, name, price, qty in items
        ],
        "total": total,
        "status": status,
        "stockChanges": [],
        "createdAt": created_at,
    }


@pytest.fixture
def orders(store):
    records = [
        raw_order("ord_0001", "pending", "2024-01-01T10:00:00+00:00",
                  [("P", "Paracetamol 500mg", "2.50", 2)], "5.00"),
        raw_order("ord_0002", "delivered", "2024-01-05T10:00:00+00:00",
                  [("P", "Paracetamol 500mg", "2.50", 4), ("Q", "Amoxicillin 250mg", "8.00", 1)], "18.00"),
        raw_order("ord_0003", "cancelled", "2024-01-10T10:00:00+00:00",
                  [("Q", "Amoxicillin 250mg", "8.00", 2)], "16.00"),
        raw_order("ord_0004", "rejected", "2024-01-15T10:00:00+00:00",
                  [("P", "Paracetamol 500mg", "2.50", 1)], "2.50"),
        raw_order("ord_0005", "accepted", "2024-02-01T10:00:00+00:00",
                  [("Q", "Amoxicillin 250mg", "8.00", 1)], "8.00"),
    ]
    store.set(settings.ORDERS_KEY, records)
    return records


@pytest.mark.parametrize(
    "stock, expected",
    [(0, StockStatus.OUT_OF_STOCK), (-1, StockStatus.OUT_OF_STOCK), (1, StockStatus.LOW_STOCK),
     (5, StockStatus.LOW_STOCK), (6, StockStatus.IN_STOCK)],
)
def test_stock_status(stock, expected):
    assert stock_status(stock, 5) == expected


class TestStockReport:
    def test_counts_and_order(self, store):
        report = get_stock_report(store)

        assert report.total_products == 4
        assert report.low_stock == 1
        assert report.in_stock == 3
        assert report.out_of_stock == 0
        assert report.low_stock_threshold == settings.LOW_STOCK_THRESHOLD
        assert [p.id for p in report.products] == ["Q", "P", "R", "X"]
        q = report.products[0]
        assert q.status == StockStatus.LOW_STOCK
        assert q.low_stock is True
        assert q.price == Decimal("8.00")

    def test_pharmacy_filter(self, store):
        report = get_stock_report(store, StockReportFilters(pharmacy_id="pharmacy_2"))

        assert report.total_products == 1
        assert [p.id for p in report.products] == ["R"]

    def test_status_filter_narrows_list_not_counters(self, store):
        report = get_stock_report(store, StockReportFilters(status=StockStatus.LOW_STOCK))

        assert report.total_products == 4
        assert report.in_stock == 3
        assert [p.id for p in report.products] == ["Q"]

    def test_custom_threshold(self, store):
        report = get_stock_report(store, StockReportFilters(low_stock_threshold=10))

        assert report.low_stock == 2
        assert {p.id for p in report.products if p.low_stock} == {"P", "Q"}

    def test_out_of_stock_after_orders(self, engine, store, customer):
        engine.create_order_with_inventory(order_payload(("Q", 2)), customer)

        report = get_stock_report(store)
        assert report.out_of_stock == 1
        assert report.products[0].id == "Q"
        assert report.products[0].status == StockStatus.OUT_OF_STOCK

    def test_empty_store(self):
        report = get_stock_report(MemoryRecordStore())
        assert report.total_products == 0
        assert report.products == []


class TestOrderStatistics:
    def test_all_orders(self, store, orders):
        stats = get_order_statistics(store)

        assert stats.total_orders == 5
        assert stats.by_status == {
            "pending": 1, "accepted": 1, "ready": 0, "delivered": 1, "cancelled": 1, "rejected": 1,
        }
        # cancelled and rejected totals are not revenue
        assert stats.total_revenue == Decimal("31.00")
        assert stats.average_order_value == Decimal("10.33")
        assert stats.total_items_sold == 2 + 5 + 1
        assert [(s.product_id, s.quantity_sold, s.revenue) for s in stats.stock_impact] == [
            ("P", 6, Decimal("15.00")),
            ("Q", 2, Decimal("16.00")),
        ]

    def test_bounds_are_inclusive(self, store, orders):
        stats = get_order_statistics(store, StatisticsOptions(
            start_date=datetime(2024, 1, 5, 10, tzinfo=timezone.utc),
            end_date=datetime(2024, 1, 15, 10, tzinfo=timezone.utc),
        ))

        assert stats.total_orders == 3
        assert stats.total_revenue == Decimal("18.00")
        assert stats.period.start_date == datetime(2024, 1, 5, 10, tzinfo=timezone.utc)

    def test_open_ended_start(self, store, orders):
        stats = get_order_statistics(store, StatisticsOptions(end_date=datetime(2024, 1, 2)))

        assert stats.total_orders == 1
        assert stats.period.start_date is None

    def test_empty_period_is_zeroed(self, store, orders):
        stats = get_order_statistics(store, StatisticsOptions(start_date=datetime(2030, 1, 1, tzinfo=timezone.utc)))

        assert stats.total_orders == 0
        assert stats.total_revenue == Decimal("0.00")
        assert stats.average_order_value == Decimal("0.00")
        assert stats.stock_impact == []
        assert set(stats.by_status.values()) == {0}

    def test_record_uses_camel_case(self, store, orders):
        record = get_order_statistics(store).to_record()

        assert record["totalRevenue"] == "31.00"
        assert record["byStatus"]["delivered"] == 1
        assert record["stockImpact"][0]["quantitySold"] == 6


def test_debug_inventory_state(store, orders):
    state = debug_inventory_state(store)

    assert state["products"] == 4
    assert state["orders"] == 5
    assert state["stockReport"]["totalProducts"] == 4
    assert state["orderStats"]["totalOrders"] == 5
