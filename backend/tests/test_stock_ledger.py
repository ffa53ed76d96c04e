"""Tests for the stock ledger: availability checks and delta computation."""

import pytest

from eudora.core.config import settings
from eudora.core.exceptions import ErrorKind
from eudora.schemas.inventory import StockChange, StockChangeKind
from eudora.services.stock_ledger import (
    check_availability,
    combine_quantities,
    compute_deltas,
    parse_quantity,
    reversal_deltas,
)


class TestCheckAvailability:
    def test_available_item(self, store):
        result = check_availability(store, [{"productId": "P", "quantity": 3}])

        assert result.is_available is True
        assert result.errors == []
        assert len(result.checks) == 1
        check = result.checks[0]
        assert check.product_id == "P"
        assert check.product_name == "Paracetamol 500mg"
        assert check.requested == 3
        assert check.available == 10
        assert check.satisfied is True
        assert check.kind is None
        assert result.total_items_requested == 3

    def test_exact_stock_is_available(self, store):
        result = check_availability(store, [{"productId": "Q", "quantity": 2}])
        assert result.is_available is True

    def test_reports_every_failing_item_in_order(self, store):
        result = check_availability(store, [
            {"productId": "Q", "quantity": 5},
            {"productId": "P", "quantity": 1},
            {"productId": "missing", "quantity": 1},
            {"productId": "R", "quantity": 0},
        ])

        assert result.is_available is False
        assert [c.kind for c in result.checks] == [
            ErrorKind.INSUFFICIENT_STOCK,
            None,
            ErrorKind.PRODUCT_NOT_FOUND,
            ErrorKind.INVALID_QUANTITY,
        ]
        assert len(result.errors) == 3
        assert result.errors[0] == "Insufficient stock for Amoxicillin 250mg: requested 5, available 2"
        assert result.errors[1] == "Product missing not found"
        assert result.errors[2].startswith("Item 4: invalid quantity")
        assert result.error_kind == ErrorKind.INSUFFICIENT_STOCK

    def test_shortfall(self, store):
        result = check_availability(store, [{"productId": "Q", "quantity": 5}])
        assert result.checks[0].shortfall == 3

    def test_inactive_product_is_not_found(self, store):
        result = check_availability(store, [{"productId": "X", "quantity": 1}])

        assert result.is_available is False
        assert result.checks[0].kind == ErrorKind.PRODUCT_NOT_FOUND
        assert "no longer available" in result.errors[0]

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "abc", None, True])
    def test_invalid_quantities(self, store, quantity):
        result = check_availability(store, [{"productId": "P", "quantity": quantity}])

        assert result.is_available is False
        assert result.checks[0].kind == ErrorKind.INVALID_QUANTITY

    def test_missing_product_id(self, store):
        result = check_availability(store, [{"quantity": 1}])

        assert result.is_available is False
        assert result.checks[0].kind == ErrorKind.PRODUCT_NOT_FOUND
        assert result.errors == ["Item 1: missing product id"]

    def test_duplicate_products_are_combined(self, store):
        # 2 + 3 fits in 10, but Q has only 2: 1 + 2 does not fit
        result = check_availability(store, [
            {"productId": "P", "quantity": 2},
            {"productId": "Q", "quantity": 1},
            {"productId": "P", "quantity": 3},
            {"productId": "Q", "quantity": 2},
        ])

        assert [(c.product_id, c.requested) for c in result.checks] == [("P", 5), ("Q", 3)]
        assert result.is_available is False
        assert result.errors == ["Insufficient stock for Amoxicillin 250mg: requested 3, available 2"]
        assert result.total_items_requested == 8

    def test_accepts_snake_case_and_numeric_strings(self, store):
        result = check_availability(store, [{"product_id": "P", "quantity": "4"}])
        assert result.is_available is True
        assert result.checks[0].requested == 4

    def test_empty_request_is_not_available(self, store):
        result = check_availability(store, [])
        assert result.is_available is False
        assert result.checks == []

    def test_has_no_side_effects(self, store):
        before = store.get(settings.PRODUCTS_KEY)
        check_availability(store, [{"productId": "P", "quantity": 3}, {"productId": "Q", "quantity": 9}])
        assert store.get(settings.PRODUCTS_KEY) == before


class TestDeltas:
    def test_apply_deltas_are_negative_and_combined(self):
        deltas = compute_deltas([
            {"productId": "P", "quantity": 2},
            {"productId": "R", "quantity": 1},
            {"productId": "P", "quantity": 3},
        ])
        assert [(d.product_id, d.delta) for d in deltas] == [("P", -5), ("R", -1)]

    def test_release_deltas_are_positive(self):
        deltas = compute_deltas([{"productId": "P", "quantity": 2}], release=True)
        assert [(d.product_id, d.delta) for d in deltas] == [("P", 2)]

    def test_combine_skips_invalid_items(self):
        assert combine_quantities([
            {"productId": "P", "quantity": 2},
            {"productId": "P", "quantity": -4},
            {"quantity": 3},
        ]) == {"P": 2}

    def test_reversal_uses_only_reserved_entries(self):
        changes = [
            StockChange(product_id="P", previous_stock=10, new_stock=5, delta=-5),
            StockChange(product_id="R", previous_stock=20, new_stock=19, delta=-1),
            StockChange(product_id="P", previous_stock=5, new_stock=10, delta=5, kind=StockChangeKind.RELEASED),
        ]
        deltas = reversal_deltas(changes)
        assert [(d.product_id, d.delta) for d in deltas] == [("P", 5), ("R", 1)]


@pytest.mark.parametrize(
    "raw, expected",
    [
        (3, 3),
        ("7", 7),
        (2.0, 2),
        (2.5, None),
        (0, None),
        (-2, None),
        (False, None),
        ("x", None),
        (float("nan"), None),
        ([1], None),
    ],
)
def test_parse_quantity(raw, expected):
    assert parse_quantity(raw) == expected
