"""
Inventory API: the request/response boundary used by dashboards and tests.

Every method returns an envelope with status, message and timestamp.
Nothing propagates out of here: unexpected failures are logged and turned
into an `error` envelope with kind SystemError.
"""
import logging
from typing import Any, List, Optional

from pydantic import ValidationError as PydanticValidationError

from eudora.core.exceptions import ErrorKind
from eudora.db.record_store import RecordStore
from eudora.schemas.inventory import StatisticsOptions, StockReportFilters
from eudora.schemas.notifications import SessionContext
from eudora.schemas.responses import (
    CancelOrderResponse,
    CheckStockResponse,
    CreateOrderResponse,
    DebugResponse,
    OrderStatisticsResponse,
    OrderStatusResponse,
    ResponseStatus,
    SelfCheckResponse,
    SimulateOrderResponse,
    StockReportResponse,
)
from eudora.services import inventory_report
from eudora.services.inventory_selfcheck import run_inventory_tests
from eudora.services.notification_service import NotificationService, Notifier
from eudora.services.order_engine import OrderEngine

logger = logging.getLogger(__name__)

SYSTEM_ERROR_MESSAGE = "An internal error occurred. Please try again later."


def _system_error(operation: str, error: Exception) -> dict:
    logger.error(f"[InventoryAPI] {operation} failed: {type(error).__name__}: {error}", exc_info=True)
    return {
        "status": ResponseStatus.ERROR,
        "message": SYSTEM_ERROR_MESSAGE,
        "errors": [SYSTEM_ERROR_MESSAGE],
        "error_kind": ErrorKind.SYSTEM_ERROR,
    }


def _invalid_options(error: PydanticValidationError) -> dict:
    messages = [f"{'.'.join(str(p) for p in e['loc'])}: {e['msg']}" for e in error.errors()]
    return {
        "status": ResponseStatus.ERROR,
        "message": "Invalid options",
        "errors": messages,
        "error_kind": ErrorKind.VALIDATION_ERROR,
    }


class InventoryAPI:
    def __init__(self, store: RecordStore, notifier: Optional[Notifier] = None):
        self.store = store
        self.notifications = NotificationService(store, notifier)
        self.engine = OrderEngine(store, self.notifications)

    def create_order(self, order_data: Any, ctx: Optional[SessionContext] = None) -> CreateOrderResponse:
        try:
            result = self.engine.create_order_with_inventory(order_data, ctx)
            return CreateOrderResponse(
                status=ResponseStatus.SUCCESS if result.success else ResponseStatus.ERROR,
                message="Order created successfully" if result.success else "Order could not be created",
                order_id=result.order_id,
                order_number=result.order_number,
                stock_changes=result.stock_changes,
                stock_checks=result.stock_checks,
                errors=result.errors,
                error_kind=result.error_kind,
            )
        except Exception as e:
            return CreateOrderResponse(**_system_error("create_order", e))

    def cancel_order(
        self, order_id: str, reason: Optional[str] = None, ctx: Optional[SessionContext] = None
    ) -> CancelOrderResponse:
        try:
            result = self.engine.cancel_order_with_inventory(order_id, reason or "Cancelled by user", ctx)
            return CancelOrderResponse(
                order_id=order_id,
                status=ResponseStatus.SUCCESS if result.success else ResponseStatus.ERROR,
                message="Order cancelled and stock released" if result.success else "Order could not be cancelled",
                stock_changes=result.stock_changes,
                errors=result.errors,
                error_kind=result.error_kind,
            )
        except Exception as e:
            return CancelOrderResponse(order_id=order_id, **_system_error("cancel_order", e))

    def update_order_status(
        self,
        order_id: str,
        new_status: Any,
        ctx: Optional[SessionContext] = None,
        reason: Optional[str] = None,
    ) -> OrderStatusResponse:
        try:
            result = self.engine.update_order_status(order_id, new_status, ctx, reason)
            return OrderStatusResponse(
                order_id=order_id,
                order_status=result.order_status,
                status=ResponseStatus.SUCCESS if result.success else ResponseStatus.ERROR,
                message=f"Order moved to {new_status}" if result.success else "Order status could not be updated",
                stock_changes=result.stock_changes,
                errors=result.errors,
                error_kind=result.error_kind,
            )
        except Exception as e:
            return OrderStatusResponse(order_id=order_id, **_system_error("update_order_status", e))

    def simulate_order(self, items: List[Any]) -> SimulateOrderResponse:
        try:
            result = self.engine.simulate_order(items)
            return SimulateOrderResponse(
                can_proceed=result.can_proceed,
                status=ResponseStatus.SUCCESS if result.can_proceed else ResponseStatus.WARNING,
                message="Order can proceed" if result.can_proceed else "Some items are not available",
                stock_checks=result.stock_checks,
                errors=result.errors,
                total_items_requested=result.total_items_requested,
            )
        except Exception as e:
            return SimulateOrderResponse(**_system_error("simulate_order", e))

    def check_stock(self, items: List[Any]) -> CheckStockResponse:
        try:
            result = self.engine.check_stock_availability(items)
            return CheckStockResponse(
                is_available=result.is_available,
                status=ResponseStatus.SUCCESS if result.is_available else ResponseStatus.WARNING,
                message="All items are available" if result.is_available else "Some items are not available",
                stock_checks=result.checks,
                errors=result.errors,
                error_kind=result.error_kind,
                total_items_requested=result.total_items_requested,
            )
        except Exception as e:
            return CheckStockResponse(**_system_error("check_stock", e))

    def get_stock_report(self, filters: Any = None) -> StockReportResponse:
        try:
            parsed = StockReportFilters.model_validate(filters or {})
        except PydanticValidationError as e:
            return StockReportResponse(**_invalid_options(e))
        try:
            report = inventory_report.get_stock_report(self.store, parsed)
            return StockReportResponse(
                status=ResponseStatus.SUCCESS,
                message=f"Stock report for {report.total_products} products",
                report=report,
            )
        except Exception as e:
            return StockReportResponse(**_system_error("get_stock_report", e))

    def get_order_statistics(self, options: Any = None) -> OrderStatisticsResponse:
        try:
            parsed = StatisticsOptions.model_validate(options or {})
        except PydanticValidationError as e:
            return OrderStatisticsResponse(**_invalid_options(e))
        try:
            statistics = inventory_report.get_order_statistics(self.store, parsed)
            return OrderStatisticsResponse(
                status=ResponseStatus.SUCCESS,
                message=f"Statistics for {statistics.total_orders} orders",
                statistics=statistics,
            )
        except Exception as e:
            return OrderStatisticsResponse(**_system_error("get_order_statistics", e))

    def run_inventory_tests(self) -> SelfCheckResponse:
        try:
            results = run_inventory_tests()
            return SelfCheckResponse(
                status=ResponseStatus.SUCCESS if results.failed == 0 else ResponseStatus.WARNING,
                message=results.summary,
                results=results,
            )
        except Exception as e:
            return SelfCheckResponse(**_system_error("run_inventory_tests", e))

    def debug_inventory(self) -> DebugResponse:
        try:
            return DebugResponse(
                status=ResponseStatus.SUCCESS,
                message="Inventory debug snapshot",
                debug=inventory_report.debug_inventory_state(self.store),
            )
        except Exception as e:
            return DebugResponse(**_system_error("debug_inventory", e))
