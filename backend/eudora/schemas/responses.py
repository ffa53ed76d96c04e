"""
Response envelopes of the inventory API.

Every response carries a status tag, a display-safe message and a timestamp.
Callers branch on `status`; the API never raises.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import Field

from eudora.core.exceptions import ErrorKind
from eudora.schemas.inventory import (
    CamelModel,
    OrderStatistics,
    OrderStatus,
    SelfCheckResult,
    StockChange,
    StockCheck,
    StockReport,
)


class ResponseStatus(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Envelope(CamelModel):
    status: ResponseStatus
    message: str
    timestamp: datetime = Field(default_factory=_utcnow)
    errors: List[str] = Field(default_factory=list)
    error_kind: Optional[ErrorKind] = None


class CreateOrderResponse(Envelope):
    order_id: Optional[str] = None
    order_number: Optional[str] = None
    stock_changes: List[StockChange] = Field(default_factory=list)
    stock_checks: List[StockCheck] = Field(default_factory=list)


class CancelOrderResponse(Envelope):
    order_id: str
    stock_changes: List[StockChange] = Field(default_factory=list)


class OrderStatusResponse(Envelope):
    order_id: str
    order_status: Optional[OrderStatus] = None
    stock_changes: List[StockChange] = Field(default_factory=list)


class SimulateOrderResponse(Envelope):
    can_proceed: bool = False
    stock_checks: List[StockCheck] = Field(default_factory=list)
    total_items_requested: int = 0


class CheckStockResponse(Envelope):
    is_available: bool = False
    stock_checks: List[StockCheck] = Field(default_factory=list)
    total_items_requested: int = 0


class StockReportResponse(Envelope):
    report: Optional[StockReport] = None


class OrderStatisticsResponse(Envelope):
    statistics: Optional[OrderStatistics] = None


class SelfCheckResponse(Envelope):
    results: Optional[SelfCheckResult] = None


class DebugResponse(Envelope):
    debug: Optional[dict] = None
