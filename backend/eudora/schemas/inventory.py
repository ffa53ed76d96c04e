"""
Records for products, orders and stock checks.

Python attributes are snake_case; the stored JSON and the HTTP payloads use
camelCase (productId, stockChanges, ...) so records written by other
storefront sessions load unchanged.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from eudora.core.exceptions import ErrorKind


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
    )

    def to_record(self) -> dict:
        """JSON-ready dict with camelCase keys, as stored in the record store."""
        return self.model_dump(mode="json", by_alias=True)


class OrderStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    READY = "ready"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REJECTED = "rejected"


# No business transition is allowed out of these
TERMINAL_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.REJECTED, OrderStatus.DELIVERED})


class StockStatus(str, Enum):
    IN_STOCK = "in_stock"
    LOW_STOCK = "low_stock"
    OUT_OF_STOCK = "out_of_stock"


class StockChangeKind(str, Enum):
    RESERVED = "reserved"
    RELEASED = "released"


class Product(CamelModel):
    id: str
    name: str
    price: Decimal = Decimal("0")
    stock: int = 0
    category: Optional[str] = None
    requires_prescription: bool = False
    pharmacy_id: Optional[str] = None
    is_active: bool = True
    updated_at: Optional[datetime] = None


class OrderItem(CamelModel):
    product_id: str
    name: str
    price: Decimal
    quantity: int


class StockChange(CamelModel):
    product_id: str
    product_name: Optional[str] = None
    previous_stock: int
    new_stock: int
    delta: int
    kind: StockChangeKind = StockChangeKind.RESERVED
    recorded_at: Optional[datetime] = None


class DeliveryAddress(CamelModel):
    street: str
    city: str
    zip_code: Optional[str] = None
    province: Optional[str] = None
    label: Optional[str] = None


class Order(CamelModel):
    id: str
    order_number: str
    customer_id: str
    pharmacy_id: str
    items: List[OrderItem]
    total: Decimal
    status: OrderStatus = OrderStatus.PENDING
    stock_changes: List[StockChange] = Field(default_factory=list)
    delivery_address: Union[DeliveryAddress, str, None] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    ready_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None

    @property
    def reserved_changes(self) -> List[StockChange]:
        return [c for c in self.stock_changes if c.kind == StockChangeKind.RESERVED]


class StockCheck(CamelModel):
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    requested: int = 0
    available: int = 0
    satisfied: bool = False
    kind: Optional[ErrorKind] = None
    shortfall: int = 0


class StockCheckResult(CamelModel):
    is_available: bool
    checks: List[StockCheck] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    total_items_requested: int = 0

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        """Kind of the first failing check, for the aggregate result."""
        for check in self.checks:
            if not check.satisfied:
                return check.kind
        return None


class StockDelta(CamelModel):
    product_id: str
    delta: int


class OrderResult(CamelModel):
    success: bool
    order_id: Optional[str] = None
    order_number: Optional[str] = None
    order_status: Optional[OrderStatus] = None
    stock_changes: List[StockChange] = Field(default_factory=list)
    stock_checks: List[StockCheck] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    error_kind: Optional[ErrorKind] = None


class SimulationResult(CamelModel):
    can_proceed: bool
    stock_checks: List[StockCheck] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    total_items_requested: int = 0


class StockReportFilters(CamelModel):
    pharmacy_id: Optional[str] = None
    status: Optional[StockStatus] = None
    low_stock_threshold: Optional[int] = None


class ProductStockEntry(CamelModel):
    id: str
    name: str
    stock: int
    status: StockStatus
    low_stock: bool
    category: Optional[str] = None
    pharmacy_id: Optional[str] = None
    price: Decimal
    is_active: bool


class StockReport(CamelModel):
    total_products: int = 0
    in_stock: int = 0
    low_stock: int = 0
    out_of_stock: int = 0
    low_stock_threshold: int
    products: List[ProductStockEntry] = Field(default_factory=list)
    generated_at: datetime


class StatisticsOptions(CamelModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class StatisticsPeriod(CamelModel):
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ProductSales(CamelModel):
    product_id: str
    product_name: Optional[str] = None
    quantity_sold: int = 0
    revenue: Decimal = Decimal("0.00")


class OrderStatistics(CamelModel):
    period: StatisticsPeriod
    total_orders: int = 0
    by_status: dict = Field(default_factory=dict)
    total_revenue: Decimal = Decimal("0.00")
    average_order_value: Decimal = Decimal("0.00")
    total_items_sold: int = 0
    stock_impact: List[ProductSales] = Field(default_factory=list)


class SelfCheckCase(CamelModel):
    name: str
    passed: bool
    detail: Optional[str] = None


class SelfCheckResult(CamelModel):
    tests: List[SelfCheckCase] = Field(default_factory=list)
    passed: int = 0
    failed: int = 0
    summary: str = ""
