"""Inventory routes: orders with stock reconciliation, stock checks, reports.

Every route answers 200 with an envelope; callers branch on `status`.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query
from pydantic import BaseModel

from eudora.api.deps import get_inventory_api, get_session_context
from eudora.schemas.notifications import SessionContext
from eudora.schemas.responses import (
    CancelOrderResponse,
    CheckStockResponse,
    CreateOrderResponse,
    DebugResponse,
    OrderStatisticsResponse,
    OrderStatusResponse,
    SelfCheckResponse,
    SimulateOrderResponse,
    StockReportResponse,
)
from eudora.services.inventory_api import InventoryAPI

router = APIRouter()


class ItemsRequest(BaseModel):
    items: List[Dict[str, Any]] = []


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class StatusUpdate(BaseModel):
    status: str
    reason: Optional[str] = None


@router.post("/orders", response_model=CreateOrderResponse)
def create_order(
    order_data: Dict[str, Any] = Body(...),
    ctx: SessionContext = Depends(get_session_context),
    api: InventoryAPI = Depends(get_inventory_api),
):
    """Create an order and reserve its stock, all or nothing."""
    return api.create_order(order_data, ctx)


@router.post("/orders/{order_id}/cancel", response_model=CancelOrderResponse)
def cancel_order(
    order_id: str,
    body: Optional[CancelRequest] = Body(None),
    ctx: SessionContext = Depends(get_session_context),
    api: InventoryAPI = Depends(get_inventory_api),
):
    return api.cancel_order(order_id, body.reason if body else None, ctx)


@router.patch("/orders/{order_id}/status", response_model=OrderStatusResponse)
def update_order_status(
    order_id: str,
    body: StatusUpdate,
    ctx: SessionContext = Depends(get_session_context),
    api: InventoryAPI = Depends(get_inventory_api),
):
    """Pharmacy/rider workflow: accept, ready, delivered, reject."""
    return api.update_order_status(order_id, body.status, ctx, body.reason)


@router.post("/simulate", response_model=SimulateOrderResponse)
def simulate_order(body: ItemsRequest, api: InventoryAPI = Depends(get_inventory_api)):
    """Pre-flight a cart without touching stock."""
    return api.simulate_order(body.items)


@router.post("/stock/check", response_model=CheckStockResponse)
def check_stock(body: ItemsRequest, api: InventoryAPI = Depends(get_inventory_api)):
    return api.check_stock(body.items)


@router.get("/stock/report", response_model=StockReportResponse)
def stock_report(
    pharmacy_id: Optional[str] = Query(None, alias="pharmacyId"),
    status: Optional[str] = Query(None),
    low_stock_threshold: Optional[str] = Query(None, alias="lowStockThreshold"),
    api: InventoryAPI = Depends(get_inventory_api),
):
    return api.get_stock_report({
        "pharmacyId": pharmacy_id,
        "status": status,
        "lowStockThreshold": low_stock_threshold,
    })


@router.get("/orders/statistics", response_model=OrderStatisticsResponse)
def order_statistics(
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    api: InventoryAPI = Depends(get_inventory_api),
):
    return api.get_order_statistics({"startDate": start_date, "endDate": end_date})


@router.post("/self-check", response_model=SelfCheckResponse)
def self_check(api: InventoryAPI = Depends(get_inventory_api)):
    """Run the inventory scenarios on scratch data. Live stock is never touched."""
    return api.run_inventory_tests()


@router.get("/debug", response_model=DebugResponse)
def debug_inventory(api: InventoryAPI = Depends(get_inventory_api)):
    return api.debug_inventory()
