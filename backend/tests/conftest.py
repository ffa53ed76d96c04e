"""Shared pytest fixtures for the order/inventory core."""

import pytest

from eudora.core.config import settings
from eudora.core.exceptions import StorageWriteFailure
from eudora.db.record_store import MemoryRecordStore
from eudora.schemas.notifications import SessionContext, UserRole
from eudora.services.notification_service import CollectingNotifier, NotificationService
from eudora.services.order_engine import OrderEngine


PRODUCTS = [
    {"id": "P", "name": "Paracetamol 500mg", "price": "2.50", "stock": 10,
     "category": "analgesic", "pharmacyId": "pharmacy_1"},
    {"id": "Q", "name": "Amoxicillin 250mg", "price": "8.00", "stock": 2,
     "category": "antibiotic", "requiresPrescription": True, "pharmacyId": "pharmacy_1"},
    {"id": "R", "name": "Cetirizine 10mg", "price": "5.00", "stock": 20,
     "category": "antihistamine", "pharmacyId": "pharmacy_2"},
    {"id": "X", "name": "Discontinued Syrup", "price": "3.00", "stock": 50,
     "category": "respiratory", "pharmacyId": "pharmacy_1", "isActive": False},
]


class FlakyStore(MemoryRecordStore):
    """Memory store whose n-th write to a key (counted from fail_on) raises."""

    def __init__(self, initial=None):
        self._plan = {}
        self._writes = {}
        super().__init__(initial)

    def fail_on(self, key, *write_numbers):
        self._plan[key] = set(write_numbers)
        self._writes[key] = 0

    def set(self, key, value):
        if key in self._plan:
            self._writes[key] += 1
            if self._writes[key] in self._plan[key]:
                raise StorageWriteFailure(f"Could not save '{key}'")
        super().set(key, value)


def seeded_collections():
    return {
        settings.PRODUCTS_KEY: [dict(p) for p in PRODUCTS],
        settings.ORDERS_KEY: [],
        settings.CART_KEY: {},
        settings.NOTIFICATIONS_KEY: [],
    }


def order_payload(*items, customer_id="customer_1", pharmacy_id="pharmacy_1", **extra):
    payload = {
        "customerId": customer_id,
        "pharmacyId": pharmacy_id,
        "deliveryAddress": {"street": "Via Roma 1", "city": "Milano", "zipCode": "20121"},
        "items": [{"productId": pid, "quantity": qty} for pid, qty in items],
    }
    payload.update(extra)
    return payload


def stock_of(store, product_id):
    for raw in store.get(settings.PRODUCTS_KEY):
        if raw["id"] == product_id:
            return raw["stock"]
    raise KeyError(product_id)


@pytest.fixture
def store():
    return FlakyStore(seeded_collections())


@pytest.fixture
def notifier():
    return CollectingNotifier()


@pytest.fixture
def notifications(store, notifier):
    return NotificationService(store, notifier)


@pytest.fixture
def engine(store, notifications):
    return OrderEngine(store, notifications)


@pytest.fixture
def customer():
    return SessionContext(user_id="customer_1", role=UserRole.CUSTOMER, display_name="Maria Rossi")


@pytest.fixture
def pharmacy():
    return SessionContext(user_id="pharmacy_1", role=UserRole.PHARMACY, display_name="Farmacia Centrale")
