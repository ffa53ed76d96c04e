"""Create tables and empty collections. Run on app startup."""
from eudora.core.config import settings
from eudora.db.base import Base
from eudora.db.record_store import RecordStore, SqlRecordStore
from eudora.db.session import engine, SessionLocal
from eudora.models import collection  # noqa: F401 - register models

EMPTY_COLLECTIONS = {
    settings.PRODUCTS_KEY: list,
    settings.ORDERS_KEY: list,
    settings.CART_KEY: dict,
    settings.NOTIFICATIONS_KEY: list,
}


def ensure_collections(store: RecordStore):
    """Initialise any missing collection with its empty value."""
    for key, factory in EMPTY_COLLECTIONS.items():
        if store.get(key) is None:
            store.set(key, factory())


def init_db() -> SqlRecordStore:
    Base.metadata.create_all(bind=engine)
    store = SqlRecordStore(SessionLocal)
    ensure_collections(store)
    return store
