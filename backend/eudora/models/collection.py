"""
StoredCollection: one row per record-store key.

The whole collection (products list, orders list, carts dict, notifications
list) is serialised into `payload`. There are no per-record rows on purpose:
the storefront's store only supports whole-collection get/set.
"""
from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
from eudora.db.base import Base


class StoredCollection(Base):
    __tablename__ = "collections"

    key = Column(String(128), primary_key=True)
    payload = Column(JSON, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
