"""Application configuration.

Environment variables override all defaults. A backend/.env file, if present, is
loaded through python-dotenv for local development.
"""

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

_BACKEND_DIR = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=_BACKEND_DIR / ".env", override=False)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    # Database Configuration (backs the shared record store)
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./eudora.db")

    # Record store collection keys
    PRODUCTS_KEY: str = os.getenv("PRODUCTS_KEY", "eudora_products")
    ORDERS_KEY: str = os.getenv("ORDERS_KEY", "eudora_orders")
    CART_KEY: str = os.getenv("CART_KEY", "eudora_cart")
    NOTIFICATIONS_KEY: str = os.getenv("NOTIFICATIONS_KEY", "eudora_notifications")

    # Inventory
    LOW_STOCK_THRESHOLD: int = int(os.getenv("LOW_STOCK_THRESHOLD", "5"))

    # Notification propagation (polling, no push channel)
    NOTIFICATION_POLL_INTERVAL_MS: int = int(os.getenv("NOTIFICATION_POLL_INTERVAL_MS", "2000"))
    CART_BADGE_POLL_INTERVAL_MS: int = int(os.getenv("CART_BADGE_POLL_INTERVAL_MS", "1000"))
    # A fresh session wipes stale cross-session notifications instead of resuming them
    RESET_NOTIFICATIONS_ON_START: bool = _env_bool("RESET_NOTIFICATIONS_ON_START", True)
    NOTIFICATION_CENTER_LIMIT: int = int(os.getenv("NOTIFICATION_CENTER_LIMIT", "10"))

    # CORS (specific origins only, no wildcards)
    CORS_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS",
            "http://localhost:3000,http://127.0.0.1:3000,http://localhost:8080",
        ).split(",")
        if origin.strip()
    ]

    # uvicorn (run_server.py)
    SERVER_HOST: str = os.getenv("SERVER_HOST", "127.0.0.1")
    SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8000"))

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = ENVIRONMENT == "development"


settings = Settings()
