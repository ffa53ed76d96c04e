"""Run the inventory backend under uvicorn.

Host and port come from SERVER_HOST / SERVER_PORT (see eudora.core.config).
"""
import logging
import signal
import sys

import uvicorn

from eudora.core.config import settings


def handle_signal(sig, frame):
    print(f"\nReceived signal {sig}, shutting down...")
    sys.exit(0)


signal.signal(signal.SIGINT, handle_signal)
signal.signal(signal.SIGTERM, handle_signal)

if __name__ == "__main__":
    logging.basicConfig(
        level=logging.DEBUG if settings.DEBUG else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )
    print("=" * 50)
    print(f"  Eudora Inventory Backend ({settings.ENVIRONMENT})")
    print(f"  http://{settings.SERVER_HOST}:{settings.SERVER_PORT}")
    print("=" * 50)
    uvicorn.run(
        "eudora.main:app",
        host=settings.SERVER_HOST,
        port=settings.SERVER_PORT,
        log_level="debug" if settings.DEBUG else "info",
    )
