"""
Error taxonomy for the order/inventory core.

Inside the engine failures are raised as InventoryError subclasses; the
public engine methods and the InventoryAPI boundary turn them into result
objects. Messages carried by these errors are safe to show to end users.

HTTP-level failures (missing session identity, bad headers) are built with
the BusinessError helpers so routes keep a single place for status codes.
"""
import logging
from enum import Enum
from typing import List, Optional

from fastapi import HTTPException, status

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    VALIDATION_ERROR = "ValidationError"
    PRODUCT_NOT_FOUND = "ProductNotFound"
    INVALID_QUANTITY = "InvalidQuantity"
    INSUFFICIENT_STOCK = "InsufficientStock"
    ORDER_NOT_FOUND = "OrderNotFound"
    ALREADY_TERMINAL = "AlreadyTerminal"
    STORAGE_WRITE_FAILURE = "StorageWriteFailure"
    SYSTEM_ERROR = "SystemError"


class InventoryError(Exception):
    """Base class. `errors` is the list of display-safe messages."""

    kind: ErrorKind = ErrorKind.SYSTEM_ERROR

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = list(errors) if errors else [message]


class OrderValidationError(InventoryError):
    kind = ErrorKind.VALIDATION_ERROR


class ProductNotFound(InventoryError):
    kind = ErrorKind.PRODUCT_NOT_FOUND


class InvalidQuantity(InventoryError):
    kind = ErrorKind.INVALID_QUANTITY


class InsufficientStock(InventoryError):
    kind = ErrorKind.INSUFFICIENT_STOCK


class OrderNotFound(InventoryError):
    kind = ErrorKind.ORDER_NOT_FOUND


class AlreadyTerminal(InventoryError):
    kind = ErrorKind.ALREADY_TERMINAL


class StorageWriteFailure(InventoryError):
    """Record store write failed. Raised by RecordStore.set / remove."""

    kind = ErrorKind.STORAGE_WRITE_FAILURE


class CompensationFailure(InventoryError):
    """
    Reversing partially applied stock deltas failed too.

    This is the one unrecoverable case: stock may now be off by the deltas
    that could not be reversed. Both errors are kept for the operator.
    """

    kind = ErrorKind.SYSTEM_ERROR

    def __init__(self, original: Exception, compensation: Exception):
        message = (
            f"Stock compensation failed after a storage error. "
            f"Original error: {original}. Compensation error: {compensation}"
        )
        super().__init__(message, errors=[f"Original error: {original}", f"Compensation error: {compensation}"])
        self.original = original
        self.compensation = compensation


class BusinessError:
    """HTTP-level errors with safe (non-leaky) messages."""

    @staticmethod
    def unauthorized(reason: str = "") -> HTTPException:
        """
        Generic 401 when the caller did not identify its session.

        The storefront's auth layer is external; routes only need to know
        who the current user is.
        """
        logger.warning(f"Missing session identity: {reason}")
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session identity required",
        )

    @staticmethod
    def bad_request(detail: str) -> HTTPException:
        """400 for malformed request metadata (e.g. an unknown role header)."""
        logger.info(f"Bad request: {detail}")
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )
