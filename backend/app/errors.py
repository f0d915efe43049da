# Overview: Domain error taxonomy for the order engine; each error maps to an HTTP status.

"""
Order Engine Errors

All errors are recoverable at the caller. A service raising one of these has
already rolled back its unit of work, so system state is unchanged.
"""

from __future__ import annotations


class OrderEngineError(Exception):
    """Base class for order engine domain errors."""

    http_status = 400
    code = "ORDER_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


class ValidationError(OrderEngineError):
    """400-level input problem."""

    code = "VALIDATION_ERROR"


class NotFoundError(OrderEngineError):
    """Order, product or user identifier is unknown."""

    http_status = 404
    code = "NOT_FOUND"


class PermissionDeniedError(OrderEngineError):
    """Caller's role (or ownership) does not allow the operation."""

    http_status = 403
    code = "PERMISSION_DENIED"


class InvalidStateError(OrderEngineError):
    """Operation is not legal from the order's current status."""

    http_status = 409
    code = "INVALID_STATE"


class InvalidTransitionError(OrderEngineError):
    """Logistics step requested out of sequence."""

    http_status = 409
    code = "INVALID_TRANSITION"


class InsufficientStockError(OrderEngineError):
    """One or more line items cannot be settled against current stock."""

    http_status = 409
    code = "INSUFFICIENT_STOCK"


class BelowMinimumOrderQuantityError(OrderEngineError):
    """Wholesale line quantity is below the product's minimum order quantity."""

    code = "BELOW_MINIMUM_ORDER_QUANTITY"


class PaymentNotSettledError(OrderEngineError):
    """Approval attempted before payment was confirmed."""

    http_status = 409
    code = "PAYMENT_NOT_SETTLED"
