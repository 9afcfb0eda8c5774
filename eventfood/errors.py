"""Domain errors surfaced to API callers.

Every error carries a stable ``code``, the HTTP status it maps to and a
``detail`` mapping with whatever a client needs to render a precise message
(requested vs available quantities, caps, ids).
"""

from __future__ import annotations
from typing import Any


class FoodOrderError(Exception):
    code = "ERROR"
    status_code = 400
    message = "Request failed"

    def __init__(self, message: str | None = None, **detail: Any) -> None:
        self.message = message or self.message
        self.detail = detail
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.code, "message": self.message, **self.detail}


class NotAuthenticated(FoodOrderError):
    code = "NOT_AUTHENTICATED"
    status_code = 401
    message = "Please log in"


class Forbidden(FoodOrderError):
    code = "FORBIDDEN"
    status_code = 403
    message = "Not allowed"


class NotFound(FoodOrderError):
    code = "NOT_FOUND"
    status_code = 404
    message = "Not found"


class InvalidEventWindow(FoodOrderError):
    code = "INVALID_EVENT_WINDOW"
    status_code = 422
    message = "Event end date must be after its start date"


class RecordInUse(FoodOrderError):
    code = "RECORD_IN_USE"
    status_code = 409
    message = "Record is referenced by existing orders"


class DuplicateUsername(FoodOrderError):
    code = "DUPLICATE_USERNAME"
    status_code = 409
    message = "Username already exists"


class AlreadyAllocated(FoodOrderError):
    code = "ALREADY_ALLOCATED"
    status_code = 409
    message = "Food item is already allocated to this event"


# ---- Order validation (raised before any write) ----

class OrderValidationError(FoodOrderError):
    status_code = 409


class NotEnrolled(OrderValidationError):
    code = "NOT_ENROLLED"
    message = "Team is not enrolled in this event"


class EventNotActive(OrderValidationError):
    code = "EVENT_NOT_ACTIVE"
    message = "Event is not currently active for ordering"


class NoInventory(OrderValidationError):
    code = "NO_INVENTORY"
    message = "No inventory found for this event"


class ItemNotAllocated(OrderValidationError):
    code = "ITEM_NOT_ALLOCATED"
    message = "Food item is not available for this event"


class ItemInactive(OrderValidationError):
    code = "ITEM_INACTIVE"
    message = "Food item is no longer available"


class InsufficientStock(OrderValidationError):
    code = "INSUFFICIENT_STOCK"
    message = "Not enough quantity available"


class TeamCapExceeded(OrderValidationError):
    code = "TEAM_CAP_EXCEEDED"
    message = "Team order limit exceeded"


# ---- Order state ----

class CannotCancel(FoodOrderError):
    code = "CANNOT_CANCEL"
    status_code = 409
    message = "Cannot cancel this order"


class InvalidStatusTransition(FoodOrderError):
    code = "INVALID_STATUS_TRANSITION"
    status_code = 409
    message = "Order status change not allowed"


class OrderTransactionFailed(FoodOrderError):
    code = "ORDER_TRANSACTION_FAILED"
    status_code = 500
    message = "Order transaction failed"
