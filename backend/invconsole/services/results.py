# Overview: Uniform response envelope returned for every dispatched action.

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .errors import CommandError, AmbiguityFailure


GENERIC_ERROR_MESSAGE = "An error occurred processing your command."


@dataclass
class ActionResult:
    """
    Envelope consumed by the UI/API layer.

    Only keys that carry a value are serialized, so a TAKE_STOCK success is
    just {action, success, message}. http_status is transport metadata and
    never appears in the JSON body.
    """
    action: str
    success: bool
    message: str
    data: list[dict] | None = None
    entity: str | None = None
    requires_bill_upload: bool | None = None
    order_id: int | None = None
    suggested_products: list[dict] | None = None
    pending_orders: list[dict] | None = None
    error_kind: str | None = None
    retryable: bool | None = None
    http_status: int = 200

    @classmethod
    def ok(cls, action: str, message: str, **kwargs: Any) -> "ActionResult":
        return cls(action=action, success=True, message=message, **kwargs)

    @classmethod
    def fail(cls, action: str, message: str, **kwargs: Any) -> "ActionResult":
        return cls(action=action, success=False, message=message, **kwargs)

    @classmethod
    def from_error(cls, action: str, exc: CommandError) -> "ActionResult":
        result = cls.fail(
            action,
            exc.message,
            error_kind=exc.kind,
            http_status=exc.http_status,
            retryable=True if exc.retryable else None,
        )
        if isinstance(exc, AmbiguityFailure):
            if exc.field == "suggestedProducts":
                result.suggested_products = exc.candidates
            elif exc.field == "pendingOrders":
                result.pending_orders = exc.candidates
            else:
                result.data = exc.candidates
        return result

    @classmethod
    def internal_error(cls) -> "ActionResult":
        return cls.fail("ERROR", GENERIC_ERROR_MESSAGE, error_kind="upstream", http_status=500)

    def to_dict(self) -> dict:
        body: dict[str, Any] = {
            "action": self.action,
            "success": self.success,
            "message": self.message,
        }
        optional = {
            "data": self.data,
            "entity": self.entity,
            "requiresBillUpload": self.requires_bill_upload,
            "orderId": self.order_id,
            "suggestedProducts": self.suggested_products,
            "pendingOrders": self.pending_orders,
            "errorKind": self.error_kind,
            "retryable": self.retryable,
        }
        body.update({key: value for key, value in optional.items() if value is not None})
        return body
