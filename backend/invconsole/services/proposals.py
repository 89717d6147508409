# Overview: Typed action proposals; validates interpreter output before any handler runs.

"""
Action proposals.

The interpreter returns {action, params, message}. Nothing in that payload is
trusted: parse_proposal() maps it onto exactly one frozen dataclass per action
(a closed tagged union), coercing and checking every parameter. Handlers only
ever see a fully-typed proposal, so missing-parameter handling lives here
rather than scattered across handlers.

Identifier references (products, warehouses, suppliers) are either an int id
or a trimmed string. Digit-only strings are treated as ids.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Union

from ..models.catalog import MAX_INTEGER
from .errors import ValidationFailure
from .order_lifecycle import ORDER_STATUSES


Ref = Union[int, str]


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------

def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def _to_ref(value: Any) -> Ref | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, int):
        # out-of-range numbers can never be ids; they fall through to a name lookup
        return value if 0 < value <= MAX_INTEGER else str(value)
    text = _to_text(value)
    if text is None:
        return None
    if text.isdigit() and 0 < int(text) <= MAX_INTEGER:
        return int(text)
    return text


def _to_order_id(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        order_id = value
    else:
        text = _to_text(value)
        if text is None:
            return None
        match = re.fullmatch(r"(?:po[-\s]?)?#?\s*(\d+)", text, flags=re.IGNORECASE)
        if not match:
            raise ValueError("order id must be a number")
        order_id = int(match.group(1))
    if not 0 < order_id <= MAX_INTEGER:
        raise ValueError("order id is out of range")
    return order_id


def _to_quantity(value: Any) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError("quantity must be a whole number")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError("quantity must be a whole number")
        value = int(value)
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return None
        if not re.fullmatch(r"-?\d+", text):
            raise ValueError("quantity must be a whole number")
        value = int(text)
    if not isinstance(value, int):
        raise ValueError("quantity must be a whole number")
    if value <= 0:
        raise ValueError("quantity must be greater than zero")
    if value > MAX_INTEGER:
        raise ValueError(f"quantity cannot exceed {MAX_INTEGER:,}")
    return value


def _to_cents(value: Any) -> int | None:
    """'$1,200.50' -> 120050. Currency symbols, codes and separators are stripped."""
    if value is None or value == "" or isinstance(value, bool):
        return None
    if isinstance(value, int):
        cents = value * 100
    else:
        if isinstance(value, float):
            amount = value
        else:
            text = re.sub(r"[^\d.\-]", "", str(value))
            if not text or text in {".", "-"}:
                raise ValueError("price must be a number")
            try:
                amount = float(text)
            except ValueError:
                raise ValueError("price must be a number")
        if not math.isfinite(amount):
            raise ValueError("price must be a finite number")
        cents = int(round(amount * 100))
    if cents < 0:
        raise ValueError("price cannot be negative")
    if cents > MAX_INTEGER:
        raise ValueError(f"price cannot exceed ${MAX_INTEGER // 100:,}")
    return cents


_STATUS_ALIASES = {
    "canceled": "cancelled",
    "cancel": "cancelled",
    "approve": "approved",
    "reorder": "reordered",
    "ship": "shipped",
    "place": "ordered",
    "placed": "ordered",
}


def _to_status(value: Any) -> str | None:
    text = _to_text(value)
    if text is None:
        return None
    status = text.lower()
    status = _STATUS_ALIASES.get(status, status)
    if status not in ORDER_STATUSES:
        raise ValueError(f"status must be one of: {', '.join(ORDER_STATUSES)}")
    return status


COERCERS: dict[str, Callable[[Any], Any]] = {
    "text": _to_text,
    "ref": _to_ref,
    "order_id": _to_order_id,
    "quantity": _to_quantity,
    "money": _to_cents,
    "status": _to_status,
}


# ---------------------------------------------------------------------------
# Proposal variants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ViewProducts:
    filter: str | None = None


@dataclass(frozen=True)
class ViewProductsInWarehouse:
    warehouse: Ref


@dataclass(frozen=True)
class ViewWarehouses:
    pass


@dataclass(frozen=True)
class ViewSuppliers:
    pass


@dataclass(frozen=True)
class ViewOrders:
    status: str | None = None


@dataclass(frozen=True)
class ViewTransactions:
    type: str | None = None


@dataclass(frozen=True)
class ViewStock:
    warehouse: Ref | None = None
    product: Ref | None = None


@dataclass(frozen=True)
class TakeStock:
    product: Ref
    warehouse: Ref
    quantity: int


@dataclass(frozen=True)
class ReturnStock:
    product: Ref
    warehouse: Ref
    quantity: int


@dataclass(frozen=True)
class TransferStock:
    product: Ref
    from_warehouse: Ref
    to_warehouse: Ref
    quantity: int


@dataclass(frozen=True)
class MoveProduct:
    product: Ref
    to_warehouse: Ref
    quantity: int = 1
    from_warehouse: Ref | None = None


@dataclass(frozen=True)
class CreateOrder:
    product: Ref
    quantity: int
    warehouse: Ref
    supplier: Ref | None = None
    unit_price_cents: int | None = None


@dataclass(frozen=True)
class ReceiveOrder:
    order_id: int | None = None
    product: str | None = None
    warehouse: Ref | None = None
    quantity: int | None = None


@dataclass(frozen=True)
class UpdateOrderStatus:
    status: str
    order_id: int | None = None
    product: str | None = None


@dataclass(frozen=True)
class AddProduct:
    name: str
    unit_price_cents: int | None = None
    manufacturer: str | None = None
    description: str | None = None
    category: str | None = None


@dataclass(frozen=True)
class AddSupplier:
    name: str
    address: str | None = None
    email: str | None = None
    phone: str | None = None


@dataclass(frozen=True)
class AddWarehouse:
    name: str
    address: str | None = None


@dataclass(frozen=True)
class Unclear:
    """Anything the interpreter could not map to a known action."""
    action: str = "UNCLEAR"


Proposal = Union[
    ViewProducts, ViewProductsInWarehouse, ViewWarehouses, ViewSuppliers, ViewOrders,
    ViewTransactions, ViewStock, TakeStock, ReturnStock, TransferStock, MoveProduct,
    CreateOrder, ReceiveOrder, UpdateOrderStatus, AddProduct, AddSupplier, AddWarehouse,
    Unclear,
]


# ---------------------------------------------------------------------------
# Schema registry
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Param:
    name: str
    kind: str
    required: bool = False
    aliases: tuple[str, ...] = ()
    help: str = ""
    # proposal field, when it differs from the advertised name
    attr: str | None = None


@dataclass(frozen=True)
class ActionSchema:
    action: str
    proposal_cls: type
    description: str
    params: tuple[Param, ...] = ()
    example: str = ""


_PRODUCT = Param("product", "ref", True, ("product_name", "product_id", "item"), "product name or ID")
_WAREHOUSE = Param("warehouse", "ref", True, ("warehouse_name", "warehouse_id", "location"), "warehouse name or ID")
_QUANTITY = Param("quantity", "quantity", True, ("qty", "amount", "units"), "number of items")


ACTION_SCHEMAS: dict[str, ActionSchema] = {s.action: s for s in (
    ActionSchema(
        "VIEW_PRODUCTS", ViewProducts,
        "Show the product list (no warehouse filter)",
        (Param("filter", "text", aliases=("search", "name"), help="optional name filter"),),
        "Show me all products",
    ),
    ActionSchema(
        "VIEW_PRODUCTS_IN_WAREHOUSE", ViewProductsInWarehouse,
        "Show products with stock in one warehouse",
        (_WAREHOUSE,),
        "What's in Main Warehouse?",
    ),
    ActionSchema("VIEW_WAREHOUSES", ViewWarehouses, "Show the warehouse list", (), "List warehouses"),
    ActionSchema("VIEW_SUPPLIERS", ViewSuppliers, "Show the supplier list", (), "List suppliers"),
    ActionSchema(
        "VIEW_ORDERS", ViewOrders,
        "Show purchase orders",
        (Param("status", "status", help="optional status filter"),),
        "Show pending orders",
    ),
    ActionSchema(
        "VIEW_TRANSACTIONS", ViewTransactions,
        "Show recent stock movements",
        (Param("type", "text", aliases=("kind", "filter"), help="optional: take, return, transfer, adjustment, receive"),),
        "Show recent transactions",
    ),
    ActionSchema(
        "VIEW_STOCK", ViewStock,
        "Show stock levels across warehouses",
        (
            Param("warehouse", "ref", aliases=("warehouse_name",), help="optional warehouse filter"),
            Param("product", "ref", aliases=("product_name",), help="optional product filter"),
        ),
        "Show stock of Widget",
    ),
    ActionSchema(
        "TAKE_STOCK", TakeStock,
        "Remove items from a warehouse",
        (_PRODUCT, _WAREHOUSE, _QUANTITY),
        "Take 10 units of Widget A from Main Warehouse",
    ),
    ActionSchema(
        "RETURN_STOCK", ReturnStock,
        "Return items to a warehouse",
        (_PRODUCT, _WAREHOUSE, _QUANTITY),
        "Return 5 Widget A to Main Warehouse",
    ),
    ActionSchema(
        "TRANSFER_STOCK", TransferStock,
        "Move items between warehouses when the source is stated",
        (
            _PRODUCT,
            Param("from_warehouse", "ref", True, ("from", "source", "source_warehouse"), "source warehouse name or ID"),
            Param("to_warehouse", "ref", True, ("to", "destination", "target_warehouse"), "destination warehouse name or ID"),
            _QUANTITY,
        ),
        "Transfer 5 Widget A from Main Warehouse to East Depot",
    ),
    ActionSchema(
        "MOVE_PRODUCT", MoveProduct,
        "Move a product to a warehouse when the source is NOT stated (source is auto-detected)",
        (
            _PRODUCT,
            Param("to_warehouse", "ref", True, ("to", "destination", "target_warehouse", "warehouse"), "destination warehouse name or ID"),
            Param("quantity", "quantity", aliases=("qty", "amount", "units"), help="number of items (default 1)"),
            Param("from_warehouse", "ref", aliases=("from", "source", "source_warehouse"), help="optional source warehouse"),
        ),
        "I moved 2 Bolts to East Depot",
    ),
    ActionSchema(
        "CREATE_ORDER", CreateOrder,
        "Create a purchase order",
        (
            _PRODUCT,
            _QUANTITY,
            Param("warehouse", "ref", True, ("to_warehouse", "target_warehouse", "destination"), "destination warehouse (where the order goes TO)"),
            Param("supplier", "ref", aliases=("supplier_name", "vendor", "from"), help="optional supplier (where the order comes FROM)"),
            Param("unit_price", "money", aliases=("price",), help="optional unit price, e.g. $20", attr="unit_price_cents"),
        ),
        "Order 10 widgets from ABC Supplies to Main Warehouse",
    ),
    ActionSchema(
        "RECEIVE_ORDER", ReceiveOrder,
        "Record delivery (full or partial) of a purchase order",
        (
            Param("order_id", "order_id", aliases=("order", "po_id", "po"), help="optional order number"),
            Param("product", "text", aliases=("product_name",), help="optional product name"),
            Param("warehouse", "ref", aliases=("warehouse_name", "to_warehouse"), help="optional receiving warehouse"),
            Param("quantity", "quantity", aliases=("qty", "amount", "units"), help="optional units received (default: all remaining)"),
        ),
        "Received 3 units of order #7",
    ),
    ActionSchema(
        "UPDATE_ORDER_STATUS", UpdateOrderStatus,
        "Change an order's status (approved, ordered, shipped, cancelled, pending, reordered)",
        (
            Param("status", "status", True, ("new_status", "state"), "new status"),
            Param("order_id", "order_id", aliases=("order", "po_id", "po"), help="order number"),
            Param("product", "text", aliases=("product_name",), help="product name when no order number is given"),
        ),
        "Mark order #7 as shipped",
    ),
    ActionSchema(
        "ADD_PRODUCT", AddProduct,
        "Add a new product",
        (
            Param("name", "text", True, ("product", "product_name"), "product name"),
            Param("unit_price", "money", aliases=("price",), help="unit price, e.g. $15", attr="unit_price_cents"),
            Param("manufacturer", "text", help="optional"),
            Param("description", "text", help="optional"),
            Param("category", "text", help="optional"),
        ),
        "Add product Gizmo at $15",
    ),
    ActionSchema(
        "ADD_SUPPLIER", AddSupplier,
        "Add a new supplier",
        (
            Param("name", "text", True, ("supplier", "supplier_name"), "supplier name"),
            Param("address", "text", help="optional"),
            Param("email", "text", aliases=("contact_email",), help="optional"),
            Param("phone", "text", aliases=("contact_phone",), help="optional"),
        ),
        "Add supplier ABC Supplies",
    ),
    ActionSchema(
        "ADD_WAREHOUSE", AddWarehouse,
        "Add a new warehouse",
        (
            Param("name", "text", True, ("warehouse", "warehouse_name"), "warehouse name"),
            Param("address", "text", help="optional"),
        ),
        "Add warehouse East Depot at 12 Harbour Rd",
    ),
)}

ACTION_BY_CLASS: dict[type, str] = {s.proposal_cls: s.action for s in ACTION_SCHEMAS.values()}


@dataclass(frozen=True)
class ParsedProposal:
    action: str
    proposal: Any
    message: str | None = None
    raw_params: dict = field(default_factory=dict)


def _lookup(params: dict, param: Param) -> Any:
    for key in (param.name, *param.aliases):
        if key in params and params[key] not in (None, ""):
            return params[key]
    return None


def _missing_message(schema: ActionSchema, param: Param) -> str:
    message = f"Please specify the {param.help or param.name}."
    if schema.example:
        message += f' Example: "{schema.example}"'
    return message


def _check_cross_field(schema: ActionSchema, values: dict) -> None:
    if schema.proposal_cls is UpdateOrderStatus:
        if values.get("order_id") is None and values.get("product") is None:
            raise ValidationFailure(
                'Please specify which order to update (order number or product). '
                'Example: "Mark order #7 as shipped"'
            )


def parse_proposal(raw: Any) -> ParsedProposal:
    """
    Validate an interpreter payload into a typed proposal.

    Unknown or missing actions become Unclear (never an exception); a known
    action with missing/malformed parameters raises ValidationFailure.
    """
    if not isinstance(raw, dict):
        return ParsedProposal(action="UNCLEAR", proposal=Unclear())

    action = _to_text(raw.get("action"))
    message = _to_text(raw.get("message"))
    params = raw.get("params")
    if not isinstance(params, dict):
        params = {}

    action_key = action.upper() if action else None
    schema = ACTION_SCHEMAS.get(action_key) if action_key else None
    if schema is None:
        label = action or "UNCLEAR"
        return ParsedProposal(action=label, proposal=Unclear(action=label), message=message, raw_params=params)

    values: dict[str, Any] = {}
    for param in schema.params:
        raw_value = _lookup(params, param)
        try:
            value = COERCERS[param.kind](raw_value)
        except ValueError as exc:
            raise ValidationFailure(f"Invalid {param.name}: {exc}.")
        if value is None:
            if param.required:
                raise ValidationFailure(_missing_message(schema, param))
            continue
        values[param.attr or param.name] = value

    _check_cross_field(schema, values)

    known = {f.name for f in fields(schema.proposal_cls)}
    proposal = schema.proposal_cls(**{k: v for k, v in values.items() if k in known})
    return ParsedProposal(action=schema.action, proposal=proposal, message=message, raw_params=params)


def render_action_catalog() -> str:
    """Human-readable action list used in the interpreter system prompt."""
    lines = []
    for index, schema in enumerate(ACTION_SCHEMAS.values(), start=1):
        lines.append(f"{index}. {schema.action} - {schema.description}")
        for param in schema.params:
            flag = "REQUIRED" if param.required else "optional"
            lines.append(f"   - {param.name}: {param.help or param.name} ({flag})")
        if schema.example:
            lines.append(f'   e.g. "{schema.example}"')
    return "\n".join(lines)
