# Overview: Purchase order state machine: creation, (partial) receipt, status changes and reorder.

"""
Order Lifecycle

STATES:
    pending -> approved -> ordered -> shipped -> received
    any open state -> partial (re-enterable) -> received
    any open state -> cancelled | reordered

- OPEN (receivable): pending, approved, ordered, shipped, partial
- TERMINAL: received, cancelled, reordered

RULES:
- quantity_ordered is fixed at creation. quantity_received accumulates and
  never exceeds quantity_ordered; status is `received` iff remaining == 0.
- Receipt is the ONLY path that moves stock or Product.total_quantity.
  update_status() refuses received/partial so the two paths stay distinct.
- Reorder never deletes: the original flips to `reordered` and a new
  `pending` order carries reordered_from_id back to it.
"""

from __future__ import annotations

from ..extensions import db
from ..models import PurchaseOrder, Product, Warehouse, Supplier
from ..models.catalog import MAX_INTEGER
from ..models.stock import TXN_RECEIVE
from invconsole.time_utils import cents_to_amount
from . import stock_ledger
from .errors import InvariantViolation, ValidationFailure


STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_ORDERED = "ordered"
STATUS_SHIPPED = "shipped"
STATUS_PARTIAL = "partial"
STATUS_RECEIVED = "received"
STATUS_CANCELLED = "cancelled"
STATUS_REORDERED = "reordered"

ORDER_STATUSES = (
    STATUS_PENDING,
    STATUS_APPROVED,
    STATUS_ORDERED,
    STATUS_SHIPPED,
    STATUS_PARTIAL,
    STATUS_RECEIVED,
    STATUS_CANCELLED,
    STATUS_REORDERED,
)

OPEN_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_ORDERED, STATUS_SHIPPED, STATUS_PARTIAL)
TERMINAL_STATUSES = (STATUS_RECEIVED, STATUS_CANCELLED, STATUS_REORDERED)

# Statuses reachable through update_status(); receipt has its own path
MANUAL_STATUSES = (
    STATUS_PENDING,
    STATUS_APPROVED,
    STATUS_ORDERED,
    STATUS_SHIPPED,
    STATUS_CANCELLED,
    STATUS_REORDERED,
)

STATUS_MESSAGES = {
    STATUS_PENDING: "Order #{id} moved back to pending",
    STATUS_APPROVED: "Order #{id} approved",
    STATUS_ORDERED: "Order #{id} marked as ordered",
    STATUS_SHIPPED: "Order #{id} marked as shipped",
    STATUS_CANCELLED: "Order #{id} cancelled",
}


def _format_money(cents: int) -> str:
    return f"${cents_to_amount(cents):,.2f}"


def create_order(
    *,
    product: Product,
    quantity: int,
    warehouse: Warehouse,
    supplier: Supplier | None = None,
    unit_price_cents: int | None = None,
    employee_id: int | None = None,
) -> PurchaseOrder:
    """
    Create a pending purchase order.

    A provided unit price that differs from the product's stored price
    replaces the stored price. total = unit price * quantity (cents).

    Raises:
        ValidationFailure: quantity is not a positive whole number
    """
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationFailure("Quantity must be a positive whole number")

    if unit_price_cents is not None and unit_price_cents != product.unit_price_cents:
        product.unit_price_cents = unit_price_cents
    price = product.unit_price_cents or 0
    if price * quantity > MAX_INTEGER:
        raise ValidationFailure(f"Order total cannot exceed ${MAX_INTEGER // 100:,}")

    order = PurchaseOrder(
        quantity_ordered=quantity,
        quantity_received=0,
        status=STATUS_PENDING,
        product_id=product.id,
        supplier_id=supplier.id if supplier else None,
        target_warehouse_id=warehouse.id,
        unit_price_cents=price,
        total_price_cents=price * quantity,
        created_by=employee_id,
    )
    db.session.add(order)
    db.session.flush()
    return order


def describe_created(order: PurchaseOrder) -> str:
    source = f" from {order.supplier.name}" if order.supplier else ""
    return (
        f"Created purchase order #{order.id} for {order.quantity_ordered} units of {order.product.name}"
        f"{source} to {order.target_warehouse.name}. Total: {_format_money(order.total_price_cents)}. "
        f"Product quantity will update when the order is received."
    )


def receive_order(order: PurchaseOrder, quantity: int | None = None, *, employee_id: int | None = None) -> int:
    """
    Record delivery of quantity units (default: everything remaining).

    Posts the units to the order's target warehouse, bumps
    Product.total_quantity and appends one receive transaction.

    Returns:
        Number of units received

    Raises:
        InvariantViolation: order is not open, or quantity exceeds remaining
    """
    if order.status not in OPEN_STATUSES:
        raise InvariantViolation(f"Order #{order.id} is {order.status} and cannot be received")
    if order.product is None:
        raise InvariantViolation(f"Order #{order.id} has no product to receive")

    remaining = order.remaining
    received = remaining if quantity is None else quantity
    if isinstance(received, bool) or not isinstance(received, int) or received <= 0:
        raise ValidationFailure("Quantity must be a positive whole number")
    if received > remaining:
        raise InvariantViolation(
            f"Cannot receive {received} units for order #{order.id}. Remaining: {remaining}"
        )

    order.quantity_received = (order.quantity_received or 0) + received
    order.status = STATUS_RECEIVED if order.remaining == 0 else STATUS_PARTIAL

    product = order.product
    stock_ledger.add_stock(product, order.target_warehouse, received)
    product.total_quantity = (product.total_quantity or 0) + received

    completion = "full" if order.status == STATUS_RECEIVED else "partial"
    stock_ledger.append_transaction(
        kind=TXN_RECEIVE,
        amount=received,
        product_id=product.id,
        warehouse_id=order.target_warehouse_id,
        employee_id=employee_id,
        order_id=order.id,
        description=(
            f"Received {received} units of {product.name} from order #{order.id} ({completion})"
        ),
    )
    db.session.flush()
    return received


def describe_received(order: PurchaseOrder, received: int) -> str:
    if order.status == STATUS_RECEIVED:
        return (
            f"Order #{order.id} fully received. Added {received} units of "
            f"{order.product.name} to {order.target_warehouse.name}."
        )
    return (
        f"Partially received order #{order.id}: added {received} units of {order.product.name} "
        f"to {order.target_warehouse.name}. Remaining: {order.remaining}."
    )


def reorder(order: PurchaseOrder, *, employee_id: int | None = None) -> PurchaseOrder:
    """
    Clone order into a new pending order and flip the original to reordered.

    The new order asks for what is still outstanding: the remaining quantity
    once anything was received, otherwise the full ordered quantity.
    """
    if order.status in (STATUS_RECEIVED, STATUS_REORDERED):
        raise InvariantViolation(f"Order #{order.id} is already {order.status} and cannot be reordered")

    quantity = order.remaining if order.quantity_received else order.quantity_ordered
    clone = PurchaseOrder(
        quantity_ordered=quantity,
        quantity_received=0,
        status=STATUS_PENDING,
        product_id=order.product_id,
        supplier_id=order.supplier_id,
        target_warehouse_id=order.target_warehouse_id,
        unit_price_cents=order.unit_price_cents,
        total_price_cents=order.unit_price_cents * quantity,
        created_by=employee_id,
        reordered_from_id=order.id,
    )
    order.status = STATUS_REORDERED
    db.session.add(clone)
    db.session.flush()
    return clone


def update_status(order: PurchaseOrder, status: str, *, employee_id: int | None = None) -> tuple[str, PurchaseOrder | None]:
    """
    Apply a manual status change.

    Returns:
        (message, new_order) where new_order is set only for reorders

    Raises:
        ValidationFailure: status is a receipt status or unknown
        InvariantViolation: order is in a terminal state, or has receipts
            and the change is not cancel/reorder
    """
    if status in (STATUS_RECEIVED, STATUS_PARTIAL):
        raise ValidationFailure(
            f'Use RECEIVE_ORDER to record deliveries, e.g. "Received order #{order.id}"'
        )
    if status not in MANUAL_STATUSES:
        raise ValidationFailure(f"Unknown order status: {status}")

    if status == STATUS_REORDERED:
        clone = reorder(order, employee_id=employee_id)
        return (
            f"Reordered order #{order.id} as new order #{clone.id} "
            f"({clone.quantity_ordered} units of {clone.product.name if clone.product else 'unknown product'})",
            clone,
        )

    if order.status in TERMINAL_STATUSES:
        raise InvariantViolation(f"Order #{order.id} is already {order.status}")
    if order.status == status:
        return f"Order #{order.id} is already {status}", None
    if order.quantity_received and status != STATUS_CANCELLED:
        raise InvariantViolation(
            f"Order #{order.id} has received {order.quantity_received} units; it can only be cancelled or reordered"
        )

    order.status = status
    db.session.flush()
    return STATUS_MESSAGES[status].format(id=order.id), None
