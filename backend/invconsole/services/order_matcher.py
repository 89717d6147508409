# Overview: Narrows partial order references (id, product text, warehouse, quantity) to one purchase order.

"""
Order matching.

FILTER ORDER (candidate set = orders in the requested statuses):
1. order_id given    -> exact lookup; nothing else is consulted
2. product text      -> case-insensitive substring on the product name
3. warehouse         -> target warehouse id, only if the reference resolves
4. quantity          -> when several remain, keep exact remaining-quantity
                        matches (if there are any)
No specific filter at all -> every order in the candidate set.

OUTCOMES: 0 -> ResolutionFailure naming the filters tried,
          >1 -> AmbiguityFailure carrying up to SUGGESTION_LIMIT orders,
          1 -> that order (row-locked for the caller's mutation).
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import PurchaseOrder, Product
from .concurrency import lock_for_update
from .errors import AmbiguityFailure, InvariantViolation, ResolutionFailure
from .order_lifecycle import OPEN_STATUSES
from .resolver import resolve, _escape_like


def _summarize(order: PurchaseOrder) -> dict:
    return {
        "id": order.id,
        "status": order.status,
        "product_name": order.product.name if order.product else None,
        "target_warehouse_name": order.target_warehouse.name if order.target_warehouse else None,
        "supplier_name": order.supplier.name if order.supplier else None,
        "quantity_ordered": order.quantity_ordered,
        "quantity_received": order.quantity_received,
        "remaining": order.remaining,
    }


def _warehouse_id(reference) -> int | None:
    """Warehouse filter only applies when the reference resolves to exactly one row."""
    try:
        warehouse = resolve("warehouse", reference)
    except AmbiguityFailure:
        return None
    return warehouse.id if warehouse else None


def get_order(order_id: int, *, statuses=OPEN_STATUSES, verb: str = "received") -> PurchaseOrder:
    order = lock_for_update(db.session.query(PurchaseOrder).filter_by(id=order_id)).first()
    if order is None:
        raise ResolutionFailure(f"Could not find order #{order_id}", entity="order", identifier=order_id)
    if statuses is not None and order.status not in statuses:
        raise InvariantViolation(f"Order #{order.id} is {order.status} and cannot be {verb}")
    return order


def find_orders(
    *,
    product: str | None = None,
    warehouse=None,
    quantity: int | None = None,
    statuses=OPEN_STATUSES,
) -> tuple[list[PurchaseOrder], list[str]]:
    """
    Candidate orders for the given filters, oldest first.

    Returns:
        (orders, filters) where filters describes each filter that was applied
    """
    query = db.session.query(PurchaseOrder)
    if statuses is not None:
        query = query.filter(PurchaseOrder.status.in_(statuses))

    filters = []
    if product:
        query = query.join(Product, PurchaseOrder.product_id == Product.id).filter(
            Product.name.ilike(f"%{_escape_like(product)}%", escape="\\")
        )
        filters.append(f'product "{product}"')

    if warehouse is not None:
        warehouse_id = _warehouse_id(warehouse)
        if warehouse_id is not None:
            query = query.filter(PurchaseOrder.target_warehouse_id == warehouse_id)
            filters.append(f'warehouse "{warehouse}"')

    orders = query.order_by(PurchaseOrder.created_at.asc(), PurchaseOrder.id.asc()).all()

    if quantity is not None and len(orders) > 1:
        exact = [order for order in orders if order.remaining == quantity]
        if exact:
            orders = exact
            filters.append(f"quantity {quantity}")

    return orders, filters


def match_order(
    *,
    order_id: int | None = None,
    product: str | None = None,
    warehouse=None,
    quantity: int | None = None,
    statuses=OPEN_STATUSES,
    verb: str = "received",
) -> PurchaseOrder:
    """Reduce the filters to exactly one order or raise a resolution/ambiguity failure."""
    if order_id is not None:
        return get_order(order_id, statuses=statuses, verb=verb)

    orders, filters = find_orders(product=product, warehouse=warehouse, quantity=quantity, statuses=statuses)
    tried = ", ".join(filters) if filters else "no filters"

    if not orders:
        raise ResolutionFailure(f"No open orders found matching {tried}", entity="order", identifier=product)

    if len(orders) > 1:
        limit = current_app.config.get("SUGGESTION_LIMIT", 5)
        shown = orders[:limit]
        listing = "; ".join(
            f"#{o.id} ({o.remaining} of {o.product.name if o.product else 'unknown'} "
            f"to {o.target_warehouse.name}, {o.status})"
            for o in shown
        )
        raise AmbiguityFailure(
            f"Found {len(orders)} open orders matching {tried}: {listing}. Please specify the order number.",
            candidates=[_summarize(o) for o in shown],
            field="pendingOrders",
        )

    return get_order(orders[0].id, statuses=statuses, verb=verb)
