# Overview: One handler per action proposal; resolves references and calls the ledger/lifecycle/catalog services.

"""
Action handlers.

Each handler takes a typed proposal (see proposals.py), the interpreter's
message and the ActorContext, and returns a success ActionResult. Expected
failures are raised as CommandError subclasses; the dispatcher owns the
transaction and turns those into envelopes after rolling back.

Fixed step order inside every mutation handler:
    resolve entities -> validate -> mutate -> append transaction
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from ..extensions import db
from ..models import Employee
from . import catalog_service, order_lifecycle, order_matcher, stock_ledger, views
from .errors import AmbiguityFailure, InvariantViolation, ResolutionFailure, ValidationFailure
from .proposals import (
    AddProduct,
    AddSupplier,
    AddWarehouse,
    CreateOrder,
    MoveProduct,
    ReceiveOrder,
    ReturnStock,
    TakeStock,
    TransferStock,
    UpdateOrderStatus,
    ViewOrders,
    ViewProducts,
    ViewProductsInWarehouse,
    ViewStock,
    ViewSuppliers,
    ViewTransactions,
    ViewWarehouses,
    ACTION_BY_CLASS,
)
from .resolver import require, resolve_exact, resolve_similar, summarize
from .results import ActionResult


@dataclass(frozen=True)
class ActorContext:
    """Who issued the command. employee_id is None for anonymous or unlinked users."""
    user_id: str | None = None
    employee_id: int | None = None

    @classmethod
    def for_user(cls, user_id: str | None) -> "ActorContext":
        if not user_id:
            return cls()
        employee = db.session.query(Employee).filter_by(user_id=user_id).first()
        return cls(user_id=user_id, employee_id=employee.id if employee else None)


HANDLERS: dict[type, Callable] = {}


def handles(proposal_cls: type):
    """Register a handler for one proposal variant."""
    def decorator(func):
        HANDLERS[proposal_cls] = func
        return func
    return decorator


def _view(proposal_cls, rows, entity, message) -> ActionResult:
    return ActionResult.ok(ACTION_BY_CLASS[proposal_cls], message, data=rows, entity=entity)


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------

@handles(ViewProducts)
def view_products(p: ViewProducts, message, actor) -> ActionResult:
    return _view(ViewProducts, *views.view_products(p.filter, message))


@handles(ViewProductsInWarehouse)
def view_products_in_warehouse(p: ViewProductsInWarehouse, message, actor) -> ActionResult:
    return _view(ViewProductsInWarehouse, *views.view_products_in_warehouse(p.warehouse, message))


@handles(ViewWarehouses)
def view_warehouses(p: ViewWarehouses, message, actor) -> ActionResult:
    return _view(ViewWarehouses, *views.view_warehouses(message))


@handles(ViewSuppliers)
def view_suppliers(p: ViewSuppliers, message, actor) -> ActionResult:
    return _view(ViewSuppliers, *views.view_suppliers(message))


@handles(ViewOrders)
def view_orders(p: ViewOrders, message, actor) -> ActionResult:
    return _view(ViewOrders, *views.view_orders(p.status, message))


@handles(ViewTransactions)
def view_transactions(p: ViewTransactions, message, actor) -> ActionResult:
    return _view(ViewTransactions, *views.view_transactions(p.type, message))


@handles(ViewStock)
def view_stock(p: ViewStock, message, actor) -> ActionResult:
    return _view(ViewStock, *views.view_stock(p.warehouse, p.product, message))


# ---------------------------------------------------------------------------
# Stock movement
# ---------------------------------------------------------------------------

@handles(TakeStock)
def take_stock(p: TakeStock, message, actor) -> ActionResult:
    product = require("product", p.product)
    warehouse = require("warehouse", p.warehouse)
    stock_ledger.take_stock(product, warehouse, p.quantity, employee_id=actor.employee_id)
    return ActionResult.ok(
        "TAKE_STOCK",
        f"Successfully took {p.quantity} units of {product.name} from {warehouse.name}",
    )


@handles(ReturnStock)
def return_stock(p: ReturnStock, message, actor) -> ActionResult:
    product = require("product", p.product)
    warehouse = require("warehouse", p.warehouse)
    stock_ledger.return_stock(product, warehouse, p.quantity, employee_id=actor.employee_id)
    return ActionResult.ok(
        "RETURN_STOCK",
        f"Successfully returned {p.quantity} units of {product.name} to {warehouse.name}",
    )


@handles(TransferStock)
def transfer_stock(p: TransferStock, message, actor) -> ActionResult:
    product = require("product", p.product)
    source = require("warehouse", p.from_warehouse, label="source warehouse")
    destination = require("warehouse", p.to_warehouse, label="destination warehouse")
    txn = stock_ledger.transfer_stock(product, source, destination, p.quantity, employee_id=actor.employee_id)
    return ActionResult.ok("TRANSFER_STOCK", txn.description)


@handles(MoveProduct)
def move_product(p: MoveProduct, message, actor) -> ActionResult:
    product = require("product", p.product)
    destination = require("warehouse", p.to_warehouse, label="destination warehouse")

    if p.from_warehouse is not None:
        source = require("warehouse", p.from_warehouse, label="source warehouse")
        if source.id == destination.id:
            raise InvariantViolation(f"Product is already in {destination.name}")
    else:
        source = stock_ledger.find_move_source(product, destination, p.quantity)

    txn = stock_ledger.transfer_stock(
        product, source, destination, p.quantity, employee_id=actor.employee_id, verb="Moved"
    )
    return ActionResult.ok("MOVE_PRODUCT", txn.description)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------

def _product_for_order(p: CreateOrder):
    """
    Strict-exact product lookup for order creation.

    Returns (product, created). Unknown names are auto-created only when no
    similar product exists AND a unit price was supplied.
    """
    product = resolve_exact("product", p.product)
    if product is not None:
        return product, False

    if isinstance(p.product, int):
        raise ResolutionFailure(f"Could not find product: {p.product}", entity="product", identifier=p.product)

    similar = resolve_similar("product", p.product)
    if similar:
        listing = ", ".join(f'"{row.name}" (ID: {row.id})' for row in similar)
        raise AmbiguityFailure(
            f'Product "{p.product}" not found. Did you mean one of these? {listing}. '
            f'Please reorder using the exact product name, or say "Add product {p.product}" to create a new one.',
            candidates=[summarize("product", row) for row in similar],
            field="suggestedProducts",
        )

    if p.unit_price_cents is None:
        raise ResolutionFailure(
            f'Product "{p.product}" does not exist. Try: "Add product {p.product} at price X" then reorder, '
            f"or include a unit price in the order to create it.",
            entity="product",
            identifier=p.product,
        )

    return catalog_service.add_product(name=p.product, unit_price_cents=p.unit_price_cents), True


@handles(CreateOrder)
def create_order(p: CreateOrder, message, actor) -> ActionResult:
    warehouse = require("warehouse", p.warehouse, label="target warehouse")
    supplier = require("supplier", p.supplier) if p.supplier is not None else None
    product, created = _product_for_order(p)

    order = order_lifecycle.create_order(
        product=product,
        quantity=p.quantity,
        warehouse=warehouse,
        supplier=supplier,
        unit_price_cents=p.unit_price_cents,
        employee_id=actor.employee_id,
    )
    text = order_lifecycle.describe_created(order)
    if created:
        text += f' New product "{product.name}" was added to the catalog.'
    return ActionResult.ok("CREATE_ORDER", text, requires_bill_upload=True, order_id=order.id)


@handles(ReceiveOrder)
def receive_order(p: ReceiveOrder, message, actor) -> ActionResult:
    order = order_matcher.match_order(
        order_id=p.order_id,
        product=p.product,
        warehouse=p.warehouse,
        quantity=p.quantity,
    )
    received = order_lifecycle.receive_order(order, p.quantity, employee_id=actor.employee_id)
    return ActionResult.ok(
        "RECEIVE_ORDER",
        order_lifecycle.describe_received(order, received),
        requires_bill_upload=False,
        order_id=order.id,
    )


@handles(UpdateOrderStatus)
def update_order_status(p: UpdateOrderStatus, message, actor) -> ActionResult:
    if p.status in (order_lifecycle.STATUS_RECEIVED, order_lifecycle.STATUS_PARTIAL):
        raise ValidationFailure(
            'Deliveries are recorded with RECEIVE_ORDER, e.g. "Received order #7" or "Received 3 units of order #7"'
        )

    statuses = order_lifecycle.OPEN_STATUSES
    if p.status == order_lifecycle.STATUS_REORDERED:
        statuses = statuses + (order_lifecycle.STATUS_CANCELLED,)
    if p.order_id is not None:
        statuses = None

    order = order_matcher.match_order(order_id=p.order_id, product=p.product, statuses=statuses, verb="updated")
    text, clone = order_lifecycle.update_status(order, p.status, employee_id=actor.employee_id)
    return ActionResult.ok(
        "UPDATE_ORDER_STATUS",
        text,
        requires_bill_upload=False,
        order_id=clone.id if clone else order.id,
    )


# ---------------------------------------------------------------------------
# Reference entities
# ---------------------------------------------------------------------------

@handles(AddProduct)
def add_product(p: AddProduct, message, actor) -> ActionResult:
    product = catalog_service.add_product(
        name=p.name,
        unit_price_cents=p.unit_price_cents,
        manufacturer=p.manufacturer,
        description=p.description,
        category=p.category,
    )
    return ActionResult.ok("ADD_PRODUCT", f"Added product: {product.name}", data=[product.to_dict()], entity="products")


@handles(AddSupplier)
def add_supplier(p: AddSupplier, message, actor) -> ActionResult:
    supplier = catalog_service.add_supplier(name=p.name, address=p.address, email=p.email, phone=p.phone)
    return ActionResult.ok("ADD_SUPPLIER", f"Added supplier: {supplier.name}", data=[supplier.to_dict()], entity="suppliers")


@handles(AddWarehouse)
def add_warehouse(p: AddWarehouse, message, actor) -> ActionResult:
    warehouse = catalog_service.add_warehouse(name=p.name, address=p.address)
    return ActionResult.ok("ADD_WAREHOUSE", f"Added warehouse: {warehouse.name}", data=[warehouse.to_dict()], entity="warehouses")
