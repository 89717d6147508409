# Overview: Read-only projections behind the VIEW_* actions.

"""
View projections.

Every function returns (rows, entity, message). Rows are plain dicts ready
for the envelope's `data` key; entity tags the collection for the caller.
Nothing here writes.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Category, Product, PurchaseOrder, StockRecord, Supplier, TransactionRecord, Warehouse
from ..models.stock import TRANSACTION_KINDS
from invconsole.time_utils import cents_to_amount
from .errors import ValidationFailure
from .resolver import require, _escape_like


def view_products(filter: str | None = None, message: str | None = None):
    on_hand = func.coalesce(func.sum(StockRecord.quantity), 0)
    query = (
        db.session.query(Product, on_hand.label("on_hand"))
        .outerjoin(StockRecord, StockRecord.product_id == Product.id)
        .group_by(Product.id)
    )
    if filter:
        query = query.filter(Product.name.ilike(f"%{_escape_like(filter)}%", escape="\\"))

    rows = []
    for product, quantity in query.order_by(Product.name.asc(), Product.id.asc()).all():
        row = product.to_dict()
        row["on_hand_quantity"] = int(quantity or 0)
        rows.append(row)

    default = f'Products matching "{filter}"' if filter else "All products"
    return rows, "products", message or default


def view_products_in_warehouse(warehouse, message: str | None = None):
    """Flat product rows for one warehouse, only where stock > 0."""
    target = require("warehouse", warehouse)
    results = (
        db.session.query(StockRecord, Product, Category)
        .join(Product, StockRecord.product_id == Product.id)
        .outerjoin(Category, Product.category_id == Category.id)
        .filter(StockRecord.warehouse_id == target.id, StockRecord.quantity > 0)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )
    rows = [
        {
            "product_id": product.id,
            "product_name": product.name,
            "description": product.description,
            "manufacturer": product.manufacturer,
            "unit_price": cents_to_amount(product.unit_price_cents),
            "stock_in_warehouse": record.quantity,
            "category": category.name if category else None,
            "warehouse": target.name,
        }
        for record, product, category in results
    ]
    return rows, "products_in_warehouse", f"Products in {target.name}"


def view_warehouses(message: str | None = None):
    rows = [w.to_dict() for w in db.session.query(Warehouse).order_by(Warehouse.name.asc(), Warehouse.id.asc())]
    return rows, "warehouses", message or "All warehouses"


def view_suppliers(message: str | None = None):
    rows = [s.to_dict() for s in db.session.query(Supplier).order_by(Supplier.name.asc(), Supplier.id.asc())]
    return rows, "suppliers", message or "All suppliers"


def view_orders(status: str | None = None, message: str | None = None):
    query = db.session.query(PurchaseOrder)
    if status:
        query = query.filter(PurchaseOrder.status == status)
    orders = query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()).all()
    default = f"{status.capitalize()} orders" if status else "All orders"
    return [o.to_dict() for o in orders], "orders", message or default


def view_transactions(type: str | None = None, message: str | None = None):
    query = db.session.query(TransactionRecord)
    if type:
        kind = type.strip().lower()
        if kind not in TRANSACTION_KINDS:
            raise ValidationFailure(f"Transaction type must be one of: {', '.join(TRANSACTION_KINDS)}")
        query = query.filter(TransactionRecord.type == kind)

    limit = current_app.config.get("TRANSACTION_VIEW_LIMIT", 50)
    records = (
        query.order_by(TransactionRecord.occurred_at.desc(), TransactionRecord.id.desc())
        .limit(limit)
        .all()
    )
    return [t.to_dict() for t in records], "transactions", message or "Recent transactions"


def view_stock(warehouse=None, product=None, message: str | None = None):
    """Stock rows, optionally narrowed; an unresolvable filter fails rather than being dropped."""
    query = (
        db.session.query(StockRecord)
        .join(Warehouse, StockRecord.warehouse_id == Warehouse.id)
        .join(Product, StockRecord.product_id == Product.id)
    )
    parts = []
    if warehouse is not None:
        target = require("warehouse", warehouse)
        query = query.filter(StockRecord.warehouse_id == target.id)
        parts.append(f"in {target.name}")
    if product is not None:
        item = require("product", product)
        query = query.filter(StockRecord.product_id == item.id)
        parts.append(f"of {item.name}")

    records = query.order_by(Warehouse.name.asc(), Product.name.asc()).all()
    default = "Stock " + " ".join(reversed(parts)) if parts else "Stock levels"
    return [r.to_dict() for r in records], "stock", message or default
