# Overview: Service-layer inserts for reference entities (products, suppliers, warehouses, categories).

"""
Catalog Service

Reference entities are created by explicit ADD_* commands, or (products
only) implicitly by CREATE_ORDER when an unknown product arrives with a
price. Names are required and unique case-insensitively per entity type, so
exact-name resolution stays deterministic.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Category, Product, Supplier, Warehouse
from .errors import UpstreamFailure, ValidationFailure


def _require_name(name: str | None, label: str) -> str:
    if not name or not name.strip():
        raise ValidationFailure(f"{label.capitalize()} name is required")
    return name.strip()


def _reject_duplicate(model, name: str, label: str) -> None:
    existing = (
        db.session.query(model)
        .filter(func.lower(model.name) == name.lower())
        .order_by(model.id.asc())
        .first()
    )
    if existing:
        raise ValidationFailure(f'A {label} named "{existing.name}" already exists (ID: {existing.id})')


def _insert(row, label: str):
    db.session.add(row)
    try:
        db.session.flush()
    except SQLAlchemyError:
        current_app.logger.exception("Failed to insert %s", label)
        raise UpstreamFailure(f"Failed to add {label}.")
    return row


def get_or_create_category(name: str | None) -> Category | None:
    """Case-insensitive category lookup; unknown names are created."""
    if not name or not name.strip():
        return None
    name = name.strip()
    category = (
        db.session.query(Category)
        .filter(func.lower(Category.name) == name.lower())
        .order_by(Category.id.asc())
        .first()
    )
    if category is None:
        category = _insert(Category(name=name), "category")
    return category


def add_product(
    *,
    name: str,
    unit_price_cents: int | None = None,
    manufacturer: str | None = None,
    description: str | None = None,
    category: str | None = None,
) -> Product:
    """
    Create a product.

    Raises:
        ValidationFailure: missing name, negative price or duplicate name
    """
    name = _require_name(name, "product")
    if unit_price_cents is not None and unit_price_cents < 0:
        raise ValidationFailure("Price cannot be negative")
    _reject_duplicate(Product, name, "product")

    product = Product(
        name=name,
        unit_price_cents=unit_price_cents or 0,
        manufacturer=manufacturer,
        description=description,
        category=get_or_create_category(category),
        total_quantity=0,
    )
    return _insert(product, "product")


def add_supplier(
    *,
    name: str,
    address: str | None = None,
    email: str | None = None,
    phone: str | None = None,
) -> Supplier:
    name = _require_name(name, "supplier")
    _reject_duplicate(Supplier, name, "supplier")
    return _insert(
        Supplier(name=name, address=address, contact_email=email, contact_phone=phone),
        "supplier",
    )


def add_warehouse(*, name: str, address: str | None = None, manager_id: int | None = None) -> Warehouse:
    name = _require_name(name, "warehouse")
    _reject_duplicate(Warehouse, name, "warehouse")
    return _insert(Warehouse(name=name, address=address, manager_id=manager_id), "warehouse")
