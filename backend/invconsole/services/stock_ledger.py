# Overview: Service-layer operations for per-warehouse stock; the only writer of StockRecord rows.

"""
Stock Ledger

INVARIANTS (authoritative):
- StockRecord.quantity >= 0 at all times. Every decrement is checked against
  the locked current row BEFORE mutation; the CHECK constraint re-validates
  at flush/commit.
- A missing StockRecord means zero stock. Decrements never create rows;
  increments upsert.
- Every logical movement appends exactly ONE TransactionRecord (a transfer
  is one row carrying both warehouse ids). TransactionRecords are never
  updated or deleted.
- take / return / transfer never touch Product.total_quantity; only order
  receipt does (see order_lifecycle).

Functions here flush but never commit; the dispatcher owns the transaction.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import StockRecord, TransactionRecord, Product, Warehouse
from ..models.catalog import MAX_INTEGER
from ..models.stock import TXN_TAKE, TXN_RETURN, TXN_TRANSFER, TRANSACTION_KINDS
from .concurrency import lock_for_update, ConcurrentWriteConflict
from .errors import InvariantViolation, ValidationFailure


def get_stock(product_id: int, warehouse_id: int, *, lock: bool = False) -> StockRecord | None:
    query = db.session.query(StockRecord).filter_by(product_id=product_id, warehouse_id=warehouse_id)
    if lock:
        query = lock_for_update(query)
    return query.first()


def on_hand(product_id: int, warehouse_id: int) -> int:
    record = get_stock(product_id, warehouse_id)
    return record.quantity if record else 0


def locations(product_id: int, *, min_quantity: int = 1, lock: bool = False) -> list[StockRecord]:
    """Stock rows for a product holding at least min_quantity, largest first (ties by warehouse id)."""
    query = (
        db.session.query(StockRecord)
        .filter(StockRecord.product_id == product_id, StockRecord.quantity >= min_quantity)
        .order_by(StockRecord.quantity.desc(), StockRecord.warehouse_id.asc())
    )
    if lock:
        query = lock_for_update(query)
    return query.all()


def append_transaction(
    *,
    kind: str,
    amount: int,
    product_id: int | None,
    warehouse_id: int | None,
    description: str,
    target_warehouse_id: int | None = None,
    employee_id: int | None = None,
    order_id: int | None = None,
) -> TransactionRecord:
    """Append-only audit entry. No updates/deletes of existing rows."""
    if kind not in TRANSACTION_KINDS:
        raise ValueError(f"unknown transaction kind: {kind}")
    txn = TransactionRecord(
        type=kind,
        amount=amount,
        product_id=product_id,
        warehouse_id=warehouse_id,
        target_warehouse_id=target_warehouse_id,
        employee_id=employee_id,
        order_id=order_id,
        description=description,
    )
    db.session.add(txn)
    db.session.flush()
    return txn


def _require_positive(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationFailure("Quantity must be a positive whole number")


def remove_stock(product: Product, warehouse: Warehouse, quantity: int, *, insufficient: str | None = None) -> StockRecord:
    """
    Decrement on-hand stock, rejecting (before any mutation) a decrement
    that would go negative. Absent rows are NOT created.
    """
    _require_positive(quantity)
    record = get_stock(product.id, warehouse.id, lock=True)
    available = record.quantity if record else 0
    if record is None or available < quantity:
        prefix = insufficient or f"Insufficient stock of {product.name} in {warehouse.name}"
        raise InvariantViolation(f"{prefix}. Available: {available}, requested: {quantity}")

    record.quantity = available - quantity
    db.session.flush()
    return record


def add_stock(product: Product, warehouse: Warehouse, quantity: int) -> StockRecord:
    """
    Increment on-hand stock, creating the row on first movement.

    A concurrent first insert of the same (product, warehouse) key surfaces
    as ConcurrentWriteConflict so run_with_retry re-runs the operation
    against the now-existing row.
    """
    _require_positive(quantity)
    record = get_stock(product.id, warehouse.id, lock=True)
    if record is not None:
        if record.quantity + quantity > MAX_INTEGER:
            raise InvariantViolation(
                f"Cannot hold more than {MAX_INTEGER:,} units of {product.name} in {warehouse.name}"
            )
        record.quantity = record.quantity + quantity
        db.session.flush()
        return record

    record = StockRecord(product_id=product.id, warehouse_id=warehouse.id, quantity=quantity)
    db.session.add(record)
    try:
        db.session.flush()
    except IntegrityError as exc:
        raise ConcurrentWriteConflict(
            f"stock row for product {product.id} in warehouse {warehouse.id} was created concurrently"
        ) from exc
    return record


def take_stock(product: Product, warehouse: Warehouse, quantity: int, *, employee_id: int | None = None) -> TransactionRecord:
    remove_stock(product, warehouse, quantity)
    return append_transaction(
        kind=TXN_TAKE,
        amount=quantity,
        product_id=product.id,
        warehouse_id=warehouse.id,
        employee_id=employee_id,
        description=f"Took {quantity} units of {product.name} from {warehouse.name}",
    )


def return_stock(product: Product, warehouse: Warehouse, quantity: int, *, employee_id: int | None = None) -> TransactionRecord:
    add_stock(product, warehouse, quantity)
    return append_transaction(
        kind=TXN_RETURN,
        amount=quantity,
        product_id=product.id,
        warehouse_id=warehouse.id,
        employee_id=employee_id,
        description=f"Returned {quantity} units of {product.name} to {warehouse.name}",
    )


def transfer_stock(
    product: Product,
    source: Warehouse,
    destination: Warehouse,
    quantity: int,
    *,
    employee_id: int | None = None,
    verb: str = "Transferred",
) -> TransactionRecord:
    """
    Move stock between warehouses: source decrement, destination upsert and
    a single transfer record, all in the caller's transaction.
    """
    if source.id == destination.id:
        raise ValidationFailure(f"Source and destination are the same warehouse ({source.name})")

    remove_stock(product, source, quantity, insufficient=f"Insufficient stock at source warehouse {source.name}")
    add_stock(product, destination, quantity)
    return append_transaction(
        kind=TXN_TRANSFER,
        amount=quantity,
        product_id=product.id,
        warehouse_id=source.id,
        target_warehouse_id=destination.id,
        employee_id=employee_id,
        description=f"{verb} {quantity} units of {product.name} from {source.name} to {destination.name}",
    )


def find_move_source(product: Product, destination: Warehouse, quantity: int) -> Warehouse:
    """
    Pick the source warehouse for a move whose origin was not stated.

    Highest-stock location holding at least quantity that is not the
    destination. Fails when only the destination qualifies, or when no
    location holds enough (listing every non-empty location).
    """
    sufficient = locations(product.id, min_quantity=quantity)
    for record in sufficient:
        if record.warehouse_id != destination.id:
            return record.warehouse
    if sufficient:
        raise InvariantViolation(f"Product is already in {destination.name}")

    existing = locations(product.id, min_quantity=1)
    where = ", ".join(f"{r.warehouse.name} ({r.quantity} units)" for r in existing) or "nowhere"
    raise InvariantViolation(
        f"Could not find sufficient stock of {product.name} (requested {quantity}). Current locations: {where}"
    )
