from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from invconsole.time_utils import to_utc_z


# Transaction kinds
TXN_TAKE = "take"
TXN_RETURN = "return"
TXN_TRANSFER = "transfer"
TXN_ADJUSTMENT = "adjustment"
TXN_RECEIVE = "receive"

TRANSACTION_KINDS = (TXN_TAKE, TXN_RETURN, TXN_TRANSFER, TXN_ADJUSTMENT, TXN_RECEIVE)


class ImmutableRecordError(RuntimeError):
    """Raised when code attempts to update or delete an audit record."""


class StockRecord(db.Model):
    """
    On-hand quantity of one product in one warehouse.

    Sparse matrix keyed by (product_id, warehouse_id); a missing row means
    zero stock. quantity can never be negative (CHECK constraint), and
    version_id gives optimistic locking so concurrent read-check-write
    cycles on the same key are detected at flush time.
    """
    __tablename__ = "stock_records"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_stock_records_quantity_nonnegative"),
        db.Index("ix_stock_records_warehouse", "warehouse_id"),
    )

    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), primary_key=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id", ondelete="CASCADE"), primary_key=True)
    quantity = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product", backref=db.backref("stock_records", lazy=True))
    warehouse = db.relationship("Warehouse", backref=db.backref("stock_records", lazy=True))

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<StockRecord product_id={self.product_id} warehouse_id={self.warehouse_id} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "warehouse_id": self.warehouse_id,
            "product_name": self.product.name if self.product else None,
            "warehouse_name": self.warehouse.name if self.warehouse else None,
            "stock": self.quantity,
            "updated_at": to_utc_z(self.updated_at),
        }


class TransactionRecord(db.Model):
    """
    Append-only audit entry for one logical stock movement.

    A transfer is ONE row carrying both warehouse ids. Rows are never
    updated or deleted; see the mapper listeners below.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_product_occurred", "product_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    amount = db.Column(db.Integer, nullable=False)
    type = db.Column(db.String(32), nullable=False, index=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True, index=True)
    # Destination for transfers only
    target_warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id", ondelete="SET NULL"), nullable=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id", ondelete="SET NULL"), nullable=True, index=True)

    description = db.Column(db.Text, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product")
    warehouse = db.relationship("Warehouse", foreign_keys=[warehouse_id])
    target_warehouse = db.relationship("Warehouse", foreign_keys=[target_warehouse_id])
    employee = db.relationship("Employee")

    def __repr__(self) -> str:
        return f"<TransactionRecord id={self.id} type={self.type} amount={self.amount}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "amount": self.amount,
            "type": self.type,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "warehouse_id": self.warehouse_id,
            "warehouse_name": self.warehouse.name if self.warehouse else None,
            "target_warehouse_id": self.target_warehouse_id,
            "target_warehouse_name": self.target_warehouse.name if self.target_warehouse else None,
            "employee_id": self.employee_id,
            "order_id": self.order_id,
            "description": self.description,
            "occurred_at": to_utc_z(self.occurred_at),
        }


@event.listens_for(TransactionRecord, "before_update")
def _reject_transaction_update(mapper, connection, target):
    raise ImmutableRecordError(f"Transaction {target.id} is immutable and cannot be updated")


@event.listens_for(TransactionRecord, "before_delete")
def _reject_transaction_delete(mapper, connection, target):
    raise ImmutableRecordError(f"Transaction {target.id} is immutable and cannot be deleted")
