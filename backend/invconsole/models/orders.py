from __future__ import annotations

from ..extensions import db
from invconsole.time_utils import to_utc_z, cents_to_amount


class PurchaseOrder(db.Model):
    """
    Purchase order for stock delivered into one target warehouse.

    quantity_ordered is fixed at creation; quantity_received accumulates
    across (partial) receipts. remaining is always derived, never stored.
    """
    __tablename__ = "purchase_orders"
    __table_args__ = (
        db.CheckConstraint("quantity_ordered > 0", name="ck_purchase_orders_quantity_positive"),
        db.CheckConstraint(
            "quantity_received >= 0 AND quantity_received <= quantity_ordered",
            name="ck_purchase_orders_received_bounded",
        ),
        db.Index("ix_purchase_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    quantity_ordered = db.Column(db.Integer, nullable=False)
    quantity_received = db.Column(db.Integer, nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id", ondelete="SET NULL"), nullable=True, index=True)
    target_warehouse_id = db.Column(db.Integer, db.ForeignKey("warehouses.id"), nullable=False, index=True)

    unit_price_cents = db.Column(db.Integer, nullable=False, default=0)
    total_price_cents = db.Column(db.Integer, nullable=False, default=0)

    created_by = db.Column(db.Integer, db.ForeignKey("employees.id", ondelete="SET NULL"), nullable=True)
    # Lineage: set on orders created by a reorder
    reordered_from_id = db.Column(db.Integer, db.ForeignKey("purchase_orders.id"), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship("Product")
    supplier = db.relationship("Supplier")
    target_warehouse = db.relationship("Warehouse")
    creator = db.relationship("Employee")
    reordered_from = db.relationship("PurchaseOrder", remote_side=[id])

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def remaining(self) -> int:
        return self.quantity_ordered - (self.quantity_received or 0)

    def __repr__(self) -> str:
        return f"<PurchaseOrder id={self.id} status={self.status} ordered={self.quantity_ordered} received={self.quantity_received}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "quantity_ordered": self.quantity_ordered,
            "quantity_received": self.quantity_received,
            "remaining": self.remaining,
            "status": self.status,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier.name if self.supplier else None,
            "target_warehouse_id": self.target_warehouse_id,
            "target_warehouse_name": self.target_warehouse.name if self.target_warehouse else None,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
            "total_price": cents_to_amount(self.total_price_cents),
            "created_by": self.created_by,
            "reordered_from_id": self.reordered_from_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
