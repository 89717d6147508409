import pytest

from invconsole.extensions import db
from invconsole.models import Product, PurchaseOrder, TransactionRecord
from invconsole.services import order_lifecycle
from invconsole.services.dispatcher import dispatch
from invconsole.services.errors import InvariantViolation, ValidationFailure


def _create(catalog, quantity=10, **extra):
    order = order_lifecycle.create_order(
        product=catalog.widget,
        quantity=quantity,
        warehouse=catalog.main,
        supplier=catalog.supplier,
        **extra,
    )
    db.session.commit()
    return order


def test_new_order_is_pending_and_priced(catalog):
    order = _create(catalog, quantity=4)
    assert order.status == "pending"
    assert order.quantity_received == 0
    assert order.unit_price_cents == 1250
    assert order.total_price_cents == 5000


def test_differing_price_updates_product(catalog):
    order = _create(catalog, quantity=2, unit_price_cents=1500)
    assert order.total_price_cents == 3000
    assert db.session.get(Product, catalog.widget.id).unit_price_cents == 1500


def test_partial_then_full_receipt(catalog, stock_of):
    order = _create(catalog, quantity=10)

    assert order_lifecycle.receive_order(order, 3) == 3
    db.session.commit()
    assert (order.status, order.quantity_received, order.remaining) == ("partial", 3, 7)
    assert order.quantity_ordered == 10
    assert stock_of(catalog.widget, catalog.main) == 3
    assert db.session.get(Product, catalog.widget.id).total_quantity == 3

    assert order_lifecycle.receive_order(order) == 7
    db.session.commit()
    assert (order.status, order.quantity_received, order.remaining) == ("received", 10, 0)
    assert stock_of(catalog.widget, catalog.main) == 10
    assert db.session.get(Product, catalog.widget.id).total_quantity == 10

    receipts = db.session.query(TransactionRecord).filter_by(type="receive").order_by(TransactionRecord.id).all()
    assert [(t.amount, t.order_id) for t in receipts] == [(3, order.id), (7, order.id)]
    assert receipts[0].description.endswith("(partial)")
    assert receipts[1].description.endswith("(full)")


def test_over_receipt_is_rejected_without_mutation(catalog, stock_of):
    order = _create(catalog, quantity=5)
    with pytest.raises(InvariantViolation) as excinfo:
        order_lifecycle.receive_order(order, 6)
    db.session.rollback()

    assert "Remaining: 5" in str(excinfo.value)
    order = db.session.get(PurchaseOrder, order.id)
    assert (order.status, order.quantity_received) == ("pending", 0)
    assert stock_of(catalog.widget, catalog.main) is None


def test_receipt_conservation_over_many_deliveries(catalog):
    order = _create(catalog, quantity=9)
    for quantity in (2, 4, 5, 3, 1):
        try:
            order_lifecycle.receive_order(order, quantity)
            db.session.commit()
        except InvariantViolation:
            db.session.rollback()
        order = db.session.get(PurchaseOrder, order.id)
        assert order.quantity_received <= order.quantity_ordered
        assert (order.status == "received") == (order.remaining == 0)

    assert order.quantity_received == 9
    assert order.status == "received"


def test_received_order_cannot_be_received_again(catalog):
    order = _create(catalog, quantity=1)
    order_lifecycle.receive_order(order)
    db.session.commit()
    with pytest.raises(InvariantViolation):
        order_lifecycle.receive_order(order, 1)


def test_reorder_clones_and_keeps_original(catalog):
    order = _create(catalog, quantity=6)
    message, clone = order_lifecycle.update_status(order, "reordered", employee_id=catalog.employee.id)
    db.session.commit()

    assert order.status == "reordered"
    assert clone.status == "pending"
    assert clone.reordered_from_id == order.id
    assert (clone.product_id, clone.supplier_id, clone.target_warehouse_id) == (
        order.product_id, order.supplier_id, order.target_warehouse_id
    )
    assert (clone.quantity_ordered, clone.unit_price_cents, clone.total_price_cents) == (6, 1250, 7500)
    assert db.session.query(PurchaseOrder).count() == 2
    assert f"new order #{clone.id}" in message


def test_reorder_of_reordered_order_is_rejected(catalog):
    order = _create(catalog)
    order_lifecycle.reorder(order)
    db.session.commit()
    with pytest.raises(InvariantViolation):
        order_lifecycle.reorder(order)


@pytest.mark.parametrize("status", ["received", "partial"])
def test_receipt_statuses_are_routed_to_receive(catalog, status):
    order = _create(catalog)
    with pytest.raises(ValidationFailure) as excinfo:
        order_lifecycle.update_status(order, status)
    assert "RECEIVE_ORDER" in str(excinfo.value)


def test_manual_transitions(catalog):
    order = _create(catalog)
    for status, expected in [
        ("approved", "Order #{id} approved"),
        ("ordered", "Order #{id} marked as ordered"),
        ("shipped", "Order #{id} marked as shipped"),
    ]:
        message, clone = order_lifecycle.update_status(order, status)
        assert clone is None
        assert order.status == status
        assert message == expected.format(id=order.id)

    order_lifecycle.update_status(order, "cancelled")
    with pytest.raises(InvariantViolation):
        order_lifecycle.update_status(order, "approved")


def test_partially_received_order_can_only_be_cancelled(catalog):
    order = _create(catalog, quantity=4)
    order_lifecycle.receive_order(order, 1)
    with pytest.raises(InvariantViolation):
        order_lifecycle.update_status(order, "pending")
    message, _ = order_lifecycle.update_status(order, "cancelled")
    assert message == f"Order #{order.id} cancelled"


# ---------------------------------------------------------------------------
# End-to-end scenarios through the dispatcher
# ---------------------------------------------------------------------------

def test_create_order_auto_creates_priced_unknown_product(catalog):
    result = dispatch({
        "action": "CREATE_ORDER",
        "params": {"product": "NewGadget", "quantity": 5, "warehouse": "East", "unit_price": "$20"},
    })

    assert result.success, result.message
    assert result.requires_bill_upload is True
    product = db.session.query(Product).filter_by(name="NewGadget").one()
    assert product.unit_price_cents == 2000
    order = db.session.get(PurchaseOrder, result.order_id)
    assert (order.status, order.total_price_cents, order.target_warehouse_id) == ("pending", 10000, catalog.east.id)
    assert 'New product "NewGadget"' in result.message


def test_create_order_unknown_product_without_price_fails(catalog):
    result = dispatch({
        "action": "CREATE_ORDER",
        "params": {"product": "NewGadget", "quantity": 5, "warehouse": "East"},
    })
    assert not result.success
    assert result.error_kind == "resolution"
    assert db.session.query(Product).filter_by(name="NewGadget").count() == 0


def test_create_order_suggests_similar_products_instead_of_guessing(catalog):
    result = dispatch({
        "action": "CREATE_ORDER",
        "params": {"product": "Widget Deluxe", "quantity": 5, "warehouse": "Main", "unit_price": 30},
    })
    assert not result.success
    assert [p["name"] for p in result.suggested_products] == ["Widget"]
    assert db.session.query(PurchaseOrder).count() == 0
    assert db.session.query(Product).filter_by(name="Widget Deluxe").count() == 0


def test_receive_order_scenario_partial(catalog, stock_of):
    created = dispatch({
        "action": "CREATE_ORDER",
        "params": {"product": "Widget", "quantity": 10, "warehouse": "Main", "supplier": "ABC"},
    })
    result = dispatch({"action": "RECEIVE_ORDER", "params": {"order_id": created.order_id, "quantity": 3}})

    assert result.success, result.message
    assert result.requires_bill_upload is False
    order = db.session.get(PurchaseOrder, created.order_id)
    assert (order.status, order.remaining) == ("partial", 7)
    assert stock_of(catalog.widget, catalog.main) == 3
    assert db.session.get(Product, catalog.widget.id).total_quantity == 3


def test_receive_order_scenario_ambiguous(catalog, stock_of):
    dispatch({"action": "CREATE_ORDER", "params": {"product": "Widget", "quantity": 10, "warehouse": "Main"}})
    dispatch({"action": "CREATE_ORDER", "params": {"product": "Widget", "quantity": 4, "warehouse": "East"}})

    result = dispatch({"action": "RECEIVE_ORDER", "params": {"product": "widget"}})

    assert not result.success
    assert result.error_kind == "ambiguity"
    assert len(result.pending_orders) == 2
    assert stock_of(catalog.widget, catalog.main) is None
    assert {o.quantity_received for o in db.session.query(PurchaseOrder)} == {0}


def test_reorder_scenario(catalog):
    created = dispatch({"action": "CREATE_ORDER", "params": {"product": "Bolt", "quantity": 40, "warehouse": "West"}})
    result = dispatch({"action": "UPDATE_ORDER_STATUS", "params": {"order_id": created.order_id, "status": "reordered"}})

    assert result.success, result.message
    assert result.order_id != created.order_id
    original = db.session.get(PurchaseOrder, created.order_id)
    clone = db.session.get(PurchaseOrder, result.order_id)
    assert original.status == "reordered"
    assert (clone.status, clone.quantity_ordered, clone.reordered_from_id) == ("pending", 40, original.id)


def test_reorder_after_partial_receipt_asks_for_the_remainder(catalog):
    created = dispatch({"action": "CREATE_ORDER", "params": {"product": "Widget", "quantity": 10, "warehouse": "Main"}})
    dispatch({"action": "RECEIVE_ORDER", "params": {"order_id": created.order_id, "quantity": 7}})

    result = dispatch({"action": "UPDATE_ORDER_STATUS", "params": {"order_id": created.order_id, "status": "reordered"}})

    assert result.success, result.message
    clone = db.session.get(PurchaseOrder, result.order_id)
    assert (clone.quantity_ordered, clone.total_price_cents) == (3, 3 * 1250)
    original = db.session.get(PurchaseOrder, created.order_id)
    assert (original.status, original.quantity_received) == ("reordered", 7)
    assert original.quantity_received + clone.quantity_ordered == original.quantity_ordered
