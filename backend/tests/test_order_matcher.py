import pytest

from invconsole.extensions import db
from invconsole.models import PurchaseOrder
from invconsole.services.errors import AmbiguityFailure, InvariantViolation, ResolutionFailure
from invconsole.services.order_matcher import find_orders, match_order


def _order(product, warehouse, quantity, status="pending", received=0):
    order = PurchaseOrder(
        product_id=product.id,
        target_warehouse_id=warehouse.id,
        quantity_ordered=quantity,
        quantity_received=received,
        status=status,
        unit_price_cents=product.unit_price_cents,
        total_price_cents=product.unit_price_cents * quantity,
    )
    db.session.add(order)
    db.session.commit()
    return order


def test_order_id_is_an_exact_lookup(catalog):
    order = _order(catalog.widget, catalog.main, 10)
    _order(catalog.widget, catalog.main, 10)
    assert match_order(order_id=order.id).id == order.id


def test_unknown_order_id(catalog):
    with pytest.raises(ResolutionFailure) as excinfo:
        match_order(order_id=404)
    assert str(excinfo.value) == "Could not find order #404"


def test_closed_order_id_is_not_receivable(catalog):
    order = _order(catalog.widget, catalog.main, 10, status="received", received=10)
    with pytest.raises(InvariantViolation):
        match_order(order_id=order.id)


def test_product_substring_filters_open_orders(catalog):
    widget_order = _order(catalog.widget, catalog.main, 10)
    _order(catalog.bolt, catalog.main, 10)
    _order(catalog.widget, catalog.main, 5, status="cancelled")

    assert match_order(product="widg").id == widget_order.id


def test_two_matches_are_ambiguous_and_listed(catalog):
    first = _order(catalog.widget, catalog.main, 10)
    second = _order(catalog.widget, catalog.east, 4, status="shipped")

    with pytest.raises(AmbiguityFailure) as excinfo:
        match_order(product="widget")

    failure = excinfo.value
    assert failure.field == "pendingOrders"
    assert [c["id"] for c in failure.candidates] == [first.id, second.id]
    assert "Found 2 open orders" in str(failure)


def test_warehouse_filter_narrows(catalog):
    _order(catalog.widget, catalog.main, 10)
    east = _order(catalog.widget, catalog.east, 10)
    assert match_order(product="widget", warehouse="East").id == east.id


def test_unresolvable_warehouse_is_not_applied(catalog):
    only = _order(catalog.widget, catalog.main, 10)
    orders, filters = find_orders(product="widget", warehouse="Atlantis")
    assert [o.id for o in orders] == [only.id]
    assert filters == ['product "widget"']


def test_quantity_tightens_to_exact_remaining(catalog):
    _order(catalog.widget, catalog.main, 10)
    partial = _order(catalog.widget, catalog.main, 10, status="partial", received=7)
    assert match_order(product="widget", quantity=3).id == partial.id


def test_quantity_without_exact_match_keeps_all(catalog):
    _order(catalog.widget, catalog.main, 10)
    _order(catalog.widget, catalog.main, 12)
    with pytest.raises(AmbiguityFailure):
        match_order(product="widget", quantity=3)


def test_no_filters_means_all_open_orders(catalog):
    only = _order(catalog.bolt, catalog.west, 100)
    _order(catalog.widget, catalog.main, 10, status="reordered")
    assert match_order().id == only.id


def test_zero_matches_names_the_filters(catalog):
    _order(catalog.bolt, catalog.main, 10)
    with pytest.raises(ResolutionFailure) as excinfo:
        match_order(product="widget", warehouse="Main")
    assert str(excinfo.value) == 'No open orders found matching product "widget", warehouse "Main"'


def test_ambiguity_candidates_are_capped(catalog):
    for _ in range(7):
        _order(catalog.widget, catalog.main, 10)
    with pytest.raises(AmbiguityFailure) as excinfo:
        match_order(product="widget")
    assert len(excinfo.value.candidates) == 5
    assert "Found 7 open orders" in str(excinfo.value)
