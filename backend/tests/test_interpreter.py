import httpx
import pytest

from invconsole.services.errors import InterpreterRateLimited, InterpreterTimeout, UpstreamFailure
from invconsole.services.interpreter import (
    UNCLEAR_FALLBACK,
    InterpreterClient,
    build_context_snapshot,
    build_system_prompt,
    extract_proposal,
)
from invconsole.services.order_lifecycle import create_order


PROPOSAL = {
    "action": "TAKE_STOCK",
    "params": {"product": "Widget", "warehouse": "Main Warehouse", "quantity": 5},
    "message": "Taking 5 Widgets from Main Warehouse",
}


def test_snapshot_lists_names_stock_and_open_orders(catalog, set_stock, db_session):
    set_stock(catalog.widget, catalog.main, 10)
    set_stock(catalog.bolt, catalog.east, 0)
    create_order(product=catalog.bolt, quantity=40, warehouse=catalog.west)
    db_session.commit()

    snapshot = build_context_snapshot()

    assert [p["name"] for p in snapshot["products"]] == ["Widget", "Bolt"]
    assert {w["name"] for w in snapshot["warehouses"]} == {"Main Warehouse", "East Depot", "West Depot"}
    assert snapshot["suppliers"] == [{"id": catalog.supplier.id, "name": "ABC Supplies"}]
    assert snapshot["recentStock"] == [{"product": "Widget", "warehouse": "Main Warehouse", "stock": 10}]
    [order] = snapshot["openOrders"]
    assert (order["product"], order["warehouse"], order["remaining"], order["status"]) == (
        "Bolt", "West Depot", 40, "pending"
    )


def test_system_prompt_carries_catalog_and_context(catalog):
    prompt = build_system_prompt(build_context_snapshot())
    assert "MOVE_PRODUCT" in prompt
    assert "VIEW_PRODUCTS_IN_WAREHOUSE" in prompt
    assert f"Widget (ID: {catalog.widget.id})" in prompt
    assert "Open Orders: None" in prompt


def test_interpret_returns_model_proposal(catalog, fake_interpreter):
    client = fake_interpreter(PROPOSAL)

    assert client.interpret("take 5 widgets from main", build_context_snapshot()) == PROPOSAL

    [sent] = fake_interpreter.requests
    assert sent["model"] == "test-model"
    assert sent["temperature"] == 0.1
    assert sent["messages"][0]["role"] == "system"
    assert sent["messages"][1] == {"role": "user", "content": "take 5 widgets from main"}


def test_prose_around_json_is_tolerated(catalog, fake_interpreter):
    client = fake_interpreter('Sure! Here you go:\n```json\n{"action": "VIEW_WAREHOUSES", "params": {}}\n```')
    assert client.interpret("list warehouses", {})["action"] == "VIEW_WAREHOUSES"


@pytest.mark.parametrize("content", ["I am not sure.", "{not json at all}", "[1, 2, 3]"])
def test_unparseable_content_becomes_unclear(catalog, fake_interpreter, content):
    client = fake_interpreter(content)
    assert client.interpret("???", {}) == UNCLEAR_FALLBACK


def test_extract_proposal_ignores_non_string_content(app):
    assert extract_proposal(None)["action"] == "UNCLEAR"


def test_rate_limit(catalog, fake_interpreter):
    client = fake_interpreter(httpx.Response(429, text="slow down"))
    with pytest.raises(InterpreterRateLimited) as excinfo:
        client.interpret("show products", {})
    assert excinfo.value.http_status == 429
    assert excinfo.value.retryable


def test_timeout(catalog, fake_interpreter):
    client = fake_interpreter(httpx.ReadTimeout("timed out"))
    with pytest.raises(InterpreterTimeout) as excinfo:
        client.interpret("show products", {})
    assert excinfo.value.http_status == 504


def test_connection_error(catalog, fake_interpreter):
    client = fake_interpreter(httpx.ConnectError("connection refused"))
    with pytest.raises(UpstreamFailure) as excinfo:
        client.interpret("show products", {})
    assert not isinstance(excinfo.value, (InterpreterTimeout, InterpreterRateLimited))


def test_server_error(catalog, fake_interpreter):
    client = fake_interpreter(httpx.Response(500, text="boom"))
    with pytest.raises(UpstreamFailure) as excinfo:
        client.interpret("show products", {})
    assert excinfo.value.http_status == 502


def test_body_without_choices(catalog, fake_interpreter):
    client = fake_interpreter(httpx.Response(200, json={"error": "quota"}))
    with pytest.raises(UpstreamFailure):
        client.interpret("show products", {})


def test_missing_api_key_never_calls_out(app):
    def handler(request):
        raise AssertionError("no request expected")

    client = InterpreterClient(
        url="https://llm.test/v1/chat/completions",
        api_key=None,
        model="test-model",
        transport=httpx.MockTransport(handler),
    )
    with pytest.raises(UpstreamFailure):
        client.interpret("show products", {})
