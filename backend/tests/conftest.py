"""
Pytest fixtures for invconsole backend tests.

Provides an in-memory application, per-test table cleanup, a small
catalogue of warehouses/products/suppliers, and a fake interpreter backed by
httpx.MockTransport.
"""

import json
from types import SimpleNamespace

import httpx
import pytest

from invconsole import create_app
from invconsole.extensions import db
from invconsole.models import Employee, Product, StockRecord, Supplier, Warehouse
from invconsole.services.interpreter import InterpreterClient


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'INTERPRETER_API_KEY': None,
        'RETRY_BACKOFF_SECONDS': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema (Core deletes bypass the audit-row listeners)
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        app.extensions.pop('interpreter', None)


@pytest.fixture(scope='function')
def catalog(db_session):
    """Three warehouses, two products, one supplier and one linked employee."""
    main = Warehouse(name="Main Warehouse", address="1 Industrial Way")
    east = Warehouse(name="East Depot")
    west = Warehouse(name="West Depot")
    widget = Product(name="Widget", unit_price_cents=1250, total_quantity=0)
    bolt = Product(name="Bolt", unit_price_cents=25, total_quantity=0)
    supplier = Supplier(name="ABC Supplies", contact_email="abc@example.com")
    employee = Employee(user_id="user-1", name="Dana")
    db_session.add_all([main, east, west, widget, bolt, supplier, employee])
    db_session.commit()
    return SimpleNamespace(
        main=main, east=east, west=west,
        widget=widget, bolt=bolt,
        supplier=supplier, employee=employee,
    )


@pytest.fixture(scope='function')
def set_stock(db_session):
    """Write a StockRecord directly (test setup only)."""
    def _set(product, warehouse, quantity):
        record = db_session.get(StockRecord, (product.id, warehouse.id))
        if record is None:
            record = StockRecord(product_id=product.id, warehouse_id=warehouse.id, quantity=quantity)
            db_session.add(record)
        else:
            record.quantity = quantity
        db_session.commit()
        return record
    return _set


@pytest.fixture(scope='function')
def stock_of(db_session):
    """Current on-hand quantity, read fresh from the database."""
    def _get(product, warehouse):
        db_session.expire_all()
        record = db_session.get(StockRecord, (product.id, warehouse.id))
        return record.quantity if record else None
    return _get


def chat_completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


@pytest.fixture(scope='function')
def fake_interpreter(app, db_session):
    """
    Install an InterpreterClient whose HTTP calls go to a MockTransport.

    Call it with a proposal dict (returned as model content), a raw string,
    or an httpx.Response / exception for error paths. Sent request bodies are
    collected in .requests.
    """
    requests = []

    def _install(reply):
        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(json.loads(request.content))
            if isinstance(reply, Exception):
                raise reply
            if isinstance(reply, httpx.Response):
                return reply
            content = reply if isinstance(reply, str) else json.dumps(reply)
            return httpx.Response(200, json=chat_completion(content))

        client = InterpreterClient(
            url="https://llm.test/v1/chat/completions",
            api_key="test-key",
            model="test-model",
            timeout=5,
            transport=httpx.MockTransport(handler),
        )
        app.extensions['interpreter'] = client
        return client

    _install.requests = requests
    return _install
