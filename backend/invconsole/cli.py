# Overview: Flask CLI command group for bootstrapping the store and running commands from a shell.

# backend/invconsole/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to invconsole (PowerShell: $env:FLASK_APP="invconsole").
# - Use: python -m flask inventory <command> [options]
#
# - python -m flask inventory init-db
#   Create all tables (development; use `flask db upgrade` for migrations).
# - python -m flask inventory seed
#   Idempotently insert demo warehouses, suppliers, products and opening stock.
# - python -m flask inventory run "take 5 Widget A from Main Warehouse" [--user-id admin]
#   Interpret a free-text command and print the response envelope.
# - python -m flask inventory dispatch TAKE_STOCK -p product="Widget A" -p warehouse=1 -p quantity=5
#   Dispatch a structured action without calling the interpreter.

import json

import click
from flask.cli import with_appcontext
from sqlalchemy import func

from .extensions import db
from .models import Employee, Product, StockRecord, Supplier, Warehouse
from .models.stock import TXN_ADJUSTMENT
from .services import stock_ledger
from .services.dispatcher import dispatch
from .services.errors import CommandError
from .services.handlers import ActorContext
from .services.interpreter import build_context_snapshot, get_interpreter
from .services.results import ActionResult


SEED_WAREHOUSES = [
    ("Main Warehouse", "1 Industrial Way"),
    ("East Depot", "12 Harbour Rd"),
]
SEED_SUPPLIERS = [
    ("ABC Supplies", "abc@example.com", "555-0100"),
    ("Bolt Brothers", "sales@boltbros.example.com", "555-0199"),
]
# (name, unit price cents, manufacturer, opening stock per warehouse)
SEED_PRODUCTS = [
    ("Widget A", 1250, "Acme", {"Main Warehouse": 100, "East Depot": 20}),
    ("Hex Bolt M8", 25, "Bolt Brothers", {"Main Warehouse": 500}),
    ("Safety Gloves", 899, "SafeCo", {"East Depot": 40}),
]


def _get_or_create(model, name: str, **fields):
    row = db.session.query(model).filter(func.lower(model.name) == name.lower()).first()
    if row is not None:
        return row, False
    row = model(name=name, **fields)
    db.session.add(row)
    db.session.flush()
    return row, True


def _echo_result(result: ActionResult) -> None:
    click.echo(json.dumps(result.to_dict(), indent=2, default=str))
    if not result.success:
        raise click.exceptions.Exit(1)


def _parse_params(pairs) -> dict:
    params = {}
    for pair in pairs:
        if "=" not in pair:
            raise click.BadParameter(f"expected key=value, got {pair!r}", param_hint="-p/--param")
        key, value = pair.split("=", 1)
        params[key.strip()] = value.strip()
    return params


@click.group('inventory')
def inventory_group():
    """Inventory console commands."""


@inventory_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database tables created")


@inventory_group.command('seed')
@with_appcontext
def seed():
    """
    Insert a small demo catalogue.

    Safe to run repeatedly: existing rows (matched by name) and existing
    stock records are left untouched. Opening stock is logged as
    adjustment transactions.
    """
    click.echo("START Seeding demo data...")

    employee = db.session.query(Employee).filter_by(user_id="admin").first()
    if employee is None:
        employee = Employee(user_id="admin", name="Console Admin")
        db.session.add(employee)
        db.session.flush()
        click.echo(f"PASS Created employee: {employee.name} (user_id: admin)")

    warehouses = {}
    for name, address in SEED_WAREHOUSES:
        warehouse, created = _get_or_create(Warehouse, name, address=address)
        warehouses[name] = warehouse
        click.echo(f"{'PASS Created' if created else 'SKIP Exists'} warehouse: {name} (ID: {warehouse.id})")

    for name, email, phone in SEED_SUPPLIERS:
        supplier, created = _get_or_create(Supplier, name, contact_email=email, contact_phone=phone)
        click.echo(f"{'PASS Created' if created else 'SKIP Exists'} supplier: {name} (ID: {supplier.id})")

    for name, price, manufacturer, stock in SEED_PRODUCTS:
        product, created = _get_or_create(
            Product, name, unit_price_cents=price, manufacturer=manufacturer, total_quantity=0
        )
        click.echo(f"{'PASS Created' if created else 'SKIP Exists'} product: {name} (ID: {product.id})")

        for warehouse_name, quantity in stock.items():
            warehouse = warehouses[warehouse_name]
            if db.session.get(StockRecord, (product.id, warehouse.id)) is not None:
                continue
            stock_ledger.add_stock(product, warehouse, quantity)
            stock_ledger.append_transaction(
                kind=TXN_ADJUSTMENT,
                amount=quantity,
                product_id=product.id,
                warehouse_id=warehouse.id,
                employee_id=employee.id,
                description=f"Opening stock: {quantity} units of {product.name} in {warehouse.name}",
            )
            click.echo(f"PASS Opening stock: {quantity} x {product.name} in {warehouse.name}")

    db.session.commit()
    click.echo("DONE Demo data ready")


@inventory_group.command('run')
@click.argument('text')
@click.option('--user-id', default=None, help='External user id to act as')
@with_appcontext
def run_command(text, user_id):
    """Interpret TEXT with the language model and execute it."""
    actor = ActorContext.for_user(user_id)
    try:
        proposal = get_interpreter().interpret(text, build_context_snapshot())
    except CommandError as e:
        _echo_result(ActionResult.from_error("ERROR", e))
        return
    _echo_result(dispatch(proposal, actor))


@inventory_group.command('dispatch')
@click.argument('action')
@click.option('-p', '--param', 'params', multiple=True, help='Action parameter as key=value (repeatable)')
@click.option('--user-id', default=None, help='External user id to act as')
@with_appcontext
def dispatch_action(action, params, user_id):
    """Dispatch ACTION with the given parameters, bypassing the interpreter."""
    payload = {"action": action, "params": _parse_params(params)}
    _echo_result(dispatch(payload, ActorContext.for_user(user_id)))


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(inventory_group)
