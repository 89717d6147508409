# Overview: Client for the language-model command interpreter plus the store snapshot it is given.

"""
Command interpreter boundary.

interpret(text, snapshot) -> {action, params, message}

The model is an untrusted upstream. This module only guarantees the shape
of what it returns: a dict, or the UNCLEAR fallback when the model's
content holds no parseable JSON object. Semantic validation happens in
proposals.parse_proposal().

UPSTREAM ERRORS:
- HTTP 429           -> InterpreterRateLimited (retryable)
- timeout            -> InterpreterTimeout (retryable)
- other HTTP/network -> UpstreamFailure
- response body without choices[0].message.content -> UpstreamFailure
"""

from __future__ import annotations

import json
import re

import httpx
from flask import current_app

from ..extensions import db
from ..models import Product, PurchaseOrder, StockRecord, Supplier, Warehouse
from .errors import InterpreterRateLimited, InterpreterTimeout, UpstreamFailure
from .order_lifecycle import OPEN_STATUSES
from .proposals import render_action_catalog


UNCLEAR_FALLBACK = {
    "action": "UNCLEAR",
    "params": {},
    "message": 'I had trouble understanding that. Try commands like "Take 5 units of Product X from Warehouse A"',
}

PROMPT_RULES = """IMPORTANT RULES:
- "show products in [warehouse]", "what's in [warehouse]" -> VIEW_PRODUCTS_IN_WAREHOUSE
- "show products", "list products" without a warehouse -> VIEW_PRODUCTS
- "moved X to Y" WITHOUT a source -> MOVE_PRODUCT (the system finds the source); quantity 1 if not stated
- "moved X from A to B", "transfer X from A to B" -> TRANSFER_STOCK
- Deliveries ("received order 7", "3 widgets arrived") -> RECEIVE_ORDER, never UPDATE_ORDER_STATUS
- Use names exactly as they appear in the context below when you can

Respond ONLY with a JSON object in this exact format:
{"action": "ACTION_NAME", "params": { ... }, "message": "A brief confirmation of what you understood"}

If the command is unclear, respond with:
{"action": "UNCLEAR", "message": "A short clarifying question"}"""

_JSON_BLOCK = re.compile(r"\{[\s\S]*\}")


def build_context_snapshot() -> dict:
    """Compact view of the store handed to the model so it can use real names and ids."""
    products = db.session.query(Product).order_by(Product.id.asc()).limit(50).all()
    warehouses = db.session.query(Warehouse).order_by(Warehouse.id.asc()).limit(20).all()
    suppliers = db.session.query(Supplier).order_by(Supplier.id.asc()).limit(20).all()
    stock = (
        db.session.query(StockRecord)
        .filter(StockRecord.quantity > 0)
        .order_by(StockRecord.product_id.asc(), StockRecord.warehouse_id.asc())
        .limit(100)
        .all()
    )
    orders = (
        db.session.query(PurchaseOrder)
        .filter(PurchaseOrder.status.in_(OPEN_STATUSES))
        .order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc())
        .limit(20)
        .all()
    )
    return {
        "products": [{"id": p.id, "name": p.name} for p in products],
        "warehouses": [{"id": w.id, "name": w.name} for w in warehouses],
        "suppliers": [{"id": s.id, "name": s.name} for s in suppliers],
        "recentStock": [
            {"product": r.product.name, "warehouse": r.warehouse.name, "stock": r.quantity} for r in stock
        ],
        "openOrders": [
            {
                "id": o.id,
                "product": o.product.name if o.product else None,
                "warehouse": o.target_warehouse.name if o.target_warehouse else None,
                "remaining": o.remaining,
                "status": o.status,
            }
            for o in orders
        ],
    }


def _named(rows: list[dict]) -> str:
    return ", ".join(f"{row['name']} (ID: {row['id']})" for row in rows) or "None"


def render_context(snapshot: dict) -> str:
    stock = "; ".join(
        f"{s['product']} has {s['stock']} units in {s['warehouse']}" for s in snapshot.get("recentStock", [])
    )
    orders = "; ".join(
        f"#{o['id']} {o['remaining']} x {o['product']} to {o['warehouse']} ({o['status']})"
        for o in snapshot.get("openOrders", [])
    )
    return "\n".join([
        "Current database context:",
        f"- Products: {_named(snapshot.get('products', []))}",
        f"- Warehouses: {_named(snapshot.get('warehouses', []))}",
        f"- Suppliers: {_named(snapshot.get('suppliers', []))}",
        f"- Current Stock Distribution: {stock or 'None'}",
        f"- Open Orders: {orders or 'None'}",
    ])


def build_system_prompt(snapshot: dict) -> str:
    return (
        "You are an inventory management command parser. Convert natural language commands "
        "into structured actions.\n\nAvailable actions and their parameters:\n\n"
        f"{render_action_catalog()}\n\n{PROMPT_RULES}\n\n{render_context(snapshot)}"
    )


def extract_proposal(content) -> dict:
    """First {...} block of the model content as a dict, else the UNCLEAR fallback."""
    if not isinstance(content, str):
        return dict(UNCLEAR_FALLBACK)
    match = _JSON_BLOCK.search(content)
    if match:
        try:
            parsed = json.loads(match.group(0))
        except ValueError:
            parsed = None
        if isinstance(parsed, dict):
            return parsed
    current_app.logger.warning("Unparseable interpreter output: %.500s", content)
    return dict(UNCLEAR_FALLBACK)


class InterpreterClient:
    """Chat-completions client for an OpenAI-compatible endpoint."""

    def __init__(
        self,
        url: str,
        api_key: str | None,
        model: str,
        timeout: float = 30.0,
        temperature: float = 0.1,
        transport: httpx.BaseTransport | None = None,
    ):
        self.url = url
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.temperature = temperature
        self.transport = transport

    def _post(self, body: dict) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            return client.post(self.url, json=body, headers=headers)

    def interpret(self, text: str, snapshot: dict) -> dict:
        if not self.api_key:
            current_app.logger.error("INTERPRETER_API_KEY is not configured")
            raise UpstreamFailure("The command interpreter is not configured.")

        body = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": build_system_prompt(snapshot)},
                {"role": "user", "content": text},
            ],
            "temperature": self.temperature,
        }

        try:
            response = self._post(body)
        except httpx.TimeoutException as exc:
            current_app.logger.warning("Interpreter timed out after %ss: %s", self.timeout, exc)
            raise InterpreterTimeout("The command interpreter timed out. Please try again.")
        except httpx.RequestError as exc:
            current_app.logger.warning("Interpreter unreachable: %s", exc)
            raise UpstreamFailure("The command interpreter is unavailable.")

        if response.status_code == 429:
            current_app.logger.warning("Interpreter rate limited: %.500s", response.text)
            raise InterpreterRateLimited("Rate limit exceeded. Please try again in a moment.")
        if response.status_code >= 400:
            current_app.logger.warning("Interpreter error %s: %.500s", response.status_code, response.text)
            raise UpstreamFailure("The command interpreter returned an error.")

        try:
            payload = response.json()
            content = payload["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            current_app.logger.warning("Malformed interpreter response: %.500s", response.text)
            raise UpstreamFailure("The command interpreter returned an unreadable response.")

        return extract_proposal(content)


def get_interpreter() -> InterpreterClient:
    """Interpreter for the current app; a client stored in app.extensions wins."""
    client = current_app.extensions.get("interpreter")
    if client is not None:
        return client
    config = current_app.config
    return InterpreterClient(
        url=config["INTERPRETER_URL"],
        api_key=config.get("INTERPRETER_API_KEY"),
        model=config["INTERPRETER_MODEL"],
        timeout=config.get("INTERPRETER_TIMEOUT_SECONDS", 30.0),
        temperature=config.get("INTERPRETER_TEMPERATURE", 0.1),
    )
