# Overview: Resolves loosely-typed references (id, exact name, fuzzy text) to catalog rows.

"""
Entity resolution.

LOOKUP ORDER for resolve():
1. int identifier -> primary key lookup; a miss is None (no fuzzy fallback)
2. case-insensitive exact name match (lowest id wins on duplicate names)
3. case-insensitive substring match, unless exact_only
   - exactly one hit  -> that row
   - several hits     -> AmbiguityFailure with ranked candidates

Fuzzy matching never auto-selects among several rows; the caller is asked
to disambiguate instead. All rankings are deterministic (score, then id).
"""

from __future__ import annotations

import re

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Product, Warehouse, Supplier
from .errors import AmbiguityFailure, ResolutionFailure


ENTITY_MODELS = {
    "product": Product,
    "warehouse": Warehouse,
    "supplier": Supplier,
}

# Upper bound on rows scanned for similarity suggestions
SIMILAR_SCAN_LIMIT = 500


def _model_for(kind: str):
    try:
        return ENTITY_MODELS[kind]
    except KeyError:
        raise ValueError(f"unknown entity kind: {kind}")


def _suggestion_limit() -> int:
    return current_app.config.get("SUGGESTION_LIMIT", 5)


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def summarize(kind: str, row) -> dict:
    """Compact candidate row for disambiguation payloads."""
    summary = {"id": row.id, "name": row.name}
    if kind == "product":
        summary["unit_price_cents"] = row.unit_price_cents
    return summary


def _rank_substring_hits(rows: list, text: str) -> list:
    needle = text.lower()

    def _key(row):
        name = row.name.lower()
        return (not name.startswith(needle), abs(len(name) - len(needle)), row.id)

    return sorted(rows, key=_key)


def resolve(kind: str, identifier, *, exact_only: bool = False):
    """
    Resolve identifier to a product, warehouse or supplier row, or None.

    Raises AmbiguityFailure when a substring lookup matches several rows.
    """
    model = _model_for(kind)

    if identifier is None or isinstance(identifier, bool):
        return None
    if isinstance(identifier, int):
        return db.session.get(model, identifier)

    text = str(identifier).strip()
    if not text:
        return None
    if text.isdigit():
        return db.session.get(model, int(text))

    exact = (
        db.session.query(model)
        .filter(func.lower(model.name) == text.lower())
        .order_by(model.id.asc())
        .first()
    )
    if exact is not None or exact_only:
        return exact

    hits = (
        db.session.query(model)
        .filter(model.name.ilike(f"%{_escape_like(text)}%", escape="\\"))
        .order_by(model.id.asc())
        .all()
    )
    if not hits:
        return None
    if len(hits) == 1:
        return hits[0]

    ranked = _rank_substring_hits(hits, text)[:_suggestion_limit()]
    names = ", ".join(f'"{row.name}" (ID: {row.id})' for row in ranked)
    raise AmbiguityFailure(
        f'"{text}" matches several {kind}s: {names}. Please use the exact name or ID.',
        candidates=[summarize(kind, row) for row in ranked],
        field="suggestedProducts" if kind == "product" else "candidates",
    )


def resolve_exact(kind: str, identifier):
    """Strict variant: id or case-insensitive exact name only."""
    return resolve(kind, identifier, exact_only=True)


def require(kind: str, identifier, *, label: str | None = None):
    """resolve() that turns a miss into a ResolutionFailure naming the reference."""
    row = resolve(kind, identifier)
    if row is None:
        raise ResolutionFailure(
            f"Could not find {label or kind}: {identifier}",
            entity=kind,
            identifier=identifier,
        )
    return row


def _query_words(text: str) -> list[str]:
    return [word for word in re.split(r"\s+", text.lower()) if len(word) > 2]


def similarity_score(name: str, words: list[str]) -> int:
    """
    Number of query words found in name, plus one if the name's first word
    appears inside any query word. Zero means "not similar".
    """
    lowered = name.lower()
    parts = lowered.split()
    first_word = parts[0] if parts else ""
    score = sum(1 for word in words if word in lowered)
    if first_word and any(first_word in word for word in words):
        score += 1
    return score


def resolve_similar(kind: str, text, *, limit: int | None = None) -> list:
    """
    Ranked rows whose names resemble text. Suggestions only; callers must
    never auto-select from this list.
    """
    model = _model_for(kind)
    if text is None:
        return []
    words = _query_words(str(text))
    if not words:
        return []

    rows = db.session.query(model).order_by(model.id.asc()).limit(SIMILAR_SCAN_LIMIT).all()
    scored = [(similarity_score(row.name, words), row) for row in rows]
    scored = [(score, row) for score, row in scored if score > 0]
    scored.sort(key=lambda pair: (-pair[0], pair[1].id))
    return [row for _, row in scored[: (limit or _suggestion_limit())]]
