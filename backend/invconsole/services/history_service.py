# Overview: Persists processed natural-language commands and lists them back per user.

from __future__ import annotations

from ..extensions import db
from ..models import CommandHistory
from .results import ActionResult


MAX_HISTORY_LIMIT = 200


def record_command(*, user_id: str | None, command: str, result: ActionResult) -> CommandHistory:
    """Store the command with the envelope it produced. Caller commits."""
    entry = CommandHistory(
        user_id=user_id,
        command=command,
        action=result.action,
        success=result.success,
        result=result.to_dict(),
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def recent_commands(*, user_id: str | None, limit: int = 20) -> list[CommandHistory]:
    """Newest first. Anonymous callers see anonymous history only."""
    limit = max(1, min(limit, MAX_HISTORY_LIMIT))
    query = db.session.query(CommandHistory)
    if user_id:
        query = query.filter(CommandHistory.user_id == user_id)
    else:
        query = query.filter(CommandHistory.user_id.is_(None))
    return query.order_by(CommandHistory.created_at.desc(), CommandHistory.id.desc()).limit(limit).all()
