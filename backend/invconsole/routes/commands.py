# backend/invconsole/routes/commands.py
"""
Natural-language command API routes.

Identity comes from the X-User-Id header set by the auth gateway in front
of this service; without it the command runs as an anonymous actor.
"""
from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError

from invconsole.extensions import db
from invconsole.services.dispatcher import dispatch
from invconsole.services.errors import CommandError
from invconsole.services.handlers import ActorContext
from invconsole.services.history_service import record_command, recent_commands
from invconsole.services.interpreter import build_context_snapshot, get_interpreter
from invconsole.services.results import ActionResult


commands_bp = Blueprint("commands", __name__, url_prefix="/api")


def _current_user_id() -> str | None:
    user_id = (request.headers.get("X-User-Id") or "").strip()
    return user_id or None


def _respond(result: ActionResult):
    return jsonify(result.to_dict()), result.http_status


def _record(user_id: str | None, command: str, result: ActionResult) -> None:
    try:
        record_command(user_id=user_id, command=command, result=result)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Failed to record command history")


@commands_bp.route("/commands", methods=["POST"])
def run_command():
    """
    Interpret and execute a free-text command.

    Request body:
    {
        "command": str
    }

    Returns:
        200: Envelope (success true or false)
        400: Missing command
        429/502/504: Interpreter unavailable (envelope with errorKind)
        500: Unexpected error (generic envelope)
    """
    data = request.get_json(silent=True) or {}
    command = str(data.get("command") or "").strip()
    if not command:
        return jsonify({"error": "command is required"}), 400

    user_id = _current_user_id()
    try:
        actor = ActorContext.for_user(user_id)
        proposal = get_interpreter().interpret(command, build_context_snapshot())
        result = dispatch(proposal, actor)
    except CommandError as e:
        db.session.rollback()
        result = ActionResult.from_error("ERROR", e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Command processing failed")
        result = ActionResult.internal_error()

    _record(user_id, command, result)
    return _respond(result)


@commands_bp.route("/actions", methods=["POST"])
def run_action():
    """
    Execute an already structured proposal (no interpreter call).

    Request body:
    {
        "action": str,
        "params": dict (optional),
        "message": str (optional)
    }
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"error": "JSON object body is required"}), 400

    try:
        result = dispatch(data, ActorContext.for_user(_current_user_id()))
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Action dispatch failed")
        result = ActionResult.internal_error()
    return _respond(result)


@commands_bp.route("/commands/history", methods=["GET"])
def command_history():
    """Recent commands for the calling user, newest first."""
    limit = request.args.get("limit", 20, type=int)
    entries = recent_commands(user_id=_current_user_id(), limit=limit)
    return jsonify({"items": [entry.to_dict() for entry in entries]})
