# Overview: Top-level entry point that validates a proposal, runs its handler in one transaction and returns an envelope.

"""
Action Dispatcher

CONTRACT: dispatch(payload, actor) -> ActionResult. Never raises for
business outcomes:
- unknown / missing action       -> UNCLEAR-style failure echoing the
                                    interpreter's clarification message
- invalid parameters             -> validation envelope
- handler CommandError           -> rollback, typed failure envelope
- lost concurrency race (after
  retries are exhausted)         -> rollback, retryable conflict envelope
- SQLAlchemyError or any other
  unexpected exception           -> rollback, logged, generic 500 envelope

TRANSACTION: the handler and the commit run together inside
run_with_retry, so a retried attempt re-reads every row it checks and a
failure leaves no partial state behind.
"""

from __future__ import annotations

from typing import Any

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from .concurrency import ConcurrentWriteConflict, run_with_retry
from .errors import CommandError
from .handlers import HANDLERS, ActorContext
from .proposals import ParsedProposal, Unclear, parse_proposal
from .results import ActionResult


UNCLEAR_MESSAGE = (
    "I'm not sure what you want to do. Try commands like "
    '"Take 10 units of Widget A from Main Warehouse" or "Show all products".'
)
CONFLICT_MESSAGE = "The inventory changed while your command was running. Please try again."


def _label(payload: Any) -> str:
    if isinstance(payload, dict) and payload.get("action"):
        return str(payload["action"]).strip().upper() or "UNCLEAR"
    return "UNCLEAR"


def dispatch(payload: Any, actor: ActorContext | None = None) -> ActionResult:
    """
    Validate and execute one action proposal.

    Args:
        payload: raw {action, params, message} dict or an already parsed
            ParsedProposal
        actor: issuing actor; anonymous when None
    """
    actor = actor or ActorContext()

    if isinstance(payload, ParsedProposal):
        parsed = payload
    else:
        try:
            parsed = parse_proposal(payload)
        except CommandError as exc:
            return ActionResult.from_error(_label(payload), exc)

    if isinstance(parsed.proposal, Unclear):
        return ActionResult.fail(parsed.action, parsed.message or UNCLEAR_MESSAGE, error_kind="validation")

    handler = HANDLERS[type(parsed.proposal)]

    def _unit_of_work() -> ActionResult:
        outcome = handler(parsed.proposal, parsed.message, actor)
        db.session.commit()
        return outcome

    try:
        result = run_with_retry(_unit_of_work)
    except CommandError as exc:
        db.session.rollback()
        result = ActionResult.from_error(parsed.action, exc)
    except (ConcurrentWriteConflict, StaleDataError) as exc:
        db.session.rollback()
        current_app.logger.warning("Giving up on %s after concurrent modifications: %s", parsed.action, exc)
        result = ActionResult.fail(parsed.action, CONFLICT_MESSAGE, error_kind="conflict", retryable=True)
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Store error while executing %s", parsed.action)
        return ActionResult.internal_error()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Unexpected error while executing %s", parsed.action)
        return ActionResult.internal_error()

    current_app.logger.info(
        "Dispatched %s for user=%s success=%s", parsed.action, actor.user_id or "anonymous", result.success
    )
    return result
