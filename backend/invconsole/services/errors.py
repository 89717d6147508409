# Overview: Failure taxonomy shared by the resolution, ledger, lifecycle and dispatch layers.

"""
Command failure taxonomy.

Handlers raise these internally; the dispatcher converts every one of them
into a success:false envelope. Only UpstreamFailure (and subclasses) maps to
a non-200 status at the HTTP boundary.

ERROR KINDS:
- validation: missing or malformed parameter
- resolution: identifier does not match any known entity
- ambiguity:  several candidates matched; caller must choose
- invariant:  the operation would break a stock/order invariant
- upstream:   interpreter or store unreachable / unparseable
"""

from __future__ import annotations

from typing import Any


class CommandError(Exception):
    """Base class for expected command failures."""

    kind = "error"
    http_status = 200
    retryable = False

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailure(CommandError):
    """Missing or malformed required parameter."""

    kind = "validation"


class ResolutionFailure(CommandError):
    """An identifier did not resolve to a known entity."""

    kind = "resolution"

    def __init__(self, message: str, *, entity: str | None = None, identifier: Any = None):
        super().__init__(message)
        self.entity = entity
        self.identifier = identifier


class AmbiguityFailure(CommandError):
    """
    Multiple candidates matched a reference.

    candidates are already serialized rows; field names the envelope key
    they are returned under (suggestedProducts or pendingOrders).
    """

    kind = "ambiguity"

    def __init__(self, message: str, *, candidates: list[dict], field: str = "candidates"):
        super().__init__(message)
        self.candidates = candidates
        self.field = field


class InvariantViolation(CommandError):
    """Insufficient stock, over-receipt, or an illegal order transition."""

    kind = "invariant"


class UpstreamFailure(CommandError):
    """Interpreter or store unreachable or returned something unusable."""

    kind = "upstream"
    http_status = 502


class InterpreterTimeout(UpstreamFailure):
    kind = "timeout"
    http_status = 504
    retryable = True


class InterpreterRateLimited(UpstreamFailure):
    kind = "rate_limited"
    http_status = 429
    retryable = True
