"""Standardised API error responses.

Usage
-----
    from app.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Project not found")
    return api_error(E.VALIDATION_REQUIRED, "title is required")
    return api_error(E.CONFLICT_STATE, "Complete previous test cases first",
                     details={"blocking_test_case_ids": [3, 4]})
"""

from __future__ import annotations

import logging

from flask import jsonify

from app.core.exceptions import (
    AuthenticationError,
    ConflictError,
    ExpiredError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants (``ERR_`` prefix)."""

    # Validation – HTTP 400
    VALIDATION_REQUIRED = "ERR_VALIDATION_REQUIRED"
    VALIDATION_INVALID = "ERR_VALIDATION_INVALID"

    # Authentication – HTTP 401
    UNAUTHORIZED = "ERR_UNAUTHORIZED"

    # Permissions – HTTP 403
    FORBIDDEN = "ERR_FORBIDDEN"

    # Not-found – HTTP 404
    NOT_FOUND = "ERR_NOT_FOUND"

    # Conflict / duplicate – HTTP 409
    CONFLICT_DUPLICATE = "ERR_CONFLICT_DUPLICATE"
    CONFLICT_STATE = "ERR_CONFLICT_STATE"

    # Gone – HTTP 410
    EXPIRED = "ERR_EXPIRED"

    # Server – HTTP 500
    DATABASE = "ERR_DATABASE"
    INTERNAL = "ERR_INTERNAL"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION_REQUIRED: 400,
    E.VALIDATION_INVALID: 400,
    E.UNAUTHORIZED: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.CONFLICT_DUPLICATE: 409,
    E.CONFLICT_STATE: 409,
    E.EXPIRED: 410,
    E.DATABASE: 500,
    E.INTERNAL: 500,
}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    details : dict, optional
        Extra structured payload (current/expected state, blocking IDs, etc.).

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """

    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body: dict = {
        "error": message,
        "code": code,
    }
    if details:
        body["details"] = details

    return jsonify(body), http_status


# ── App-level exception handlers ──────────────────────────────────────


def register_error_handlers(app):
    """Map the platform exception hierarchy onto ``api_error`` responses."""

    @app.errorhandler(AuthenticationError)
    def _handle_unauthenticated(error: AuthenticationError):
        return api_error(E.UNAUTHORIZED, str(error))

    @app.errorhandler(ForbiddenError)
    def _handle_forbidden(error: ForbiddenError):
        return api_error(E.FORBIDDEN, str(error))

    @app.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        return api_error(E.VALIDATION_INVALID, str(error), details=error.details)

    @app.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        return api_error(E.NOT_FOUND, f"{error.resource} not found")

    @app.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        return api_error(E.CONFLICT_DUPLICATE, str(error), details={"field": error.field})

    @app.errorhandler(InvalidTransitionError)
    def _handle_transition(error: InvalidTransitionError):
        logger.info("Rejected %s: %s", error.action, error)
        return api_error(E.CONFLICT_STATE, str(error), details=error.details)

    @app.errorhandler(ExpiredError)
    def _handle_expired(error: ExpiredError):
        return api_error(E.EXPIRED, str(error))
