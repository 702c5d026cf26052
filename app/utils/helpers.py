"""Shared utility functions for blueprints and services.

parse_date:          ISO date parsing for admin-editable dates
is_choice:           enum check that tolerates non-string JSON values
as_utc:              normalise stored datetimes before comparing
db_commit_or_error:  single commit path for every mutating endpoint
"""
import logging
from datetime import date, datetime, timezone

from flask import jsonify

from app.models import db

logger = logging.getLogger(__name__)


def parse_date(value):
    """Parse a ``YYYY-MM-DD`` (or ISO datetime) string to a date object.

    Returns None for empty input and raises ValueError for anything else
    that does not parse, so callers can report a field-level error.
    """
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except ValueError as exc:
        raise ValueError("Invalid date format. Use YYYY-MM-DD.") from exc


def is_choice(value, choices) -> bool:
    """True when ``value`` is a string naming one of ``choices``.

    JSON bodies can carry lists or objects where an enum string is expected;
    those are rejected here instead of reaching a set lookup.
    """
    return isinstance(value, str) and value in choices


def as_utc(value):
    """Attach UTC to naive datetimes (SQLite drops tzinfo on round-trip)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ── Database commit helper ───────────────────────────────────────────────────

def db_commit_or_error():
    """Commit the current SQLAlchemy session, returning an error response on failure.

    Returns:
        None on success.
        (response, status_code) tuple on failure — ready for ``return``.

    Usage::

        err = db_commit_or_error()
        if err:
            return err

    IntegrityError → 409 (duplicate / constraint violation)
    OperationalError → 500 (connection / lock issues)
    Other → 500 (unexpected)
    """
    from sqlalchemy.exc import IntegrityError, OperationalError

    try:
        db.session.commit()
        return None
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        return jsonify({"error": "Duplicate or constraint violation",
                        "code": "ERR_CONFLICT_DUPLICATE"}), 409
    except OperationalError:
        db.session.rollback()
        logger.exception("Database operational error on commit")
        return jsonify({"error": "Database error", "code": "ERR_DATABASE"}), 500
    except Exception:
        db.session.rollback()
        logger.exception("Unexpected database error on commit")
        return jsonify({"error": "Database error", "code": "ERR_DATABASE"}), 500
