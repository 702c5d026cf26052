"""User directory service.

Reads the identity mirror for tester checks and display names, and lets
admins assign roles. Never used to authenticate a caller.

Transaction policy: flush() only, the blueprint commits.
"""

from __future__ import annotations

import logging

from app.core.exceptions import NotFoundError, ValidationError
from app.models import db
from app.models.user import USER_ROLES, USER_STATUSES, User
from app.utils.helpers import is_choice

logger = logging.getLogger(__name__)


def get_user(external_id: str) -> User | None:
    return User.query.filter_by(external_id=external_id).first()


def require_tester(external_id: str) -> User:
    """Return the mirror row for ``external_id`` or raise when it is not a tester."""
    user = get_user(external_id) if external_id else None
    if user is None or user.role != "tester":
        raise NotFoundError("Tester", external_id)
    return user


def display_names(external_ids) -> dict[str, str]:
    """Map identities to display names, falling back to the raw identity."""
    ids = {i for i in external_ids if i}
    names = {i: i for i in ids}
    if not ids:
        return names
    for user in User.query.filter(User.external_id.in_(ids)).all():
        names[user.external_id] = user.display_name
    return names


def list_testers() -> list[User]:
    """Active users holding the tester role, ordered by name."""
    return (
        User.query
        .filter(User.role == "tester", User.status == "active")
        .order_by(User.first_name, User.last_name, User.external_id)
        .all()
    )


def list_users_query(*, role: str | None = None, status: str | None = None):
    """Base query for the admin user list (newest first)."""
    query = User.query
    if role == "unassigned":
        query = query.filter(User.role_assigned.is_(False))
    elif role:
        query = query.filter(User.role == role)
    if status:
        query = query.filter(User.status == status)
    return query.order_by(User.created_at.desc(), User.id.desc())


def assign_role(external_id: str, data: dict) -> User:
    """Set the role of ``external_id``, creating the mirror row if needed.

    Body fields besides ``role`` (email, first_name, last_name, status) are
    copied onto the row when present.
    """
    role = data.get("role")
    if not is_choice(role, USER_ROLES):
        raise ValidationError(
            f"role must be one of: {', '.join(sorted(USER_ROLES))}",
            details={"role": "invalid"},
        )
    status = data.get("status")
    if status is not None and not is_choice(status, USER_STATUSES):
        raise ValidationError(
            f"status must be one of: {', '.join(sorted(USER_STATUSES))}",
            details={"status": "invalid"},
        )

    user = get_user(external_id)
    if user is None:
        user = User(external_id=external_id)
        db.session.add(user)

    previous = user.role
    user.role = role
    user.role_assigned = True
    for field in ("email", "first_name", "last_name", "status"):
        if data.get(field) is not None:
            setattr(user, field, data[field])
    db.session.flush()

    logger.info("Role of %s set %s → %s", external_id, previous, role)
    return user
