"""
Accessibility Audit Platform
Authorization decorators and ownership predicates.

Provides:
    - Identity:          (user_id, role) of the caller, resolved once per request
    - require_role:      decorator that admits only the listed roles
    - current_identity:  the Identity stored by ``require_role``
    - ensure_*:          ownership predicates raising ForbiddenError

Security model:
    - ``app/middleware/jwt_auth.py`` reads the bearer token into
      ``g.jwt_user_id`` / ``g.jwt_role``; nothing else sets them
    - Every protected endpoint is decorated exactly once with
      ``require_role``; per-resource ownership is a predicate call inside
      the view (customers own projects, testers own assignments/scenarios)
    - Invited members get the owner's read access and nothing more
"""

import functools
import logging
from dataclasses import dataclass

from flask import g, request

from app.core.exceptions import AuthenticationError, ForbiddenError
from app.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# ── Roles ────────────────────────────────────────────────────────────────────

ROLES = {"admin", "tester", "customer"}


@dataclass(frozen=True)
class Identity:
    """Authenticated caller."""

    user_id: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def _identity_from_request() -> Identity | None:
    user_id = getattr(g, "jwt_user_id", None)
    if not user_id:
        return None
    return Identity(user_id=str(user_id), role=getattr(g, "jwt_role", None) or "")


def current_identity() -> Identity:
    """Return the caller resolved by ``require_role`` for this request."""
    identity = getattr(g, "identity", None)
    if identity is None:
        raise AuthenticationError()
    return identity


# ── Authorization decorator ──────────────────────────────────────────────────

def require_role(*roles: str):
    """
    Decorator: require an authenticated caller holding one of ``roles``.

    Usage:
        @project_bp.route("/projects", methods=["POST"])
        @require_role("customer")
        def create_project(): ...

    No identity → 401, identity with another role → 403.
    """
    allowed = set(roles)

    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            identity = _identity_from_request()
            if identity is None:
                return api_error(E.UNAUTHORIZED, "Authentication required")

            if identity.role not in allowed:
                logger.warning(
                    "Access denied: role '%s' tried to access %s (allowed: %s)",
                    identity.role or "-", request.path, ", ".join(sorted(allowed)),
                )
                return api_error(E.FORBIDDEN, "Insufficient permissions")

            g.identity = identity
            return f(*args, **kwargs)
        return decorated
    return decorator


# ── Ownership predicates ─────────────────────────────────────────────────────

def is_project_owner(identity: Identity, project) -> bool:
    return identity.role == "customer" and project.customer_id == identity.user_id


def is_project_member(identity: Identity, project) -> bool:
    return identity.role == "customer" and identity.user_id in project.member_ids()


def ensure_project_viewer(identity: Identity, project):
    """Admins see every project; customers their own and those they were invited to."""
    if identity.is_admin or is_project_owner(identity, project) or is_project_member(identity, project):
        return
    raise ForbiddenError("You do not have access to this project")


def ensure_project_manager(identity: Identity, project):
    """Admin or owning customer: members may read but not manage."""
    if identity.is_admin or is_project_owner(identity, project):
        return
    raise ForbiddenError("Only the project owner or an admin may do this")
