"""Project lifecycle service.

Covers customer submission, admin edits and status changes, tester
assignment / removal, and public share links.

State changes are single conditional UPDATE statements guarded by the
state the caller observed (``WHERE id = :id AND status = :expected``). A
zero rowcount means another request got there first and is reported as an
invalid transition; nothing is retried.

Transaction policy: flush() only, the blueprint commits.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import (
    ConflictError,
    ExpiredError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from app.models import db
from app.models.collaboration import ProjectMember
from app.models.project import (
    AUTO_OPEN_NOTE,
    PRICE_CURRENCIES,
    PROJECT_PRIORITIES,
    PROJECT_STATUSES,
    SERVICE_CATEGORIES,
    SERVICE_PACKAGES,
    TESTER_ROLES,
    Project,
    StatusHistory,
    TesterAssignment,
)
from app.services.user_service import require_tester
from app.utils.helpers import as_utc, is_choice, parse_date

logger = logging.getLogger(__name__)

_REQUIRED_SUBMISSION_FIELDS = (
    "project_name", "service_category", "target_url",
    "accessibility_standard", "service_package",
)

# Fields an admin may edit directly through PATCH (status handled separately)
_ADMIN_EDITABLE_FIELDS = (
    "project_name", "priority", "due_date", "admin_notes",
    "price_amount", "price_currency", "price_note",
)


def _now():
    return datetime.now(timezone.utc)


def _str(value) -> str:
    return str(value or "").strip()


def _validate_price(data: dict, errors: dict):
    if "price_amount" in data:
        amount = data["price_amount"]
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            errors["price_amount"] = "must be a non-negative integer (minor units)"
    if "price_currency" in data and not is_choice(data["price_currency"], PRICE_CURRENCIES):
        errors["price_currency"] = f"must be one of: {', '.join(sorted(PRICE_CURRENCIES))}"


# ═════════════════════════════════════════════════════════════════════════════
# Submission & CRUD
# ═════════════════════════════════════════════════════════════════════════════


def create_project(customer_id: str, data: dict) -> Project:
    """Create a pending project for ``customer_id`` from a submission body."""
    errors = {}
    for field in _REQUIRED_SUBMISSION_FIELDS:
        if not _str(data.get(field)):
            errors[field] = "required"
    category = _str(data.get("service_category"))
    if category and not is_choice(category, SERVICE_CATEGORIES):
        errors["service_category"] = f"must be one of: {', '.join(sorted(SERVICE_CATEGORIES))}"
    package = _str(data.get("service_package"))
    if package and not is_choice(package, SERVICE_PACKAGES):
        errors["service_package"] = f"must be one of: {', '.join(sorted(SERVICE_PACKAGES))}"
    devices = data.get("devices", [])
    if not isinstance(devices, list) or not all(isinstance(d, str) for d in devices):
        errors["devices"] = "must be a list of strings"
    _validate_price(data, errors)
    if errors:
        raise ValidationError("Validation failed", details=errors)

    project = Project(
        customer_id=customer_id,
        project_name=_str(data["project_name"]),
        service_category=category,
        target_url=_str(data["target_url"]),
        location_address=_str(data.get("location_address")),
        accessibility_standard=_str(data["accessibility_standard"]),
        service_package=package,
        devices=devices,
        special_instructions=_str(data.get("special_instructions")),
        price_amount=data.get("price_amount", 0),
        price_currency=data.get("price_currency", "THB"),
        price_note=_str(data.get("price_note")),
        status="pending",
    )
    db.session.add(project)
    db.session.flush()
    logger.info("Project %s submitted by customer %s", project.id, customer_id)
    return project


def get_project(project_id: int) -> Project:
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project", project_id)
    return project


def list_projects_query(identity, status: str | None = None):
    """Admins see every project, customers their own plus invited ones (newest first)."""
    query = Project.query
    if not identity.is_admin:
        query = query.filter(or_(
            Project.customer_id == identity.user_id,
            Project.id.in_(
                select(ProjectMember.project_id).where(ProjectMember.user_id == identity.user_id)
            ),
        ))
    if status:
        query = query.filter(Project.status == status)
    return query.order_by(Project.created_at.desc(), Project.id.desc())


def delete_project(project: Project):
    """Delete a project that has not left ``pending`` yet."""
    if project.status != "pending":
        raise InvalidTransitionError("delete", current=project.status, expected="pending")
    db.session.delete(project)
    db.session.flush()
    logger.info("Project %s deleted", project.id)


def update_project(project: Project, data: dict, *, changed_by: str) -> Project:
    """Apply an admin PATCH: editable fields plus an optional status change.

    Body: editable fields, ``status``, ``status_note``, and ``expected_status``
    (the status the admin saw; defaults to the current one).
    """
    errors = {}
    if "project_name" in data and not _str(data["project_name"]):
        errors["project_name"] = "cannot be empty"
    if "priority" in data and not is_choice(data["priority"], PROJECT_PRIORITIES):
        errors["priority"] = f"must be one of: {', '.join(sorted(PROJECT_PRIORITIES))}"
    if "status" in data and not is_choice(data["status"], PROJECT_STATUSES):
        errors["status"] = f"must be one of: {', '.join(sorted(PROJECT_STATUSES))}"
    if data.get("expected_status") is not None and not is_choice(data["expected_status"], PROJECT_STATUSES):
        errors["expected_status"] = f"must be one of: {', '.join(sorted(PROJECT_STATUSES))}"
    due_date = None
    if data.get("due_date"):
        try:
            due_date = parse_date(data["due_date"])
        except ValueError as exc:
            errors["due_date"] = str(exc)
    _validate_price(data, errors)
    if errors:
        raise ValidationError("Validation failed", details=errors)

    for field in _ADMIN_EDITABLE_FIELDS:
        if field not in data:
            continue
        if field == "due_date":
            project.due_date = due_date
        elif field in ("project_name", "admin_notes", "price_note"):
            setattr(project, field, _str(data[field]))
        else:
            setattr(project, field, data[field])
    db.session.flush()

    if "status" in data:
        change_project_status(
            project,
            data["status"],
            changed_by=changed_by,
            note=_str(data.get("status_note")),
            expected=data.get("expected_status"),
        )
    return project


# ═════════════════════════════════════════════════════════════════════════════
# Project status
# ═════════════════════════════════════════════════════════════════════════════


def _conditional_status_update(project_id: int, expected: str, new_status: str) -> bool:
    result = db.session.execute(
        update(Project)
        .where(Project.id == project_id, Project.status == expected)
        .values(status=new_status, updated_at=_now())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


def change_project_status(
    project: Project,
    new_status: str,
    *,
    changed_by: str,
    note: str = "",
    expected: str | None = None,
) -> bool:
    """Move ``project`` to ``new_status`` and append one history entry.

    Returns False (and writes nothing) when ``new_status`` is already the
    current status. Raises InvalidTransitionError when the stored status no
    longer matches ``expected``.
    """
    if not is_choice(new_status, PROJECT_STATUSES):
        raise ValidationError(
            f"status must be one of: {', '.join(sorted(PROJECT_STATUSES))}",
            details={"status": "invalid"},
        )
    expected = expected or project.status

    if new_status == expected and project.status == expected:
        return False

    if not _conditional_status_update(project.id, expected, new_status):
        db.session.expire(project)
        logger.warning(
            "Project %s status change %s → %s rejected (current %s)",
            project.id, expected, new_status, project.status,
        )
        raise InvalidTransitionError("change_status", current=project.status, expected=expected)

    db.session.add(StatusHistory(
        project_id=project.id,
        from_status=expected,
        to_status=new_status,
        changed_by=changed_by,
        note=note or "",
    ))
    db.session.flush()
    db.session.expire(project)
    logger.info("Project %s status %s → %s by %s", project.id, expected, new_status, changed_by)
    return True


# ═════════════════════════════════════════════════════════════════════════════
# Tester assignment
# ═════════════════════════════════════════════════════════════════════════════


def assign_tester(project: Project, data: dict, *, assigned_by: str) -> TesterAssignment:
    """Attach a tester to ``project``; auto-opens a pending project.

    Body: { tester_id, role, note? }
    """
    tester_id = _str(data.get("tester_id"))
    role = data.get("role")
    errors = {}
    if not tester_id:
        errors["tester_id"] = "required"
    if not role:
        errors["role"] = "required"
    elif not is_choice(role, TESTER_ROLES):
        errors["role"] = f"must be one of: {', '.join(sorted(TESTER_ROLES))}"
    if errors:
        raise ValidationError("Validation failed", details=errors)

    require_tester(tester_id)

    if project.active_assignment(tester_id) is not None:
        raise ConflictError("TesterAssignment", "tester_id", tester_id)

    assignment = TesterAssignment(
        project_id=project.id,
        tester_id=tester_id,
        role=role,
        work_status="assigned",
        assigned_by=assigned_by,
        note=_str(data.get("note")),
    )
    db.session.add(assignment)
    try:
        db.session.flush()
    except IntegrityError as exc:
        # Partial unique index caught a concurrent duplicate
        db.session.rollback()
        raise ConflictError("TesterAssignment", "tester_id", tester_id) from exc

    logger.info("Tester %s assigned to project %s as %s", tester_id, project.id, role)

    if project.status == "pending" and _conditional_status_update(project.id, "pending", "open"):
        db.session.add(StatusHistory(
            project_id=project.id,
            from_status="pending",
            to_status="open",
            changed_by=assigned_by,
            note=AUTO_OPEN_NOTE,
        ))
        db.session.flush()
        logger.info("Project %s auto-opened on first assignment", project.id)

    db.session.expire(project)
    return assignment


def remove_tester(project: Project, tester_id: str, *, removed_by: str) -> TesterAssignment:
    """Flip the tester's active assignment to ``removed`` (row is kept)."""
    assignment = project.active_assignment(tester_id) if tester_id else None
    if assignment is None:
        raise NotFoundError("TesterAssignment", tester_id)

    result = db.session.execute(
        update(TesterAssignment)
        .where(TesterAssignment.id == assignment.id, TesterAssignment.work_status != "removed")
        .values(work_status="removed")
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise NotFoundError("TesterAssignment", tester_id)

    db.session.expire(assignment)
    db.session.expire(project)
    logger.info("Tester %s removed from project %s by %s", tester_id, project.id, removed_by)
    return assignment


# ═════════════════════════════════════════════════════════════════════════════
# Share links
# ═════════════════════════════════════════════════════════════════════════════


def create_share_link(project: Project, ttl_days: int) -> dict:
    """Issue a fresh 64-hex share token, replacing any previous one."""
    project.share_token = secrets.token_hex(32)
    project.share_token_expiry = _now() + timedelta(days=ttl_days)
    db.session.flush()
    logger.info("Share link issued for project %s (expires %s)",
                project.id, project.share_token_expiry.isoformat())
    return {
        "token": project.share_token,
        "share_url": f"/reports/shared/{project.share_token}",
        "expires_at": project.share_token_expiry.isoformat(),
    }


def revoke_share_link(project: Project):
    project.share_token = None
    project.share_token_expiry = None
    db.session.flush()
    logger.info("Share link revoked for project %s", project.id)


def get_project_by_share_token(token: str) -> Project:
    """Resolve a share token; unknown → NotFoundError, lapsed → ExpiredError."""
    project = Project.query.filter_by(share_token=token).first() if token else None
    if project is None:
        raise NotFoundError("Report")
    expiry = as_utc(project.share_token_expiry)
    if expiry is not None and _now() > expiry:
        raise ExpiredError("This link has expired")
    return project
