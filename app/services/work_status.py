"""Tester work-status state machine.

    assigned ──accept──▶ accepted ──start──▶ working ──done──▶ done
        └──────reject──▶ removed

Each action is one conditional UPDATE on the caller's assignment row,
guarded by the action's required source state. Progress percentage is
independent of the lifecycle and may be set in any state.

Transaction policy: flush() only, the blueprint commits.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select, update

from app.core.exceptions import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from app.models import db
from app.models.project import (
    REJECTED_NOTE,
    WORK_STATUSES,
    WORK_TRANSITIONS,
    Project,
    TesterAssignment,
)
from app.utils.helpers import is_choice

logger = logging.getLogger(__name__)


def _own_assignment(project: Project, tester_id: str) -> TesterAssignment:
    assignment = project.latest_assignment(tester_id)
    if assignment is None:
        raise ForbiddenError("You are not assigned to this project")
    return assignment


def apply_work_action(project: Project, tester_id: str, action: str) -> TesterAssignment:
    """Run ``action`` (accept | reject | start | done) on the caller's assignment."""
    if not is_choice(action, WORK_TRANSITIONS):
        raise ValidationError(
            f"Invalid action. Must be one of: {', '.join(WORK_TRANSITIONS)}",
            details={"action": "invalid"},
        )
    expected, target = WORK_TRANSITIONS[action]
    assignment = _own_assignment(project, tester_id)

    if assignment.work_status != expected:
        logger.warning(
            "Rejected %s by %s on project %s: status is %s",
            action, tester_id, project.id, assignment.work_status,
        )
        raise InvalidTransitionError(action, current=assignment.work_status, expected=expected)

    values = {"work_status": target}
    now = datetime.now(timezone.utc)
    if action == "accept":
        values["accepted_at"] = now
    elif action == "reject":
        values["note"] = REJECTED_NOTE
    elif action == "done":
        values["completed_at"] = now

    result = db.session.execute(
        update(TesterAssignment)
        .where(TesterAssignment.id == assignment.id, TesterAssignment.work_status == expected)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.session.expire(assignment)
    if result.rowcount != 1:
        logger.warning(
            "Lost race on %s by %s on project %s: status is now %s",
            action, tester_id, project.id, assignment.work_status,
        )
        raise InvalidTransitionError(action, current=assignment.work_status, expected=expected)

    db.session.expire(project)
    logger.info("Tester %s %s project %s: %s → %s", tester_id, action, project.id, expected, target)
    return assignment


def set_progress(project: Project, tester_id: str, percent) -> TesterAssignment:
    """Record a 0–100 progress estimate on the caller's assignment."""
    if isinstance(percent, bool) or not isinstance(percent, (int, float)) or not 0 <= percent <= 100:
        raise ValidationError(
            "progress_percent must be a number between 0 and 100",
            details={"progress_percent": "out of range"},
        )
    assignment = _own_assignment(project, tester_id)
    assignment.progress_percent = int(round(percent))
    db.session.flush()
    logger.debug("Tester %s progress on project %s: %s%%", tester_id, project.id, assignment.progress_percent)
    return assignment


# ── Tester task views ────────────────────────────────────────────────────


def list_tester_tasks(tester_id: str, work_status: str | None = None) -> list[tuple[Project, TesterAssignment]]:
    """Projects where ``tester_id`` has an assignment, newest first.

    ``work_status`` filters on the caller's own (latest) assignment.
    """
    if work_status is not None and not is_choice(work_status, WORK_STATUSES):
        raise ValidationError(
            f"work_status must be one of: {', '.join(sorted(WORK_STATUSES))}",
            details={"work_status": "invalid"},
        )
    projects = (
        Project.query
        .filter(Project.id.in_(
            select(TesterAssignment.project_id).where(TesterAssignment.tester_id == tester_id)
        ))
        .order_by(Project.created_at.desc(), Project.id.desc())
        .all()
    )
    tasks = []
    for project in projects:
        mine = project.latest_assignment(tester_id)
        if work_status and mine.work_status != work_status:
            continue
        tasks.append((project, mine))
    return tasks


def get_tester_task(project_id: int, tester_id: str) -> tuple[Project, TesterAssignment]:
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project", project_id)
    return project, _own_assignment(project, tester_id)


def task_to_dict(project: Project, assignment: TesterAssignment) -> dict:
    """Project as seen by a tester: no admin notes, other testers, members or history."""
    data = project.to_dict(include_testers=False, include_history=False)
    data.pop("admin_notes", None)
    data.pop("has_share_link", None)
    data.pop("member_ids", None)
    data["my_assignment"] = assignment.to_dict()
    return data
