"""Project collaboration service.

Members the owning customer invites by email, the shared comment thread,
and project-level evidence attachments filed by testers.

Transaction policy: flush() only, the blueprint commits.
"""

from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.models import db
from app.models.collaboration import ProjectAttachment, ProjectComment, ProjectMember
from app.models.project import Project
from app.models.testing import TestCase
from app.models.user import User
from app.services.user_service import display_names

logger = logging.getLogger(__name__)


def _str(value) -> str:
    return value.strip() if isinstance(value, str) else ""


# ═════════════════════════════════════════════════════════════════════════════
# Members
# ═════════════════════════════════════════════════════════════════════════════


def list_members(project: Project) -> list[dict]:
    """Members in invitation order, enriched from the user mirror."""
    ids = project.member_ids()
    users = {u.external_id: u for u in User.query.filter(User.external_id.in_(ids)).all()} if ids else {}
    members = []
    for member in project.members:
        user = users.get(member.user_id)
        members.append({
            "user_id": member.user_id,
            "email": user.email if user else "",
            "first_name": user.first_name if user else None,
            "last_name": user.last_name if user else None,
            "added_at": member.added_at.isoformat() if member.added_at else None,
        })
    return members


def add_member(project: Project, data: dict, *, added_by: str) -> ProjectMember:
    """Invite an existing customer account to read ``project``.

    Body: { email }
    Unknown email → NotFoundError; owner, existing member or a non-customer
    account → ValidationError.
    """
    email = _str(data.get("email")).lower()
    if not email:
        raise ValidationError("email is required", details={"email": "required"})

    user = User.query.filter(func.lower(User.email) == email).first()
    if user is None:
        raise NotFoundError("User", email)
    if user.external_id == project.customer_id:
        raise ValidationError("Already the project owner", details={"email": "owner"})
    if user.external_id in project.member_ids():
        raise ValidationError("Already a member", details={"email": "member"})
    if user.role != "customer":
        raise ValidationError(
            "Only customer accounts can be added as members", details={"email": "not a customer"},
        )

    member = ProjectMember(project_id=project.id, user_id=user.external_id, added_by=added_by)
    db.session.add(member)
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        raise ConflictError("ProjectMember", "user_id", user.external_id) from exc
    db.session.expire(project, ["members"])
    logger.info("User %s added to project %s by %s", user.external_id, project.id, added_by)
    return member


def remove_member(project: Project, member_id: str, *, removed_by: str):
    if member_id == project.customer_id:
        raise ValidationError("Cannot remove the project owner", details={"member_id": "owner"})
    member = ProjectMember.query.filter_by(project_id=project.id, user_id=member_id).first()
    if member is None:
        raise NotFoundError("ProjectMember", member_id)
    db.session.delete(member)
    db.session.flush()
    db.session.expire(project, ["members"])
    logger.info("User %s removed from project %s by %s", member_id, project.id, removed_by)


# ═════════════════════════════════════════════════════════════════════════════
# Comments
# ═════════════════════════════════════════════════════════════════════════════


def list_comments(project: Project) -> list[ProjectComment]:
    return list(project.comments)


def add_comment(project: Project, identity, data: dict) -> ProjectComment:
    """Append a comment authored by the caller. Body: { text }"""
    text = _str(data.get("text"))
    if not text:
        raise ValidationError("Comment text is required", details={"text": "required"})

    names = display_names([identity.user_id])
    comment = ProjectComment(
        project_id=project.id,
        author_id=identity.user_id,
        author_role=identity.role,
        author_name=names[identity.user_id],
        text=text,
    )
    db.session.add(comment)
    db.session.flush()
    db.session.expire(project, ["comments"])
    logger.info("Comment %s on project %s by %s", comment.id, project.id, identity.user_id)
    return comment


# ═════════════════════════════════════════════════════════════════════════════
# Project attachments (tester)
# ═════════════════════════════════════════════════════════════════════════════


def add_project_attachment(project: Project, tester_id: str, data: dict) -> ProjectAttachment:
    """Record evidence metadata on the project.

    Body: { name, size, type, url?, test_case_id? }
    ``test_case_id`` must name a test case of this project.
    """
    errors = {}
    if not _str(data.get("name")):
        errors["name"] = "required"
    size = data.get("size")
    if size is None:
        errors["size"] = "required"
    elif isinstance(size, bool) or not isinstance(size, int) or size < 0:
        errors["size"] = "must be a non-negative integer"
    if not _str(data.get("type")):
        errors["type"] = "required"
    url = data.get("url")
    if url is not None and not isinstance(url, str):
        errors["url"] = "must be a string"
    test_case_id = data.get("test_case_id")
    if test_case_id is not None and (isinstance(test_case_id, bool) or not isinstance(test_case_id, int)):
        errors["test_case_id"] = "must be an integer"
    if errors:
        raise ValidationError("name, size, and type are required", details=errors)

    if test_case_id is not None:
        tc = db.session.get(TestCase, test_case_id)
        if tc is None or tc.project_id != project.id:
            raise NotFoundError("TestCase", test_case_id)

    attachment = ProjectAttachment(
        project_id=project.id,
        test_case_id=test_case_id,
        uploaded_by=tester_id,
        name=_str(data["name"]),
        size=size,
        content_type=_str(data["type"]),
        url=url or None,
    )
    db.session.add(attachment)
    db.session.flush()
    db.session.expire(project, ["attachments"])
    logger.info("Attachment %r filed on project %s by %s", attachment.name, project.id, tester_id)
    return attachment
