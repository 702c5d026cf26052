"""
Accessibility Audit Platform
Project collaboration models.

Models:
    - ProjectMember:      co-viewer the owning customer invited by email
    - ProjectComment:     one message in a project's discussion thread
    - ProjectAttachment:  evidence a tester filed against the project

Architecture ref:
    Project ──1:N──▶ ProjectMember       (unique per user)
    Project ──1:N──▶ ProjectComment      (ordered by id)
    Project ──1:N──▶ ProjectAttachment ──N:1──▶ TestCase   (optional link)
"""

from datetime import datetime, timezone

from app.models import db


def _iso(value):
    return value.isoformat() if value else None


class ProjectMember(db.Model):
    """Customer identity allowed to read a project it does not own."""

    __tablename__ = "project_members"
    __table_args__ = (
        db.UniqueConstraint("project_id", "user_id", name="uq_project_members_project_user"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    user_id = db.Column(db.String(100), nullable=False, index=True)
    added_by = db.Column(db.String(100), nullable=True)
    added_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self):
        return f"<ProjectMember project#{self.project_id} {self.user_id}>"


class ProjectComment(db.Model):
    __tablename__ = "project_comments"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    author_id = db.Column(db.String(100), nullable=False)
    author_role = db.Column(db.String(20), nullable=True)
    author_name = db.Column(db.String(200), nullable=False)
    text = db.Column(db.Text, nullable=False)
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "author_id": self.author_id,
            "author_role": self.author_role,
            "author_name": self.author_name,
            "text": self.text,
            "created_at": _iso(self.created_at),
        }

    def __repr__(self):
        return f"<ProjectComment {self.id}: project#{self.project_id} by {self.author_id}>"


class ProjectAttachment(db.Model):
    """
    File metadata a tester attached at project level.

    ``test_case_id`` optionally points at the test case the evidence is
    about; it is cleared when that test case is deleted.
    """

    __tablename__ = "project_attachments"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    test_case_id = db.Column(
        db.Integer, db.ForeignKey("test_cases.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    uploaded_by = db.Column(db.String(100), nullable=False)
    name = db.Column(db.String(300), nullable=False)
    size = db.Column(db.Integer, nullable=False)
    content_type = db.Column(db.String(100), nullable=False)
    url = db.Column(db.String(1000), nullable=True)
    uploaded_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "test_case_id": self.test_case_id,
            "uploaded_by": self.uploaded_by,
            "name": self.name,
            "size": self.size,
            "type": self.content_type,
            "url": self.url,
            "uploaded_at": _iso(self.uploaded_at),
        }

    def __repr__(self):
        return f"<ProjectAttachment {self.id}: {self.name}>"
