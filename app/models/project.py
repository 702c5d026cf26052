"""
Accessibility Audit Platform
Engagement domain models.

Models:
    - Project:           one customer audit request and its lifecycle
    - TesterAssignment:  tester ↔ project link carrying its own work status
    - StatusHistory:     append-only log of project status changes

Collaboration rows (members, comments, project attachments) live in
collaboration.py.

Architecture ref:
    Project ──1:N──▶ TesterAssignment   (removed rows are kept for audit)
    Project ──1:N──▶ StatusHistory      (one row per status change)
    Project ──1:N──▶ ProjectMember / ProjectComment / ProjectAttachment
    Project ──1:N──▶ Scenario ──1:N──▶ TestCase   (see scenario.py / testing.py)
"""

from datetime import datetime, timezone

from app.models import db


# ── Constants ────────────────────────────────────────────────────────────

PROJECT_STATUSES = {
    "pending", "open", "in_review", "scheduled", "completed", "cancelled",
}

SERVICE_CATEGORIES = {"website", "mobile", "physical"}

SERVICE_PACKAGES = {"automated", "hybrid", "expert"}

PRICE_CURRENCIES = {"THB", "USD"}

PROJECT_PRIORITIES = {"low", "normal", "high", "urgent"}

TESTER_ROLES = {"lead", "member", "reviewer"}

WORK_STATUSES = {"assigned", "accepted", "working", "done", "removed"}

# ── Tester work-status lifecycle ─────────────────────────────────────────
# action → (required current status, resulting status)
WORK_TRANSITIONS = {
    "accept": ("assigned", "accepted"),
    "reject": ("assigned", "removed"),
    "start":  ("accepted", "working"),
    "done":   ("working", "done"),
}

AUTO_OPEN_NOTE = "auto-opened on first assignment"
REJECTED_NOTE = "Rejected by tester"


def _iso(value):
    return value.isoformat() if value else None


# ═════════════════════════════════════════════════════════════════════════════
# PROJECT
# ═════════════════════════════════════════════════════════════════════════════


class Project(db.Model):
    """
    One accessibility audit engagement submitted by a customer.

    Status moves pending → open automatically on the first tester
    assignment; every other change is made by an admin and logged in
    ``status_history``.
    """

    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(
        db.String(100), nullable=False, index=True,
        comment="Identity of the submitting customer",
    )

    # ── Submission
    project_name = db.Column(db.String(300), nullable=False)
    service_category = db.Column(
        db.String(20), nullable=False, comment="website | mobile | physical",
    )
    target_url = db.Column(db.String(500), nullable=False)
    location_address = db.Column(db.Text, default="")
    accessibility_standard = db.Column(
        db.String(100), nullable=False, comment="e.g. 'WCAG 2.1 AA'",
    )
    service_package = db.Column(
        db.String(20), nullable=False, comment="automated | hybrid | expert",
    )
    devices = db.Column(db.JSON, default=list)
    special_instructions = db.Column(db.Text, default="")

    # ── Price shown to testers (minor units, e.g. satang)
    price_amount = db.Column(db.Integer, nullable=False, default=0)
    price_currency = db.Column(db.String(3), nullable=False, default="THB")
    price_note = db.Column(db.Text, default="")

    # ── Lifecycle
    status = db.Column(
        db.String(20), nullable=False, default="pending", index=True,
        comment="pending | open | in_review | scheduled | completed | cancelled",
    )

    # ── Admin fields
    priority = db.Column(
        db.String(20), nullable=False, default="normal",
        comment="low | normal | high | urgent",
    )
    due_date = db.Column(db.Date, nullable=True)
    admin_notes = db.Column(db.Text, default="")

    # ── Public report link
    share_token = db.Column(db.String(64), nullable=True, unique=True, index=True)
    share_token_expiry = db.Column(db.DateTime(timezone=True), nullable=True)

    # ── Audit
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # ── Relationships
    assigned_testers = db.relationship(
        "TesterAssignment", backref="project", lazy="select",
        cascade="all, delete-orphan", order_by="TesterAssignment.id",
    )
    status_history = db.relationship(
        "StatusHistory", backref="project", lazy="select",
        cascade="all, delete-orphan", order_by="StatusHistory.id",
    )
    members = db.relationship(
        "ProjectMember", backref="project", lazy="select",
        cascade="all, delete-orphan", order_by="ProjectMember.id",
    )
    comments = db.relationship(
        "ProjectComment", backref="project", lazy="select",
        cascade="all, delete-orphan", order_by="ProjectComment.id",
    )
    attachments = db.relationship(
        "ProjectAttachment", backref="project", lazy="select",
        cascade="all, delete-orphan", order_by="ProjectAttachment.id",
    )

    def member_ids(self):
        return [m.user_id for m in self.members]

    def active_assignment(self, tester_id):
        """Return the non-removed assignment for ``tester_id`` or None."""
        for entry in self.assigned_testers:
            if entry.tester_id == tester_id and entry.work_status != "removed":
                return entry
        return None

    def latest_assignment(self, tester_id):
        """Active assignment if any, else the most recent removed one."""
        active = self.active_assignment(tester_id)
        if active is not None:
            return active
        for entry in reversed(self.assigned_testers):
            if entry.tester_id == tester_id:
                return entry
        return None

    def to_dict(self, include_testers=True, include_history=True, include_collaboration=True):
        result = {
            "id": self.id,
            "customer_id": self.customer_id,
            "project_name": self.project_name,
            "service_category": self.service_category,
            "target_url": self.target_url,
            "location_address": self.location_address,
            "accessibility_standard": self.accessibility_standard,
            "service_package": self.service_package,
            "devices": list(self.devices or []),
            "special_instructions": self.special_instructions,
            "price_amount": self.price_amount,
            "price_currency": self.price_currency,
            "price_note": self.price_note,
            "status": self.status,
            "priority": self.priority,
            "due_date": _iso(self.due_date),
            "admin_notes": self.admin_notes,
            "has_share_link": bool(self.share_token),
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_testers:
            result["assigned_testers"] = [t.to_dict() for t in self.assigned_testers]
        if include_history:
            result["status_history"] = [h.to_dict() for h in self.status_history]
        if include_collaboration:
            result["member_ids"] = self.member_ids()
            result["comments"] = [c.to_dict() for c in self.comments]
            result["attachments"] = [a.to_dict() for a in self.attachments]
        return result

    def __repr__(self):
        return f"<Project {self.id}: {self.project_name} [{self.status}]>"


# ═════════════════════════════════════════════════════════════════════════════
# TESTER ASSIGNMENT
# ═════════════════════════════════════════════════════════════════════════════


class TesterAssignment(db.Model):
    """
    A tester's engagement with one project.

    assigned → accepted → working → done, or assigned → removed on reject.
    Admin removal flips any active row to ``removed``; rows are never deleted.
    """

    __tablename__ = "tester_assignments"
    __table_args__ = (
        db.Index(
            "uq_tester_assignments_active",
            "project_id", "tester_id",
            unique=True,
            sqlite_where=db.text("work_status != 'removed'"),
            postgresql_where=db.text("work_status != 'removed'"),
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    tester_id = db.Column(db.String(100), nullable=False, index=True)
    role = db.Column(
        db.String(20), nullable=False, default="member",
        comment="lead | member | reviewer",
    )
    work_status = db.Column(
        db.String(20), nullable=False, default="assigned",
        comment="assigned | accepted | working | done | removed",
    )
    assigned_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    assigned_by = db.Column(db.String(100), nullable=True)
    accepted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    note = db.Column(db.Text, default="")
    progress_percent = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "tester_id": self.tester_id,
            "role": self.role,
            "work_status": self.work_status,
            "assigned_at": _iso(self.assigned_at),
            "assigned_by": self.assigned_by,
            "accepted_at": _iso(self.accepted_at),
            "completed_at": _iso(self.completed_at),
            "note": self.note,
            "progress_percent": self.progress_percent,
        }

    def __repr__(self):
        return f"<TesterAssignment {self.id}: project#{self.project_id} {self.tester_id} [{self.work_status}]>"


# ═════════════════════════════════════════════════════════════════════════════
# STATUS HISTORY
# ═════════════════════════════════════════════════════════════════════════════


class StatusHistory(db.Model):
    """Append-only record of one project status change."""

    __tablename__ = "project_status_history"

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    from_status = db.Column(db.String(20), nullable=True)
    to_status = db.Column(db.String(20), nullable=False)
    changed_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    changed_by = db.Column(db.String(100), nullable=True)
    note = db.Column(db.Text, default="")

    def to_dict(self):
        return {
            "from": self.from_status,
            "to": self.to_status,
            "changed_at": _iso(self.changed_at),
            "changed_by": self.changed_by,
            "note": self.note,
        }

    def __repr__(self):
        return f"<StatusHistory project#{self.project_id} {self.from_status}→{self.to_status}>"
