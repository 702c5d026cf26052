"""
Accessibility Audit Platform
Scenario model: a named, ordered group of test cases owned by one tester.

Scenario rows carry no ORM relationship to their test cases. Deletion is
two explicit steps in the testing service (children first, then the
scenario); rows left behind by a failure between the steps are reported
by ``find_orphaned_test_cases``.
"""

from datetime import datetime, timezone

from app.models import db


class Scenario(db.Model):
    """Named grouping of test cases assigned to exactly one tester."""

    __tablename__ = "scenarios"
    __table_args__ = (
        db.Index("ix_scenarios_project_order", "project_id", "sort_order"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    assigned_tester_id = db.Column(
        db.String(100), nullable=False, index=True,
        comment="Only this tester may record results in the scenario",
    )
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    created_by = db.Column(db.String(100), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "assigned_tester_id": self.assigned_tester_id,
            "order": self.sort_order,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<Scenario {self.id}: {self.title} (order {self.sort_order})>"
