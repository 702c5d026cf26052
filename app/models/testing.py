"""
Accessibility Audit Platform
Test execution domain models.

Models:
    - TestCase:          one executable accessibility check within a scenario
    - TestStep:          ordered instruction within a test case
    - TestResult:        one tester's verdict on a test case (≤ 1 per tester)
    - ResultAttachment:  evidence file metadata attached to a result
    - Recommendation:    admin-authored remediation guidance with a severity

Architecture ref:
    Scenario ──1:N──▶ TestCase ──1:N──▶ TestStep
    TestCase ──1:N──▶ TestResult ──1:N──▶ ResultAttachment
    TestCase ──1:N──▶ Recommendation
    TestCase ──N:M──▶ WCAG criterion   (catalog ids in wcag_criteria JSON)

Results are ordered by insertion (id). The report treats the *last* result
row of a test case as its effective verdict.
"""

from datetime import datetime, timezone

from app.models import db


# ── Constants ────────────────────────────────────────────────────────────

TEST_CASE_PRIORITIES = {"low", "medium", "high", "critical"}

# Statuses a tester may submit; "pending" is only ever implicit.
SUBMITTABLE_RESULT_STATUSES = ("pass", "fail", "skip")

RECOMMENDATION_SEVERITIES = ("critical", "high", "medium", "low")


def _iso(value):
    return value.isoformat() if value else None


# ═════════════════════════════════════════════════════════════════════════════
# TEST CASE
# ═════════════════════════════════════════════════════════════════════════════


class TestCase(db.Model):
    """
    Executable check inside a scenario.

    ``sort_order`` drives the sequential walkthrough rule: a tester must
    finish every lower-ordered case in the scenario before submitting a
    verdict on this one.
    """

    __tablename__ = "test_cases"
    __table_args__ = (
        db.Index("ix_test_cases_scenario_order", "scenario_id", "sort_order"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_id = db.Column(
        db.Integer, db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    scenario_id = db.Column(
        db.Integer, db.ForeignKey("scenarios.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )

    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, default="")
    expected_result = db.Column(db.Text, nullable=False)
    priority = db.Column(
        db.String(20), nullable=False, default="medium",
        comment="low | medium | high | critical",
    )
    sort_order = db.Column(db.Integer, nullable=False, default=0)
    wcag_criteria = db.Column(
        db.JSON, default=list,
        comment="WCAG success-criterion ids this case evidences, e.g. ['1.1.1']",
    )
    created_by = db.Column(db.String(100), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # ── Relationships
    scenario = db.relationship("Scenario", foreign_keys=[scenario_id])
    steps = db.relationship(
        "TestStep", backref="test_case", lazy="select",
        cascade="all, delete-orphan", order_by="TestStep.step_no",
    )
    results = db.relationship(
        "TestResult", backref="test_case", lazy="select",
        cascade="all, delete-orphan", order_by="TestResult.id",
    )
    recommendations = db.relationship(
        "Recommendation", backref="test_case", lazy="select",
        cascade="all, delete-orphan", order_by="Recommendation.id",
    )

    def result_for(self, tester_id):
        for result in self.results:
            if result.tester_id == tester_id:
                return result
        return None

    def to_dict(self, include_results=True, include_recommendations=True):
        result = {
            "id": self.id,
            "project_id": self.project_id,
            "scenario_id": self.scenario_id,
            "title": self.title,
            "description": self.description,
            "expected_result": self.expected_result,
            "priority": self.priority,
            "order": self.sort_order,
            "wcag_criteria": list(self.wcag_criteria or []),
            "steps": [s.to_dict() for s in self.steps],
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }
        if include_results:
            result["results"] = [r.to_dict() for r in self.results]
        if include_recommendations:
            result["recommendations"] = [r.to_dict() for r in self.recommendations]
        return result

    def __repr__(self):
        return f"<TestCase {self.id}: {self.title} (order {self.sort_order})>"


class TestStep(db.Model):
    """Ordered instruction within a test case."""

    __tablename__ = "test_steps"

    id = db.Column(db.Integer, primary_key=True)
    test_case_id = db.Column(
        db.Integer, db.ForeignKey("test_cases.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    step_no = db.Column(db.Integer, nullable=False, comment="Sequential step number")
    instruction = db.Column(db.Text, nullable=False)

    def to_dict(self):
        return {"order": self.step_no, "instruction": self.instruction}

    def __repr__(self):
        return f"<TestStep case#{self.test_case_id} step#{self.step_no}>"


# ═════════════════════════════════════════════════════════════════════════════
# RESULTS
# ═════════════════════════════════════════════════════════════════════════════


class TestResult(db.Model):
    """One tester's verdict on one test case."""

    __tablename__ = "test_results"
    __table_args__ = (
        db.UniqueConstraint("test_case_id", "tester_id", name="uq_test_results_case_tester"),
    )

    id = db.Column(db.Integer, primary_key=True)
    test_case_id = db.Column(
        db.Integer, db.ForeignKey("test_cases.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    tester_id = db.Column(db.String(100), nullable=False, index=True)
    status = db.Column(
        db.String(20), nullable=False, default="pending",
        comment="pending | pass | fail | skip",
    )
    note = db.Column(db.Text, default="")
    tested_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    attachments = db.relationship(
        "ResultAttachment", backref="result", lazy="select",
        cascade="all, delete-orphan", order_by="ResultAttachment.id",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "test_case_id": self.test_case_id,
            "tester_id": self.tester_id,
            "status": self.status,
            "note": self.note,
            "attachments": [a.to_dict() for a in self.attachments],
            "tested_at": _iso(self.tested_at),
        }

    def __repr__(self):
        return f"<TestResult case#{self.test_case_id} {self.tester_id} [{self.status}]>"


class ResultAttachment(db.Model):
    """Evidence file stored by the object-storage collaborator."""

    __tablename__ = "result_attachments"

    id = db.Column(db.Integer, primary_key=True)
    result_id = db.Column(
        db.Integer, db.ForeignKey("test_results.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
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
            "name": self.name,
            "size": self.size,
            "type": self.content_type,
            "url": self.url,
            "uploaded_at": _iso(self.uploaded_at),
        }


# ═════════════════════════════════════════════════════════════════════════════
# RECOMMENDATION
# ═════════════════════════════════════════════════════════════════════════════


class Recommendation(db.Model):
    """Remediation guidance attached to a test case by an admin."""

    __tablename__ = "recommendations"

    id = db.Column(db.Integer, primary_key=True)
    test_case_id = db.Column(
        db.Integer, db.ForeignKey("test_cases.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text, nullable=False)
    severity = db.Column(
        db.String(20), nullable=False, default="medium",
        comment="critical | high | medium | low",
    )
    how_to_fix = db.Column(db.Text, nullable=False)
    technique = db.Column(db.String(200), nullable=True)
    reference_url = db.Column(db.String(1000), nullable=True)
    code_snippet = db.Column(db.Text, nullable=True)
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
            "test_case_id": self.test_case_id,
            "title": self.title,
            "description": self.description,
            "severity": self.severity,
            "how_to_fix": self.how_to_fix,
            "technique": self.technique,
            "reference_url": self.reference_url,
            "code_snippet": self.code_snippet,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Recommendation {self.id}: case#{self.test_case_id} [{self.severity}]>"
