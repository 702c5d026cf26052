"""initial_audit_schema

Create the engagement schema: user mirror, projects with tester
assignments and status history, scenarios, test cases with steps,
per-tester results, attachments and recommendations.

Revision ID: a1c3e5f70001
Revises:
Create Date: 2026-10-12 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "a1c3e5f70001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("external_id", sa.String(length=100), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=True),
            sa.Column("first_name", sa.String(length=100), nullable=True),
            sa.Column("last_name", sa.String(length=100), nullable=True),
            sa.Column("role", sa.String(length=20), nullable=True),
            sa.Column("role_assigned", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_users_external_id", "users", ["external_id"], unique=True)
        op.create_index("ix_users_role", "users", ["role"])

    if "projects" not in existing_tables:
        op.create_table(
            "projects",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("customer_id", sa.String(length=100), nullable=False),
            sa.Column("project_name", sa.String(length=300), nullable=False),
            sa.Column("service_category", sa.String(length=20), nullable=False),
            sa.Column("target_url", sa.String(length=500), nullable=False),
            sa.Column("location_address", sa.Text(), nullable=True),
            sa.Column("accessibility_standard", sa.String(length=100), nullable=False),
            sa.Column("service_package", sa.String(length=20), nullable=False),
            sa.Column("devices", sa.JSON(), nullable=True),
            sa.Column("special_instructions", sa.Text(), nullable=True),
            sa.Column("price_amount", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("price_currency", sa.String(length=3), nullable=False, server_default="THB"),
            sa.Column("price_note", sa.Text(), nullable=True),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("priority", sa.String(length=20), nullable=False, server_default="normal"),
            sa.Column("due_date", sa.Date(), nullable=True),
            sa.Column("admin_notes", sa.Text(), nullable=True),
            sa.Column("share_token", sa.String(length=64), nullable=True),
            sa.Column("share_token_expiry", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_projects_customer_id", "projects", ["customer_id"])
        op.create_index("ix_projects_status", "projects", ["status"])
        op.create_index("ix_projects_share_token", "projects", ["share_token"], unique=True)

    if "tester_assignments" not in existing_tables:
        op.create_table(
            "tester_assignments",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("tester_id", sa.String(length=100), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="member"),
            sa.Column("work_status", sa.String(length=20), nullable=False, server_default="assigned"),
            sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("assigned_by", sa.String(length=100), nullable=True),
            sa.Column("accepted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("note", sa.Text(), nullable=True),
            sa.Column("progress_percent", sa.Integer(), nullable=False, server_default="0"),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_tester_assignments_project_id", "tester_assignments", ["project_id"])
        op.create_index("ix_tester_assignments_tester_id", "tester_assignments", ["tester_id"])
        op.create_index(
            "uq_tester_assignments_active",
            "tester_assignments",
            ["project_id", "tester_id"],
            unique=True,
            postgresql_where=sa.text("work_status != 'removed'"),
            sqlite_where=sa.text("work_status != 'removed'"),
        )

    if "project_status_history" not in existing_tables:
        op.create_table(
            "project_status_history",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("from_status", sa.String(length=20), nullable=True),
            sa.Column("to_status", sa.String(length=20), nullable=False),
            sa.Column("changed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("changed_by", sa.String(length=100), nullable=True),
            sa.Column("note", sa.Text(), nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_project_status_history_project_id", "project_status_history", ["project_id"])

    if "scenarios" not in existing_tables:
        op.create_table(
            "scenarios",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("assigned_tester_id", sa.String(length=100), nullable=False),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_by", sa.String(length=100), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_scenarios_project_id", "scenarios", ["project_id"])
        op.create_index("ix_scenarios_assigned_tester_id", "scenarios", ["assigned_tester_id"])
        op.create_index("ix_scenarios_project_order", "scenarios", ["project_id", "sort_order"])

    if "test_cases" not in existing_tables:
        op.create_table(
            "test_cases",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("scenario_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("expected_result", sa.Text(), nullable=False),
            sa.Column("priority", sa.String(length=20), nullable=False, server_default="medium"),
            sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("wcag_criteria", sa.JSON(), nullable=True),
            sa.Column("created_by", sa.String(length=100), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["scenario_id"], ["scenarios.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_test_cases_project_id", "test_cases", ["project_id"])
        op.create_index("ix_test_cases_scenario_id", "test_cases", ["scenario_id"])
        op.create_index("ix_test_cases_scenario_order", "test_cases", ["scenario_id", "sort_order"])

    if "test_steps" not in existing_tables:
        op.create_table(
            "test_steps",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("test_case_id", sa.Integer(), nullable=False),
            sa.Column("step_no", sa.Integer(), nullable=False),
            sa.Column("instruction", sa.Text(), nullable=False),
            sa.ForeignKeyConstraint(["test_case_id"], ["test_cases.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_test_steps_test_case_id", "test_steps", ["test_case_id"])

    if "test_results" not in existing_tables:
        op.create_table(
            "test_results",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("test_case_id", sa.Integer(), nullable=False),
            sa.Column("tester_id", sa.String(length=100), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("note", sa.Text(), nullable=True),
            sa.Column("tested_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["test_case_id"], ["test_cases.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("test_case_id", "tester_id", name="uq_test_results_case_tester"),
        )
        op.create_index("ix_test_results_test_case_id", "test_results", ["test_case_id"])
        op.create_index("ix_test_results_tester_id", "test_results", ["tester_id"])

    if "result_attachments" not in existing_tables:
        op.create_table(
            "result_attachments",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("result_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=300), nullable=False),
            sa.Column("size", sa.Integer(), nullable=False),
            sa.Column("content_type", sa.String(length=100), nullable=False),
            sa.Column("url", sa.String(length=1000), nullable=True),
            sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["result_id"], ["test_results.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_result_attachments_result_id", "result_attachments", ["result_id"])

    if "recommendations" not in existing_tables:
        op.create_table(
            "recommendations",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("test_case_id", sa.Integer(), nullable=False),
            sa.Column("title", sa.String(length=300), nullable=False),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("severity", sa.String(length=20), nullable=False, server_default="medium"),
            sa.Column("how_to_fix", sa.Text(), nullable=False),
            sa.Column("technique", sa.String(length=200), nullable=True),
            sa.Column("reference_url", sa.String(length=1000), nullable=True),
            sa.Column("code_snippet", sa.Text(), nullable=True),
            sa.Column("created_by", sa.String(length=100), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["test_case_id"], ["test_cases.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_recommendations_test_case_id", "recommendations", ["test_case_id"])


def downgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    # Children first
    for table in (
        "recommendations",
        "result_attachments",
        "test_results",
        "test_steps",
        "test_cases",
        "scenarios",
        "project_status_history",
        "tester_assignments",
        "projects",
        "users",
    ):
        if table in existing_tables:
            op.drop_table(table)
