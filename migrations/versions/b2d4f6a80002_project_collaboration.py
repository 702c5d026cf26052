"""project_collaboration

Invited project members, the project comment thread and project-level
tester attachments.

Revision ID: b2d4f6a80002
Revises: a1c3e5f70001
Create Date: 2026-10-19 10:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "b2d4f6a80002"
down_revision = "a1c3e5f70001"
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    if "project_members" not in existing_tables:
        op.create_table(
            "project_members",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("user_id", sa.String(length=100), nullable=False),
            sa.Column("added_by", sa.String(length=100), nullable=True),
            sa.Column("added_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id", "user_id", name="uq_project_members_project_user"),
        )
        op.create_index("ix_project_members_project_id", "project_members", ["project_id"])
        op.create_index("ix_project_members_user_id", "project_members", ["user_id"])

    if "project_comments" not in existing_tables:
        op.create_table(
            "project_comments",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("author_id", sa.String(length=100), nullable=False),
            sa.Column("author_role", sa.String(length=20), nullable=True),
            sa.Column("author_name", sa.String(length=200), nullable=False),
            sa.Column("text", sa.Text(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_project_comments_project_id", "project_comments", ["project_id"])

    if "project_attachments" not in existing_tables:
        op.create_table(
            "project_attachments",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_id", sa.Integer(), nullable=False),
            sa.Column("test_case_id", sa.Integer(), nullable=True),
            sa.Column("uploaded_by", sa.String(length=100), nullable=False),
            sa.Column("name", sa.String(length=300), nullable=False),
            sa.Column("size", sa.Integer(), nullable=False),
            sa.Column("content_type", sa.String(length=100), nullable=False),
            sa.Column("url", sa.String(length=1000), nullable=True),
            sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=True),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["test_case_id"], ["test_cases.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_project_attachments_project_id", "project_attachments", ["project_id"])
        op.create_index("ix_project_attachments_test_case_id", "project_attachments", ["test_case_id"])


def downgrade():
    bind = op.get_bind()
    existing_tables = set(sa_inspect(bind).get_table_names())

    for table in ("project_attachments", "project_comments", "project_members"):
        if table in existing_tables:
            op.drop_table(table)
