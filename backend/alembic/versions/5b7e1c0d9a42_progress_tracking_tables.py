"""progress tracking tables

Revision ID: 5b7e1c0d9a42
Revises:
Create Date: 2026-01-12 10:41:07.318224

"""

from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

revision: str = "5b7e1c0d9a42"
down_revision: str | None = None
branch_labels: str | None = None
depends_on: str | None = None


def upgrade() -> None:
    op.create_table(
        "student_activity",
        sa.Column("attempt_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("course_id", sa.String(length=10), nullable=False),
        sa.Column("question_id", sa.String(length=100), nullable=False),
        sa.Column("is_correct", sa.Boolean(), nullable=True),
        sa.Column("duration_answer", sa.Float(), nullable=False),
        sa.Column("problem_number_type", sa.Integer(), nullable=True),
        sa.Column("skills", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("topics", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("attempt_id"),
    )
    op.create_index(
        "idx_student_activity_user_course", "student_activity", ["user_id", "course_id"]
    )
    op.create_index("idx_student_activity_created", "student_activity", ["created_at"])

    op.create_table(
        "student_mastery",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("course_id", sa.String(length=10), nullable=False),
        sa.Column(
            "entity_type",
            sa.Enum("topic", "skill", "fipi_task", name="mastery_entity_type"),
            nullable=False,
        ),
        sa.Column("entity_id", sa.String(length=50), nullable=False),
        sa.Column("alpha", sa.Float(), nullable=False),
        sa.Column("beta", sa.Float(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("not_started", "in_progress", "mastered", name="mastery_progress_status"),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id", "course_id", "entity_type", "entity_id", name="student_mastery_entity_key"
        ),
    )

    op.create_table(
        "mastery_snapshots",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("course_id", sa.String(length=10), nullable=False),
        sa.Column("run_timestamp", sa.DateTime(), nullable=False),
        sa.Column("raw_data", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("computed_summary", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("stats", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("expected_score", sa.Float(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_mastery_snapshots_pair_run",
        "mastery_snapshots",
        ["user_id", "course_id", "run_timestamp"],
    )

    op.create_table(
        "student_profiles",
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("courses", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("goal_score", sa.Integer(), nullable=True),
        sa.Column("hours_per_week", sa.Integer(), nullable=True),
        sa.Column("school_grade", sa.Integer(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=True,
        ),
        sa.PrimaryKeyConstraint("user_id"),
    )

    op.create_table(
        "study_plan_narratives",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("course_id", sa.String(length=10), nullable=False),
        sa.Column("plan", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("progress_diff", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("narrative", sa.Text(), nullable=True),
        sa.Column("seen", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_study_plan_narratives_pair_created",
        "study_plan_narratives",
        ["user_id", "course_id", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("idx_study_plan_narratives_pair_created", table_name="study_plan_narratives")
    op.drop_table("study_plan_narratives")
    op.drop_table("student_profiles")
    op.drop_index("idx_mastery_snapshots_pair_run", table_name="mastery_snapshots")
    op.drop_table("mastery_snapshots")
    op.drop_table("student_mastery")
    op.drop_index("idx_student_activity_created", table_name="student_activity")
    op.drop_index("idx_student_activity_user_course", table_name="student_activity")
    op.drop_table("student_activity")
    sa.Enum(name="mastery_progress_status").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="mastery_entity_type").drop(op.get_bind(), checkfirst=True)
