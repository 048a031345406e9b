"""Autoapply base schema

Revision ID: 0001_autoapply_schema
Revises:
Create Date: 2026-10-17

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001_autoapply_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "user_profiles",
        sa.Column("user_id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("full_name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("email", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("phone", sa.String(length=40), nullable=False, server_default=""),
        sa.Column("location", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("linkedin_url", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("website_url", sa.String(length=500), nullable=False, server_default=""),
        sa.Column("resume_path", sa.String(length=600), nullable=False, server_default=""),
        sa.Column("current_job_title", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("years_experience", sa.Float(), nullable=False, server_default="0"),
        sa.Column("availability", sa.String(length=120), nullable=False, server_default=""),
        *_timestamps(),
    )

    op.create_table(
        "job_preferences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("desired_roles_json", sa.JSON(), nullable=False),
        sa.Column("preferred_locations_json", sa.JSON(), nullable=False),
        sa.Column("location_preference", sa.String(length=80), nullable=False, server_default=""),
        sa.Column("salary_min", sa.Integer(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_job_preferences_user_id", "job_preferences", ["user_id"], unique=True)

    op.create_table(
        "autoapply_config",
        sa.Column("user_id", sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column("max_daily_applications", sa.Integer(), nullable=False, server_default="20"),
        sa.Column("max_weekly_applications", sa.Integer(), nullable=False, server_default="50"),
        sa.Column("max_applications_per_company", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("min_match_score", sa.Integer(), nullable=False, server_default="70"),
        sa.Column("scan_interval_hours", sa.Float(), nullable=False, server_default="2"),
        sa.Column("automation_mode", sa.String(length=20), nullable=False, server_default="review"),
        *_timestamps(),
    )

    op.create_table(
        "jobs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("owner_user_id", sa.Integer(), nullable=True),
        sa.Column("url", sa.String(length=800), nullable=False, unique=True),
        sa.Column("title", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("company", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("location", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("ats_type", sa.String(length=50), nullable=False, server_default=""),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("discovered_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_jobs_owner_user_id", "jobs", ["owner_user_id"], unique=False)

    op.create_table(
        "job_matches",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("job_id", sa.Integer(), sa.ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("match_score", sa.Float(), nullable=False, server_default="0"),
        sa.Column("scanned_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "job_id", name="uq_job_match"),
    )
    op.create_index("ix_job_matches_user_id", "job_matches", ["user_id"], unique=False)
    op.create_index("ix_job_matches_job_id", "job_matches", ["job_id"], unique=False)

    op.create_table(
        "applications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("job_id", sa.Integer(), sa.ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(length=40), nullable=False, server_default="pending"),
        sa.Column("application_mode", sa.String(length=20), nullable=False, server_default="review"),
        sa.Column("ats_type", sa.String(length=50), nullable=False, server_default=""),
        sa.Column("error_message", sa.Text(), nullable=False, server_default=""),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ats_data_json", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "job_id", name="uq_application_user_job"),
    )
    op.create_index("ix_applications_user_id", "applications", ["user_id"], unique=False)
    op.create_index("ix_applications_job_id", "applications", ["job_id"], unique=False)
    op.create_index("ix_applications_status", "applications", ["status"], unique=False)

    op.create_table(
        "screening_answers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("question_hash", sa.String(length=64), nullable=False),
        sa.Column("question_text", sa.Text(), nullable=False),
        sa.Column("answer_text", sa.Text(), nullable=False, server_default=""),
        sa.Column("source", sa.String(length=40), nullable=False, server_default="manual"),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "question_hash", name="uq_screening_answer"),
    )
    op.create_index("ix_screening_answers_user_id", "screening_answers", ["user_id"], unique=False)
    op.create_index("ix_screening_answers_question_hash", "screening_answers", ["question_hash"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_screening_answers_question_hash", table_name="screening_answers")
    op.drop_index("ix_screening_answers_user_id", table_name="screening_answers")
    op.drop_table("screening_answers")

    op.drop_index("ix_applications_status", table_name="applications")
    op.drop_index("ix_applications_job_id", table_name="applications")
    op.drop_index("ix_applications_user_id", table_name="applications")
    op.drop_table("applications")

    op.drop_index("ix_job_matches_job_id", table_name="job_matches")
    op.drop_index("ix_job_matches_user_id", table_name="job_matches")
    op.drop_table("job_matches")

    op.drop_index("ix_jobs_owner_user_id", table_name="jobs")
    op.drop_table("jobs")

    op.drop_table("autoapply_config")

    op.drop_index("ix_job_preferences_user_id", table_name="job_preferences")
    op.drop_table("job_preferences")

    op.drop_table("user_profiles")
