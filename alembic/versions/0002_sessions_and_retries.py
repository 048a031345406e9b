"""Session leases, application retries and status history

Revision ID: 0002_sessions_and_retries
Revises: 0001_autoapply_schema
Create Date: 2026-10-17

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0002_sessions_and_retries"
down_revision = "0001_autoapply_schema"
branch_labels = None
depends_on = None


def _has_table(insp: sa.Inspector, table: str) -> bool:
    return table in insp.get_table_names()


def _has_column(insp: sa.Inspector, table: str, column: str) -> bool:
    if not _has_table(insp, table):
        return False
    cols = {c["name"] for c in insp.get_columns(table)}
    return column in cols


def upgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)

    if _has_table(insp, "applications"):
        with op.batch_alter_table("applications", schema=None) as batch_op:
            if not _has_column(insp, "applications", "retry_count"):
                batch_op.add_column(sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"))
            if not _has_column(insp, "applications", "last_retry_at"):
                batch_op.add_column(sa.Column("last_retry_at", sa.DateTime(timezone=True), nullable=True))

    bind = op.get_bind()
    insp = sa.inspect(bind)
    if not _has_table(insp, "autoapply_sessions"):
        op.create_table(
            "autoapply_sessions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
            sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("ended_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("last_scan_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("heartbeat_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("jobs_scanned", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("applications_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_autoapply_sessions_user_id", "autoapply_sessions", ["user_id"], unique=False)
        op.create_index("ix_autoapply_sessions_status", "autoapply_sessions", ["status"], unique=False)

    if not _has_table(insp, "application_status_history"):
        op.create_table(
            "application_status_history",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column(
                "application_id",
                sa.Integer(),
                sa.ForeignKey("applications.id", ondelete="CASCADE"),
                nullable=False,
            ),
            sa.Column("old_status", sa.String(length=40), nullable=False, server_default=""),
            sa.Column("new_status", sa.String(length=40), nullable=False),
            sa.Column("status_message", sa.Text(), nullable=False, server_default=""),
            sa.Column("changed_by", sa.String(length=40), nullable=False, server_default="system"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index(
            "ix_application_status_history_application_id",
            "application_status_history",
            ["application_id"],
            unique=False,
        )


def downgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)

    if _has_table(insp, "application_status_history"):
        op.drop_index("ix_application_status_history_application_id", table_name="application_status_history")
        op.drop_table("application_status_history")

    if _has_table(insp, "autoapply_sessions"):
        op.drop_index("ix_autoapply_sessions_status", table_name="autoapply_sessions")
        op.drop_index("ix_autoapply_sessions_user_id", table_name="autoapply_sessions")
        op.drop_table("autoapply_sessions")

    bind = op.get_bind()
    insp = sa.inspect(bind)
    if _has_table(insp, "applications"):
        with op.batch_alter_table("applications", schema=None) as batch_op:
            if _has_column(insp, "applications", "last_retry_at"):
                batch_op.drop_column("last_retry_at")
            if _has_column(insp, "applications", "retry_count"):
                batch_op.drop_column("retry_count")
