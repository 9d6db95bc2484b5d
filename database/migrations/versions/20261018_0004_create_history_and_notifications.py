"""create workflow history and notifications

Revision ID: 20261018_0004
Revises: 20261018_0003
Create Date: 2026-10-18 00:30:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261018_0004"
down_revision = "20261018_0003"
branch_labels = None
depends_on = None


history_subject_enum = sa.Enum("proposal", "consultation", "sempro", name="history_subject")
notification_type_enum = sa.Enum("proposal", "consultation", "sempro", "system", name="notification_type")
delivery_status_enum = sa.Enum("pending", "delivered", "failed", name="notification_delivery_status")


def upgrade() -> None:
    op.create_table(
        "workflow_history",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("subject_type", history_subject_enum, nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("actor_id", sa.String(length=36), nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("previous_status", sa.String(length=50), nullable=True),
        sa.Column("status", sa.String(length=50), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "subject_type",
            "subject_id",
            "sequence",
            name="uq_workflow_history_subject_sequence",
        ),
    )
    op.create_index("ix_workflow_history_subject_id", "workflow_history", ["subject_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("sender_id", sa.String(length=36), nullable=True),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("notification_type", notification_type_enum, nullable=False),
        sa.Column("subject_id", sa.String(length=36), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("delivery_status", delivery_status_enum, nullable=False),
        sa.Column("delivery_attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_delivery_status", "notifications", ["delivery_status"])


def downgrade() -> None:
    op.drop_index("ix_notifications_delivery_status", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    delivery_status_enum.drop(op.get_bind(), checkfirst=True)
    notification_type_enum.drop(op.get_bind(), checkfirst=True)
    op.drop_index("ix_workflow_history_subject_id", table_name="workflow_history")
    op.drop_table("workflow_history")
    history_subject_enum.drop(op.get_bind(), checkfirst=True)
