"""create users and thesis proposals

Revision ID: 20261018_0001
Revises: None
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


proposal_status_enum = sa.Enum(
    "submitted",
    "approved",
    "revision",
    "rejected",
    "completed",
    name="proposal_status",
)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("roles", sa.JSON(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "thesis_proposals",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=300), nullable=False),
        sa.Column("research_field", sa.String(length=200), nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("supervisor1_id", sa.String(length=36), nullable=False),
        sa.Column("supervisor2_id", sa.String(length=36), nullable=False),
        sa.Column("status", proposal_status_enum, nullable=False),
        sa.Column("approve_supervisor1", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("approve_supervisor2", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("idempotency_key", sa.String(length=100), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("student_id", "idempotency_key", name="uq_thesis_proposal_idempotency"),
    )
    op.create_index("ix_thesis_proposals_student_id", "thesis_proposals", ["student_id"])
    op.create_index("ix_thesis_proposals_supervisor1_id", "thesis_proposals", ["supervisor1_id"])
    op.create_index("ix_thesis_proposals_supervisor2_id", "thesis_proposals", ["supervisor2_id"])
    op.create_index("ix_thesis_proposals_status", "thesis_proposals", ["status"])


def downgrade() -> None:
    op.drop_index("ix_thesis_proposals_status", table_name="thesis_proposals")
    op.drop_index("ix_thesis_proposals_supervisor2_id", table_name="thesis_proposals")
    op.drop_index("ix_thesis_proposals_supervisor1_id", table_name="thesis_proposals")
    op.drop_index("ix_thesis_proposals_student_id", table_name="thesis_proposals")
    op.drop_table("thesis_proposals")
    proposal_status_enum.drop(op.get_bind(), checkfirst=True)
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
