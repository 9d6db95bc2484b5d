"""create consultations

Revision ID: 20261018_0002
Revises: 20261018_0001
Create Date: 2026-10-18 00:10:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261018_0002"
down_revision = "20261018_0001"
branch_labels = None
depends_on = None


consultation_status_enum = sa.Enum("pending", "approved", "rejected", name="consultation_status")


def upgrade() -> None:
    op.create_table(
        "consultations",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("supervisor_id", sa.String(length=36), nullable=False),
        sa.Column("proposal_id", sa.String(length=36), nullable=False),
        sa.Column("session_date", sa.Date(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("outcome", sa.Text(), nullable=False),
        sa.Column("status", consultation_status_enum, nullable=False),
        sa.Column("decision_note", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_consultations_student_id", "consultations", ["student_id"])
    op.create_index("ix_consultations_supervisor_id", "consultations", ["supervisor_id"])
    op.create_index("ix_consultations_proposal_id", "consultations", ["proposal_id"])
    op.create_index("ix_consultations_status", "consultations", ["status"])


def downgrade() -> None:
    op.drop_index("ix_consultations_status", table_name="consultations")
    op.drop_index("ix_consultations_proposal_id", table_name="consultations")
    op.drop_index("ix_consultations_supervisor_id", table_name="consultations")
    op.drop_index("ix_consultations_student_id", table_name="consultations")
    op.drop_table("consultations")
    consultation_status_enum.drop(op.get_bind(), checkfirst=True)
