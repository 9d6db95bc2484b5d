"""create seminar proposal tables

Revision ID: 20261018_0003
Revises: 20261018_0002
Create Date: 2026-10-18 00:20:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "20261018_0003"
down_revision = "20261018_0002"
branch_labels = None
depends_on = None


sempro_status_enum = sa.Enum(
    "registered",
    "verified",
    "scheduled",
    "completed",
    "revision_required",
    "approved",
    "rejected",
    name="sempro_status",
)
REVIEWER_ROLES = ("supervisor1", "supervisor2", "examiner1", "examiner2", "admin")
reviewer_role_enum = sa.Enum(*REVIEWER_ROLES, name="reviewer_role")
# Shared by two tables; created once up front.
reviewer_role_column = reviewer_role_enum.with_variant(
    postgresql.ENUM(*REVIEWER_ROLES, name="reviewer_role", create_type=False),
    "postgresql",
)


def upgrade() -> None:
    reviewer_role_enum.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "seminar_periods",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("starts_on", sa.Date(), nullable=False),
        sa.Column("ends_on", sa.Date(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_seminar_periods_is_active", "seminar_periods", ["is_active"])

    op.create_table(
        "sempro_registrations",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("proposal_id", sa.String(length=36), nullable=False),
        sa.Column("student_id", sa.String(length=36), nullable=False),
        sa.Column("period_id", sa.String(length=36), nullable=True),
        sa.Column("status", sempro_status_enum, nullable=False),
        sa.Column("form_document", sa.JSON(), nullable=False),
        sa.Column("plagiarism_document", sa.JSON(), nullable=False),
        sa.Column("draft_document", sa.JSON(), nullable=False),
        sa.Column("revision_documents", sa.JSON(), nullable=False),
        sa.Column("approve_supervisor1", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("approve_supervisor2", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("review_round", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("idempotency_key", sa.String(length=100), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("student_id", "idempotency_key", name="uq_sempro_registration_idempotency"),
    )
    op.create_index("ix_sempro_registrations_proposal_id", "sempro_registrations", ["proposal_id"])
    op.create_index("ix_sempro_registrations_student_id", "sempro_registrations", ["student_id"])
    op.create_index("ix_sempro_registrations_status", "sempro_registrations", ["status"])

    op.create_table(
        "sempro_schedules",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("sempro_id", sa.String(length=36), nullable=False),
        sa.Column("examiner1_id", sa.String(length=36), nullable=False),
        sa.Column("examiner2_id", sa.String(length=36), nullable=False),
        sa.Column("seminar_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("room", sa.String(length=100), nullable=False),
        sa.Column("published", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("review_round", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_sempro_schedules_sempro_id", "sempro_schedules", ["sempro_id"], unique=True)
    op.create_index("ix_sempro_schedules_examiner1_id", "sempro_schedules", ["examiner1_id"])
    op.create_index("ix_sempro_schedules_examiner2_id", "sempro_schedules", ["examiner2_id"])

    op.create_table(
        "sempro_evaluations",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("sempro_id", sa.String(length=36), nullable=False),
        sa.Column("evaluator_id", sa.String(length=36), nullable=False),
        sa.Column("evaluator_role", reviewer_role_column, nullable=False),
        sa.Column("review_round", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("presentation_media", sa.Float(), nullable=False),
        sa.Column("communication", sa.Float(), nullable=False),
        sa.Column("subject_mastery", sa.Float(), nullable=False),
        sa.Column("report_content", sa.Float(), nullable=False),
        sa.Column("writing_structure", sa.Float(), nullable=False),
        sa.Column("total_score", sa.Float(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "sempro_id",
            "evaluator_id",
            "review_round",
            name="uq_sempro_evaluation_evaluator_round",
        ),
    )
    op.create_index("ix_sempro_evaluations_sempro_id", "sempro_evaluations", ["sempro_id"])
    op.create_index("ix_sempro_evaluations_evaluator_id", "sempro_evaluations", ["evaluator_id"])

    op.create_table(
        "sempro_revision_notes",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("sempro_id", sa.String(length=36), nullable=False),
        sa.Column("reviewer_role", reviewer_role_column, nullable=False),
        sa.Column("author_id", sa.String(length=36), nullable=False),
        sa.Column("note", sa.Text(), nullable=False),
        sa.Column("is_major", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("documents", sa.JSON(), nullable=False),
        sa.Column("review_round", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_sempro_revision_notes_sempro_id", "sempro_revision_notes", ["sempro_id"])


def downgrade() -> None:
    op.drop_index("ix_sempro_revision_notes_sempro_id", table_name="sempro_revision_notes")
    op.drop_table("sempro_revision_notes")
    op.drop_index("ix_sempro_evaluations_evaluator_id", table_name="sempro_evaluations")
    op.drop_index("ix_sempro_evaluations_sempro_id", table_name="sempro_evaluations")
    op.drop_table("sempro_evaluations")
    op.drop_index("ix_sempro_schedules_examiner2_id", table_name="sempro_schedules")
    op.drop_index("ix_sempro_schedules_examiner1_id", table_name="sempro_schedules")
    op.drop_index("ix_sempro_schedules_sempro_id", table_name="sempro_schedules")
    op.drop_table("sempro_schedules")
    op.drop_index("ix_sempro_registrations_status", table_name="sempro_registrations")
    op.drop_index("ix_sempro_registrations_student_id", table_name="sempro_registrations")
    op.drop_index("ix_sempro_registrations_proposal_id", table_name="sempro_registrations")
    op.drop_table("sempro_registrations")
    op.drop_index("ix_seminar_periods_is_active", table_name="seminar_periods")
    op.drop_table("seminar_periods")
    reviewer_role_enum.drop(op.get_bind(), checkfirst=True)
    sempro_status_enum.drop(op.get_bind(), checkfirst=True)
