from __future__ import annotations

import logging

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine

from app import models  # noqa: F401
from app.db.base import Base
from app.db.session import engine

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS: dict[str, set[str]] = {
    "users": {"id", "email", "roles", "is_active"},
    "thesis_proposals": {
        "id",
        "student_id",
        "supervisor1_id",
        "supervisor2_id",
        "status",
        "approve_supervisor1",
        "approve_supervisor2",
        "version",
    },
    "consultations": {"id", "proposal_id", "supervisor_id", "status", "version"},
    "sempro_registrations": {
        "id",
        "proposal_id",
        "status",
        "form_document",
        "plagiarism_document",
        "draft_document",
        "revision_documents",
        "review_round",
        "version",
    },
    "sempro_schedules": {"id", "sempro_id", "examiner1_id", "examiner2_id", "published", "review_round"},
    "sempro_evaluations": {"id", "sempro_id", "evaluator_id", "review_round", "total_score"},
    "sempro_revision_notes": {"id", "sempro_id", "reviewer_role", "note", "sequence"},
    "workflow_history": {"id", "subject_type", "subject_id", "sequence", "status"},
    "notifications": {"id", "user_id", "delivery_status", "delivery_attempts"},
}

# Review-round columns are additive; a database provisioned without the Alembic
# migrations may lack them, so they are added in place before the column check.
REVIEW_ROUND_TABLES = ("sempro_registrations", "sempro_schedules", "sempro_evaluations")


def _ensure_review_round_columns(bind: Engine) -> None:
    with bind.begin() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        for table_name in REVIEW_ROUND_TABLES:
            if table_name not in table_names:
                continue
            column_names = {item["name"] for item in inspector.get_columns(table_name)}
            if "review_round" in column_names:
                continue
            connection.execute(
                text(f"ALTER TABLE {table_name} ADD COLUMN review_round INTEGER NOT NULL DEFAULT 1")
            )


def _ensure_revision_documents_column(bind: Engine) -> None:
    with bind.begin() as connection:
        inspector = inspect(connection)
        if "sempro_registrations" not in set(inspector.get_table_names()):
            return
        column_names = {item["name"] for item in inspector.get_columns("sempro_registrations")}
        if "revision_documents" in column_names:
            return
        if connection.dialect.name == "postgresql":
            connection.execute(
                text(
                    "ALTER TABLE sempro_registrations "
                    "ADD COLUMN revision_documents JSONB NOT NULL DEFAULT '[]'::jsonb"
                )
            )
            return
        connection.execute(
            text(
                "ALTER TABLE sempro_registrations "
                "ADD COLUMN revision_documents JSON NOT NULL DEFAULT '[]'"
            )
        )


def _assert_required_columns(bind: Engine) -> None:
    with bind.begin() as connection:
        inspector = inspect(connection)
        table_names = set(inspector.get_table_names())
        missing_tables = [name for name in REQUIRED_COLUMNS if name not in table_names]
        if missing_tables:
            raise RuntimeError(f"Missing required tables: {', '.join(sorted(missing_tables))}")

        missing_columns: list[str] = []
        for table_name, required in REQUIRED_COLUMNS.items():
            existing = {item["name"] for item in inspector.get_columns(table_name)}
            for column_name in sorted(required - existing):
                missing_columns.append(f"{table_name}.{column_name}")
        if missing_columns:
            raise RuntimeError(f"Missing required columns: {', '.join(missing_columns)}")


def ensure_runtime_schema_compatibility(bind: Engine | None = None) -> None:
    bind = bind or engine
    try:
        # Ensure missing tables are present before additive compatibility patches.
        Base.metadata.create_all(bind=bind)
        _ensure_review_round_columns(bind)
        _ensure_revision_documents_column(bind)
        _assert_required_columns(bind)
    except Exception as exc:  # pragma: no cover - runtime environment dependent
        logger.exception("Runtime schema compatibility bootstrap failed")
        raise RuntimeError("Runtime schema compatibility bootstrap failed") from exc
