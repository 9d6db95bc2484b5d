import pytest
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.pool import StaticPool

from app.db import bootstrap


def _raise_error(message: str):
    raise RuntimeError(message)


@pytest.fixture()
def blank_engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    yield engine
    engine.dispose()


def test_runtime_schema_bootstrap_raises_on_validation_failure(monkeypatch, blank_engine):
    monkeypatch.setattr(bootstrap.Base.metadata, "create_all", lambda bind: None)
    monkeypatch.setattr(bootstrap, "_ensure_review_round_columns", lambda bind: None)
    monkeypatch.setattr(bootstrap, "_ensure_revision_documents_column", lambda bind: None)
    monkeypatch.setattr(
        bootstrap,
        "_assert_required_columns",
        lambda bind: _raise_error("missing required schema"),
    )

    with pytest.raises(RuntimeError, match="Runtime schema compatibility bootstrap failed"):
        bootstrap.ensure_runtime_schema_compatibility(blank_engine)


def test_runtime_schema_bootstrap_creates_missing_tables(blank_engine):
    bootstrap.ensure_runtime_schema_compatibility(blank_engine)

    table_names = set(inspect(blank_engine).get_table_names())
    assert set(bootstrap.REQUIRED_COLUMNS) <= table_names


def test_runtime_schema_bootstrap_adds_review_round_columns(blank_engine):
    with blank_engine.begin() as connection:
        connection.execute(
            text(
                "CREATE TABLE sempro_registrations ("
                "id VARCHAR(36) PRIMARY KEY, proposal_id VARCHAR(36) NOT NULL, "
                "student_id VARCHAR(36) NOT NULL, period_id VARCHAR(36), status VARCHAR(17) NOT NULL, "
                "form_document JSON NOT NULL, plagiarism_document JSON NOT NULL, draft_document JSON NOT NULL, "
                "approve_supervisor1 BOOLEAN NOT NULL, approve_supervisor2 BOOLEAN NOT NULL, "
                "idempotency_key VARCHAR(100), version INTEGER NOT NULL, "
                "created_at DATETIME, updated_at DATETIME)"
            )
        )

    bootstrap.ensure_runtime_schema_compatibility(blank_engine)

    columns = {item["name"] for item in inspect(blank_engine).get_columns("sempro_registrations")}
    assert {"review_round", "revision_documents"} <= columns
