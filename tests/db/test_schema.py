"""The storage layer enforces one enrollment per (student, course).

Checked twice: on the SQLAlchemy metadata the app runs against, and on
the DDL the Alembic migration emits (offline mode, PostgreSQL dialect).
"""

from __future__ import annotations

import importlib.util
import io
from pathlib import Path

import pytest
from sqlalchemy import BigInteger, UniqueConstraint

from alembic.migration import MigrationContext
from alembic.operations import Operations
from enrollment_service.db.tables import (
    CompletedLessonRow,
    EnrollmentRow,
    ProgressRecordRow,
)

MIGRATION = (
    Path(__file__).resolve().parents[2]
    / "alembic"
    / "versions"
    / "3c1e9b7d2a40_create_enrollment_tables.py"
)


def _migration_sql() -> str:
    spec = importlib.util.spec_from_file_location("create_enrollment_tables", MIGRATION)
    assert spec is not None and spec.loader is not None
    migration = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(migration)

    out = io.StringIO()
    context = MigrationContext.configure(
        dialect_name="postgresql", opts={"as_sql": True, "output_buffer": out}
    )
    with Operations.context(context):
        migration.upgrade()
    return out.getvalue()


def test_enrollments_table_has_student_course_unique_constraint() -> None:
    uniques = [
        c for c in EnrollmentRow.__table__.constraints if isinstance(c, UniqueConstraint)
    ]
    assert [(c.name, [col.name for col in c.columns]) for c in uniques] == [
        ("uq_enrollment_student_course", ["student_id", "course_id"])
    ]


def test_completed_lessons_keyed_per_lesson() -> None:
    pk = CompletedLessonRow.__table__.primary_key
    assert [c.name for c in pk.columns] == ["student_id", "course_id", "lesson_id"]


@pytest.mark.parametrize(
    "column",
    [
        EnrollmentRow.__table__.c.enrolled_at,
        ProgressRecordRow.__table__.c.last_accessed_at,
        CompletedLessonRow.__table__.c.completed_at,
    ],
)
def test_epoch_columns_are_64_bit(column) -> None:
    assert isinstance(column.type, BigInteger)


def test_migration_creates_unique_constraint_and_bigint_timestamps() -> None:
    sql = _migration_sql()

    assert (
        "CONSTRAINT uq_enrollment_student_course UNIQUE (student_id, course_id)" in sql
    )
    assert "enrolled_at BIGINT NOT NULL" in sql
    assert "last_accessed_at BIGINT" in sql
    assert "completed_at BIGINT NOT NULL" in sql
