"""initial_schema_baseline

Curriculum, assessment, learning-path and gamification tables.
For existing databases, stamp this revision instead of running it:
    alembic stamp 3c1f0a9d2e41

Revision ID: 3c1f0a9d2e41
Revises:
Create Date: 2026-09-14 10:12:40.118203

"""
from typing import Sequence, Union
from pathlib import Path

from alembic import op
import sqlalchemy as sa


revision: str = "3c1f0a9d2e41"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _adapt_sql(sql: str, dialect_name: str) -> str:
    """Adapt DDL for the target database dialect."""
    if dialect_name == "postgresql":
        sql = sql.replace("INTEGER PRIMARY KEY AUTOINCREMENT", "SERIAL PRIMARY KEY")
    return sql


def upgrade() -> None:
    """Create the full initial schema.

    schema.sql uses CREATE TABLE IF NOT EXISTS, so this is safe to run
    against an existing database.
    """
    dialect_name = op.get_bind().dialect.name

    schema_path = Path(__file__).resolve().parents[2] / "app" / "db" / "schema.sql"
    schema_sql = schema_path.read_text()
    # op.execute doesn't support executescript
    for statement in schema_sql.split(";"):
        lines = [
            line for line in statement.splitlines()
            if line.strip() and not line.strip().startswith("--")
        ]
        cleaned = "\n".join(lines).strip()
        if cleaned:
            op.execute(sa.text(_adapt_sql(cleaned, dialect_name)))


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    tables = [
        "xp_log",
        "user_activity_days",
        "user_lecture_completions",
        "user_question_progress",
        "user_progress",
        "user_step_progress",
        "user_learning_path_progress",
        "user_learning_path",
        "learning_path_steps",
        "learning_paths",
        "user_module_status",
        "assessment_session_responses",
        "assessment_sessions",
        "assessment_responses",
        "assessments",
        "assessment_text_answers",
        "assessment_question_options",
        "assessment_questions",
        "user_subject_selections",
        "user_course_assignments",
        "modules",
        "subjects",
        "courses",
        "users",
    ]
    for table in tables:
        op.drop_table(table)
