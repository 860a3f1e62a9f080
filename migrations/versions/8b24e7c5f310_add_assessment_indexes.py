"""add_assessment_indexes

Indexes on the hot paths of the assessment runner: the per-module
response scan behind locks and status sync, and the latest-in-progress
session lookup.

Revision ID: 8b24e7c5f310
Revises: 3c1f0a9d2e41
Create Date: 2026-09-21

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "8b24e7c5f310"
down_revision: Union[str, Sequence[str], None] = "3c1f0a9d2e41"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute(sa.text(
        "CREATE INDEX IF NOT EXISTS idx_assessment_responses_user_module "
        "ON assessment_responses(user_id, module_id)"
    ))
    op.execute(sa.text(
        "CREATE INDEX IF NOT EXISTS idx_assessment_sessions_user_status "
        "ON assessment_sessions(user_id, status, last_updated)"
    ))
    op.execute(sa.text(
        "CREATE INDEX IF NOT EXISTS idx_user_module_status_user "
        "ON user_module_status(user_id)"
    ))
    op.execute(sa.text(
        "CREATE INDEX IF NOT EXISTS idx_xp_log_user "
        "ON xp_log(user_id, created_at)"
    ))


def downgrade() -> None:
    op.execute(sa.text("DROP INDEX IF EXISTS idx_xp_log_user"))
    op.execute(sa.text("DROP INDEX IF EXISTS idx_user_module_status_user"))
    op.execute(sa.text("DROP INDEX IF EXISTS idx_assessment_sessions_user_status"))
    op.execute(sa.text("DROP INDEX IF EXISTS idx_assessment_responses_user_module"))
