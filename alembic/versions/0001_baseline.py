"""Baseline migration - all call tracking, outbound and sales tables

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-17

Creates the full schema from the model metadata. Later revisions must use
explicit op.* calls so they stay stable as the models evolve.
"""
from typing import Sequence, Union

from alembic import op

from app.db.base import Base
import app.db.models  # noqa: F401


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TABLES = [
    "organizations",
    "users",
    "audit_logs",
    "campaigns",
    "contacts",
    "interactions",
    "sms_triggers",
    "sms_logs",
    "webhook_error_logs",
    "outbound_campaigns",
    "outbound_contacts",
    "outbound_schedules",
    "outbound_call_logs",
    "sales_users",
    "lead_stages",
    "leads",
    "lead_activities",
    "commissions",
    "nurture_enrollments",
    "resource_categories",
    "resources",
]


def upgrade() -> None:
    bind = op.get_bind()
    Base.metadata.create_all(
        bind=bind, tables=[Base.metadata.tables[name] for name in TABLES]
    )


def downgrade() -> None:
    bind = op.get_bind()
    Base.metadata.drop_all(
        bind=bind, tables=[Base.metadata.tables[name] for name in reversed(TABLES)]
    )
