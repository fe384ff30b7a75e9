from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = "0002_processed_webhook_events"
down_revision = "0001_compliance_schema"
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = inspect(bind)
    if "processed_webhook_events" in set(inspector.get_table_names()):
        return

    op.create_table(
        "processed_webhook_events",
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("provider_message_id", sa.String(length=128), nullable=False),
        sa.Column("event", sa.String(length=32), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("company_id", "provider_message_id", "event"),
    )


def downgrade() -> None:
    op.drop_table("processed_webhook_events")
