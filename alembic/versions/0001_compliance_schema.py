from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect


revision = "0001_compliance_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    bind = op.get_bind()
    inspector = inspect(bind)
    tables = set(inspector.get_table_names())

    if "whatsapp_consents" not in tables:
        op.create_table(
            "whatsapp_consents",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("company_id", sa.Integer(), nullable=False),
            sa.Column("phone_number", sa.String(length=32), nullable=False),
            sa.Column("method", sa.String(length=32), nullable=False),
            sa.Column("granted_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("revocation_reason", sa.Text(), nullable=True),
            sa.Column("renewed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("metadata", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        )
        op.create_index("ix_whatsapp_consents_company_id", "whatsapp_consents", ["company_id"], unique=False)
        op.create_index(
            "ix_whatsapp_consents_company_phone",
            "whatsapp_consents",
            ["company_id", "phone_number"],
            unique=False,
        )

    if "whatsapp_interactions" not in tables:
        op.create_table(
            "whatsapp_interactions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("company_id", sa.Integer(), nullable=False),
            sa.Column("phone_number", sa.String(length=32), nullable=False),
            sa.Column("interaction_type", sa.String(length=32), nullable=False),
            sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
            sa.Column("metadata", sa.JSON(), nullable=True),
        )
        op.create_index("ix_whatsapp_interactions_company_id", "whatsapp_interactions", ["company_id"], unique=False)
        op.create_index(
            "ix_whatsapp_interactions_company_phone_type",
            "whatsapp_interactions",
            ["company_id", "phone_number", "interaction_type"],
            unique=False,
        )
        op.create_index(
            "ix_whatsapp_interactions_company_occurred",
            "whatsapp_interactions",
            ["company_id", "occurred_at"],
            unique=False,
        )

    if "compliance_events" not in tables:
        op.create_table(
            "compliance_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("company_id", sa.Integer(), nullable=False),
            sa.Column("event_type", sa.String(length=40), nullable=False),
            sa.Column("details", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        )
        op.create_index("ix_compliance_events_company_id", "compliance_events", ["company_id"], unique=False)
        op.create_index(
            "ix_compliance_events_company_type_created",
            "compliance_events",
            ["company_id", "event_type", "created_at"],
            unique=False,
        )

    if "whatsapp_templates" not in tables:
        op.create_table(
            "whatsapp_templates",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("company_id", sa.Integer(), nullable=False),
            sa.Column("name", sa.String(length=120), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("category", sa.String(length=40), nullable=False, server_default="utility"),
            sa.Column("language", sa.String(length=10), nullable=False, server_default="es"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.UniqueConstraint("company_id", "name", name="uq_whatsapp_templates_company_name"),
        )
        op.create_index("ix_whatsapp_templates_company_id", "whatsapp_templates", ["company_id"], unique=False)


def downgrade() -> None:
    op.drop_table("whatsapp_templates")
    op.drop_table("compliance_events")
    op.drop_table("whatsapp_interactions")
    op.drop_table("whatsapp_consents")
