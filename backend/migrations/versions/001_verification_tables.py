"""Verification schema

Revision ID: 001_verification_tables
Revises:
Create Date: 2026-10-16

Creates the PostgreSQL tables:
- resource_suggestions: Submitted candidates awaiting verification
- resources: Published directory entries
- verification_logs: One row per verification pass
- verification_events: Append-only per-pass event trace
- ai_usage_logs: Token usage and cost per AI call
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision: str = "001_verification_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _uuid_pk() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        server_default=sa.text("uuid_generate_v4()"),
    )


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("NOW()"),
    )


def _directory_columns() -> list[sa.Column]:
    """Columns shared by suggestions and published resources."""
    return [
        sa.Column("name", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("primary_category", sa.String(100), nullable=True),
        sa.Column("categories", postgresql.ARRAY(sa.Text), nullable=True),
        sa.Column("tags", postgresql.ARRAY(sa.Text), nullable=True),
        sa.Column("address", sa.Text, nullable=True),
        sa.Column("city", sa.String(200), nullable=True),
        sa.Column("state", sa.String(50), nullable=True),
        sa.Column("zip", sa.String(20), nullable=True),
        sa.Column("latitude", sa.Numeric(10, 7), nullable=True),
        sa.Column("longitude", sa.Numeric(10, 7), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("website", sa.Text, nullable=True),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("hours", postgresql.JSONB, nullable=True),
        sa.Column("services_offered", postgresql.ARRAY(sa.Text), nullable=True),
        sa.Column("eligibility_requirements", sa.Text, nullable=True),
        sa.Column("required_documents", postgresql.ARRAY(sa.Text), nullable=True),
        sa.Column("fees", sa.Text, nullable=True),
        sa.Column("languages", postgresql.ARRAY(sa.Text), nullable=True),
        sa.Column("accessibility_features", postgresql.ARRAY(sa.Text), nullable=True),
    ]


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # =========================
    # Suggestions
    # =========================
    op.create_table(
        "resource_suggestions",
        _uuid_pk(),
        *_directory_columns(),
        sa.Column("discovered_via", sa.String(100), nullable=True),
        sa.Column("discovery_notes", sa.Text, nullable=True),
        sa.Column("submitted_by", sa.String(200), nullable=True),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("admin_notes", sa.Text, nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )

    op.create_index("idx_suggestions_status", "resource_suggestions", ["status"])
    op.create_index(
        "idx_suggestions_name_address",
        "resource_suggestions",
        [sa.text("lower(name)"), sa.text("lower(coalesce(address, ''))")],
    )

    # =========================
    # Published resources
    # =========================
    op.create_table(
        "resources",
        _uuid_pk(),
        *_directory_columns(),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("verification_status", sa.String(20), nullable=True),
        sa.Column("verification_confidence", sa.Numeric(3, 2), nullable=True),
        sa.Column("human_review_required", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("last_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_verification_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("provenance", postgresql.JSONB, nullable=True),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
    )

    op.create_index("idx_resources_status", "resources", ["status"])
    op.create_index("idx_resources_next_verification", "resources", ["next_verification_at"])
    op.create_index(
        "idx_resources_name_address",
        "resources",
        [sa.text("lower(name)"), sa.text("lower(coalesce(address, ''))")],
    )

    # =========================
    # Verification logs
    # =========================
    # suggestion_id carries the resource id for periodic passes, so it has no FK
    op.create_table(
        "verification_logs",
        _uuid_pk(),
        sa.Column("suggestion_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column(
            "resource_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("resources.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("verification_type", sa.String(20), nullable=False),
        sa.Column("agent_version", sa.String(20), nullable=False),
        sa.Column("overall_score", sa.Numeric(4, 3), nullable=True),
        sa.Column("checks_performed", postgresql.JSONB, nullable=False),
        sa.Column("conflicts_found", postgresql.JSONB, nullable=True),
        sa.Column("changes_detected", postgresql.JSONB, nullable=True),
        sa.Column("decision", sa.String(20), nullable=False),
        sa.Column("decision_reason", sa.Text, nullable=True),
        sa.Column("auto_approved", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("human_reviewed", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("human_reviewer_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("human_decision", sa.String(20), nullable=True),
        sa.Column("human_notes", sa.Text, nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration_ms", sa.Integer, nullable=True),
        sa.Column("api_calls_made", sa.Integer, nullable=False, server_default="0"),
        sa.Column("estimated_cost_usd", sa.Numeric(10, 6), nullable=False, server_default="0"),
        _created_at(),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    op.create_index("idx_verification_logs_suggestion", "verification_logs", ["suggestion_id"])
    op.create_index("idx_verification_logs_resource", "verification_logs", ["resource_id"])
    op.create_index("idx_verification_logs_decision", "verification_logs", ["decision"])

    # =========================
    # Verification events (append-only)
    # =========================
    op.create_table(
        "verification_events",
        _uuid_pk(),
        sa.Column("suggestion_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("event_type", sa.String(20), nullable=False),
        sa.Column("event_data", postgresql.JSONB, nullable=False),
        sa.Column("sequence", sa.Integer, nullable=False),
        _created_at(),
    )

    op.create_index(
        "idx_verification_events_suggestion",
        "verification_events",
        ["suggestion_id", "created_at", "sequence"],
    )

    op.execute("""
        CREATE OR REPLACE FUNCTION prevent_verification_event_modification()
        RETURNS TRIGGER AS $$
        BEGIN
            RAISE EXCEPTION 'verification_events is append-only. Updates and deletes are not allowed.';
        END;
        $$ LANGUAGE plpgsql;
    """)

    op.execute("""
        CREATE TRIGGER verification_events_immutable
        BEFORE UPDATE OR DELETE ON verification_events
        FOR EACH ROW
        EXECUTE FUNCTION prevent_verification_event_modification();
    """)

    # =========================
    # AI usage
    # =========================
    op.create_table(
        "ai_usage_logs",
        _uuid_pk(),
        sa.Column("operation_type", sa.String(50), nullable=False),
        sa.Column("provider", sa.String(20), nullable=False),
        sa.Column("model", sa.String(100), nullable=False),
        sa.Column("input_tokens", sa.Integer, nullable=False),
        sa.Column("output_tokens", sa.Integer, nullable=False),
        sa.Column("input_cost_usd", sa.Numeric(10, 6), nullable=False),
        sa.Column("output_cost_usd", sa.Numeric(10, 6), nullable=False),
        sa.Column("duration_ms", sa.Integer, nullable=True),
        sa.Column("suggestion_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("resource_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("operation_context", postgresql.JSONB, nullable=True),
        _created_at(),
    )

    op.create_index("idx_ai_usage_created", "ai_usage_logs", ["created_at"])
    op.create_index("idx_ai_usage_operation", "ai_usage_logs", ["operation_type"])
    op.create_index("idx_ai_usage_suggestion", "ai_usage_logs", ["suggestion_id"])


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS verification_events_immutable ON verification_events")
    op.execute("DROP FUNCTION IF EXISTS prevent_verification_event_modification()")

    op.drop_table("ai_usage_logs")
    op.drop_table("verification_events")
    op.drop_table("verification_logs")
    op.drop_table("resources")
    op.drop_table("resource_suggestions")
