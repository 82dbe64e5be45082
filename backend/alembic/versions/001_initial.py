"""Initial schema.

Revision ID: 001
Revises:
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy.dialects.postgresql import ARRAY, JSONB

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Accounts (client practices)
    op.create_table(
        "accounts",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("account_name", sa.String(255), nullable=False),
        sa.Column("website_url", sa.String(2048), nullable=True),
        sa.Column("provider_name", sa.String(255), nullable=True),
        sa.Column("legal_name", sa.String(255), nullable=True),
        sa.Column("business_type", sa.String(100), nullable=True),
        sa.Column("default_phone", sa.String(50), nullable=True),
        sa.Column("default_email", sa.String(255), nullable=True),
        sa.Column("logo_url", sa.String(2048), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    # Sites
    op.create_table(
        "site_index",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column(
            "account_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("accounts.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
        sa.Column("url", sa.String(2048), nullable=False),
        sa.Column("domain", sa.String(255), nullable=False, unique=True),
        sa.Column("page_limit", sa.Integer, nullable=False, server_default="200"),
        sa.Column("exclude_paths", ARRAY(sa.String(500)), nullable=True),
        sa.Column("crawl_status", sa.String(50), nullable=False, server_default="pending"),
        sa.Column("pages_crawled", sa.Integer, nullable=False, server_default="0"),
        sa.Column("current_url", sa.String(2048), nullable=True),
        sa.Column("error_message", sa.String(2000), nullable=True),
        sa.Column("celery_task_id", sa.String(255), nullable=True),
        sa.Column("site_profile", JSONB, nullable=True),
        sa.Column("site_analysis", JSONB, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("crawl_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("crawl_completed_at", sa.DateTime(timezone=True), nullable=True),
    )

    # Pages
    op.create_table(
        "page_index",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column(
            "site_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("site_index.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("url", sa.String(2048), nullable=False),
        sa.Column("path", sa.String(2048), nullable=False, server_default="/"),
        sa.Column("title", sa.String(512), nullable=True),
        sa.Column("meta_description", sa.Text, nullable=True),
        sa.Column("canonical_url", sa.String(2048), nullable=True),
        sa.Column("status_code", sa.Integer, nullable=True),
        sa.Column("html_content", sa.Text, nullable=True),
        sa.Column("cleaned_html", sa.Text, nullable=True),
        sa.Column("main_content", sa.Text, nullable=True),
        sa.Column("headings", JSONB, nullable=True),
        sa.Column("meta_tags", JSONB, nullable=True),
        sa.Column("structured_content", JSONB, nullable=True),
        sa.Column("links", JSONB, nullable=True),
        sa.Column("page_type", sa.String(50), nullable=True, index=True),
        sa.Column("classification_method", sa.String(20), nullable=True),
        sa.Column("schema_status", sa.String(50), nullable=False, server_default="pending", index=True),
        sa.Column("schema_errors", JSONB, nullable=True),
        sa.Column("recommended_schema", JSONB, nullable=True),
        sa.Column("schema_generated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("crawled_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("site_id", "url", name="uq_page_index_site_url"),
    )

    # Locations
    op.create_table(
        "locations",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column(
            "account_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("location_name", sa.String(255), nullable=True),
        sa.Column("street", sa.String(255), nullable=True),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("state", sa.String(50), nullable=True),
        sa.Column("postal", sa.String(20), nullable=True),
        sa.Column("country", sa.String(10), nullable=True),
        sa.Column("phone_number", sa.String(50), nullable=True),
        sa.Column("latitude", sa.Float, nullable=True),
        sa.Column("longitude", sa.Float, nullable=True),
        sa.Column("hours", JSONB, nullable=True),
        sa.Column("areas_served", JSONB, nullable=True),
        sa.Column("url", sa.String(2048), nullable=True),
        sa.Column("gbp_url", sa.String(2048), nullable=True),
        sa.Column("business_description", sa.Text, nullable=True),
        sa.Column("is_primary", sa.Boolean, nullable=False, server_default="false"),
        sa.Column(
            "page_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("page_index.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )

    # Schema templates (tiering and data sources)
    op.create_table(
        "schema_templates",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("schema_type", sa.String(100), nullable=False, unique=True),
        sa.Column("page_type", sa.String(50), nullable=True, index=True),
        sa.Column("tier", sa.String(10), nullable=False, server_default="LOW"),
        sa.Column("tier_reason", sa.Text, nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("required_fields", ARRAY(sa.String(100)), nullable=True),
        sa.Column("optional_fields", ARRAY(sa.String(100)), nullable=True),
        sa.Column("data_sources", JSONB, nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    # Generated schema entities per page
    op.create_table(
        "page_schemas",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column(
            "page_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("page_index.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("schema_type", sa.String(100), nullable=False),
        sa.Column("schema_json", JSONB, nullable=False),
        sa.Column("generation_method", sa.String(20), nullable=False, server_default="template"),
        sa.Column("is_valid", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("validation_errors", JSONB, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("page_id", "schema_type", name="uq_page_schemas_page_type"),
    )

    # Prompts
    op.create_table(
        "prompts",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, unique=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("system_prompt", sa.Text, nullable=True),
        sa.Column("user_prompt_template", sa.Text, nullable=False),
        sa.Column("default_model", sa.String(100), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    # AI usage log
    op.create_table(
        "ai_usage_logs",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("action", sa.String(100), nullable=False, index=True),
        sa.Column("page_id", postgresql.UUID(as_uuid=False), nullable=True, index=True),
        sa.Column("page_url", sa.String(2048), nullable=True),
        sa.Column("provider", sa.String(20), nullable=False),
        sa.Column("model", sa.String(100), nullable=False),
        sa.Column("input_tokens", sa.Integer, nullable=False, server_default="0"),
        sa.Column("output_tokens", sa.Integer, nullable=False, server_default="0"),
        sa.Column("input_cost_cents", sa.Float, nullable=False, server_default="0"),
        sa.Column("output_cost_cents", sa.Float, nullable=False, server_default="0"),
        sa.Column("request_duration_ms", sa.Integer, nullable=True),
        sa.Column("success", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, index=True),
    )

    # Link plans
    op.create_table(
        "link_plan",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column(
            "account_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("target_month", sa.Date, nullable=False, index=True),
        sa.Column("link_type", sa.String(50), nullable=True),
        sa.Column("publisher", sa.String(255), nullable=True),
        sa.Column("publisher_da", sa.Integer, nullable=True),
        sa.Column("destination_url", sa.String(2048), nullable=True),
        sa.Column(
            "destination_page_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("page_index.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("anchor_text", sa.String(500), nullable=True),
        sa.Column("live_url", sa.String(2048), nullable=True),
        sa.Column("status", sa.String(50), nullable=False, server_default="planned", index=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    # Users, roles and permissions
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("token_hash", sa.String(64), nullable=True, unique=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_table(
        "roles",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text, nullable=True),
    )
    op.create_table(
        "permissions",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("key", sa.String(100), nullable=False, unique=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("category", sa.String(50), nullable=True),
    )
    op.create_table(
        "role_permissions",
        sa.Column(
            "role_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("roles.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "permission_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("permissions.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )
    op.create_table(
        "user_roles",
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "role_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("roles.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )
    op.create_table(
        "user_accounts",
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "account_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )
    op.create_table(
        "user_permission_overrides",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column(
            "user_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column(
            "permission_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("permissions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("granted", sa.Boolean, nullable=False, server_default="true"),
        sa.UniqueConstraint("user_id", "permission_id", name="uq_user_permission_override"),
    )


def downgrade() -> None:
    op.drop_table("user_permission_overrides")
    op.drop_table("user_accounts")
    op.drop_table("user_roles")
    op.drop_table("role_permissions")
    op.drop_table("permissions")
    op.drop_table("roles")
    op.drop_table("users")
    op.drop_table("link_plan")
    op.drop_table("ai_usage_logs")
    op.drop_table("prompts")
    op.drop_table("page_schemas")
    op.drop_table("schema_templates")
    op.drop_table("locations")
    op.drop_table("page_index")
    op.drop_table("site_index")
    op.drop_table("accounts")
