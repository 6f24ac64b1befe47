"""baseline: users, form types, schema versions, mappings, submissions, answers, audit

Revision ID: 20261019120000
Revises:
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "20261019120000"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("full_name", sa.String(length=120), nullable=False),
        sa.Column("username", sa.String(length=80), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.Enum("ADMIN", "ENUMERATOR", name="role"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "form_types",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(length=120), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("sector_key", sa.String(length=120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_form_types_key", "form_types", ["key"], unique=True)
    op.create_index("ix_form_types_sector_key", "form_types", ["sector_key"])
    op.create_index("ix_form_types_is_active", "form_types", ["is_active"])

    op.create_table(
        "form_schema_versions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("form_type_id", sa.Integer(), sa.ForeignKey("form_types.id", ondelete="CASCADE"), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("schema_json", sa.Text(), nullable=False),
        sa.Column("ui_json", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
        *_timestamps(),
        sa.UniqueConstraint("form_type_id", "year", "version", name="uq_form_schema_version"),
    )
    op.create_index("ix_form_schema_versions_form_type_id", "form_schema_versions", ["form_type_id"])
    op.create_index("ix_form_schema_versions_year", "form_schema_versions", ["year"])
    op.create_index("ix_form_schema_versions_status", "form_schema_versions", ["status"])

    op.create_table(
        "form_mappings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("form_type_id", sa.Integer(), sa.ForeignKey("form_types.id", ondelete="CASCADE"), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("mapping_json", sa.Text(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("form_type_id", "year", name="uq_form_mapping_year"),
    )
    op.create_index("ix_form_mappings_form_type_id", "form_mappings", ["form_type_id"])
    op.create_index("ix_form_mappings_year", "form_mappings", ["year"])

    op.create_table(
        "submissions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("form_type_id", sa.Integer(), sa.ForeignKey("form_types.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "schema_version_id",
            sa.Integer(),
            sa.ForeignKey("form_schema_versions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("source", sa.String(length=20), nullable=False, server_default="admin"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
        sa.Column("reg_name", sa.String(length=120), nullable=True),
        sa.Column("prov_name", sa.String(length=120), nullable=True),
        sa.Column("city_name", sa.String(length=120), nullable=True),
        sa.Column("brgy_name", sa.String(length=120), nullable=True),
        sa.Column("created_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_submissions_schema_version_id", "submissions", ["schema_version_id"])
    op.create_index("ix_submissions_created_by_id", "submissions", ["created_by_id"])
    op.create_index("ix_submissions_form_type_year", "submissions", ["form_type_id", "year"])
    op.create_index("ix_submissions_status_created", "submissions", ["status", "created_at"])
    op.create_index("ix_submissions_source_created", "submissions", ["source", "created_at"])
    op.create_index("ix_submissions_prov_city", "submissions", ["prov_name", "city_name"])
    op.create_index("ix_submissions_prov_city_brgy", "submissions", ["prov_name", "city_name", "brgy_name"])

    op.create_table(
        "submission_answers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("submission_id", sa.Integer(), sa.ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False),
        sa.Column("form_type_id", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("field_key", sa.String(length=190), nullable=False),
        sa.Column("value_text", sa.Text(), nullable=True),
        sa.Column("value_number", sa.Numeric(18, 6), nullable=True),
        sa.Column("value_bool", sa.Boolean(), nullable=True),
        sa.Column("value_json", sa.JSON(), nullable=True),
        sa.Column("option_key", sa.String(length=190), nullable=True),
        sa.Column("option_label", sa.String(length=255), nullable=True),
        sa.Column("label", sa.String(length=255), nullable=True),
        sa.Column("type", sa.String(length=50), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("submission_id", "field_key", name="uq_submission_answers_field"),
    )
    op.create_index("ix_submission_answers_submission_id", "submission_answers", ["submission_id"])
    op.create_index("ix_submission_answers_field_key", "submission_answers", ["field_key"])
    op.create_index(
        "ix_submission_answers_type_year_field", "submission_answers", ["form_type_id", "year", "field_key"]
    )

    op.create_table(
        "form_audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("actor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("entity", sa.String(length=80), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("before_json", sa.Text(), server_default="", nullable=False),
        sa.Column("after_json", sa.Text(), server_default="", nullable=False),
        sa.Column("comment", sa.Text(), server_default="", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("CURRENT_TIMESTAMP"), nullable=False),
    )
    for col in ("actor_id", "action", "entity", "entity_id", "created_at"):
        op.create_index(f"ix_form_audit_logs_{col}", "form_audit_logs", [col])


def downgrade() -> None:
    op.drop_table("form_audit_logs")
    op.drop_table("submission_answers")
    op.drop_table("submissions")
    op.drop_table("form_mappings")
    op.drop_table("form_schema_versions")
    op.drop_table("form_types")
    op.drop_table("users")
