"""Document request schema: tenants, users, document_requests, audit_logs

Revision ID: 20261001_document_request_schema
Revises:
Create Date: 2026-10-01
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261001_document_request_schema"
down_revision = None
branch_labels = None
depends_on = None


def _create_index_if_missing(inspector, table, name, columns):
    existing_indexes = {idx["name"] for idx in inspector.get_indexes(table)}
    if name not in existing_indexes:
        op.create_index(name, table, columns)


def upgrade():
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table("tenants"):
        op.create_table(
            "tenants",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(length=120), nullable=False),
            sa.Column("slug", sa.String(length=140), nullable=False, unique=True),
            sa.Column("address", sa.String(length=255), nullable=False),
            sa.Column("municipality", sa.String(length=120), nullable=False),
            sa.Column("province", sa.String(length=120), nullable=False),
            sa.Column("contact_number", sa.String(length=30), nullable=True),
            sa.Column("seal_logo_url", sa.String(length=500), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("document_pricing", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
        )
    _create_index_if_missing(sa.inspect(bind), "tenants", "idx_tenant_active", ["is_active"])

    if not inspector.has_table("users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=True),
            sa.Column("email", sa.String(length=255), nullable=False, unique=True),
            sa.Column("first_name", sa.String(length=100), nullable=True),
            sa.Column("last_name", sa.String(length=100), nullable=True),
            sa.Column("role", sa.String(length=30), nullable=False, server_default="Resident"),
            sa.Column("is_super_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
        )
    inspector = sa.inspect(bind)
    _create_index_if_missing(inspector, "users", "idx_user_tenant", ["tenant_id"])
    _create_index_if_missing(inspector, "users", "idx_user_role", ["role"])

    if not inspector.has_table("document_requests"):
        op.create_table(
            "document_requests",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
            sa.Column("resident_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("tracking_number", sa.String(length=50), nullable=False),
            sa.Column("document_type", sa.String(length=100), nullable=False),
            sa.Column("purpose", sa.String(length=255), nullable=True),
            sa.Column("amount", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("status", sa.String(length=30), nullable=False, server_default="Pending"),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("payment_details", sa.JSON(), nullable=True),
            sa.Column("rejection_reason", sa.Text(), nullable=True),
            sa.Column("request_date", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
            sa.Column("approval_date", sa.DateTime(), nullable=True),
            sa.Column("payment_submitted_date", sa.DateTime(), nullable=True),
            sa.Column("payment_verified_date", sa.DateTime(), nullable=True),
            sa.Column("release_date", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.UniqueConstraint("tenant_id", "tracking_number", name="uq_doc_request_tenant_tracking"),
            sa.CheckConstraint("amount >= 0", name="ck_doc_request_amount_non_negative"),
        )
    inspector = sa.inspect(bind)
    _create_index_if_missing(inspector, "document_requests", "idx_doc_request_resident", ["resident_id"])
    _create_index_if_missing(inspector, "document_requests", "idx_doc_request_tenant_status", ["tenant_id", "status"])
    _create_index_if_missing(inspector, "document_requests", "idx_doc_request_date", ["request_date"])

    if not inspector.has_table("audit_logs"):
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
            sa.Column("tenant_id", sa.Integer(), sa.ForeignKey("tenants.id"), nullable=False),
            sa.Column("entity_type", sa.String(length=50), nullable=False),
            sa.Column("entity_id", sa.Integer(), nullable=True),
            sa.Column("action", sa.String(length=50), nullable=False),
            sa.Column("actor_role", sa.String(length=30), nullable=True),
            sa.Column("old_values", sa.JSON(), nullable=True),
            sa.Column("new_values", sa.JSON(), nullable=True),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=True, server_default=sa.text("CURRENT_TIMESTAMP")),
        )
    inspector = sa.inspect(bind)
    _create_index_if_missing(inspector, "audit_logs", "idx_audit_tenant", ["tenant_id"])
    _create_index_if_missing(inspector, "audit_logs", "idx_audit_entity", ["entity_type", "entity_id"])
    _create_index_if_missing(inspector, "audit_logs", "idx_audit_created_at", ["created_at"])


def downgrade():
    op.execute("DROP INDEX IF EXISTS idx_audit_created_at")
    op.execute("DROP INDEX IF EXISTS idx_audit_entity")
    op.execute("DROP INDEX IF EXISTS idx_audit_tenant")
    op.execute("DROP TABLE IF EXISTS audit_logs")
    op.execute("DROP INDEX IF EXISTS idx_doc_request_date")
    op.execute("DROP INDEX IF EXISTS idx_doc_request_tenant_status")
    op.execute("DROP INDEX IF EXISTS idx_doc_request_resident")
    op.execute("DROP TABLE IF EXISTS document_requests")
    op.execute("DROP INDEX IF EXISTS idx_user_role")
    op.execute("DROP INDEX IF EXISTS idx_user_tenant")
    op.execute("DROP TABLE IF EXISTS users")
    op.execute("DROP INDEX IF EXISTS idx_tenant_active")
    op.execute("DROP TABLE IF EXISTS tenants")
