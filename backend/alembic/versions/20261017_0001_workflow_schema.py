"""workflow schema

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 00:00:01
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261017_0001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "custom_roles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column("role_name", sa.String(length=100), nullable=False),
        sa.Column("role_code", sa.String(length=50), nullable=False),
        sa.Column("role_description", sa.Text(), nullable=True),
        sa.Column("role_category", sa.String(length=50), nullable=True),
        sa.Column("authority_level", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("reports_to_role_id", sa.Integer(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_system_role", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("authority_level BETWEEN 1 AND 5", name="ck_custom_roles_authority_level"),
        sa.ForeignKeyConstraint(["reports_to_role_id"], ["custom_roles.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id", "role_code", name="uq_custom_roles_project_code"),
    )
    op.create_index("ix_custom_roles_project_id", "custom_roles", ["project_id"], unique=False)
    op.create_index("ix_custom_roles_reports_to_role_id", "custom_roles", ["reports_to_role_id"], unique=False)

    op.create_table(
        "role_permissions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("role_id", sa.Integer(), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("can_create", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("can_read", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("can_update", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("can_delete", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("auto_create_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("auto_create_threshold", sa.Float(), nullable=False, server_default=sa.text("0.9")),
        sa.Column("requires_approval", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("approval_from_role_id", sa.Integer(), nullable=True),
        sa.Column("notify_on_create", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("can_capture_thoughts", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("can_record_meetings", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint("auto_create_threshold BETWEEN 0 AND 1", name="ck_role_permissions_threshold"),
        sa.ForeignKeyConstraint(["role_id"], ["custom_roles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["approval_from_role_id"], ["custom_roles.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("role_id", "entity_type", name="uq_role_permissions_role_entity"),
    )
    op.create_index("ix_role_permissions_role_id", "role_permissions", ["role_id"], unique=False)
    op.create_index("ix_role_permissions_entity_type", "role_permissions", ["entity_type"], unique=False)

    op.create_table(
        "role_assignments",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column("role_id", sa.Integer(), nullable=False),
        sa.Column("assigned_by", sa.Integer(), nullable=True),
        sa.Column("assigned_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("valid_from", sa.Date(), server_default=sa.text("CURRENT_DATE"), nullable=False),
        sa.Column("valid_to", sa.Date(), nullable=True),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(["role_id"], ["custom_roles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id",
            "project_id",
            "role_id",
            "valid_from",
            name="uq_role_assignments_user_project_role_from",
        ),
    )
    op.create_index("ix_role_assignments_user_id", "role_assignments", ["user_id"], unique=False)
    op.create_index("ix_role_assignments_project_id", "role_assignments", ["project_id"], unique=False)
    op.create_index("ix_role_assignments_role_id", "role_assignments", ["role_id"], unique=False)

    op.create_table(
        "graph_nodes",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("source_table", sa.String(length=50), nullable=True),
        sa.Column("source_id", sa.Integer(), nullable=True),
        sa.Column("attrs", sa.JSON(), nullable=False),
        sa.Column("created_by_ai", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("ai_confidence", sa.Float(), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_graph_nodes_project_id", "graph_nodes", ["project_id"], unique=False)
    op.create_index("ix_graph_nodes_type", "graph_nodes", ["type"], unique=False)

    op.create_table(
        "evidence",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("entity_ref_kind", sa.String(length=16), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=True),
        sa.Column("graph_node_id", sa.String(length=36), nullable=True),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("evidence_type", sa.String(length=50), nullable=False),
        sa.Column("source_type", sa.String(length=50), nullable=False),
        sa.Column("source_id", sa.String(length=255), nullable=True),
        sa.Column("quote_text", sa.Text(), nullable=False),
        sa.Column("context", sa.JSON(), nullable=False),
        sa.Column("confidence", sa.String(length=16), nullable=False),
        sa.Column("extraction_method", sa.String(length=50), nullable=False),
        sa.Column("created_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint(
            "(entity_ref_kind = 'record' AND entity_id IS NOT NULL AND graph_node_id IS NULL)"
            " OR (entity_ref_kind = 'graph_node' AND graph_node_id IS NOT NULL AND entity_id IS NULL)",
            name="ck_evidence_entity_ref",
        ),
        sa.ForeignKeyConstraint(["graph_node_id"], ["graph_nodes.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_evidence_entity_id", "evidence", ["entity_id"], unique=False)
    op.create_index("ix_evidence_graph_node_id", "evidence", ["graph_node_id"], unique=False)

    op.create_table(
        "entity_proposals",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column("proposed_by", sa.Integer(), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("proposed_data", sa.JSON(), nullable=False),
        sa.Column("ai_analysis", sa.JSON(), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=True),
        sa.Column("source_type", sa.String(length=50), nullable=False),
        sa.Column("source_id", sa.String(length=255), nullable=True),
        sa.Column("source_metadata", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("requires_approval_from", sa.Integer(), nullable=True),
        sa.Column("reviewed_by", sa.Integer(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("review_notes", sa.Text(), nullable=True),
        sa.Column("created_node_id", sa.String(length=36), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_entity_proposals_status",
        ),
        sa.ForeignKeyConstraint(["requires_approval_from"], ["custom_roles.id"], ondelete="SET NULL"),
        sa.ForeignKeyConstraint(["created_node_id"], ["graph_nodes.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_entity_proposals_project_id", "entity_proposals", ["project_id"], unique=False)
    op.create_index("ix_entity_proposals_proposed_by", "entity_proposals", ["proposed_by"], unique=False)
    op.create_index("ix_entity_proposals_status", "entity_proposals", ["status"], unique=False)
    op.create_index(
        "ix_entity_proposals_requires_approval_from",
        "entity_proposals",
        ["requires_approval_from"],
        unique=False,
    )
    op.create_index(
        "ix_entity_proposals_project_pending",
        "entity_proposals",
        ["project_id", "created_at"],
        unique=False,
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "project_workflow_settings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("project_id", sa.Integer(), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("auto_create_threshold", sa.Float(), nullable=True),
        sa.Column("detection_types", sa.JSON(), nullable=True),
        sa.Column("notify_chat_platform", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("notify_email", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("project_id"),
    )

    op.create_table(
        "rate_limit_counters",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("actor_id", sa.Integer(), nullable=False),
        sa.Column("feature", sa.String(length=64), nullable=False),
        sa.Column("window_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("actor_id", "feature", "window_start", name="uq_rate_limit_counters_window"),
    )
    op.create_index("ix_rate_limit_counters_expires_at", "rate_limit_counters", ["expires_at"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_rate_limit_counters_expires_at", table_name="rate_limit_counters")
    op.drop_table("rate_limit_counters")
    op.drop_table("project_workflow_settings")
    op.drop_index("ix_entity_proposals_project_pending", table_name="entity_proposals")
    op.drop_index("ix_entity_proposals_requires_approval_from", table_name="entity_proposals")
    op.drop_index("ix_entity_proposals_status", table_name="entity_proposals")
    op.drop_index("ix_entity_proposals_proposed_by", table_name="entity_proposals")
    op.drop_index("ix_entity_proposals_project_id", table_name="entity_proposals")
    op.drop_table("entity_proposals")
    op.drop_index("ix_evidence_graph_node_id", table_name="evidence")
    op.drop_index("ix_evidence_entity_id", table_name="evidence")
    op.drop_table("evidence")
    op.drop_index("ix_graph_nodes_type", table_name="graph_nodes")
    op.drop_index("ix_graph_nodes_project_id", table_name="graph_nodes")
    op.drop_table("graph_nodes")
    op.drop_index("ix_role_assignments_role_id", table_name="role_assignments")
    op.drop_index("ix_role_assignments_project_id", table_name="role_assignments")
    op.drop_index("ix_role_assignments_user_id", table_name="role_assignments")
    op.drop_table("role_assignments")
    op.drop_index("ix_role_permissions_entity_type", table_name="role_permissions")
    op.drop_index("ix_role_permissions_role_id", table_name="role_permissions")
    op.drop_table("role_permissions")
    op.drop_index("ix_custom_roles_reports_to_role_id", table_name="custom_roles")
    op.drop_index("ix_custom_roles_project_id", table_name="custom_roles")
    op.drop_table("custom_roles")
