"""designs, campaigns and certificates

Revision ID: 0001_certificate_studio
Revises:
Create Date: 2026-10-19

Initial schema for the certificate studio.
"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_certificate_studio"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "designs",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "draft",
                "active",
                "inactive",
                "archived",
                name="design_status",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("design_data", sa.JSON(), nullable=True),
        sa.Column("settings", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "campaigns",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("design_id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("variable_mapping", sa.JSON(), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "draft",
                "active",
                "completed",
                name="campaign_status",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("certificate_limit", sa.Integer(), nullable=True),
        sa.Column("certificates_issued", sa.Integer(), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "completion_reason",
            sa.Enum(
                "limit_reached",
                "date_reached",
                "manual",
                name="campaign_completion_reason",
                native_enum=False,
            ),
            nullable=True,
        ),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["design_id"], ["designs.id"], ondelete="RESTRICT"),
    )
    op.create_index("ix_campaigns_design", "campaigns", ["design_id"])

    op.create_table(
        "certificates",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("design_id", sa.String(36), nullable=False),
        sa.Column("campaign_id", sa.String(36), nullable=True),
        sa.Column("recipient_name", sa.String(255), nullable=False),
        sa.Column("recipient_email", sa.String(255), nullable=False),
        sa.Column("recipient_data", sa.JSON(), nullable=True),
        sa.Column("certificate_data", sa.JSON(), nullable=True),
        sa.Column("verification_token", sa.String(64), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "pending",
                "issued",
                "expired",
                "revoked",
                name="certificate_status",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revocation_reason", sa.Text(), nullable=True),
        sa.Column("pdf_path", sa.String(1024), nullable=True),
        sa.Column("render_error", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["design_id"], ["designs.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(
            ["campaign_id"], ["campaigns.id"], ondelete="SET NULL"
        ),
        sa.UniqueConstraint(
            "verification_token", name="uq_certificates_verification_token"
        ),
    )
    op.create_index("ix_certificates_campaign", "certificates", ["campaign_id"])
    op.create_index(
        "ix_certificates_campaign_status",
        "certificates",
        ["campaign_id", "status"],
    )


def downgrade() -> None:
    op.drop_index("ix_certificates_campaign_status", table_name="certificates")
    op.drop_index("ix_certificates_campaign", table_name="certificates")
    op.drop_table("certificates")
    op.drop_index("ix_campaigns_design", table_name="campaigns")
    op.drop_table("campaigns")
    op.drop_table("designs")
