"""Create brands, campaigns, creative assets and the analysis job queue"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_compliance_pipeline"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    uuid = postgresql.UUID(as_uuid=False)
    jsonb = postgresql.JSONB(astext_type=sa.Text())

    op.create_table(
        "brands",
        sa.Column("id", uuid, primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("industry", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("color_palette", jsonb, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("logo_files", jsonb, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("tone_keywords", jsonb, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("approved_terms", jsonb, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("banned_terms", jsonb, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("required_disclaimers", jsonb, nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("phonetic_pronunciation", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    )

    op.create_table(
        "campaigns",
        sa.Column("id", uuid, primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("brand_id", uuid, sa.ForeignKey("brands.id", ondelete="SET NULL"), nullable=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
    )

    op.create_table(
        "creative_assets",
        sa.Column("id", uuid, primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("campaign_id", uuid, sa.ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=True),
        sa.Column("asset_name", sa.Text(), nullable=False),
        sa.Column("storage_path", sa.Text(), nullable=True),
        sa.Column("mime_type", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("creative_type", sa.Text(), nullable=True),
        sa.Column("compliance_score", sa.Integer(), nullable=True),
        sa.Column("overall_status", sa.Text(), nullable=True),
        sa.Column("source_properties", jsonb, nullable=True),
        sa.Column("analysis_results", jsonb, nullable=True),
        sa.Column("raw_transcript_data", jsonb, nullable=True),
        sa.Column("frontend_report", jsonb, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="ck_creative_assets_status",
        ),
        sa.CheckConstraint(
            "creative_type IS NULL OR creative_type IN ('UGC', 'Branded', 'Non-Marketing')",
            name="ck_creative_assets_creative_type",
        ),
        sa.CheckConstraint(
            "overall_status IS NULL OR overall_status IN ('pass', 'warn', 'fail')",
            name="ck_creative_assets_overall_status",
        ),
        sa.CheckConstraint(
            "compliance_score IS NULL OR compliance_score BETWEEN 0 AND 100",
            name="ck_creative_assets_compliance_score",
        ),
    )
    op.create_index("idx_creative_assets_campaign", "creative_assets", ["campaign_id"])
    op.create_index("idx_creative_assets_status", "creative_assets", ["status"])

    op.create_table(
        "analysis_jobs",
        sa.Column("id", sa.BigInteger(), sa.Identity(always=False), primary_key=True),
        sa.Column(
            "asset_id",
            uuid,
            sa.ForeignKey("creative_assets.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", sa.Text(), nullable=False, server_default=sa.text("'queued'")),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("NOW()"), nullable=False),
        sa.CheckConstraint(
            "status IN ('queued', 'processing', 'completed', 'failed')",
            name="ck_analysis_jobs_status",
        ),
    )
    op.create_index("idx_analysis_jobs_status_created", "analysis_jobs", ["status", "created_at"])
    op.create_index("idx_analysis_jobs_asset", "analysis_jobs", ["asset_id"])
    # Backstop for the claim statement: the database itself refuses a second processing job.
    op.create_index(
        "uq_analysis_jobs_single_processing",
        "analysis_jobs",
        ["status"],
        unique=True,
        postgresql_where=sa.text("status = 'processing'"),
    )


def downgrade() -> None:
    op.drop_index("uq_analysis_jobs_single_processing", table_name="analysis_jobs")
    op.drop_index("idx_analysis_jobs_asset", table_name="analysis_jobs")
    op.drop_index("idx_analysis_jobs_status_created", table_name="analysis_jobs")
    op.drop_table("analysis_jobs")
    op.drop_index("idx_creative_assets_status", table_name="creative_assets")
    op.drop_index("idx_creative_assets_campaign", table_name="creative_assets")
    op.drop_table("creative_assets")
    op.drop_table("campaigns")
    op.drop_table("brands")
