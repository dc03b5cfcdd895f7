from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

import sqlalchemy as sa
from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, Text, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from brandguard.db.base import Base

# JSONB on Postgres, plain JSON elsewhere (sqlite test databases).
JSONType = sa.JSON().with_variant(JSONB(astext_type=Text()), "postgresql")
# Identity column on Postgres; sqlite only autoincrements INTEGER primary keys.
BigIntIdentity = BigInteger().with_variant(Integer(), "sqlite")


def _uuid_str() -> str:
    return str(uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Brand(Base):
    __tablename__ = "brands"

    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=_uuid_str)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    industry: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    color_palette: Mapped[list[Any]] = mapped_column(JSONType, nullable=False, default=list)
    logo_files: Mapped[list[Any]] = mapped_column(JSONType, nullable=False, default=list)
    tone_keywords: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    approved_terms: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    banned_terms: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    required_disclaimers: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    phonetic_pronunciation: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )


class Campaign(Base):
    __tablename__ = "campaigns"

    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=_uuid_str)
    brand_id: Mapped[Optional[str]] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("brands.id", ondelete="SET NULL"),
        nullable=True,
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )


class CreativeAsset(Base):
    __tablename__ = "creative_assets"
    __table_args__ = (
        sa.Index("idx_creative_assets_campaign", "campaign_id"),
        sa.Index("idx_creative_assets_status", "status"),
    )

    id: Mapped[str] = mapped_column(Uuid(as_uuid=False), primary_key=True, default=_uuid_str)
    campaign_id: Mapped[Optional[str]] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=True,
    )
    asset_name: Mapped[str] = mapped_column(Text, nullable=False)
    storage_path: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    mime_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending", server_default="pending")
    creative_type: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    compliance_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    overall_status: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    source_properties: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    analysis_results: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    raw_transcript_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)
    frontend_report: Mapped[Optional[list[dict[str, Any]]]] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )


class AnalysisJob(Base):
    __tablename__ = "analysis_jobs"
    __table_args__ = (
        sa.Index("idx_analysis_jobs_status_created", "status", "created_at"),
        sa.Index("idx_analysis_jobs_asset", "asset_id"),
        sa.Index(
            "uq_analysis_jobs_single_processing",
            "status",
            unique=True,
            postgresql_where=sa.text("status = 'processing'"),
            sqlite_where=sa.text("status = 'processing'"),
        ),
    )

    id: Mapped[int] = mapped_column(BigIntIdentity, primary_key=True, autoincrement=True)
    asset_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("creative_assets.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(Text, nullable=False, default="queued", server_default="queued")
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    finished_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
