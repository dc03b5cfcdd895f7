from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from brandguard.db.enums import AssetStatusEnum
from brandguard.db.models import CreativeAsset
from brandguard.db.repositories.base import Repository


class AssetsRepository(Repository):
    def __init__(self, session: Session) -> None:
        super().__init__(session)

    def get(self, asset_id: str) -> Optional[CreativeAsset]:
        stmt = select(CreativeAsset).where(CreativeAsset.id == asset_id)
        return self.session.scalars(stmt).first()

    def list_by_status(self, *, campaign_id: str, status: AssetStatusEnum) -> list[CreativeAsset]:
        stmt = (
            select(CreativeAsset)
            .where(CreativeAsset.campaign_id == campaign_id, CreativeAsset.status == status.value)
            .order_by(CreativeAsset.created_at, CreativeAsset.id)
        )
        return list(self.session.scalars(stmt).all())

    def _update(
        self,
        asset_id: str,
        *,
        from_statuses: tuple[AssetStatusEnum, ...],
        commit: bool = True,
        **values: Any,
    ) -> Optional[CreativeAsset]:
        """Apply ``values`` only while the asset is in one of ``from_statuses``; None otherwise."""
        values["updated_at"] = datetime.now(timezone.utc)
        stmt = (
            update(CreativeAsset)
            .where(
                CreativeAsset.id == asset_id,
                CreativeAsset.status.in_([status.value for status in from_statuses]),
            )
            .values(**values)
            .returning(CreativeAsset)
            .execution_options(synchronize_session=False)
        )
        asset = self.session.execute(stmt).scalar_one_or_none()
        if commit:
            self.session.commit()
        return asset

    def mark_processing(self, asset_id: str) -> Optional[CreativeAsset]:
        return self._update(
            asset_id,
            from_statuses=(AssetStatusEnum.pending, AssetStatusEnum.processing),
            status=AssetStatusEnum.processing.value,
        )

    def mark_pending(self, asset_id: str, *, commit: bool = True) -> Optional[CreativeAsset]:
        return self._update(
            asset_id,
            from_statuses=(AssetStatusEnum.failed,),
            commit=commit,
            status=AssetStatusEnum.pending.value,
        )

    def mark_failed(self, asset_id: str, *, error: str) -> Optional[CreativeAsset]:
        return self._update(
            asset_id,
            from_statuses=(AssetStatusEnum.pending, AssetStatusEnum.processing),
            status=AssetStatusEnum.failed.value,
            analysis_results={"error": error[:5000]},
        )

    def save_analysis(
        self,
        asset_id: str,
        *,
        creative_type: Optional[str],
        compliance_score: int,
        overall_status: str,
        source_properties: dict[str, Any],
        analysis_results: dict[str, Any],
        raw_transcript_data: Optional[dict[str, Any]],
        frontend_report: list[dict[str, Any]],
    ) -> Optional[CreativeAsset]:
        """Write every analysis column and the completed status in one update, only from processing."""
        return self._update(
            asset_id,
            from_statuses=(AssetStatusEnum.processing,),
            status=AssetStatusEnum.completed.value,
            creative_type=creative_type,
            compliance_score=compliance_score,
            overall_status=overall_status,
            source_properties=source_properties,
            analysis_results=analysis_results,
            raw_transcript_data=raw_transcript_data,
            frontend_report=frontend_report,
        )
