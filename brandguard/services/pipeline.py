from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from sqlalchemy.orm import Session

from brandguard.config import settings
from brandguard.db.models import Brand, CreativeAsset
from brandguard.db.repositories.assets import AssetsRepository
from brandguard.db.repositories.brands import BrandsRepository
from brandguard.errors import (
    AssetDownloadError,
    AssetNotFoundError,
    AssetStateConflictError,
    BrandLinkageError,
    MediaValidationError,
    StageError,
)
from brandguard.schemas.analysis import BrandGuidelines, TranscriptResult
from brandguard.services.checks import StageOutcomes, aggregate_checks
from brandguard.services.media_storage import MediaStorage
from brandguard.services.media_validation import clean_mime_type, media_kind
from brandguard.services.report import render_report
from brandguard.services.retry import RetryExhaustedError, retry_budget_seconds
from brandguard.services.transcription_client import TranscriptionClient
from brandguard.services.vision_client import VisionAnalysisClient
from brandguard.services.vocabulary_client import VocabularyClient

logger = logging.getLogger(__name__)

PROCESSING_VERSION = "3.0"

_STAGE_FAILURES = (StageError, RetryExhaustedError)

Heartbeat = Callable[[], bool]


def worst_case_runtime_seconds() -> float:
    """Longest a job can run with the configured timeouts and retry policy."""
    vision = retry_budget_seconds(settings.VISION_REQUEST_TIMEOUT_SECONDS) + settings.VISION_DOWNLOAD_TIMEOUT_SECONDS
    transcription = settings.TRANSCRIPTION_TIMEOUT_SECONDS
    vocabulary = retry_budget_seconds(settings.VOCABULARY_REQUEST_TIMEOUT_SECONDS)
    return max(vision, transcription) + vocabulary


@dataclass(frozen=True)
class PipelineOutcome:
    asset_id: str
    overall_status: str
    compliance_score: int
    creative_type: Optional[str]
    stage_errors: Dict[str, str]


class CompliancePipeline:
    """
    Runs every analysis stage for one creative asset and writes the verdict.

    Vision and transcription run concurrently; the vocabulary check waits for the
    transcript. Stage failures degrade to default check results, anything else
    propagates to the caller. External clients are created on first use so an image
    job never needs transcription credentials.
    """

    def __init__(
        self,
        *,
        storage: Optional[MediaStorage] = None,
        vision_client: Optional[VisionAnalysisClient] = None,
        transcription_client: Optional[TranscriptionClient] = None,
        vocabulary_client: Optional[VocabularyClient] = None,
    ) -> None:
        self._storage = storage
        self._vision_client = vision_client
        self._transcription_client = transcription_client
        self._vocabulary_client = vocabulary_client

    @property
    def storage(self) -> MediaStorage:
        if self._storage is None:
            self._storage = MediaStorage()
        return self._storage

    @property
    def vision_client(self) -> VisionAnalysisClient:
        if self._vision_client is None:
            self._vision_client = VisionAnalysisClient()
        return self._vision_client

    @property
    def transcription_client(self) -> TranscriptionClient:
        if self._transcription_client is None:
            self._transcription_client = TranscriptionClient()
        return self._transcription_client

    @property
    def vocabulary_client(self) -> VocabularyClient:
        if self._vocabulary_client is None:
            self._vocabulary_client = VocabularyClient()
        return self._vocabulary_client

    def process_asset(
        self,
        session: Session,
        asset_id: str,
        *,
        heartbeat: Optional[Heartbeat] = None,
    ) -> PipelineOutcome:
        """
        Analyse one asset and save the report.

        ``heartbeat`` is called between stages to keep the claimed job fresh; when it
        reports the job is no longer processing the run is abandoned.
        """
        assets_repo = AssetsRepository(session)
        asset = assets_repo.get(asset_id)
        if asset is None:
            raise AssetNotFoundError(f"Asset {asset_id} not found")
        if not asset.storage_path:
            raise AssetDownloadError(f"Asset {asset_id} has no stored file")

        brand = self._load_brand(session, asset)
        guidelines = BrandGuidelines.from_brand(brand)
        asset_name = asset.asset_name
        storage_path = asset.storage_path
        declared_mime = asset.mime_type

        if assets_repo.mark_processing(asset_id) is None:
            raise AssetStateConflictError(f"Asset {asset_id} is not pending; it cannot be analysed now")

        kind = media_kind(declared_mime, asset_name)
        if kind == "unknown":
            raise MediaValidationError(
                f"Unsupported media type: {clean_mime_type(declared_mime) or 'unknown'}. "
                "Upload an image, video or audio file."
            )

        stored = self.storage.stat_object(key=storage_path)
        media_url = self.storage.presign_get(key=storage_path)
        mime_type = declared_mime or stored.content_type
        has_visual = kind in ("image", "video")
        has_audio = kind in ("video", "audio")

        logger.info(
            "compliance_pipeline.started",
            extra={
                "asset_id": asset_id,
                "media_kind": kind,
                "mime_type": mime_type,
                "size_bytes": stored.size_bytes,
            },
        )

        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="compliance-stage") as pool:
            vision_future: Optional[Future] = None
            transcript_future: Optional[Future] = None
            if has_visual:
                vision_future = pool.submit(
                    self._run_vision,
                    asset_id=asset_id,
                    media_url=media_url,
                    mime_type=mime_type,
                    file_name=asset_name,
                    size_bytes=stored.size_bytes,
                    guidelines=guidelines,
                )
            if has_audio:
                transcript_future = pool.submit(self._run_transcription, asset_id=asset_id, media_url=media_url)

            vision, vision_error = vision_future.result() if vision_future else (None, None)
            transcript, transcription_error = (
                transcript_future.result() if transcript_future else (None, None)
            )

        self._beat(heartbeat, asset_id, "media analysis")

        vocabulary, vocabulary_error = self._run_vocabulary(
            asset_id=asset_id,
            transcript=transcript,
            transcription_error=transcription_error,
            guidelines=guidelines,
        )

        aggregated = aggregate_checks(
            StageOutcomes(
                has_visual=has_visual,
                vision=vision,
                vision_error=vision_error,
                vocabulary=vocabulary,
                vocabulary_error=vocabulary_error,
            )
        )
        report = render_report(aggregated.checks)
        self._beat(heartbeat, asset_id, "vocabulary check")

        now = datetime.now(timezone.utc).isoformat()
        analysis_results: Dict[str, Any] = {
            "visual_analysis": vision,
            "vocabulary_analysis": vocabulary,
            "content_type": aggregated.content_type.to_dict() if aggregated.content_type else None,
            "checks": aggregated.checks_to_dict(),
            "stage_errors": dict(aggregated.stage_errors),
            "processing_metadata": {
                "processed_at": now,
                "processing_version": PROCESSING_VERSION,
                "models_used": {
                    "vision": settings.VISION_MODEL if has_visual else None,
                    "transcription": "assemblyai" if has_audio else None,
                    "vocabulary": settings.VOCABULARY_MODEL if vocabulary is not None else None,
                },
            },
        }
        source_properties = {
            "file_name": asset_name,
            "mime_type": mime_type,
            "file_size": stored.size_bytes,
            "media_kind": kind,
            "analyzed_at": now,
        }

        updated = assets_repo.save_analysis(
            asset_id,
            creative_type=aggregated.creative_type,
            compliance_score=report.compliance_score,
            overall_status=report.overall_status,
            source_properties=source_properties,
            analysis_results=analysis_results,
            raw_transcript_data=transcript.model_dump() if transcript else None,
            frontend_report=report.frontend_report(),
        )
        if updated is None:
            raise AssetStateConflictError(
                f"Asset {asset_id} is no longer processing; analysis results were not saved"
            )

        logger.info(
            "compliance_pipeline.completed",
            extra={
                "asset_id": asset_id,
                "overall_status": report.overall_status,
                "compliance_score": report.compliance_score,
                "creative_type": aggregated.creative_type,
                "stage_errors": list(aggregated.stage_errors),
            },
        )
        return PipelineOutcome(
            asset_id=asset_id,
            overall_status=report.overall_status,
            compliance_score=report.compliance_score,
            creative_type=aggregated.creative_type,
            stage_errors=dict(aggregated.stage_errors),
        )

    def _load_brand(self, session: Session, asset: CreativeAsset) -> Brand:
        brands_repo = BrandsRepository(session)
        problem: Optional[str] = None
        brand: Optional[Brand] = None
        if not asset.campaign_id:
            problem = f"Asset {asset.id} is not linked to a campaign"
        else:
            campaign = brands_repo.get_campaign(asset.campaign_id)
            if campaign is None:
                problem = f"Campaign {asset.campaign_id} for asset {asset.id} not found"
            elif not campaign.brand_id:
                problem = f"Campaign {campaign.id} is not linked to a brand"
            else:
                brand = brands_repo.get(campaign.brand_id)
                if brand is None:
                    problem = f"Brand {campaign.brand_id} for campaign {campaign.id} not found"
        if brand is None:
            logger.error(
                "compliance_pipeline.brand_linkage_missing",
                extra={"asset_id": asset.id, "campaign_id": asset.campaign_id, "problem": problem},
            )
            raise BrandLinkageError(problem or f"Brand guidelines for asset {asset.id} not found")
        return brand

    def _beat(self, heartbeat: Optional[Heartbeat], asset_id: str, stage: str) -> None:
        if heartbeat is None or heartbeat():
            return
        logger.warning("compliance_pipeline.job_abandoned", extra={"asset_id": asset_id, "stage": stage})
        raise AssetStateConflictError(
            f"Analysis of asset {asset_id} was abandoned after {stage}: its job is no longer processing"
        )

    def _stage_failed(self, stage: str, asset_id: str, exc: Exception) -> str:
        logger.warning(
            "compliance_pipeline.stage_failed",
            extra={"asset_id": asset_id, "stage": stage, "error": str(exc), "error_type": type(exc).__name__},
        )
        return str(exc)

    def _run_vision(
        self,
        *,
        asset_id: str,
        media_url: str,
        mime_type: Optional[str],
        file_name: str,
        size_bytes: int,
        guidelines: BrandGuidelines,
    ) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        try:
            payload = self.vision_client.analyze(
                media_url=media_url,
                mime_type=mime_type,
                file_name=file_name,
                size_bytes=size_bytes,
                guidelines=guidelines,
            )
        except _STAGE_FAILURES as exc:
            return None, self._stage_failed("vision", asset_id, exc)
        return payload, None

    def _run_transcription(
        self,
        *,
        asset_id: str,
        media_url: str,
    ) -> Tuple[Optional[TranscriptResult], Optional[str]]:
        try:
            transcript = self.transcription_client.transcribe(media_url)
        except _STAGE_FAILURES as exc:
            return None, self._stage_failed("transcription", asset_id, exc)
        return transcript, None

    def _run_vocabulary(
        self,
        *,
        asset_id: str,
        transcript: Optional[TranscriptResult],
        transcription_error: Optional[str],
        guidelines: BrandGuidelines,
    ) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        if transcription_error:
            return None, f"transcript unavailable: {transcription_error}"
        if transcript is None or transcript.is_empty:
            return None, None
        try:
            result = self.vocabulary_client.check(
                transcript,
                brand_name=guidelines.name,
                phonetic_guide=guidelines.phonetic_pronunciation,
                banned_terms=guidelines.banned_terms,
            )
        except _STAGE_FAILURES as exc:
            return None, self._stage_failed("vocabulary", asset_id, exc)
        return result, None
