import pytest

from brandguard.config import settings
from brandguard.db.models import Campaign, CreativeAsset
from brandguard.db.repositories.assets import AssetsRepository
from brandguard.errors import AssetStateConflictError, BrandLinkageError, MediaValidationError
from brandguard.schemas.analysis import TranscriptResult
from brandguard.services.media_storage import StoredObject
from brandguard.services.pipeline import CompliancePipeline, worst_case_runtime_seconds
from brandguard.services.transcription_client import TranscriptionTimeoutError
from brandguard.services.vision_client import VisionAnalysisError
from brandguard.temporal.workflows.analysis_queue import PROCESS_JOB_START_TO_CLOSE_MINUTES


def _verdict(status="pass", notes="Looks good"):
    return {"status": status, "notes": notes, "business_impact": "N/A", "citations": []}


VISION_PAYLOAD = {
    "logo_compliance": _verdict(),
    "color_compliance": _verdict(),
    "tone_compliance": _verdict(),
    "disclaimer_compliance": _verdict(),
    "layout_compliance": _verdict(),
    "content_type_analysis": {
        "is_marketing_content": True,
        "classification": "UGC",
        "confidence": 0.9,
        "reasoning": "Selfie testimonial",
    },
}


class FakeStorage:
    def stat_object(self, *, key):
        return StoredObject(key=key, size_bytes=12 * 1024 * 1024, content_type="video/mp4")

    def presign_get(self, *, key, expires_in=None):
        return f"https://media.test/{key}"


class FakeVision:
    def __init__(self, payload=None, error=None):
        self.payload = payload
        self.error = error
        self.calls = []

    def analyze(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        return self.payload


class FakeTranscription:
    def __init__(self, text="Acme keeps it fresh", error=None):
        self.text = text
        self.error = error
        self.calls = []

    def transcribe(self, audio_url):
        self.calls.append(audio_url)
        if self.error:
            raise self.error
        return TranscriptResult(id="tr_1", status="completed", text=self.text)


class FakeVocabulary:
    def __init__(self, result=None):
        self.result = result or {"status": "pass", "notes": "No banned words", "citations": []}
        self.calls = []

    def check(self, transcript, **kwargs):
        self.calls.append((transcript, kwargs))
        return self.result


def _pipeline(vision=None, transcription=None, vocabulary=None):
    return CompliancePipeline(
        storage=FakeStorage(),
        vision_client=vision or FakeVision(VISION_PAYLOAD),
        transcription_client=transcription or FakeTranscription(),
        vocabulary_client=vocabulary or FakeVocabulary(),
    )


def test_video_asset_runs_every_stage_and_saves_report(db_session, make_asset):
    asset = make_asset()
    vocabulary = FakeVocabulary()

    outcome = _pipeline(vocabulary=vocabulary).process_asset(db_session, asset.id)

    assert outcome.overall_status == "pass"
    assert outcome.compliance_score == 100
    assert outcome.creative_type == "UGC"

    stored = db_session.get(CreativeAsset, asset.id)
    assert stored.status == "completed"
    assert stored.compliance_score == 100
    assert stored.creative_type == "UGC"
    assert [item["check"] for item in stored.frontend_report][:2] == ["Content Type", "Brand Vocabulary"]
    assert len(stored.frontend_report) == 7
    assert stored.raw_transcript_data["text"] == "Acme keeps it fresh"
    assert stored.analysis_results["processing_metadata"]["processing_version"] == "3.0"
    assert stored.analysis_results["stage_errors"] == {}
    assert stored.source_properties["media_kind"] == "video"

    _, kwargs = vocabulary.calls[0]
    assert kwargs["brand_name"] == "Acme"
    assert kwargs["banned_terms"] == ["cheap"]
    assert kwargs["phonetic_guide"] == "ACK-mee"


def test_transcription_timeout_degrades_vocabulary_to_warn(db_session, make_asset):
    asset = make_asset()
    transcription = FakeTranscription(error=TranscriptionTimeoutError("did not complete within 300 seconds"))
    vocabulary = FakeVocabulary()

    outcome = _pipeline(transcription=transcription, vocabulary=vocabulary).process_asset(db_session, asset.id)

    assert outcome.overall_status == "warn"
    assert outcome.compliance_score == 86
    assert "vocabulary" in outcome.stage_errors
    assert vocabulary.calls == []
    stored = db_session.get(CreativeAsset, asset.id)
    assert stored.status == "completed"
    assert stored.raw_transcript_data is None


def test_vision_stage_failure_still_completes_with_warnings(db_session, make_asset):
    asset = make_asset()
    vision = FakeVision(error=VisionAnalysisError("Vision API request failed"))

    outcome = _pipeline(vision=vision).process_asset(db_session, asset.id)

    assert outcome.overall_status == "warn"
    assert outcome.creative_type is None
    assert outcome.stage_errors["vision"] == "Vision API request failed"


def test_image_asset_skips_transcription(db_session, make_asset):
    asset = make_asset(asset_name="banner.png", mime_type="image/png", storage_path="assets/banner.png")
    transcription = FakeTranscription()

    outcome = _pipeline(transcription=transcription).process_asset(db_session, asset.id)

    assert transcription.calls == []
    assert outcome.compliance_score == 100
    stored = db_session.get(CreativeAsset, asset.id)
    vocabulary_item = stored.frontend_report[1]
    assert vocabulary_item["result"] == "pass"
    assert vocabulary_item["details"] == "No audio content to analyze"


def test_silent_video_passes_vocabulary_without_calling_model(db_session, make_asset):
    asset = make_asset()
    vocabulary = FakeVocabulary()

    outcome = _pipeline(transcription=FakeTranscription(text="  "), vocabulary=vocabulary).process_asset(
        db_session, asset.id
    )

    assert vocabulary.calls == []
    assert outcome.compliance_score == 100


def test_non_marketing_content_fails_the_report(db_session, make_asset):
    asset = make_asset()
    payload = dict(VISION_PAYLOAD)
    payload["content_type_analysis"] = {
        "is_marketing_content": False,
        "classification": "Non-Marketing",
        "confidence": 0.95,
        "reasoning": "Family vacation footage",
    }

    outcome = _pipeline(vision=FakeVision(payload)).process_asset(db_session, asset.id)

    assert outcome.overall_status == "fail"
    assert outcome.creative_type == "Non-Marketing"
    assert outcome.compliance_score == 86


def test_missing_brand_link_is_fatal(db_session, make_asset):
    orphan_campaign = Campaign(name="Unlinked", brand_id=None)
    db_session.add(orphan_campaign)
    db_session.commit()
    asset = make_asset(campaign_id=orphan_campaign.id)

    with pytest.raises(BrandLinkageError):
        _pipeline().process_asset(db_session, asset.id)


def test_media_validation_error_from_vision_is_fatal(db_session, make_asset):
    asset = make_asset(asset_name="IMG_0001.mov", mime_type="video/quicktime")
    vision = FakeVision(error=MediaValidationError("Video codec incompatibility: convert to H.264"))

    with pytest.raises(MediaValidationError):
        _pipeline(vision=vision).process_asset(db_session, asset.id)


def test_unknown_media_type_is_fatal(db_session, make_asset):
    asset = make_asset(asset_name="brief.pdf", mime_type="application/pdf", storage_path="assets/brief.pdf")

    with pytest.raises(MediaValidationError, match="Unsupported media type"):
        _pipeline().process_asset(db_session, asset.id)


def test_abandoned_job_stops_before_the_vocabulary_check(db_session, make_asset):
    asset = make_asset()
    vocabulary = FakeVocabulary()

    def heartbeat():
        AssetsRepository(db_session).mark_failed(asset.id, error="Job exceeded the processing timeout")
        return False

    with pytest.raises(AssetStateConflictError, match="abandoned after media analysis"):
        _pipeline(vocabulary=vocabulary).process_asset(db_session, asset.id, heartbeat=heartbeat)

    assert vocabulary.calls == []
    stored = db_session.get(CreativeAsset, asset.id)
    assert stored.status == "failed"
    assert stored.frontend_report is None


def test_results_are_not_saved_over_an_asset_failed_mid_run(db_session, make_asset):
    asset = make_asset()

    class FailingVocabulary(FakeVocabulary):
        def check(self, transcript, **kwargs):
            AssetsRepository(db_session).mark_failed(asset.id, error="Job exceeded the processing timeout")
            return super().check(transcript, **kwargs)

    with pytest.raises(AssetStateConflictError, match="results were not saved"):
        _pipeline(vocabulary=FailingVocabulary()).process_asset(db_session, asset.id)

    stored = db_session.get(CreativeAsset, asset.id)
    assert stored.status == "failed"
    assert stored.analysis_results == {"error": "Job exceeded the processing timeout"}


def test_completed_asset_is_not_reanalysed(db_session, make_asset):
    asset = make_asset(status="completed")
    vision = FakeVision(VISION_PAYLOAD)

    with pytest.raises(AssetStateConflictError, match="is not pending"):
        _pipeline(vision=vision).process_asset(db_session, asset.id)

    assert vision.calls == []


def test_heartbeats_between_stages_while_the_job_is_owned(db_session, make_asset):
    asset = make_asset()
    beats = []

    def heartbeat():
        beats.append(True)
        return True

    _pipeline().process_asset(db_session, asset.id, heartbeat=heartbeat)

    assert len(beats) == 2
    assert db_session.get(CreativeAsset, asset.id).status == "completed"


def test_worst_case_runtime_fits_activity_timeout_and_stale_window():
    worst_case = worst_case_runtime_seconds()

    assert worst_case < PROCESS_JOB_START_TO_CLOSE_MINUTES * 60
    assert worst_case < settings.JOB_STALE_AFTER_MINUTES * 60
