import pytest

from brandguard.errors import MediaValidationError
from brandguard.services.media_validation import (
    HEVC_SIZE_THRESHOLD_BYTES,
    check_video_compatibility,
    detect_video_characteristics,
    media_kind,
    normalize_video_mime_type,
    validate_mime_type,
)


def test_media_kind_prefers_mime_type_then_extension():
    assert media_kind("image/png; charset=binary") == "image"
    assert media_kind("video/quicktime", "clip.mov") == "video"
    assert media_kind("audio/mpeg") == "audio"
    assert media_kind(None, "Promo.MP4") == "video"
    assert media_kind("application/octet-stream", "voiceover.wav") == "audio"
    assert media_kind("application/pdf", "brief.pdf") == "unknown"


def test_quicktime_and_m4v_are_sent_as_mp4():
    assert normalize_video_mime_type("video/quicktime") == "video/mp4"
    assert normalize_video_mime_type("VIDEO/X-M4V") == "video/mp4"
    assert normalize_video_mime_type("video/webm") == "video/webm"


def test_validate_mime_type_rejects_unsupported_image():
    with pytest.raises(MediaValidationError, match="Unsupported image MIME type: image/gif"):
        validate_mime_type("image/gif", "image")


def test_validate_mime_type_rejects_unsupported_video():
    with pytest.raises(MediaValidationError, match="Unsupported video MIME type"):
        validate_mime_type("video/x-matroska", "video")


def test_small_iphone_capture_is_flagged_as_hevc():
    characteristics = detect_video_characteristics("video/quicktime", 4 * 1024 * 1024, "IMG_0042.MOV")

    assert characteristics.likely_hevc is True
    assert characteristics.recommendation is not None


def test_large_mov_is_not_assumed_hevc():
    characteristics = detect_video_characteristics("video/quicktime", HEVC_SIZE_THRESHOLD_BYTES + 1, "shoot.mov")
    assert characteristics.likely_hevc is False


def test_check_video_compatibility_raises_conversion_guidance_for_hevc():
    with pytest.raises(MediaValidationError, match="Video codec incompatibility"):
        check_video_compatibility("video/quicktime", 2 * 1024 * 1024, "IMG_1234.mov")


def test_check_video_compatibility_accepts_regular_mp4():
    check_video_compatibility("video/mp4", 30 * 1024 * 1024, "campaign_cut.mp4")


def test_check_video_compatibility_rejects_problematic_containers():
    with pytest.raises(MediaValidationError, match="not supported"):
        check_video_compatibility("video/x-matroska", 30 * 1024 * 1024, "cut.mkv")
