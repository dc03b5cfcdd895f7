from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from brandguard.errors import MediaValidationError

SUPPORTED_VIDEO_MIME_TYPES = (
    "video/mp4",
    "video/mpeg",
    "video/mov",
    "video/avi",
    "video/x-flv",
    "video/mpg",
    "video/webm",
    "video/wmv",
    "video/3gpp",
)
SUPPORTED_IMAGE_MIME_TYPES = (
    "image/png",
    "image/jpeg",
    "image/webp",
    "image/heic",
    "image/heif",
)

# Declared types that are MP4 containers in practice.
_MP4_ALIASES = {"video/quicktime", "video/x-m4v", "application/octet-stream"}

PROBLEMATIC_VIDEO_MIME_TYPES = ("video/x-matroska", "video/x-ms-wmv", "video/divx")

HEVC_SIZE_THRESHOLD_BYTES = 10 * 1024 * 1024
LARGE_VIDEO_THRESHOLD_BYTES = 50 * 1024 * 1024

HEVC_CONVERSION_MESSAGE = (
    "This appears to be an iPhone video using the HEVC/H.265 codec, which the video "
    "analysis service cannot decode. Please convert it to H.264 (MP4) with a tool such "
    "as HandBrake or FFmpeg and upload it again."
)


@dataclass(frozen=True)
class VideoCharacteristics:
    likely_hevc: bool = False
    likely_4k: bool = False
    codec: Optional[str] = None
    recommendation: Optional[str] = None


def clean_mime_type(mime_type: Optional[str]) -> str:
    return (mime_type or "").split(";", 1)[0].strip().lower()


def normalize_video_mime_type(mime_type: Optional[str]) -> str:
    cleaned = clean_mime_type(mime_type)
    if cleaned in _MP4_ALIASES:
        return "video/mp4"
    return cleaned


def media_kind(mime_type: Optional[str], file_name: Optional[str] = None) -> str:
    """Classify an asset as ``image``, ``video``, ``audio`` or ``unknown``."""
    cleaned = clean_mime_type(mime_type)
    if cleaned.startswith("image/"):
        return "image"
    if cleaned.startswith("video/"):
        return "video"
    if cleaned.startswith("audio/"):
        return "audio"
    name = (file_name or "").lower()
    if name.endswith((".mp4", ".mov", ".m4v", ".webm", ".avi", ".mpeg", ".mpg", ".3gp")):
        return "video"
    if name.endswith((".png", ".jpg", ".jpeg", ".webp", ".heic", ".heif")):
        return "image"
    if name.endswith((".mp3", ".wav", ".m4a", ".aac", ".ogg", ".flac")):
        return "audio"
    return "unknown"


def _is_likely_iphone_capture(mime_type: str, file_name: Optional[str]) -> bool:
    name = (file_name or "").lower()
    return (
        mime_type == "video/quicktime"
        or name.endswith(".mov")
        or "img_" in name
        or "image_" in name
    )


def detect_video_characteristics(
    mime_type: Optional[str],
    size_bytes: int,
    file_name: Optional[str] = None,
) -> VideoCharacteristics:
    """
    Guess codec traits from the declared type, size and name.

    The container is never decoded. Small iPhone captures are assumed HEVC because
    HEVC is roughly twice as efficient as H.264 at the same quality.
    """
    cleaned = clean_mime_type(mime_type)
    likely_hevc = _is_likely_iphone_capture(cleaned, file_name) and size_bytes < HEVC_SIZE_THRESHOLD_BYTES

    name = (file_name or "").lower()
    likely_4k = any(marker in name for marker in ("4k", "uhd", "2160")) or size_bytes > LARGE_VIDEO_THRESHOLD_BYTES

    recommendation = None
    if likely_hevc:
        recommendation = HEVC_CONVERSION_MESSAGE
    elif size_bytes > LARGE_VIDEO_THRESHOLD_BYTES:
        recommendation = "Large video file detected. Consider compressing or reducing resolution for faster processing."

    return VideoCharacteristics(
        likely_hevc=likely_hevc,
        likely_4k=likely_4k,
        codec="HEVC/H.265 (likely)" if likely_hevc else None,
        recommendation=recommendation,
    )


def check_video_compatibility(
    mime_type: Optional[str],
    size_bytes: int,
    file_name: Optional[str] = None,
) -> None:
    """Raise ``MediaValidationError`` when the video is known to be undecodable upstream."""
    characteristics = detect_video_characteristics(mime_type, size_bytes, file_name)
    if characteristics.likely_hevc:
        raise MediaValidationError(f"Video codec incompatibility: {HEVC_CONVERSION_MESSAGE}")
    cleaned = clean_mime_type(mime_type)
    if cleaned in PROBLEMATIC_VIDEO_MIME_TYPES:
        raise MediaValidationError(
            f"Video format {cleaned} is not supported. Please convert to MP4 (H.264) format."
        )


def validate_mime_type(mime_type: Optional[str], kind: str) -> str:
    """Return the upstream mime type for ``kind`` or raise ``MediaValidationError``."""
    if kind == "image":
        cleaned = clean_mime_type(mime_type)
        if cleaned not in SUPPORTED_IMAGE_MIME_TYPES:
            raise MediaValidationError(
                f"Unsupported image MIME type: {cleaned or 'unknown'}. "
                f"Supported types: {', '.join(SUPPORTED_IMAGE_MIME_TYPES)}"
            )
        return cleaned
    normalized = normalize_video_mime_type(mime_type)
    if normalized not in SUPPORTED_VIDEO_MIME_TYPES:
        raise MediaValidationError(
            f"Unsupported video MIME type: {normalized or 'unknown'}. "
            f"Supported types: {', '.join(SUPPORTED_VIDEO_MIME_TYPES)}"
        )
    return normalized
