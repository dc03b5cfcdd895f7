from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import google.generativeai as genai
import httpx
from google.api_core import exceptions as google_exceptions

from brandguard.config import settings
from brandguard.errors import AssetDownloadError, MediaValidationError, StageError
from brandguard.schemas.analysis import BrandGuidelines
from brandguard.services.json_extract import extract_structured
from brandguard.services.media_validation import (
    HEVC_CONVERSION_MESSAGE,
    check_video_compatibility,
    clean_mime_type,
    media_kind,
    validate_mime_type,
)
from brandguard.services.retry import RetryableError, with_retry

logger = logging.getLogger(__name__)

_GEMINI_CONFIGURED_KEY: Optional[str] = None

VISUAL_CHECK_KEYS = (
    "logo_compliance",
    "color_compliance",
    "tone_compliance",
    "disclaimer_compliance",
    "layout_compliance",
)

_VERDICT_SHAPE = {
    "status": "pass|warn|fail",
    "notes": "explanation",
    "business_impact": "impact or N/A",
    "citations": [
        {
            "type": "short_issue_type",
            "issue_description": "what is wrong",
            "timestamp": "milliseconds from start (0 for images)",
            "severity": "low|medium|high",
        }
    ],
}

_RESPONSE_SHAPE = {
    **{key: _VERDICT_SHAPE for key in VISUAL_CHECK_KEYS},
    "content_type_analysis": {
        "is_marketing_content": "true|false",
        "classification": "Branded|UGC|Non-Marketing",
        "confidence": "0.0-1.0",
        "reasoning": "why",
        "signals": {
            "marketing_intent": "clear|unclear|absent",
            "product_focus": "prominent|incidental|none",
            "call_to_action": "present|implied|absent",
            "camera_stability": "stable|shaky|mixed",
            "production_quality": "professional|semi-professional|amateur",
        },
    },
}


class VisionConfigError(RuntimeError):
    pass


class VisionAnalysisError(StageError):
    pass


def _ensure_gemini_configured(api_key: str) -> None:
    global _GEMINI_CONFIGURED_KEY
    if _GEMINI_CONFIGURED_KEY == api_key:
        return
    genai.configure(api_key=api_key)
    _GEMINI_CONFIGURED_KEY = api_key


def build_vision_prompt(guidelines: BrandGuidelines, *, kind: str) -> str:
    tone = ", ".join(guidelines.tone_keywords) or "No specific tone keywords provided"
    subject = "video (visuals and spoken audio)" if kind == "video" else "image"
    return "\n".join(
        [
            "You are a brand compliance analyst reviewing a marketing creative.",
            "",
            "Brand guidelines:",
            json.dumps(guidelines.model_dump(), indent=2),
            "",
            f"Review the attached {subject} against these guidelines and grade each check:",
            "1. Logos/Iconography: is the brand's logo used correctly?",
            "2. Colors/Palette: do brand colors appear correctly on products and packaging?",
            f"3. Brand Tone: does the creative match the desired tone [{tone}]?",
            "4. Disclaimers: are the required disclaimers present?",
            "5. Layout: is the visual composition appropriate?",
            "6. Content Type: is this marketing content at all, and if so is it polished "
            "Branded content or authentic UGC? Personal or incidental footage is Non-Marketing "
            "even when a product appears in it.",
            "",
            "Do not judge pronunciation of the brand name.",
            "Return ONLY a JSON object with exactly this structure:",
            json.dumps(_RESPONSE_SHAPE, indent=2),
        ]
    )


def _response_text(result: Any) -> Optional[str]:
    try:
        text = getattr(result, "text", None)
    except ValueError:
        # Raised by the SDK when the candidate has no text parts (e.g. blocked output).
        text = None
    if text:
        return text
    candidates = getattr(result, "candidates", None) or []
    if candidates:
        first = candidates[0]
        parts = getattr(getattr(first, "content", None), "parts", None) or []
        texts = [part.text for part in parts if getattr(part, "text", None)]
        if texts:
            return "\n".join(texts)
    return None


def _is_likely_hevc_container(mime_type: Optional[str], file_name: Optional[str]) -> bool:
    return clean_mime_type(mime_type) == "video/quicktime" or (file_name or "").lower().endswith(".mov")


class VisionAnalysisClient:
    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        inline_max_bytes: Optional[int] = None,
        download_timeout_seconds: Optional[float] = None,
        request_timeout_seconds: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        resolved_key = (api_key or settings.GEMINI_API_KEY or "").strip()
        if not resolved_key:
            raise VisionConfigError("GEMINI_API_KEY is required")
        _ensure_gemini_configured(resolved_key)

        model_name = model or settings.VISION_MODEL
        self.model_name = model_name if model_name.startswith("models/") else f"models/{model_name}"
        self.inline_max_bytes = int(inline_max_bytes or settings.VISION_INLINE_MAX_BYTES)
        self.download_timeout_seconds = float(
            download_timeout_seconds or settings.VISION_DOWNLOAD_TIMEOUT_SECONDS
        )
        self.request_timeout_seconds = float(request_timeout_seconds or settings.VISION_REQUEST_TIMEOUT_SECONDS)
        self._sleep = sleep
        self._model = genai.GenerativeModel(
            model_name=self.model_name,
            generation_config={
                "temperature": 0.2,
                "max_output_tokens": settings.VISION_MAX_OUTPUT_TOKENS,
                "response_mime_type": "application/json",
            },
        )

    def analyze(
        self,
        *,
        media_url: str,
        mime_type: Optional[str],
        file_name: Optional[str],
        size_bytes: int,
        guidelines: BrandGuidelines,
    ) -> Dict[str, Any]:
        """
        Grade one image or video against the brand guidelines.

        Validation problems (unsupported type, oversized file, undecodable codec) raise
        ``MediaValidationError`` before anything is uploaded. Service failures raise
        ``VisionAnalysisError`` or, after retries, ``RetryExhaustedError``.
        """
        kind = media_kind(mime_type, file_name)
        upstream_mime = validate_mime_type(mime_type, kind)

        if size_bytes >= self.inline_max_bytes:
            raise MediaValidationError(
                f"File size {size_bytes / (1024 * 1024):.1f}MB exceeds the "
                f"{self.inline_max_bytes / (1024 * 1024):.0f}MB inline analysis limit; "
                "a reference-based upload is needed for files this large. "
                "Please compress the file and upload it again."
            )
        if kind == "video":
            check_video_compatibility(mime_type, size_bytes, file_name)

        data = self._download(media_url)
        contents: List[Any] = [
            build_vision_prompt(guidelines, kind=kind),
            {"mime_type": upstream_mime, "data": data},
        ]
        likely_hevc = kind == "video" and _is_likely_hevc_container(mime_type, file_name)

        raw_output = with_retry(
            lambda: self._generate(contents, likely_hevc=likely_hevc),
            operation="vision.generate_content",
            sleep=self._sleep,
        )
        payload = extract_structured(raw_output)
        logger.info(
            "vision_analysis.completed",
            extra={
                "model": self.model_name,
                "mime_type": upstream_mime,
                "size_bytes": size_bytes,
                "checks_returned": [key for key in VISUAL_CHECK_KEYS if key in payload],
            },
        )
        return payload

    def _download(self, url: str) -> bytes:
        try:
            with httpx.Client(follow_redirects=True, timeout=self.download_timeout_seconds) as client:
                with client.stream("GET", url) as resp:
                    resp.raise_for_status()
                    chunks: List[bytes] = []
                    total = 0
                    for chunk in resp.iter_bytes(8192):
                        if not chunk:
                            continue
                        total += len(chunk)
                        if total >= self.inline_max_bytes:
                            raise MediaValidationError(
                                f"Downloaded media exceeds the {self.inline_max_bytes} byte inline analysis limit"
                            )
                        chunks.append(chunk)
                    return b"".join(chunks)
        except httpx.HTTPError as exc:
            raise AssetDownloadError(f"Failed to download asset for vision analysis: {exc}") from exc

    def _generate(self, contents: List[Any], *, likely_hevc: bool) -> str:
        try:
            result = self._model.generate_content(
                contents,
                request_options={"timeout": self.request_timeout_seconds},
            )
        except (google_exceptions.ResourceExhausted, google_exceptions.TooManyRequests) as exc:
            raise RetryableError(f"Vision API rate limited: {exc}", rate_limited=True, status_code=429) from exc
        except (
            google_exceptions.ServiceUnavailable,
            google_exceptions.InternalServerError,
            google_exceptions.DeadlineExceeded,
        ) as exc:
            raise RetryableError(f"Vision API temporarily unavailable: {exc}") from exc
        except google_exceptions.InvalidArgument as exc:
            if likely_hevc:
                raise MediaValidationError(f"Video codec incompatibility: {HEVC_CONVERSION_MESSAGE}") from exc
            raise VisionAnalysisError(f"Vision API rejected the request: {exc}") from exc
        except google_exceptions.GoogleAPICallError as exc:
            raise VisionAnalysisError(f"Vision API request failed: {exc}") from exc

        raw_output = _response_text(result)
        if not raw_output:
            raise VisionAnalysisError("Vision model returned no text")
        return raw_output
