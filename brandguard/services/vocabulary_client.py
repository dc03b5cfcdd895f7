from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, Optional

import httpx

from brandguard.config import settings
from brandguard.errors import StageError
from brandguard.schemas.analysis import TranscriptResult
from brandguard.services.json_extract import extract_structured
from brandguard.services.retry import RetryableError, parse_retry_after, with_retry

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"
# Mispronunciation citations at or below this confidence are dropped. Banned-word
# citations are always kept.
MISPRONUNCIATION_MIN_CONFIDENCE = 0.8
TRANSCRIPT_WORD_SAMPLE = 100

CITATION_TYPE_BANNED_WORD = "banned_word"
CITATION_TYPE_MISPRONUNCIATION = "mispronunciation"


class VocabularyConfigError(RuntimeError):
    pass


class VocabularyCheckError(StageError):
    pass


def build_vocabulary_prompt(
    transcript: TranscriptResult,
    *,
    brand_name: str,
    phonetic_guide: Optional[str],
    banned_terms: list[str],
) -> str:
    pronunciation = f" (pronounced '{phonetic_guide}')" if phonetic_guide else ""
    lines = [
        f"You are a brand compliance analyst. The brand name is '{brand_name}'{pronunciation}.",
        "",
        f"Banned terms: {json.dumps(banned_terms)}",
        "",
        "Review the transcript below and report:",
        "1. Banned words: any use of a banned term. Be strict.",
        "2. Brand name mispronunciation: only clear mispronunciations that would confuse a "
        "listener about which brand this is. Accents and natural variations are acceptable.",
        "",
        "Transcript:",
        transcript.text or "",
    ]
    if transcript.words:
        lines += [
            "",
            f"Word-level timing (first {TRANSCRIPT_WORD_SAMPLE} words):",
            json.dumps(transcript.leading_words(TRANSCRIPT_WORD_SAMPLE)),
        ]
    lines += [
        "",
        "Return ONLY a JSON object with:",
        '- "status": "pass" if no issues, "warn" for minor issues, "fail" for major issues',
        '- "notes": a short explanation',
        '- "citations": a list of {"type": "banned_word" | "mispronunciation", "spoken_text": str, '
        '"timestamp": milliseconds, "confidence": 0-1}',
    ]
    return "\n".join(lines)


def _confidence(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def filter_citations(citations: Any) -> list[Dict[str, Any]]:
    """Drop low-confidence mispronunciations; banned words pass through unfiltered."""
    kept: list[Dict[str, Any]] = []
    if not isinstance(citations, list):
        return kept
    for citation in citations:
        if not isinstance(citation, dict):
            continue
        if citation.get("type") == CITATION_TYPE_MISPRONUNCIATION:
            confidence = _confidence(citation.get("confidence"))
            if confidence is not None and confidence <= MISPRONUNCIATION_MIN_CONFIDENCE:
                continue
        kept.append(citation)
    return kept


class VocabularyClient:
    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        resolved_key = (api_key or settings.ANTHROPIC_API_KEY or "").strip()
        if not resolved_key:
            raise VocabularyConfigError("ANTHROPIC_API_KEY is required")
        self.api_key = resolved_key
        self.base_url = (base_url or settings.ANTHROPIC_BASE_URL).rstrip("/")
        self.model = model or settings.VOCABULARY_MODEL
        self.timeout_seconds = float(timeout_seconds or settings.VOCABULARY_REQUEST_TIMEOUT_SECONDS)
        self._http_client = http_client
        self._sleep = sleep

    def check(
        self,
        transcript: TranscriptResult,
        *,
        brand_name: str,
        phonetic_guide: Optional[str] = None,
        banned_terms: Optional[list[str]] = None,
    ) -> Dict[str, Any]:
        prompt = build_vocabulary_prompt(
            transcript,
            brand_name=brand_name,
            phonetic_guide=phonetic_guide,
            banned_terms=list(banned_terms or []),
        )
        text = with_retry(lambda: self._complete(prompt), operation="vocabulary.messages", sleep=self._sleep)
        parsed = extract_structured(text)

        raw_citations = parsed.get("citations")
        citations = filter_citations(raw_citations)
        dropped = len(raw_citations) - len(citations) if isinstance(raw_citations, list) else 0
        logger.info(
            "vocabulary_check.completed",
            extra={"status": parsed.get("status"), "citations": len(citations), "dropped_citations": dropped},
        )
        return {**parsed, "citations": citations}

    def _complete(self, prompt: str) -> str:
        payload = {
            "model": self.model,
            "max_tokens": settings.VOCABULARY_MAX_TOKENS,
            "messages": [{"role": "user", "content": prompt}],
        }
        headers = {
            "x-api-key": self.api_key,
            "anthropic-version": ANTHROPIC_VERSION,
            "content-type": "application/json",
        }
        url = f"{self.base_url}/v1/messages"
        try:
            if self._http_client is not None:
                resp = self._http_client.post(url, headers=headers, json=payload)
            else:
                with httpx.Client(timeout=self.timeout_seconds) as client:
                    resp = client.post(url, headers=headers, json=payload)
        except httpx.TimeoutException as exc:
            raise RetryableError(f"Vocabulary request timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise RetryableError(f"Vocabulary request failed: {exc}") from exc

        if resp.status_code == 429:
            raise RetryableError(
                "Vocabulary model rate limited (429)",
                rate_limited=True,
                retry_after=parse_retry_after(resp.headers.get("retry-after")),
                status_code=429,
            )
        if resp.status_code >= 500:
            raise RetryableError(f"Vocabulary model unavailable ({resp.status_code})", status_code=resp.status_code)
        if resp.status_code >= 400:
            raise VocabularyCheckError(f"Vocabulary request failed ({resp.status_code}): {resp.text[:500]}")

        try:
            body = resp.json()
        except ValueError as exc:
            raise VocabularyCheckError("Vocabulary model returned a non-JSON envelope") from exc
        content = body.get("content") if isinstance(body, dict) else None
        texts = [
            block.get("text")
            for block in (content or [])
            if isinstance(block, dict) and block.get("type") == "text" and block.get("text")
        ]
        if not texts:
            raise VocabularyCheckError("Vocabulary model response had no text content")
        return "\n".join(texts)
