from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

import httpx
from pydantic import ValidationError

from brandguard.config import settings
from brandguard.errors import StageError
from brandguard.schemas.analysis import TranscriptResult
from brandguard.services.retry import RetryableError, RetryExhaustedError, parse_retry_after, with_retry

logger = logging.getLogger(__name__)

TRANSCRIPT_STATUS_COMPLETED = "completed"
TRANSCRIPT_STATUS_ERROR = "error"


class TranscriptionConfigError(RuntimeError):
    pass


class TranscriptionError(StageError):
    pass


class TranscriptionTimeoutError(TranscriptionError):
    pass


class TranscriptionClient:
    """AssemblyAI client: submit an audio URL, then poll until the transcript settles."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        request_timeout_seconds: Optional[float] = None,
        poll_interval_seconds: Optional[float] = None,
        timeout_seconds: Optional[float] = None,
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        resolved_key = (api_key or settings.ASSEMBLYAI_API_KEY or "").strip()
        if not resolved_key:
            raise TranscriptionConfigError("ASSEMBLYAI_API_KEY is required")
        self.api_key = resolved_key
        self.base_url = (base_url or settings.ASSEMBLYAI_BASE_URL).rstrip("/")
        self.request_timeout_seconds = float(
            request_timeout_seconds or settings.TRANSCRIPTION_REQUEST_TIMEOUT_SECONDS
        )
        self.poll_interval_seconds = float(
            settings.TRANSCRIPTION_POLL_INTERVAL_SECONDS if poll_interval_seconds is None else poll_interval_seconds
        )
        self.timeout_seconds = float(timeout_seconds or settings.TRANSCRIPTION_TIMEOUT_SECONDS)
        self._http_client = http_client
        self._sleep = sleep
        self._monotonic = monotonic

    def transcribe(self, audio_url: str) -> TranscriptResult:
        """
        Submit ``audio_url`` and wait for the transcript.

        ``timeout_seconds`` is a wall-clock ceiling covering submission, polling and
        every retry in between; ``TranscriptionTimeoutError`` is raised once it passes.
        """
        deadline = self._monotonic() + self.timeout_seconds
        transcript_id = self.submit(audio_url, deadline=deadline)
        return self.wait_for_transcript(transcript_id, deadline=deadline)

    def submit(self, audio_url: str, *, deadline: Optional[float] = None) -> str:
        deadline = self._resolve_deadline(deadline)
        body = self._call_with_retry(
            lambda: self._request_json("POST", "/v2/transcript", deadline=deadline, json={"audio_url": audio_url}),
            operation="transcription.submit",
            deadline=deadline,
        )
        transcript_id = body.get("id")
        if not isinstance(transcript_id, str) or not transcript_id:
            raise TranscriptionError("Transcription service did not return a transcript id")
        logger.info("transcription.submitted", extra={"transcript_id": transcript_id})
        return transcript_id

    def wait_for_transcript(self, transcript_id: str, *, deadline: Optional[float] = None) -> TranscriptResult:
        deadline = self._resolve_deadline(deadline)
        polls = 0
        while True:
            body = self._call_with_retry(
                lambda: self._request_json("GET", f"/v2/transcript/{transcript_id}", deadline=deadline),
                operation="transcription.poll",
                deadline=deadline,
            )
            polls += 1
            status = body.get("status")
            if status == TRANSCRIPT_STATUS_COMPLETED:
                try:
                    result = TranscriptResult.model_validate(body)
                except ValidationError as exc:
                    raise TranscriptionError(f"Unexpected transcript payload: {exc}") from exc
                logger.info(
                    "transcription.completed",
                    extra={"transcript_id": transcript_id, "polls": polls, "words": len(result.words)},
                )
                return result
            if status == TRANSCRIPT_STATUS_ERROR:
                raise TranscriptionError(f"Transcription failed: {body.get('error') or 'unknown error'}")

            remaining = deadline - self._monotonic()
            if remaining <= 0:
                raise self._timeout_error()
            self._sleep(min(self.poll_interval_seconds, remaining))

    def _resolve_deadline(self, deadline: Optional[float]) -> float:
        return self._monotonic() + self.timeout_seconds if deadline is None else deadline

    def _timeout_error(self) -> TranscriptionTimeoutError:
        return TranscriptionTimeoutError(
            f"Transcription did not complete within {self.timeout_seconds:.0f} seconds"
        )

    def _call_with_retry(self, fn: Callable[[], dict[str, Any]], *, operation: str, deadline: float) -> dict[str, Any]:
        try:
            return with_retry(fn, operation=operation, sleep=self._sleep, deadline=deadline, clock=self._monotonic)
        except RetryExhaustedError as exc:
            if exc.deadline_reached:
                raise self._timeout_error() from exc
            raise

    def _request_json(self, method: str, path: str, *, deadline: float, **kwargs: Any) -> dict[str, Any]:
        remaining = deadline - self._monotonic()
        if remaining <= 0:
            raise self._timeout_error()
        timeout = min(self.request_timeout_seconds, remaining)
        url = f"{self.base_url}{path}"
        headers = {"authorization": self.api_key, "content-type": "application/json"}
        try:
            if self._http_client is not None:
                resp = self._http_client.request(method, url, headers=headers, timeout=timeout, **kwargs)
            else:
                with httpx.Client(timeout=timeout) as client:
                    resp = client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as exc:
            raise RetryableError(f"Transcription request timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise RetryableError(f"Transcription request failed: {exc}") from exc

        if resp.status_code == 429:
            raise RetryableError(
                "Transcription service rate limited (429)",
                rate_limited=True,
                retry_after=parse_retry_after(resp.headers.get("retry-after")),
                status_code=429,
            )
        if resp.status_code >= 500:
            raise RetryableError(
                f"Transcription service unavailable ({resp.status_code})",
                status_code=resp.status_code,
            )
        if resp.status_code >= 400:
            raise TranscriptionError(f"Transcription request failed ({resp.status_code}): {resp.text[:500]}")
        try:
            body = resp.json()
        except ValueError as exc:
            raise TranscriptionError("Transcription service returned a non-JSON response") from exc
        if not isinstance(body, dict):
            raise TranscriptionError("Transcription service returned an unexpected response")
        return body
