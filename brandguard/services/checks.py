from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from brandguard.db.enums import CreativeTypeEnum

STATUS_PASS = "pass"
STATUS_WARN = "warn"
STATUS_FAIL = "fail"
VALID_STATUSES = (STATUS_PASS, STATUS_WARN, STATUS_FAIL)

NOT_APPLICABLE = "N/A"
DEFAULT_CLASSIFICATION_CONFIDENCE = 0.9


class CheckName(str, Enum):
    content_type = "content_type"
    vocabulary = "vocabulary"
    logo = "logo"
    color = "color"
    tone = "tone"
    disclaimers = "disclaimers"
    layout = "layout"


VISUAL_CHECK_PAYLOAD_KEYS: Mapping[CheckName, str] = {
    CheckName.logo: "logo_compliance",
    CheckName.color: "color_compliance",
    CheckName.tone: "tone_compliance",
    CheckName.disclaimers: "disclaimer_compliance",
    CheckName.layout: "layout_compliance",
}

_CHECK_LABELS: Mapping[CheckName, str] = {
    CheckName.content_type: "Content type",
    CheckName.vocabulary: "Brand vocabulary",
    CheckName.logo: "Logo",
    CheckName.color: "Color palette",
    CheckName.tone: "Brand tone",
    CheckName.disclaimers: "Disclaimer",
    CheckName.layout: "Layout",
}


class DefaultReason(str, Enum):
    no_visual_content = "no_visual_content"
    no_audio = "no_audio"
    stage_failed = "stage_failed"
    missing_from_response = "missing_from_response"


_NO_VISUAL_NOTES: Mapping[CheckName, str] = {
    CheckName.color: "No color palette defined or no visual content",
    CheckName.logo: "No logo files defined or no visual content",
}


def normalize_status(value: Any) -> str:
    status = str(value or "").strip().lower()
    return status if status in VALID_STATUSES else STATUS_WARN


def _optional_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class Citation:
    kind: Optional[str] = None
    text: Optional[str] = None
    timestamp_ms: Optional[float] = None
    severity: Optional[str] = None
    confidence: Optional[float] = None

    @classmethod
    def from_payload(cls, raw: Any) -> Optional["Citation"]:
        if isinstance(raw, str):
            return cls(text=_optional_text(raw))
        if not isinstance(raw, dict):
            return None
        text = None
        for key in ("spoken_text", "issue_description", "description", "issue", "text"):
            text = _optional_text(raw.get(key))
            if text:
                break
        return cls(
            kind=_optional_text(raw.get("type")),
            text=text,
            timestamp_ms=_optional_float(raw.get("timestamp")),
            severity=_optional_text(raw.get("severity")),
            confidence=_optional_float(raw.get("confidence")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.kind,
            "text": self.text,
            "timestamp": self.timestamp_ms,
            "severity": self.severity,
            "confidence": self.confidence,
        }


@dataclass(frozen=True)
class CheckResult:
    status: str
    notes: str
    business_impact: Optional[str] = None
    citations: tuple[Citation, ...] = ()

    @classmethod
    def from_payload(cls, raw: Mapping[str, Any]) -> "CheckResult":
        raw_citations = raw.get("citations")
        citations: tuple[Citation, ...] = ()
        if isinstance(raw_citations, list):
            parsed = (Citation.from_payload(item) for item in raw_citations)
            citations = tuple(citation for citation in parsed if citation is not None)
        return cls(
            status=normalize_status(raw.get("status")),
            notes=_optional_text(raw.get("notes")) or "",
            business_impact=_optional_text(raw.get("business_impact")),
            citations=citations,
        )

    @classmethod
    def default_for(
        cls,
        check: CheckName,
        reason: DefaultReason,
        detail: Optional[str] = None,
    ) -> "CheckResult":
        """The result recorded for ``check`` when its stage was skipped or produced nothing."""
        label = _CHECK_LABELS[check]
        if reason is DefaultReason.no_audio:
            return cls(status=STATUS_PASS, notes="No audio content to analyze", business_impact=NOT_APPLICABLE)
        if reason is DefaultReason.no_visual_content:
            if check is CheckName.content_type:
                return cls(
                    status=STATUS_WARN,
                    notes="Content type could not be determined without visual content. Manual review recommended.",
                )
            notes = _NO_VISUAL_NOTES.get(check, "No visual content to analyze")
            return cls(status=STATUS_PASS, notes=notes, business_impact=NOT_APPLICABLE)
        if reason is DefaultReason.stage_failed:
            suffix = f" ({detail})" if detail else ""
            return cls(
                status=STATUS_WARN,
                notes=f"{label} analysis failed{suffix}. Manual review recommended.",
            )
        return cls(status=STATUS_WARN, notes=f"{label} analysis not available. Manual review recommended.")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "notes": self.notes,
            "business_impact": self.business_impact,
            "citations": [citation.to_dict() for citation in self.citations],
        }


@dataclass(frozen=True)
class ContentTypeVerdict:
    creative_type: Optional[str]
    confidence: Optional[float]
    is_marketing_content: Optional[bool]
    reasoning: Optional[str]
    signals: Mapping[str, Any]
    check: CheckResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            "creative_type": self.creative_type,
            "confidence": self.confidence,
            "is_marketing_content": self.is_marketing_content,
            "reasoning": self.reasoning,
            "signals": dict(self.signals),
        }


def _normalize_confidence(value: Any) -> float:
    confidence = _optional_float(value)
    if confidence is None:
        return DEFAULT_CLASSIFICATION_CONFIDENCE
    if 1.0 < confidence <= 100.0:
        confidence = confidence / 100.0
    return max(0.0, min(1.0, confidence))


def _classified(creative_type: str, confidence: float, reasoning: Optional[str], **extra: Any) -> ContentTypeVerdict:
    percent = round(confidence * 100)
    if creative_type == CreativeTypeEnum.NON_MARKETING.value:
        check = CheckResult(
            status=STATUS_FAIL,
            notes=f"Non-marketing content detected. {reasoning or ''}".strip(),
            business_impact="Creative does not promote the brand and should not be used as marketing material.",
        )
    else:
        style = "UGC" if creative_type == CreativeTypeEnum.UGC.value else "Branded"
        check = CheckResult(
            status=STATUS_PASS,
            notes=f"{style} marketing content ({percent}% confidence). {reasoning or ''}".strip(),
            business_impact=NOT_APPLICABLE,
        )
    return ContentTypeVerdict(
        creative_type=creative_type,
        confidence=confidence,
        reasoning=reasoning,
        check=check,
        is_marketing_content=extra.get("is_marketing_content"),
        signals=extra.get("signals") or {},
    )


def assess_content_type(vision_payload: Mapping[str, Any]) -> Optional[ContentTypeVerdict]:
    """
    Classify the creative from the vision payload.

    ``content_type_analysis`` is preferred; the older ``ugc_classification`` shape
    (``is_ugc`` + ``confidence``) is accepted when it is the only one present.
    """
    analysis = vision_payload.get("content_type_analysis")
    if isinstance(analysis, dict):
        classification = _optional_text(analysis.get("classification"))
        confidence = _normalize_confidence(analysis.get("confidence"))
        reasoning = _optional_text(analysis.get("reasoning"))
        is_marketing = analysis.get("is_marketing_content")
        is_marketing = is_marketing if isinstance(is_marketing, bool) else None
        signals = analysis.get("signals") if isinstance(analysis.get("signals"), dict) else {}

        known = {member.value for member in CreativeTypeEnum}
        if classification in known:
            return _classified(
                classification,
                confidence,
                reasoning,
                is_marketing_content=is_marketing,
                signals=signals,
            )
        if is_marketing is False:
            return _classified(
                CreativeTypeEnum.NON_MARKETING.value,
                confidence,
                reasoning,
                is_marketing_content=False,
                signals=signals,
            )
        return ContentTypeVerdict(
            creative_type=None,
            confidence=confidence,
            is_marketing_content=is_marketing,
            reasoning=reasoning,
            signals=signals,
            check=CheckResult(
                status=STATUS_PASS,
                notes=(
                    f"Classified as {classification or 'unknown'} content "
                    f"with {round(confidence * 100)}% confidence."
                ),
                business_impact=NOT_APPLICABLE,
            ),
        )

    legacy = vision_payload.get("ugc_classification")
    if isinstance(legacy, dict) and isinstance(legacy.get("is_ugc"), bool):
        creative_type = CreativeTypeEnum.UGC.value if legacy["is_ugc"] else CreativeTypeEnum.Branded.value
        return _classified(
            creative_type,
            _normalize_confidence(legacy.get("confidence")),
            _optional_text(legacy.get("reasoning")),
            is_marketing_content=True,
            signals=legacy.get("signals") if isinstance(legacy.get("signals"), dict) else {},
        )
    return None


@dataclass(frozen=True)
class StageOutcomes:
    """What each analysis stage produced for one asset."""

    has_visual: bool
    vision: Optional[Mapping[str, Any]] = None
    vision_error: Optional[str] = None
    vocabulary: Optional[Mapping[str, Any]] = None
    vocabulary_error: Optional[str] = None


@dataclass(frozen=True)
class AggregatedChecks:
    checks: Mapping[CheckName, CheckResult]
    content_type: Optional[ContentTypeVerdict] = None
    stage_errors: Mapping[str, str] = field(default_factory=dict)

    @property
    def creative_type(self) -> Optional[str]:
        return self.content_type.creative_type if self.content_type else None

    def checks_to_dict(self) -> Dict[str, Dict[str, Any]]:
        return {name.value: result.to_dict() for name, result in self.checks.items()}


def _visual_check(check: CheckName, outcomes: StageOutcomes) -> CheckResult:
    if outcomes.vision is not None:
        raw = outcomes.vision.get(VISUAL_CHECK_PAYLOAD_KEYS[check])
        if isinstance(raw, dict):
            return CheckResult.from_payload(raw)
        return CheckResult.default_for(check, DefaultReason.missing_from_response)
    if outcomes.vision_error:
        return CheckResult.default_for(check, DefaultReason.stage_failed, outcomes.vision_error)
    return CheckResult.default_for(check, DefaultReason.no_visual_content)


def aggregate_checks(outcomes: StageOutcomes) -> AggregatedChecks:
    """Merge stage outputs into one result per check; nothing is left undefined."""
    checks: Dict[CheckName, CheckResult] = {}
    content_type: Optional[ContentTypeVerdict] = None

    if outcomes.vision is not None:
        content_type = assess_content_type(outcomes.vision)
        checks[CheckName.content_type] = (
            content_type.check
            if content_type
            else CheckResult.default_for(CheckName.content_type, DefaultReason.missing_from_response)
        )
    elif outcomes.vision_error:
        checks[CheckName.content_type] = CheckResult.default_for(
            CheckName.content_type, DefaultReason.stage_failed, outcomes.vision_error
        )
    else:
        checks[CheckName.content_type] = CheckResult.default_for(
            CheckName.content_type, DefaultReason.no_visual_content
        )

    if outcomes.vocabulary is not None:
        checks[CheckName.vocabulary] = CheckResult.from_payload(outcomes.vocabulary)
    elif outcomes.vocabulary_error:
        checks[CheckName.vocabulary] = CheckResult.default_for(
            CheckName.vocabulary, DefaultReason.stage_failed, outcomes.vocabulary_error
        )
    else:
        checks[CheckName.vocabulary] = CheckResult.default_for(CheckName.vocabulary, DefaultReason.no_audio)

    for check in VISUAL_CHECK_PAYLOAD_KEYS:
        checks[check] = _visual_check(check, outcomes)

    stage_errors: Dict[str, str] = {}
    if outcomes.vision_error:
        stage_errors["vision"] = outcomes.vision_error
    if outcomes.vocabulary_error:
        stage_errors["vocabulary"] = outcomes.vocabulary_error

    return AggregatedChecks(checks=checks, content_type=content_type, stage_errors=stage_errors)
