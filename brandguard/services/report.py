from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Sequence

from brandguard.services.checks import (
    NOT_APPLICABLE,
    STATUS_FAIL,
    STATUS_PASS,
    STATUS_WARN,
    CheckName,
    CheckResult,
    Citation,
)

MAX_CITATIONS_IN_DETAILS = 3

REPORT_ORDER: tuple[tuple[CheckName, str], ...] = (
    (CheckName.content_type, "Content Type"),
    (CheckName.vocabulary, "Brand Vocabulary"),
    (CheckName.logo, "Logo & Iconography"),
    (CheckName.color, "Color Palette"),
    (CheckName.tone, "Brand Tone"),
    (CheckName.disclaimers, "Disclaimers"),
    (CheckName.layout, "Layout"),
)


@dataclass(frozen=True)
class FrontendReportItem:
    check: str
    result: str
    details: str

    def to_dict(self) -> Dict[str, str]:
        return {"check": self.check, "result": self.result, "details": self.details}


@dataclass(frozen=True)
class ComplianceReport:
    items: tuple[FrontendReportItem, ...]
    overall_status: str
    compliance_score: int

    def frontend_report(self) -> list[Dict[str, Any]]:
        return [item.to_dict() for item in self.items]


def _seconds(timestamp_ms: float) -> str:
    return f"{timestamp_ms / 1000:.1f}s"


def _format_vocabulary_citation(citation: Citation) -> str:
    text = f"'{citation.text or citation.kind or 'issue'}'"
    if citation.timestamp_ms is not None:
        text += f" at {_seconds(citation.timestamp_ms)}"
    return text


def _format_visual_citation(citation: Citation) -> str:
    text = citation.text or (citation.kind or "issue").replace("_", " ")
    if citation.timestamp_ms is not None:
        text += f" at {_seconds(citation.timestamp_ms)}"
    if citation.severity:
        text += f" ({citation.severity})"
    return text


def format_details(check: CheckName, result: CheckResult) -> str:
    details = result.notes
    impact = result.business_impact
    if impact and impact.upper() != NOT_APPLICABLE:
        details = f"{details} Impact: {impact}".strip()

    citations = result.citations[:MAX_CITATIONS_IN_DETAILS]
    if citations:
        if check is CheckName.vocabulary:
            issues = ", ".join(_format_vocabulary_citation(citation) for citation in citations)
        else:
            issues = "; ".join(_format_visual_citation(citation) for citation in citations)
        details = f"{details} Issues: {issues}".strip()
    return details


def build_frontend_report(checks: Mapping[CheckName, CheckResult]) -> tuple[FrontendReportItem, ...]:
    """One item per known check in display order; checks absent from ``checks`` are skipped."""
    return tuple(
        FrontendReportItem(check=label, result=checks[name].status, details=format_details(name, checks[name]))
        for name, label in REPORT_ORDER
        if name in checks
    )


def calculate_overall_status(items: Sequence[FrontendReportItem]) -> str:
    results = {item.result for item in items}
    if STATUS_FAIL in results:
        return STATUS_FAIL
    if STATUS_WARN in results:
        return STATUS_WARN
    return STATUS_PASS


def calculate_compliance_score(items: Sequence[FrontendReportItem]) -> int:
    """Percentage of passing checks, rounded half up."""
    total = len(items)
    if total == 0:
        return 0
    passed = sum(1 for item in items if item.result == STATUS_PASS)
    return (200 * passed + total) // (2 * total)


def render_report(checks: Mapping[CheckName, CheckResult]) -> ComplianceReport:
    items = build_frontend_report(checks)
    return ComplianceReport(
        items=items,
        overall_status=calculate_overall_status(items),
        compliance_score=calculate_compliance_score(items),
    )
