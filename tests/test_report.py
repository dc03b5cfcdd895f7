from brandguard.services.checks import CheckName, CheckResult, Citation
from brandguard.services.report import (
    FrontendReportItem,
    build_frontend_report,
    calculate_compliance_score,
    calculate_overall_status,
    format_details,
    render_report,
)


def _result(status: str, notes: str = "", **kwargs) -> CheckResult:
    return CheckResult(status=status, notes=notes or f"{status} notes", **kwargs)


def test_worst_case_status_and_rounded_score():
    report = render_report(
        {
            CheckName.logo: _result("pass"),
            CheckName.color: _result("warn"),
            CheckName.tone: _result("pass"),
        }
    )

    assert report.overall_status == "warn"
    assert report.compliance_score == 67


def test_any_fail_makes_overall_fail():
    items = [
        FrontendReportItem(check="A", result="pass", details=""),
        FrontendReportItem(check="B", result="warn", details=""),
        FrontendReportItem(check="C", result="fail", details=""),
    ]
    assert calculate_overall_status(items) == "fail"


def test_all_pass_scores_one_hundred():
    items = [FrontendReportItem(check=str(i), result="pass", details="") for i in range(7)]
    assert calculate_overall_status(items) == "pass"
    assert calculate_compliance_score(items) == 100


def test_score_rounds_half_up():
    items = [FrontendReportItem(check="a", result="pass", details="")] + [
        FrontendReportItem(check=str(i), result="warn", details="") for i in range(7)
    ]
    assert calculate_compliance_score(items) == 13


def test_empty_report_scores_zero():
    assert calculate_compliance_score([]) == 0


def test_report_follows_fixed_check_order():
    checks = {name: _result("pass") for name in reversed(list(CheckName))}

    labels = [item.check for item in build_frontend_report(checks)]

    assert labels == [
        "Content Type",
        "Brand Vocabulary",
        "Logo & Iconography",
        "Color Palette",
        "Brand Tone",
        "Disclaimers",
        "Layout",
    ]


def test_render_report_is_idempotent():
    checks = {
        CheckName.vocabulary: _result(
            "warn", citations=(Citation(kind="banned_word", text="cheap", timestamp_ms=1500),)
        ),
        CheckName.logo: _result("pass"),
    }
    assert render_report(checks) == render_report(checks)


def test_details_append_business_impact_unless_not_applicable():
    with_impact = format_details(CheckName.tone, _result("warn", "Too formal.", business_impact="Off-brand voice"))
    without_impact = format_details(CheckName.tone, _result("pass", "On tone.", business_impact="N/A"))

    assert with_impact == "Too formal. Impact: Off-brand voice"
    assert without_impact == "On tone."


def test_vocabulary_citations_render_quoted_with_seconds():
    result = _result(
        "fail",
        "Banned word used.",
        citations=(
            Citation(kind="banned_word", text="cheap", timestamp_ms=1500),
            Citation(kind="mispronunciation", text="Akmay", timestamp_ms=12345),
        ),
    )

    details = format_details(CheckName.vocabulary, result)

    assert details == "Banned word used. Issues: 'cheap' at 1.5s, 'Akmay' at 12.3s"


def test_visual_citations_limited_to_three_with_severity():
    citations = tuple(
        Citation(kind="off_palette_color", timestamp_ms=1000 * i, severity="high") for i in range(5)
    )
    details = format_details(CheckName.color, _result("warn", "Off palette.", citations=citations))

    assert details == (
        "Off palette. Issues: off palette color at 0.0s (high); "
        "off palette color at 1.0s (high); off palette color at 2.0s (high)"
    )
