# app/services/presentation_service.py
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from app.core.config import settings
from app.models import MetricSummary, MetricView, NormalizedReport, OpportunityCard, ReportView

METRIC_LABELS = {
    "fcp": "First Contentful Paint",
    "lcp": "Largest Contentful Paint",
    "tbt": "Total Blocking Time",
    "cls": "Cumulative Layout Shift",
    "si": "Speed Index",
}

GRADE_BANDS = [
    (90, "A", "green-strong"),
    (80, "B", "green"),
    (70, "C", "yellow"),
    (60, "D", "orange"),
]

def performance_grade(score: int) -> Tuple[str, str]:
    """Maps a 0-100 performance score to a letter grade and its color tone."""
    for threshold, grade, tone in GRADE_BANDS:
        if score >= threshold:
            return grade, tone
    return "F", "red"

def metric_status(metric: MetricSummary) -> Tuple[str, str]:
    if metric.score >= 0.9:
        return "GOOD", "good"
    if metric.score >= 0.5:
        return "NEEDS IMPROVEMENT", "needs-improvement"
    return "POOR", "poor"

def opportunity_priority(score: Optional[float]) -> Tuple[str, str]:
    score = score or 0
    if score <= 0.5:
        return "High", "red"
    if score <= 0.8:
        return "Medium", "yellow"
    return "Low", "green"

def _parse_timestamp(timestamp: str) -> datetime:
    return datetime.fromisoformat(timestamp.replace("Z", "+00:00"))

def build_share_text(report: NormalizedReport) -> str:
    analyzed = _parse_timestamp(report.timestamp).strftime("%Y-%m-%d %H:%M:%S %Z").strip()
    return "\n".join([
        "Performance Analysis Results",
        f"URL: {report.url}",
        f"Performance Score: {report.scores.performance}/100",
        f"Analyzed: {analyzed}",
    ])

def build_view_model(report: NormalizedReport) -> ReportView:
    """
    Builds everything the results page displays from a normalized report.

    Args:
        report: The report returned by ``POST /analyze``.

    Returns:
        A ReportView with the grade, metric displays, screenshot source,
        ranked opportunity cards and share text.
    """
    grade, grade_tone = performance_grade(report.scores.performance)

    metrics = []
    for key, label in METRIC_LABELS.items():
        metric = getattr(report.metrics, key)
        status, tone = metric_status(metric)
        metrics.append(MetricView(
            key=key, label=label, display_value=metric.display_value or "-", status=status, tone=tone
        ))

    cards = []
    for rank, opportunity in enumerate(report.opportunities, start=1):
        priority, tone = opportunity_priority(opportunity.score)
        cards.append(OpportunityCard(
            rank=rank,
            id=opportunity.id,
            title=opportunity.title,
            description=opportunity.description,
            priority=priority,
            tone=tone,
            savings=opportunity.savings,
        ))

    screenshot_src = None
    if report.screenshot and report.screenshot.data:
        screenshot_src = f"data:image/jpeg;base64,{report.screenshot.data}"

    return ReportView(
        url=report.url,
        grade=grade,
        grade_tone=grade_tone,
        performance_score=report.scores.performance,
        metrics=metrics,
        screenshot_src=screenshot_src,
        opportunities=cards,
        share_title=f"Performance Analysis - {report.url}",
        share_text=build_share_text(report),
    )

def build_har(report: NormalizedReport) -> Dict[str, Any]:
    """Builds a minimal HAR 1.2 document describing the analyzed page."""
    def timing(value: Optional[float]) -> float:
        return value if value else -1

    return {
        "log": {
            "version": "1.2",
            "creator": {"name": settings.APP_NAME, "version": settings.APP_VERSION},
            "pages": [
                {
                    "startedDateTime": _parse_timestamp(report.timestamp).isoformat(),
                    "id": "page_1",
                    "title": report.url,
                    "pageTimings": {
                        "onContentLoad": timing(report.metrics.fcp.value),
                        "onLoad": timing(report.metrics.lcp.value),
                    },
                }
            ],
            "entries": [],
        }
    }

def har_filename(report: NormalizedReport) -> str:
    return f"performance-analysis-{_parse_timestamp(report.timestamp).date().isoformat()}.har"
