# app/services/processing_service.py
import logging
import re
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Awaitable, Callable, Dict, List, Optional

from app.core.errors import MalformedUpstreamData
from app.models import (
    Diagnostic,
    MetricSummary,
    Metrics,
    NormalizedReport,
    Opportunity,
    RawData,
    Scores,
    ScreenshotInfo,
)

logger = logging.getLogger(__name__)

ScreenshotFallback = Callable[[str], Awaitable[Optional[ScreenshotInfo]]]

CATEGORY_KEYS = {
    "performance": "performance",
    "accessibility": "accessibility",
    "best_practices": "best-practices",
    "seo": "seo",
}

METRIC_AUDITS = {
    "fcp": "first-contentful-paint",
    "lcp": "largest-contentful-paint",
    "tbt": "total-blocking-time",
    "cls": "cumulative-layout-shift",
    "si": "speed-index",
}

DIAGNOSTIC_AUDITS = [
    "unused-javascript",
    "unused-css-rules",
    "render-blocking-resources",
    "uses-long-cache-ttl",
    "efficient-animated-content",
    "mainthread-work-breakdown",
    "bootup-time",
    "uses-rel-preconnect",
    "font-display",
    "third-party-summary",
]

MAX_ITEMS = 10

_DATA_URI_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,")

def to_percent(score: float) -> int:
    """Converts a fractional 0-1 score to an integer 0-100, rounding half up."""
    percent = (Decimal(str(score)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return max(0, min(100, int(percent)))

def rate(score: float) -> str:
    if score >= 0.9:
        return "good"
    if score >= 0.5:
        return "needs-improvement"
    return "poor"

def strip_data_uri(data: str) -> str:
    return _DATA_URI_PREFIX.sub("", data, count=1)

def extract_scores(categories: Dict[str, Any]) -> Scores:
    """
    Extracts the four category scores as integers.

    Raises:
        MalformedUpstreamData: If a category or its score is missing.
    """
    scores = {}
    for field, category_id in CATEGORY_KEYS.items():
        category = categories.get(category_id)
        score = category.get("score") if isinstance(category, dict) else None
        if not isinstance(score, (int, float)):
            raise MalformedUpstreamData(f"category '{category_id}' has no score")
        scores[field] = to_percent(score)
    return Scores(**scores)

def format_metric(audit: Optional[Dict[str, Any]]) -> MetricSummary:
    if not audit:
        return MetricSummary(value=None, display_value="N/A", rating="poor", score=0)

    score = audit.get("score")
    if score is None:
        score = 0
    return MetricSummary(
        value=audit.get("numericValue", 0),
        display_value=audit.get("displayValue") or "N/A",
        rating=rate(score),
        score=score,
    )

def extract_metrics(audits: Dict[str, Any]) -> Metrics:
    return Metrics(**{key: format_metric(audits.get(audit_id)) for key, audit_id in METRIC_AUDITS.items()})

# Each extractor returns None when the audit does not hold image data.

def _final_screenshot(details: Dict[str, Any]) -> Optional[ScreenshotInfo]:
    if not details.get("data"):
        return None
    return ScreenshotInfo(
        data=strip_data_uri(details["data"]),
        timestamp=details.get("timestamp"),
        type="final",
        width=details.get("width"),
        height=details.get("height"),
    )

def _thumbnail(details: Dict[str, Any]) -> Optional[ScreenshotInfo]:
    items = details.get("items") or []
    if not items or not isinstance(items[0], dict) or not items[0].get("data"):
        return None
    first = items[0]
    return ScreenshotInfo(data=strip_data_uri(first["data"]), timestamp=first.get("timing"), type="thumbnail")

def _full_page_screenshot(details: Dict[str, Any]) -> Optional[ScreenshotInfo]:
    screenshot = details.get("screenshot") or {}
    if not screenshot.get("data"):
        return None
    return ScreenshotInfo(
        data=strip_data_uri(screenshot["data"]),
        type="full-page",
        width=screenshot.get("width"),
        height=screenshot.get("height"),
    )

SCREENSHOT_EXTRACTORS = [
    ("final-screenshot", _final_screenshot),
    ("screenshot-thumbnails", _thumbnail),
    ("full-page-screenshot", _full_page_screenshot),
]

def extract_screenshot(audits: Dict[str, Any]) -> Optional[ScreenshotInfo]:
    """Returns the first screenshot embedded in the report, in priority order."""
    for audit_id, extractor in SCREENSHOT_EXTRACTORS:
        details = (audits.get(audit_id) or {}).get("details")
        if not isinstance(details, dict):
            continue
        screenshot = extractor(details)
        if screenshot is not None:
            return screenshot
    return None

def extract_opportunities(audits: Dict[str, Any]) -> List[Opportunity]:
    """
    Collects opportunity audits with a positive numeric value.

    The lowest-scoring audits come first; ties keep the order in which the
    audits appear in the report.
    """
    opportunities = []
    for audit_id, audit in audits.items():
        details = audit.get("details") or {}
        numeric_value = audit.get("numericValue")
        if details.get("type") != "opportunity" or not isinstance(numeric_value, (int, float)):
            continue
        if numeric_value <= 0:
            continue
        opportunities.append(Opportunity(
            id=audit_id,
            title=audit.get("title") or "",
            description=audit.get("description") or "",
            savings=audit.get("displayValue"),
            score=audit.get("score"),
        ))

    opportunities.sort(key=lambda opportunity: opportunity.score or 0)
    return opportunities[:MAX_ITEMS]

def extract_diagnostics(audits: Dict[str, Any]) -> List[Diagnostic]:
    diagnostics = []
    for audit_id in DIAGNOSTIC_AUDITS:
        audit = audits.get(audit_id)
        if not audit:
            continue
        score = audit.get("score")
        # Informative audits carry a null score; they are reported as well.
        if score is not None and score >= 1:
            continue
        diagnostics.append(Diagnostic(
            id=audit_id,
            title=audit.get("title") or "",
            description=audit.get("description") or "",
            score=score,
        ))
    return diagnostics[:MAX_ITEMS]

async def normalize_report(
    data: Dict[str, Any],
    url: str,
    device: str,
    fallback: Optional[ScreenshotFallback] = None,
) -> NormalizedReport:
    """
    Reshapes a PageSpeed Insights response into the report sent to the browser.

    Args:
        data: The full JSON response from the API.
        url: The analyzed URL, echoed in the report and used for fallback screenshots.
        device: The requested strategy, echoed in the report.
        fallback: Awaited for a screenshot when the report embeds none.

    Returns:
        The NormalizedReport.

    Raises:
        MalformedUpstreamData: If lighthouseResult, its categories or audits are missing.
    """
    lighthouse_result = data.get("lighthouseResult")
    if not isinstance(lighthouse_result, dict):
        raise MalformedUpstreamData("'lighthouseResult' not found")

    categories = lighthouse_result.get("categories")
    audits = lighthouse_result.get("audits")
    if not isinstance(categories, dict) or not isinstance(audits, dict):
        raise MalformedUpstreamData("'categories' or 'audits' not found")

    audits = {audit_id: audit for audit_id, audit in audits.items() if isinstance(audit, dict)}

    # 1. Category scores
    scores = extract_scores(categories)

    # 2. Core Web Vitals
    metrics = extract_metrics(audits)

    # 3. Screenshot, falling back to external services
    screenshot = extract_screenshot(audits)
    if screenshot is None and fallback is not None:
        logger.info("No screenshot in report for %s, trying fallback services", url)
        screenshot = await fallback(url)

    # 4. Opportunities and diagnostics
    opportunities = extract_opportunities(audits)
    diagnostics = extract_diagnostics(audits)

    return NormalizedReport(
        url=url,
        timestamp=datetime.now(timezone.utc).isoformat(),
        device=device,
        scores=scores,
        metrics=metrics,
        screenshot=screenshot,
        opportunities=opportunities,
        diagnostics=diagnostics,
        raw_data=RawData(
            loading_experience=data.get("loadingExperience"),
            origin_loading_experience=data.get("originLoadingExperience"),
        ),
    )
