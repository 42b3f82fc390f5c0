import copy

import httpx
import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings, get_settings
from app.main import app, get_http_client

PSI_URL = "https://psi.example/runPagespeed"
SCREENSHOT_DATA = "data:image/jpeg;base64,L2ZpbmFsLXNjcmVlbnNob3Q="

BASE_RESPONSE = {
    "analysisUTCTimestamp": "2026-10-19T08:00:00.000Z",
    "loadingExperience": {"id": "https://example.com/", "overall_category": "AVERAGE"},
    "originLoadingExperience": {"id": "https://example.com", "overall_category": "FAST"},
    "lighthouseResult": {
        "categories": {
            "performance": {"score": 0.73},
            "accessibility": {"score": 0.9},
            "best-practices": {"score": 1},
            "seo": {"score": 0.845},
        },
        "audits": {
            "first-contentful-paint": {
                "score": 0.92, "numericValue": 1200.5, "displayValue": "1.2 s",
                "title": "First Contentful Paint", "description": "FCP marks the first paint.",
            },
            "largest-contentful-paint": {
                "score": 0.5, "numericValue": 3100, "displayValue": "3.1 s",
                "title": "Largest Contentful Paint", "description": "LCP marks the largest paint.",
            },
            "total-blocking-time": {
                "score": 0.49, "numericValue": 640, "displayValue": "640 ms",
                "title": "Total Blocking Time", "description": "Sum of long tasks.",
            },
            "cumulative-layout-shift": {
                "score": 0.9, "numericValue": 0.08, "displayValue": "0.08",
                "title": "Cumulative Layout Shift", "description": "Movement of visible elements.",
            },
            "speed-index": {
                "score": 0.61, "numericValue": 4200, "displayValue": "4.2 s",
                "title": "Speed Index", "description": "How quickly content is visibly populated.",
            },
            "final-screenshot": {
                "score": None, "title": "Final Screenshot",
                "details": {"type": "screenshot", "data": SCREENSHOT_DATA, "timestamp": 1234567.8,
                            "width": 412, "height": 823},
            },
            "render-blocking-resources": {
                "score": 0.3, "numericValue": 900, "displayValue": "Potential savings of 900 ms",
                "title": "Eliminate render-blocking resources", "description": "Resources block first paint.",
                "details": {"type": "opportunity", "overallSavingsMs": 900, "items": []},
            },
            "unused-javascript": {
                "score": 0.6, "numericValue": 300, "displayValue": "Potential savings of 120 KiB",
                "title": "Reduce unused JavaScript", "description": "Remove dead code.",
                "details": {"type": "opportunity", "overallSavingsMs": 300, "items": []},
            },
            "unused-css-rules": {
                "score": 1, "numericValue": 0, "displayValue": "",
                "title": "Reduce unused CSS", "description": "Remove dead rules.",
                "details": {"type": "opportunity", "overallSavingsMs": 0, "items": []},
            },
            "mainthread-work-breakdown": {
                "score": None, "numericValue": 2100, "displayValue": "2.1 s",
                "title": "Minimize main-thread work", "description": "Time spent parsing and executing.",
                "details": {"type": "table", "items": []},
            },
            "font-display": {
                "score": 1, "title": "All text remains visible during webfont loads",
                "description": "Use font-display.",
            },
        },
    },
}


@pytest.fixture
def psi_response():
    """A fresh, mutable copy of a realistic PageSpeed Insights response."""
    return copy.deepcopy(BASE_RESPONSE)


@pytest.fixture
def test_settings():
    return Settings(
        PAGESPEED_API_KEY="test-key",
        PAGESPEED_API_URL=PSI_URL,
        FALLBACK_SCREENSHOT_SERVICES=[
            "https://shots-one.example/capture?url={url}",
            "https://shots-two.example/demo.jpeg",
        ],
    )


@pytest.fixture
def api_client(test_settings):
    """
    Returns a factory building a TestClient whose outbound HTTP calls are
    answered by the given httpx.MockTransport handler.
    """
    def build(handler):
        async def override_http_client():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                yield client

        app.dependency_overrides[get_http_client] = override_http_client
        app.dependency_overrides[get_settings] = lambda: test_settings
        return TestClient(app)

    yield build
    app.dependency_overrides.clear()
