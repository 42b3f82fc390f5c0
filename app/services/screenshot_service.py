# app/services/screenshot_service.py
import base64
import logging
import time
from functools import partial
from typing import Awaitable, Callable, List, NamedTuple, Optional
from urllib.parse import quote

import httpx

from app.core.config import Settings
from app.models import ScreenshotInfo

logger = logging.getLogger(__name__)

FALLBACK_WIDTH = 1024
FALLBACK_HEIGHT = 768

class ScreenshotAttempt(NamedTuple):
    service: str
    screenshot: Optional[ScreenshotInfo] = None
    error: Optional[str] = None

Attempt = Callable[[], Awaitable[ScreenshotAttempt]]

def build_service_urls(url: str, services: List[str]) -> List[str]:
    """Fills each service template's ``{url}`` placeholder with the encoded target URL."""
    encoded = quote(url, safe="")
    return [service.replace("{url}", encoded) for service in services]

async def fetch_screenshot(
    client: httpx.AsyncClient, service_url: str, timeout: float, user_agent: str
) -> ScreenshotAttempt:
    """
    Downloads one fallback screenshot.

    Returns:
        A ScreenshotAttempt holding either the screenshot or the failure reason.
    """
    try:
        response = await client.get(service_url, headers={"User-Agent": user_agent}, timeout=timeout)
    except httpx.RequestError as e:
        return ScreenshotAttempt(service_url, error=f"{type(e).__name__}: {e}")

    if response.is_error:
        return ScreenshotAttempt(service_url, error=f"HTTP {response.status_code}")
    if not response.content:
        return ScreenshotAttempt(service_url, error="empty body")

    return ScreenshotAttempt(service_url, screenshot=ScreenshotInfo(
        data=base64.b64encode(response.content).decode("ascii"),
        timestamp=int(time.time()),
        type="fallback",
        width=FALLBACK_WIDTH,
        height=FALLBACK_HEIGHT,
    ))

async def first_successful(attempts: List[Attempt]) -> Optional[ScreenshotInfo]:
    """Awaits the attempts one at a time and stops at the first screenshot."""
    failures = []
    for attempt in attempts:
        result = await attempt()
        if result.screenshot is not None:
            return result.screenshot
        logger.debug("Fallback screenshot from %s failed: %s", result.service, result.error)
        failures.append(result)

    if failures:
        logger.warning(
            "All %d fallback screenshot services failed: %s",
            len(failures),
            "; ".join(f"{failure.service} ({failure.error})" for failure in failures),
        )
    return None

async def fetch_fallback_screenshot(
    url: str, client: httpx.AsyncClient, settings: Settings
) -> Optional[ScreenshotInfo]:
    """
    Tries the configured screenshot services in order for a page screenshot.

    Args:
        url: The analyzed website URL.
        client: The HTTP client used for the downloads.
        settings: Service templates, per-attempt timeout and user agent.

    Returns:
        The first screenshot obtained, or None if every service failed.
    """
    if not url:
        return None

    attempts = [
        partial(fetch_screenshot, client, service_url, settings.SCREENSHOT_TIMEOUT, settings.USER_AGENT)
        for service_url in build_service_urls(url, settings.FALLBACK_SCREENSHOT_SERVICES)
    ]
    return await first_successful(attempts)
