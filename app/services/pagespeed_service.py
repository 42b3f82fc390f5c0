# app/services/pagespeed_service.py
import logging
from typing import Any, Dict

import httpx
from pydantic import HttpUrl, TypeAdapter, ValidationError

from app.core.config import Settings
from app.core.errors import InvalidInput, UpstreamError, UpstreamUnavailable
from app.models import AnalysisRequest, NormalizedReport
from app.services import processing_service, screenshot_service

logger = logging.getLogger(__name__)

CATEGORIES = ["PERFORMANCE", "ACCESSIBILITY", "BEST_PRACTICES", "SEO"]

_http_url = TypeAdapter(HttpUrl)

def is_absolute_url(value: str) -> bool:
    try:
        _http_url.validate_python(value)
    except ValidationError:
        return False
    return True

def parse_analysis_request(payload: Any) -> AnalysisRequest:
    """
    Validates the decoded request body of ``POST /analyze``.

    Args:
        payload: The decoded JSON body, whatever its shape.

    Returns:
        An AnalysisRequest with the device coerced to 'mobile' or 'desktop'.

    Raises:
        InvalidInput: If the URL is missing or is not an absolute http(s) URL.
    """
    if not isinstance(payload, dict) or not payload.get("url"):
        raise InvalidInput("URL is required")

    url = payload["url"]
    if not isinstance(url, str) or not is_absolute_url(url.strip()):
        raise InvalidInput("Invalid URL format")

    return AnalysisRequest(url=url.strip(), device=payload.get("device"))

async def get_pagespeed_insights(
    url: str, device: str, client: httpx.AsyncClient, settings: Settings
) -> Dict[str, Any]:
    """
    Asynchronously calls the Google PageSpeed Insights API.

    Args:
        url: The target website URL.
        device: The analysis strategy ('mobile' or 'desktop').
        client: The HTTP client used for the outbound request.
        settings: API key, endpoint, timeout and locale.

    Returns:
        The parsed JSON response as a dictionary.

    Raises:
        UpstreamUnavailable: If the API cannot be reached within the timeout.
        UpstreamError: If the body is not JSON or carries an error object.
    """
    params = [("url", url)]
    if settings.PAGESPEED_API_KEY:
        params.append(("key", settings.PAGESPEED_API_KEY))
    params.append(("strategy", device.upper()))
    params.extend(("category", category) for category in CATEGORIES)
    params.append(("locale", settings.PAGESPEED_LOCALE))

    try:
        response = await client.get(
            settings.PAGESPEED_API_URL,
            params=params,
            headers={"User-Agent": settings.USER_AGENT},
            timeout=settings.PAGESPEED_TIMEOUT,
        )
    except httpx.RequestError as e:
        logger.error("PageSpeed request for %s failed: %r", url, e)
        raise UpstreamUnavailable("Failed to connect to PageSpeed Insights API") from e

    try:
        data = response.json()
    except ValueError as e:
        logger.error("PageSpeed returned a non-JSON body (HTTP %s)", response.status_code)
        raise UpstreamError("Invalid response from PageSpeed Insights API") from e

    if not isinstance(data, dict):
        raise UpstreamError("Invalid response from PageSpeed Insights API")

    if data.get("error"):
        error = data["error"]
        error_message = error.get("message", "Unknown API error") if isinstance(error, dict) else str(error)
        logger.warning("PageSpeed API error for %s: %s", url, error_message)
        raise UpstreamError(f"API Error: {error_message}")

    if response.is_error:
        logger.warning("PageSpeed API answered HTTP %s for %s", response.status_code, url)
        raise UpstreamError(f"API Error: HTTP {response.status_code}")

    return data

async def analyze(
    request: AnalysisRequest, client: httpx.AsyncClient, settings: Settings
) -> NormalizedReport:
    """Runs PageSpeed Insights for the request and returns the normalized report."""
    logger.info("Analyzing %s (%s)", request.url, request.device)
    data = await get_pagespeed_insights(request.url, request.device, client, settings)

    async def fallback(target_url: str):
        return await screenshot_service.fetch_fallback_screenshot(target_url, client, settings)

    return await processing_service.normalize_report(
        data, request.url, request.device, fallback=fallback
    )
