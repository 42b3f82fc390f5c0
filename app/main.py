# app/main.py
import json
import logging
from typing import AsyncIterator

import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import Settings, get_settings, settings
from app.core.errors import AnalysisError, MalformedUpstreamData
from app.models import ErrorResponse, NormalizedReport, ReportView
from app.services import pagespeed_service, presentation_service

# --- Logging ---
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)
if settings.LOG_FILE:
    file_handler = logging.FileHandler(settings.LOG_FILE)
    file_handler.setFormatter(logging.Formatter("%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"))
    logging.getLogger().addHandler(file_handler)

logger = logging.getLogger(__name__)

# --- FastAPI App Initialization ---
app = FastAPI(
    title=settings.APP_NAME,
    description="Runs Google PageSpeed Insights for a URL and returns a simplified performance report.",
    version=settings.APP_VERSION,
)

# --- CORS Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["*"],
)

# --- Dependencies ---
async def get_http_client() -> AsyncIterator[httpx.AsyncClient]:
    """One HTTP client per request, shared by the PageSpeed call and screenshot fallbacks."""
    async with httpx.AsyncClient(follow_redirects=True) as client:
        yield client

# --- Error Handlers ---
@app.exception_handler(AnalysisError)
async def analysis_error_handler(request: Request, exc: AnalysisError):
    if isinstance(exc, MalformedUpstreamData):
        logger.error("Malformed PageSpeed response: %s", exc.detail)
    elif exc.status_code >= 500:
        logger.error("Analysis failed: %s", exc.message)
    else:
        logger.info("Rejected analysis request: %s", exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)

@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    fields = sorted({".".join(str(part) for part in error["loc"][1:]) for error in exc.errors()})
    return JSONResponse(status_code=400, content={"error": f"Invalid report: {', '.join(fields) or 'body'}"})

# --- API Endpoints ---
@app.post(
    "/analyze",
    response_model=NormalizedReport,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def analyze_website(
    request: Request,
    client: httpx.AsyncClient = Depends(get_http_client),
    app_settings: Settings = Depends(get_settings),
):
    """
    Receives ``{url, device}``, runs PageSpeed Insights and returns the normalized report.
    Nothing is stored between requests.
    """
    try:
        payload = await request.json()
    except ValueError:
        payload = None

    analysis_request = pagespeed_service.parse_analysis_request(payload)
    return await pagespeed_service.analyze(analysis_request, client, app_settings)

@app.options("/analyze")
async def analyze_preflight():
    return Response(status_code=200)

@app.post("/report/view", response_model=ReportView)
async def report_view(report: NormalizedReport):
    """
    Builds the results-page view of a report: grade, metric statuses,
    screenshot source, ranked opportunity cards and share text.
    """
    return presentation_service.build_view_model(report)

@app.post("/report/har")
async def download_har(report: NormalizedReport):
    """
    Returns a minimal HAR file describing the analyzed page as a download.
    """
    har_json_str = json.dumps(presentation_service.build_har(report), indent=2)
    filename = presentation_service.har_filename(report)

    return Response(
        content=har_json_str,
        media_type="application/json",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )

# A simple root endpoint to confirm the API is running
@app.get("/")
def read_root():
    return {
        "message": f"Welcome to the {settings.APP_NAME} API",
        "version": settings.APP_VERSION,
        "endpoints": {"analyze": "/analyze (POST)", "view": "/report/view (POST)", "har": "/report/har (POST)"},
    }

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
