# app/core/errors.py

class AnalysisError(Exception):
    """Base class for failures surfaced to the client as ``{"error": message}``."""
    status_code: int = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

class InvalidInput(AnalysisError):
    """Missing or malformed URL in the analysis request."""
    status_code = 400

class UpstreamUnavailable(AnalysisError):
    """The PageSpeed API could not be reached or timed out."""

class UpstreamError(AnalysisError):
    """The PageSpeed API answered with an error payload or an unreadable body."""

class MalformedUpstreamData(AnalysisError):
    """The PageSpeed API answered successfully but without the expected structure."""

    def __init__(self, detail: str):
        super().__init__("Invalid response structure from PageSpeed Insights API")
        self.detail = detail
