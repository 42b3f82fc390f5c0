# app/models.py
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Any, Dict, List, Literal, Optional

Device = Literal["mobile", "desktop"]
Rating = Literal["good", "needs-improvement", "poor"]
ScreenshotType = Literal["final", "thumbnail", "full-page", "fallback"]

class CamelModel(BaseModel):
    """Serializes snake_case fields under their camelCase wire names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

# --- Request ---

class AnalysisRequest(BaseModel):
    url: str
    device: Device = "mobile"

    @field_validator("device", mode="before")
    @classmethod
    def coerce_device(cls, value: Any) -> str:
        return value if value in ("mobile", "desktop") else "mobile"

# --- Normalized report ---

class Scores(CamelModel):
    performance: int
    accessibility: int
    best_practices: int
    seo: int

class MetricSummary(CamelModel):
    value: Optional[float] = None
    display_value: str = "N/A"
    rating: Rating = "poor"
    score: float = 0

class Metrics(BaseModel):
    fcp: MetricSummary
    lcp: MetricSummary
    tbt: MetricSummary
    cls: MetricSummary
    si: MetricSummary

class ScreenshotInfo(CamelModel):
    data: str
    timestamp: Optional[float] = None
    type: ScreenshotType
    width: Optional[int] = None
    height: Optional[int] = None

class Opportunity(CamelModel):
    id: str
    title: str = ""
    description: str = ""
    savings: Optional[str] = None
    score: Optional[float] = None

class Diagnostic(CamelModel):
    id: str
    title: str = ""
    description: str = ""
    score: Optional[float] = None

class RawData(CamelModel):
    loading_experience: Optional[Dict[str, Any]] = None
    origin_loading_experience: Optional[Dict[str, Any]] = None

class NormalizedReport(CamelModel):
    url: str
    timestamp: str
    device: Device
    scores: Scores
    metrics: Metrics
    screenshot: Optional[ScreenshotInfo] = None
    opportunities: List[Opportunity] = Field(default_factory=list, max_length=10)
    diagnostics: List[Diagnostic] = Field(default_factory=list, max_length=10)
    raw_data: RawData = Field(default_factory=RawData)

# --- Presentation ---

class MetricView(CamelModel):
    key: str
    label: str
    display_value: str
    status: str
    tone: str

class OpportunityCard(CamelModel):
    rank: int
    id: str
    title: str
    description: str
    priority: str
    tone: str
    savings: Optional[str] = None

class ReportView(CamelModel):
    url: str
    grade: str
    grade_tone: str
    performance_score: int
    metrics: List[MetricView]
    screenshot_src: Optional[str] = None
    opportunities: List[OpportunityCard]
    share_title: str
    share_text: str

class ErrorResponse(BaseModel):
    error: str
