"""
Pydantic models for the symptom checker domain and its API.

Domain models use snake_case attributes and serialize with the camelCase
field names the frontend and the stored documents use.
Invalid inputs fail closed with descriptive error messages.
"""

import re
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Severity(str, Enum):
    """Severity of a catalog condition."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EMERGENCY = "emergency"


class UrgencyLevel(str, Enum):
    """Closed urgency classification attached to every analysis."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class MedicalCondition(BaseModel):
    """
    A curated knowledge-base entry.

    Attributes:
        name: Unique condition name (stored as ``condition``).
        symptoms: Lowercase symptom phrases.
        description: Plain-language description.
        recommendations: Ordered self-care and escalation advice.
        source: Citation for the entry.
        severity: Typical severity of the condition.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field(..., min_length=1, alias="condition", description="Condition name")
    symptoms: tuple[str, ...] = Field(..., min_length=1, description="Normalized symptom phrases")
    description: str = Field(..., min_length=1, description="Condition description")
    recommendations: tuple[str, ...] = Field(default=(), description="Recommendations")
    source: str = Field(..., min_length=1, description="Citation")
    severity: Severity = Field(default=Severity.MEDIUM, description="Typical severity")

    @field_validator("name", "description", "source")
    @classmethod
    def strip_text(cls, v: str) -> str:
        """Trim surrounding whitespace."""
        return v.strip()

    @field_validator("symptoms", mode="before")
    @classmethod
    def normalize_symptoms(cls, v):
        """Lowercase, trim and de-duplicate symptom phrases, keeping order."""
        if isinstance(v, str):
            v = [v]
        seen: dict[str, None] = {}
        for symptom in v:
            cleaned = str(symptom).strip().lower()
            if cleaned:
                seen.setdefault(cleaned, None)
        return tuple(seen)

    def to_document(self) -> dict:
        """Convert to the stored document shape."""
        return self.model_dump(mode="json", by_alias=True)


class MatchCandidate(BaseModel):
    """
    A catalog condition with its relevance score.

    Scores only rank candidates produced by the same strategy.
    """
    model_config = ConfigDict(frozen=True)

    condition: MedicalCondition
    score: float = 0.0


class PotentialCondition(BaseModel):
    """A condition the model considers consistent with the symptoms."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    condition_name: str = Field(..., min_length=1, alias="conditionName")
    match_percentage: float = Field(default=0, ge=0, le=100, alias="matchPercentage")
    reasoning: str = Field(default="")
    recommendations: tuple[str, ...] = Field(default=())
    source: str = Field(default="")


class AnalysisResult(BaseModel):
    """Structured, disclaimer-bearing analysis of a symptom context."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    potential_conditions: tuple[PotentialCondition, ...] = Field(
        default=(), alias="potentialConditions"
    )
    summary: str
    urgency_level: UrgencyLevel = Field(..., alias="urgencyLevel")
    disclaimer: str = Field(..., min_length=1)


class ClarificationAnswer(BaseModel):
    """A clarifying question and the user's answer."""
    question: str = Field(..., max_length=500)
    answer: str = Field(default="", max_length=1000)


class StartCheckResult(BaseModel):
    """Outcome of the first intake step."""
    model_config = ConfigDict(populate_by_name=True)

    is_emergency: bool = Field(default=False, alias="isEmergency")
    message: str | None = None
    questions: list[str] | None = None


class QueryLogEntry(BaseModel):
    """Audit record of a single intake interaction."""
    model_config = ConfigDict(populate_by_name=True)

    symptom: str
    clarification_answers: list[ClarificationAnswer] = Field(
        default_factory=list, alias="clarificationAnswers"
    )
    analysis_result: AnalysisResult | None = Field(default=None, alias="analysisResult")
    is_emergency: bool = Field(default=False, alias="isEmergency")
    created_at: datetime = Field(default_factory=_utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=_utcnow, alias="updatedAt")

    def to_document(self) -> dict:
        """Convert to the stored document shape."""
        return self.model_dump(mode="json", by_alias=True)


# ============================================================================
# API request/response models
# ============================================================================

_TAG_CHARS = re.compile(r"[<>]")
_JS_SCHEME = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+=", re.IGNORECASE)


def sanitize_text(value: str) -> str:
    """Remove markup fragments that could be echoed back into a page."""
    value = _TAG_CHARS.sub("", value)
    value = _JS_SCHEME.sub("", value)
    value = _EVENT_HANDLER.sub("", value)
    return value.strip()


def _require_text(value: str, label: str) -> str:
    if not value:
        raise ValueError(f"{label} cannot be empty")
    return value


def check_length(value: str, label: str, min_length: int, max_length: int) -> str:
    """Raise ValueError unless ``value`` is within the bounds."""
    if len(value) < min_length:
        raise ValueError(f"{label} must be at least {min_length} characters")
    if len(value) > max_length:
        raise ValueError(f"{label} must not exceed {max_length} characters")
    return value


class StartCheckRequest(BaseModel):
    """Request to begin a symptom check."""
    symptom: str = Field(..., description="Initial symptom description")

    @field_validator("symptom")
    @classmethod
    def validate_symptom(cls, v: str) -> str:
        """Sanitize the symptom text. Length bounds are app settings, checked per request."""
        return _require_text(sanitize_text(v), "Symptom")


class AnalyzeRequest(BaseModel):
    """Request to analyze the full symptom context."""
    model_config = ConfigDict(populate_by_name=True)

    full_context: str = Field(..., alias="fullContext", description="Symptom plus clarification answers")
    clarification_answers: list[ClarificationAnswer] = Field(
        default_factory=list, alias="clarificationAnswers", max_length=10
    )

    @field_validator("full_context")
    @classmethod
    def validate_context(cls, v: str) -> str:
        """Sanitize the context text."""
        return _require_text(sanitize_text(v), "Context")


class StartCheckResponse(BaseModel):
    """Response envelope for /api/start-check."""
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    is_emergency: bool = Field(default=False, alias="isEmergency")
    message: str | None = None
    questions: list[str] | None = None


class AnalyzeResponse(BaseModel):
    """Response envelope for /api/analyze."""
    success: bool = True
    data: AnalysisResult


class ConditionsResponse(BaseModel):
    """Response envelope for /api/conditions."""
    success: bool = True
    count: int
    data: list[MedicalCondition]


class HistoryResponse(BaseModel):
    """Response envelope for /api/history."""
    success: bool = True
    count: int
    data: list[QueryLogEntry]


class UsageStats(BaseModel):
    """Aggregate usage counters."""
    model_config = ConfigDict(populate_by_name=True)

    total_queries: int = Field(..., alias="totalQueries")
    emergency_queries: int = Field(..., alias="emergencyQueries")
    conditions_count: int = Field(..., alias="conditionsCount")
    timestamp: datetime = Field(default_factory=_utcnow)


class StatsResponse(BaseModel):
    """Response envelope for /api/stats."""
    success: bool = True
    data: UsageStats


class HealthStatus(str, Enum):
    """System health status levels."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class HealthResponse(BaseModel):
    """
    Health check response for monitoring.

    Attributes:
        status: Overall system health status.
        version: Application version.
        environment: Deployment environment.
        checks: Individual component health checks.
    """
    success: bool = True
    status: HealthStatus = Field(..., description="Overall health status")
    version: str = Field(..., description="Application version")
    environment: str = Field(..., description="Deployment environment")
    timestamp: datetime = Field(default_factory=_utcnow, description="Check timestamp")
    checks: dict[str, bool] = Field(default_factory=dict, description="Component health checks")


class ErrorResponse(BaseModel):
    """
    Standardized error response.

    Attributes:
        error: Human-readable error message.
        code: Machine-readable error code.
        details: Additional error details.
        request_id: Request ID for tracing.
    """
    success: bool = False
    error: str = Field(..., description="Error message")
    code: str = Field(..., description="Error code")
    details: list[str] | None = Field(default=None, description="Additional details")
    request_id: str | None = Field(default=None, description="Request ID for tracing")
    timestamp: datetime = Field(default_factory=_utcnow, description="Error timestamp")
