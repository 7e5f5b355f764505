from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


Percent = Annotated[float, Field(ge=0.0, le=100.0)]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExtractedDocumentFields(BaseModel):
    name: Optional[str] = None
    document_number: Optional[str] = None
    date_of_birth: Optional[str] = None
    expiry_date: Optional[str] = None
    nationality: Optional[str] = None
    address: Optional[str] = None


class SecurityFeatureCheck(BaseModel):
    detected: bool
    authentic: bool


class _AuthenticityBase(BaseModel):
    confidence: Percent
    features: Dict[str, SecurityFeatureCheck] = {}


class ExternalAuthenticity(_AuthenticityBase):
    source: Literal["external_api"] = "external_api"
    api_version: Optional[str] = None
    processing_time_ms: Optional[float] = None


class FallbackAuthenticity(_AuthenticityBase):
    source: Literal["fallback_demo"] = "fallback_demo"


AuthenticityResult = Annotated[
    Union[ExternalAuthenticity, FallbackAuthenticity],
    Field(discriminator="source"),
]


class DocumentScan(BaseModel):
    fields: ExtractedDocumentFields
    authenticity: AuthenticityResult
    document_type: str = "Unknown Document"
    risk_score: float
    ocr_text: str = ""


class Scenario(str, Enum):
    NORMAL = "normal"
    PHOTO = "photo"
    BLOCKED = "blocked"


class CapturedFrame(BaseModel):
    scenario: Scenario
    size: int = 0  # encoded length of the sample
    timestamp: datetime = Field(default_factory=utcnow)


class ScenarioDistribution(BaseModel):
    normal: int = 0
    photo: int = 0
    blocked: int = 0

    @property
    def total(self) -> int:
        return self.normal + self.photo + self.blocked

    def count(self, scenario: Scenario) -> int:
        return getattr(self, scenario.value)


RiskLevel = Literal["LOW", "MEDIUM", "HIGH", "CRITICAL"]


class RiskAssessment(BaseModel):
    spoofing_risk: Percent = 0.0
    obstruction_risk: Percent = 0.0
    deepfake_risk: Percent = 0.0
    overall_risk: RiskLevel


class LivenessResult(BaseModel):
    success: bool
    confidence: Percent
    dominant_scenario: Optional[Scenario] = None
    distribution: ScenarioDistribution = Field(default_factory=ScenarioDistribution)
    risk_assessment: RiskAssessment
    source: Literal["scenario_analysis", "aws_rekognition", "fallback_analysis"]
    reason: str = ""
    error: Optional[str] = None


class FaceComparisonResult(BaseModel):
    similarity: Percent
    confidence: Percent
    match: bool
    source: Literal["aws_rekognition", "fallback_comparison"]


class BehavioralSignals(BaseModel):
    natural_mouse_movement: Optional[bool] = None
    human_typing_cadence: Optional[bool] = None
    session_time_seconds: Optional[float] = None


Impact = Literal["High Positive", "Medium Positive", "Low Positive"]


class Recommendation(str, Enum):
    APPROVED = "Approved"
    APPROVED_WITH_MONITORING = "Approved with Monitoring"
    REVIEW_REQUIRED = "Review Required"


class TrustFactor(BaseModel):
    category: str
    score: Percent
    impact: Impact
    details: str


class TrustScoreResult(BaseModel):
    final_score: Percent
    factors: List[TrustFactor]
    recommendation: Recommendation
    recommendation_message: str
    timestamp: datetime = Field(default_factory=utcnow)


class VerificationReport(BaseModel):
    document: DocumentScan
    liveness: LivenessResult
    face_match: Optional[FaceComparisonResult] = None
    trust: TrustScoreResult
