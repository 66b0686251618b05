from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from enum import Enum


class IssueType(str, Enum):
    RESOLUTION = "resolution"
    BLUR = "blur"
    BRIGHTNESS = "brightness"
    CONTRAST = "contrast"
    ASPECT_RATIO = "aspect_ratio"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_RANK = {Priority.HIGH: 3, Priority.MEDIUM: 2, Priority.LOW: 1}


class RecommendationType(str, Enum):
    IMAGE = "image"
    CONTENT = "content"
    POLICY = "policy"
    AMENITY = "amenity"


class QualityIssue(BaseModel):
    type: IssueType
    severity: Severity
    description: str
    suggested_fix: str


class QualityCheckResult(BaseModel):
    """Outcome of analysing a single image."""
    passed: bool
    score: float = Field(..., ge=0, le=100)
    issues: List[QualityIssue] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class ComponentScore(BaseModel):
    score: float = Field(..., ge=0, le=100)
    weight: float
    factors: Dict[str, Any] = Field(default_factory=dict)


class QualityScoreBreakdown(BaseModel):
    """Weighted composite: image 40%, content 40%, policy 20%."""
    image_quality: ComponentScore
    content_completeness: ComponentScore
    policy_clarity: ComponentScore
    overall: float = Field(..., ge=0, le=100)


class Recommendation(BaseModel):
    type: RecommendationType
    priority: Priority
    estimated_impact: float
    action_required: str
    title: str
    description: Optional[str] = None
    factor: Optional[str] = None


class MissingInformation(BaseModel):
    category: str
    items: List[str] = Field(default_factory=list)
    priority: Priority


class QualityReport(BaseModel):
    breakdown: QualityScoreBreakdown
    recommendations: List[Recommendation] = Field(default_factory=list)
    missing_information: List[MissingInformation] = Field(default_factory=list)
