from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union
from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from app.core.exceptions import ValidationError
from app.models.onboarding import SessionStatus
from app.schemas.amenity import AmenityInheritance, AmenityOverride, PropertyType
from app.schemas.common import LocationDetails
from app.schemas.quality import (
    MissingInformation,
    QualityCheckResult,
    QualityIssue,
    QualityScoreBreakdown,
    Recommendation,
)


class StepId(str, Enum):
    AMENITIES = "amenities"
    IMAGES = "images"
    PROPERTY_INFO = "property-info"
    ROOMS = "rooms"
    BUSINESS_FEATURES = "business-features"


class ImageCategory(str, Enum):
    EXTERIOR = "exterior"
    LOBBY = "lobby"
    ROOMS = "rooms"
    AMENITIES = "amenities"
    DINING = "dining"
    RECREATIONAL = "recreational"
    BUSINESS = "business"
    VIRTUAL_TOURS = "virtual_tours"


class CancellationType(str, Enum):
    FLEXIBLE = "flexible"
    MODERATE = "moderate"
    STRICT = "strict"
    SUPER_STRICT = "super_strict"


# ---------------------------------------------------------------------------
# Images
# ---------------------------------------------------------------------------

class Dimensions(BaseModel):
    width: int = Field(..., ge=0)
    height: int = Field(..., ge=0)


class ImageRecord(BaseModel):
    """An analysed image. Score and issues are captured once at upload time."""
    id: str = Field(..., min_length=1)
    category: ImageCategory
    url: str
    quality_score: float = Field(0.0, ge=0, le=100)
    dimensions: Optional[Dimensions] = None
    issues: List[QualityIssue] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Policies
# ---------------------------------------------------------------------------

class CheckInPolicy(BaseModel):
    standard_time: Optional[str] = None  # HH:MM
    earliest_time: Optional[str] = None
    latest_time: Optional[str] = None
    requirements: List[str] = Field(default_factory=list)
    process: Optional[str] = None


class CheckOutPolicy(BaseModel):
    standard_time: Optional[str] = None  # HH:MM
    late_checkout_available: bool = False
    late_checkout_fee: Optional[float] = Field(None, ge=0)
    process: Optional[str] = None


class CancellationPolicy(BaseModel):
    type: CancellationType = CancellationType.MODERATE
    free_until_hours: int = Field(24, ge=0)
    penalty_percentage: float = Field(0.0, ge=0, le=100)
    no_show_policy: Optional[str] = None
    details: Optional[str] = None


class BookingPolicy(BaseModel):
    advance_booking_days: int = Field(365, ge=0)
    minimum_stay: Optional[int] = Field(None, ge=1)
    maximum_stay: Optional[int] = Field(None, ge=1)
    instant_booking: bool = True
    requires_approval: bool = False
    payment_terms: Optional[str] = None


class PetPolicy(BaseModel):
    allowed: bool
    fee: Optional[float] = Field(None, ge=0)
    restrictions: List[str] = Field(default_factory=list)


class SmokingPolicy(BaseModel):
    allowed: bool
    designated_areas: List[str] = Field(default_factory=list)
    penalty: Optional[float] = Field(None, ge=0)


class HotelPolicies(BaseModel):
    check_in: Optional[CheckInPolicy] = None
    check_out: Optional[CheckOutPolicy] = None
    cancellation: Optional[CancellationPolicy] = None
    booking: Optional[BookingPolicy] = None
    pet: Optional[PetPolicy] = None
    smoking: Optional[SmokingPolicy] = None


# ---------------------------------------------------------------------------
# Rooms and business features
# ---------------------------------------------------------------------------

class RoomImage(BaseModel):
    id: str = Field(..., min_length=1)
    url: Optional[str] = None


class RoomRecord(BaseModel):
    # name/occupancy are checked by the rooms validator so that errors are
    # reported per room instead of as a decode failure
    id: str = Field(..., min_length=1)
    name: str = ""
    occupancy: int = 0
    price: Optional[float] = Field(None, ge=0)
    description: Optional[str] = None
    amenities: List[str] = Field(default_factory=list)
    amenity_overrides: List[AmenityOverride] = Field(default_factory=list)
    images: List[RoomImage] = Field(default_factory=list)


class MeetingRoom(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    capacity: Optional[int] = None
    layout: Optional[str] = None
    hourly_rate: Optional[float] = Field(None, ge=0)


class WifiSpeed(BaseModel):
    download_mbps: float = Field(..., ge=0)
    upload_mbps: float = Field(..., ge=0)


class ConnectivityDetails(BaseModel):
    wifi_speed: Optional[WifiSpeed] = None
    business_grade: bool = False
    wired_internet: bool = False
    public_computers: int = Field(0, ge=0)


class WorkSpace(BaseModel):
    id: Optional[str] = None
    name: Optional[str] = None
    capacity: Optional[int] = None
    is_accessible_24x7: bool = False


class BusinessService(BaseModel):
    name: str
    description: Optional[str] = None
    available: bool = True
    fee: Optional[float] = Field(None, ge=0)


# ---------------------------------------------------------------------------
# Step payloads (tagged by step_id)
# ---------------------------------------------------------------------------

class AmenitiesPayload(BaseModel):
    step_id: Literal["amenities"] = "amenities"
    selected_amenities: List[str] = Field(default_factory=list)
    property_type: PropertyType


class ImagesPayload(BaseModel):
    step_id: Literal["images"] = "images"
    images: List[ImageRecord] = Field(default_factory=list)


class PropertyInfoPayload(BaseModel):
    step_id: Literal["property-info"] = "property-info"
    description: Optional[str] = None
    policies: Optional[HotelPolicies] = None
    location_details: Optional[LocationDetails] = None


class RoomsPayload(BaseModel):
    step_id: Literal["rooms"] = "rooms"
    rooms: List[RoomRecord] = Field(default_factory=list)


class BusinessFeaturesPayload(BaseModel):
    step_id: Literal["business-features"] = "business-features"
    meeting_rooms: List[MeetingRoom] = Field(default_factory=list)
    connectivity: Optional[ConnectivityDetails] = None
    work_spaces: List[WorkSpace] = Field(default_factory=list)
    services: List[BusinessService] = Field(default_factory=list)


StepPayload = Annotated[
    Union[
        AmenitiesPayload,
        ImagesPayload,
        PropertyInfoPayload,
        RoomsPayload,
        BusinessFeaturesPayload,
    ],
    Field(discriminator="step_id"),
]

_step_payload_adapter = TypeAdapter(StepPayload)


def parse_step_id(step_id: str) -> StepId:
    try:
        return StepId(step_id)
    except ValueError:
        known = ", ".join(s.value for s in StepId)
        raise ValidationError([f"Unknown step '{step_id}'. Expected one of: {known}"])


def _format_error(step: StepId, error: Dict[str, Any]) -> str:
    loc = [str(part) for part in error.get("loc", ())]
    # discriminated unions prefix the location with the tag value
    if loc and loc[0] == step.value:
        loc = loc[1:]
    path = ".".join(loc) or "payload"
    return f"{path}: {error.get('msg', 'invalid value')}"


def decode_step_payload(step_id: str, raw: Any) -> StepPayload:
    """
    Decode a raw step payload into its typed variant.

    Raises:
        ValidationError: with one entry per failing field
    """
    step = parse_step_id(step_id)
    if isinstance(raw, BaseModel):
        raw = raw.model_dump()
    if not isinstance(raw, Mapping):
        raise ValidationError(["payload: must be an object"])

    data = dict(raw)
    data["step_id"] = step.value
    try:
        return _step_payload_adapter.validate_python(data)
    except PydanticValidationError as e:
        raise ValidationError([_format_error(step, err) for err in e.errors()])


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

class OnboardingSessionState(BaseModel):
    """Domain view of a session as the state machine sees it."""
    id: str
    hotel_id: str
    owner_id: str
    status: SessionStatus = SessionStatus.ACTIVE
    draft: Dict[str, StepPayload] = Field(default_factory=dict)
    completed_steps: List[str] = Field(default_factory=list)
    quality_score: float = 0.0
    version: int = 0
    created_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def effective_status(self, now: datetime) -> SessionStatus:
        if self.status == SessionStatus.ACTIVE and self.is_expired(now):
            return SessionStatus.ABANDONED
        return self.status


# ---------------------------------------------------------------------------
# API request / response schemas
# ---------------------------------------------------------------------------

class CreateSessionRequest(BaseModel):
    hotel_id: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)


class SessionSummary(BaseModel):
    session_id: str
    hotel_id: str
    owner_id: str
    status: SessionStatus
    expires_at: datetime


class StepValidationResponse(BaseModel):
    is_valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class ValidateStepRequest(BaseModel):
    payload: Dict[str, Any] = Field(default_factory=dict)
    validate_dependencies: bool = False
    draft: Optional[Dict[str, Dict[str, Any]]] = None


class StepUpdateResponse(BaseModel):
    session_id: str
    step_id: StepId
    quality_score: float
    breakdown: QualityScoreBreakdown
    warnings: List[str] = Field(default_factory=list)


class SessionStatusResponse(BaseModel):
    session: SessionSummary
    draft: Dict[str, StepPayload] = Field(default_factory=dict)
    completed_steps: List[str] = Field(default_factory=list)
    remaining_required_steps: List[str] = Field(default_factory=list)
    completion_percentage: float = 0.0
    quality_score: float = 0.0
    missing_info: List[MissingInformation] = Field(default_factory=list)
    recommendations: List[Recommendation] = Field(default_factory=list)
    room_amenities: Dict[str, AmenityInheritance] = Field(default_factory=dict)


class CompletionResponse(BaseModel):
    session_id: str
    hotel_id: str
    status: SessionStatus
    quality_score: float
    already_completed: bool = False


class SweepResponse(BaseModel):
    abandoned_count: int
    message: str


class AnalyzedImage(BaseModel):
    filename: str
    record: ImageRecord
    analysis: QualityCheckResult


class ImageAnalysisResponse(BaseModel):
    images: List[AnalyzedImage] = Field(default_factory=list)
    passed_count: int = 0
    failed_count: int = 0
