from typing import Any, Dict, List
from fastapi import APIRouter, Body, Depends, File, Form, UploadFile, status
from app.core.exceptions import OnboardingError, to_http_exception
from app.core.logging_config import logger
from app.dependencies import get_image_intake_service, get_onboarding_service
from app.schemas.onboarding import (
    CompletionResponse,
    CreateSessionRequest,
    ImageAnalysisResponse,
    ImageCategory,
    SessionStatusResponse,
    SessionSummary,
    StepUpdateResponse,
    StepValidationResponse,
    ValidateStepRequest,
)
from app.services.image_intake import ImageIntakeService, ImageUpload
from app.services.onboarding import OnboardingService

router = APIRouter()


@router.post("/sessions", response_model=SessionSummary, status_code=status.HTTP_201_CREATED)
def create_session(
    request: CreateSessionRequest,
    service: OnboardingService = Depends(get_onboarding_service)
):
    """
    Start a new onboarding session for a hotel.

    Returns:
        Session id, ACTIVE status and expiry time
    """
    try:
        return service.create_session(request.hotel_id, request.owner_id)
    except OnboardingError as e:
        raise to_http_exception(e)


@router.get("/sessions/{session_id}", response_model=SessionStatusResponse)
def get_session_status(
    session_id: str,
    service: OnboardingService = Depends(get_onboarding_service)
):
    """
    Get the draft, quality score, progress, missing information and
    recommendations for a session.
    """
    try:
        return service.get_status(session_id)
    except OnboardingError as e:
        raise to_http_exception(e)


@router.put("/sessions/{session_id}/steps/{step_id}", response_model=StepUpdateResponse)
def update_step(
    session_id: str,
    step_id: str,
    payload: Dict[str, Any] = Body(...),
    validate_dependencies: bool = False,
    service: OnboardingService = Depends(get_onboarding_service)
):
    """
    Validate a step payload and merge it into the session draft.

    Args:
        session_id: Onboarding session
        step_id: amenities, images, property-info, rooms or business-features
        payload: Step payload
        validate_dependencies: Also run cross-step checks against the stored draft

    Returns:
        Recomputed quality score, breakdown and non-blocking warnings
    """
    try:
        logger.info(f"Updating step {step_id} for session {session_id}")
        return service.update_step(session_id, step_id, payload, validate_dependencies)
    except OnboardingError as e:
        raise to_http_exception(e)


@router.post("/sessions/{session_id}/complete", response_model=CompletionResponse)
def complete_session(
    session_id: str,
    service: OnboardingService = Depends(get_onboarding_service)
):
    """
    Finalize the session once every required step is complete.
    """
    try:
        logger.info(f"Completing onboarding session {session_id}")
        return service.complete(session_id)
    except OnboardingError as e:
        raise to_http_exception(e)


@router.post("/sessions/{session_id}/abandon", response_model=SessionSummary)
def abandon_session(
    session_id: str,
    service: OnboardingService = Depends(get_onboarding_service)
):
    try:
        return service.abandon(session_id)
    except OnboardingError as e:
        raise to_http_exception(e)


@router.post("/steps/{step_id}/validate", response_model=StepValidationResponse)
def validate_step(
    step_id: str,
    request: ValidateStepRequest,
    service: OnboardingService = Depends(get_onboarding_service)
):
    """
    Real-time validation of a step payload. Nothing is persisted.
    """
    result = service.validate_step(
        step_id,
        request.payload,
        validate_dependencies=request.validate_dependencies,
        draft=request.draft,
    )
    return StepValidationResponse(is_valid=result.is_valid, errors=result.errors, warnings=result.warnings)


@router.post("/images/analyze", response_model=ImageAnalysisResponse)
async def analyze_images(
    files: List[UploadFile] = File(...),
    category: ImageCategory = Form(...),
    intake: ImageIntakeService = Depends(get_image_intake_service)
):
    """
    Analyse uploaded images and return records ready for the images step.

    Every file is scored independently; unreadable files come back with a
    zero score instead of failing the request.
    """
    uploads = []
    for file in files:
        data = await file.read()
        uploads.append(ImageUpload(filename=file.filename or "image", data=data, category=category))
    logger.info(f"Received {len(uploads)} images for analysis (category={category.value})")
    return intake.process_uploads(uploads)
