from fastapi import APIRouter, Depends, HTTPException, status, Header
from app.core.config import settings
from app.core.logging_config import logger
from app.dependencies import get_onboarding_service
from app.schemas.onboarding import SweepResponse
from app.services.onboarding import OnboardingService

router = APIRouter()


def verify_admin_key(x_admin_key: str = Header(...)):
    """Verify the admin API key from the request header."""
    if not settings.ADMIN_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin API is disabled"
        )
    if x_admin_key != settings.ADMIN_API_KEY:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin API key"
        )


@router.post("/sessions/sweep", response_model=SweepResponse)
def sweep_expired_sessions(
    service: OnboardingService = Depends(get_onboarding_service),
    _: None = Depends(verify_admin_key)
):
    """
    Mark every expired ACTIVE session as ABANDONED.

    Protected by x-admin-key header. Meant to be called by an external
    scheduler.
    """
    count = service.sweep_expired()
    logger.info(f"Admin sweep abandoned {count} sessions")
    return SweepResponse(abandoned_count=count, message=f"Abandoned {count} expired session(s)")
