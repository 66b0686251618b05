from app.services.onboarding import OnboardingService
from app.services.image_intake import ImageIntakeService
from .integration import build_publisher

__all__ = ["OnboardingService", "ImageIntakeService", "build_publisher"]
