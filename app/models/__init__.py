from .amenity import AmenityDefinition
from .onboarding import OnboardingSession, SessionStatus
