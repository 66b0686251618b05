from functools import lru_cache
from fastapi import Depends
from app.core.config import EngineConfig, settings
from app.core.logging_config import logger
from app.crud.amenity import SQLAlchemyAmenityCatalog
from app.crud.onboarding import SQLAlchemySessionStore
from app.database import SessionLocal
from app.services.image_intake import ImageIntakeService
from app.services.integration import build_publisher
from app.services.onboarding import OnboardingService
from app.services.quality_engine import AmenityCatalog, AmenityRuleValidator, default_catalog


@lru_cache
def get_engine_config() -> EngineConfig:
    return EngineConfig.from_settings(settings)


@lru_cache
def get_amenity_catalog() -> AmenityCatalog:
    """
    Amenity catalog from the database, or the built-in catalog when the
    amenity_definition table has not been seeded yet.
    """
    catalog = SQLAlchemyAmenityCatalog(SessionLocal)
    if not catalog.list_amenities():
        logger.warning("amenity_definition table is empty, using the built-in amenity catalog")
        return default_catalog()
    return catalog


@lru_cache
def get_onboarding_service() -> OnboardingService:
    """
    Process-wide onboarding service.

    Built once so that the per-session locks are shared by every request.
    """
    return OnboardingService(
        store=SQLAlchemySessionStore(SessionLocal),
        catalog=get_amenity_catalog(),
        config=get_engine_config(),
        publisher=build_publisher(settings),
    )


@lru_cache
def get_image_intake_service() -> ImageIntakeService:
    return ImageIntakeService(get_engine_config())


def get_amenity_validator(
    service: OnboardingService = Depends(get_onboarding_service),
) -> AmenityRuleValidator:
    return service.amenity_validator
