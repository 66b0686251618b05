from typing import Optional, Tuple
from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./hotel_onboarding.db"
    REDIS_URL: Optional[str] = None
    COMPLETION_QUEUE_NAME: str = "onboarding-events"

    ADMIN_API_KEY: Optional[str] = None
    ENVIRONMENT: str = "development"  # "development" or "production"

    SESSION_TTL_HOURS: int = 24 * 7

    MIN_IMAGE_WIDTH: int = 1920
    MIN_IMAGE_HEIGHT: int = 1080
    BLUR_THRESHOLD: float = 100.0
    MIN_DESCRIPTION_LENGTH: int = 50
    IMAGE_ANALYSIS_WORKERS: int = 4
    CAS_MAX_RETRIES: int = 5

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )


class EngineConfig(BaseModel):
    """
    Thresholds and policy knobs for the onboarding quality engine.

    Built once at startup and passed explicitly to every engine component.
    Nothing inside the engine reads environment variables.
    """
    model_config = ConfigDict(frozen=True)

    # Image analysis
    min_image_width: int = 1920
    min_image_height: int = 1080
    acceptable_aspect_ratios: Tuple[float, ...] = (16 / 9, 4 / 3, 3 / 2, 1.0)
    aspect_ratio_tolerance: float = 0.1
    min_brightness: float = 50.0
    max_brightness: float = 200.0
    min_contrast: float = 30.0
    blur_threshold: float = 100.0
    image_analysis_workers: int = 4

    # Scoring
    high_quality_image_score: float = 80.0
    professional_image_score: float = 85.0
    min_image_count: int = 5
    min_description_length: int = 50
    factor_good_threshold: float = 80.0

    # Session lifecycle
    required_steps: Tuple[str, ...] = ("amenities", "images", "property-info", "rooms")
    optional_steps: Tuple[str, ...] = ("business-features",)
    session_ttl_hours: int = 24 * 7
    cas_max_retries: int = 5

    @property
    def known_steps(self) -> Tuple[str, ...]:
        return self.required_steps + self.optional_steps

    @classmethod
    def from_settings(cls, settings: "Settings") -> "EngineConfig":
        return cls(
            min_image_width=settings.MIN_IMAGE_WIDTH,
            min_image_height=settings.MIN_IMAGE_HEIGHT,
            blur_threshold=settings.BLUR_THRESHOLD,
            image_analysis_workers=settings.IMAGE_ANALYSIS_WORKERS,
            min_description_length=settings.MIN_DESCRIPTION_LENGTH,
            session_ttl_hours=settings.SESSION_TTL_HOURS,
            cas_max_retries=settings.CAS_MAX_RETRIES,
        )


settings = Settings()
