from sqlalchemy import Column, Integer, String, Float, DateTime, Enum, JSON
import enum
from app.database import Base, TimestampMixin


class SessionStatus(str, enum.Enum):
    """Lifecycle of an onboarding session. COMPLETED and ABANDONED are terminal."""
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    ABANDONED = "ABANDONED"


class OnboardingSession(Base, TimestampMixin):
    """
    Persisted onboarding wizard session.

    `draft` holds one JSON document per step, keyed by step id.
    `quality_score` is a cache; it can always be recomputed from `draft`.
    `version` is bumped on every write and guards compare-and-swap updates.
    """
    __tablename__ = "onboarding_session"

    id = Column(String(64), primary_key=True)
    hotel_id = Column(String, nullable=False, index=True)
    owner_id = Column(String, nullable=False, index=True)
    status = Column(Enum(SessionStatus), nullable=False, default=SessionStatus.ACTIVE, index=True)
    draft = Column(JSON, nullable=False, default=dict)
    completed_steps = Column(JSON, nullable=False, default=list)
    quality_score = Column(Float, nullable=False, default=0.0)
    version = Column(Integer, nullable=False, default=0)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)
