import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Protocol, Tuple
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from app.core.exceptions import ConflictError
from app.crud.base import CRUDBase
from app.models.onboarding import OnboardingSession, SessionStatus
from app.schemas.onboarding import OnboardingSessionState


class SessionStore(Protocol):
    """Persistence port for onboarding sessions."""

    def load(self, session_id: str) -> Optional[OnboardingSessionState]:
        ...

    def save(self, session: OnboardingSessionState) -> None:
        ...

    def compare_and_swap(self, session: OnboardingSessionState, expected_version: int) -> bool:
        ...

    def list_active(self) -> List[OnboardingSessionState]:
        ...


class InMemorySessionStore:
    """
    Thread-safe in-process store.

    Sessions are kept as JSON snapshots so callers can never mutate stored
    state through a shared reference.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._rows: Dict[str, Tuple[int, str]] = {}

    def load(self, session_id: str) -> Optional[OnboardingSessionState]:
        with self._lock:
            row = self._rows.get(session_id)
        if row is None:
            return None
        return OnboardingSessionState.model_validate_json(row[1])

    def save(self, session: OnboardingSessionState) -> None:
        """
        Insert a new session.

        Raises:
            ConflictError: If a session with the same id already exists
        """
        snapshot = session.model_dump_json()
        with self._lock:
            if session.id in self._rows:
                raise ConflictError(f"Session {session.id} already exists")
            self._rows[session.id] = (session.version, snapshot)

    def compare_and_swap(self, session: OnboardingSessionState, expected_version: int) -> bool:
        """Store `session` only if the stored version still equals `expected_version`."""
        snapshot = session.model_dump_json()
        with self._lock:
            row = self._rows.get(session.id)
            if row is None or row[0] != expected_version:
                return False
            self._rows[session.id] = (session.version, snapshot)
            return True

    def list_active(self) -> List[OnboardingSessionState]:
        with self._lock:
            snapshots = [snapshot for _, snapshot in self._rows.values()]
        sessions = [OnboardingSessionState.model_validate_json(s) for s in snapshots]
        return [s for s in sessions if s.status == SessionStatus.ACTIVE]


def _aware(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CRUDOnboardingSession(CRUDBase[OnboardingSession, OnboardingSessionState, OnboardingSessionState]):
    """Row mapping and versioned writes for the onboarding_session table."""

    def to_state(self, row: OnboardingSession) -> OnboardingSessionState:
        return OnboardingSessionState(
            id=row.id,
            hotel_id=row.hotel_id,
            owner_id=row.owner_id,
            status=row.status,
            draft=row.draft or {},
            completed_steps=list(row.completed_steps or []),
            quality_score=row.quality_score,
            version=row.version,
            created_at=_aware(row.created_at),
            expires_at=_aware(row.expires_at),
        )

    @staticmethod
    def to_values(session: OnboardingSessionState) -> dict:
        return {
            "hotel_id": session.hotel_id,
            "owner_id": session.owner_id,
            "status": session.status,
            "draft": {step: payload.model_dump(mode="json") for step, payload in session.draft.items()},
            "completed_steps": list(session.completed_steps),
            "quality_score": session.quality_score,
            "version": session.version,
            "expires_at": session.expires_at,
        }

    def create(self, db: Session, *, obj_in: OnboardingSessionState) -> OnboardingSession:
        db_obj = self.model(id=obj_in.id, created_at=obj_in.created_at, **self.to_values(obj_in))
        db.add(db_obj)
        db.commit()
        return db_obj

    def update_if_version(self, db: Session, session: OnboardingSessionState, expected_version: int) -> bool:
        """
        Conditional UPDATE ... WHERE id = :id AND version = :expected.

        Returns:
            True if exactly one row was written
        """
        stmt = (
            update(OnboardingSession)
            .where(
                OnboardingSession.id == session.id,
                OnboardingSession.version == expected_version,
            )
            .values(**self.to_values(session))
        )
        result = db.execute(stmt)
        db.commit()
        return result.rowcount == 1

    def get_active(self, db: Session) -> List[OnboardingSession]:
        stmt = select(OnboardingSession).where(OnboardingSession.status == SessionStatus.ACTIVE)
        return list(db.execute(stmt).scalars().all())


onboarding_session = CRUDOnboardingSession(OnboardingSession)


class SQLAlchemySessionStore:
    """Session store backed by the onboarding_session table."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def load(self, session_id: str) -> Optional[OnboardingSessionState]:
        with self.session_factory() as db:
            row = onboarding_session.get(db, session_id)
            return onboarding_session.to_state(row) if row else None

    def save(self, session: OnboardingSessionState) -> None:
        with self.session_factory() as db:
            try:
                onboarding_session.create(db, obj_in=session)
            except IntegrityError:
                db.rollback()
                raise ConflictError(f"Session {session.id} already exists")

    def compare_and_swap(self, session: OnboardingSessionState, expected_version: int) -> bool:
        with self.session_factory() as db:
            return onboarding_session.update_if_version(db, session, expected_version)

    def list_active(self) -> List[OnboardingSessionState]:
        with self.session_factory() as db:
            return [onboarding_session.to_state(row) for row in onboarding_session.get_active(db)]
