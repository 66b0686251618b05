import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional
from app.core.config import EngineConfig
from app.core.exceptions import (
    ConflictError,
    ExpiredError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from app.core.logging_config import logger
from app.crud.onboarding import SessionStore
from app.models.onboarding import SessionStatus
from app.schemas.amenity import AmenityInheritance, ValidationResult
from app.schemas.onboarding import (
    CompletionResponse,
    OnboardingSessionState,
    SessionStatusResponse,
    SessionSummary,
    StepPayload,
    StepId,
    StepUpdateResponse,
    decode_step_payload,
    parse_step_id,
)
from app.services.integration import (
    CompletionPublisher,
    NullCompletionPublisher,
    OnboardingCompletedEvent,
)
from app.services.quality_engine import (
    AmenityCatalog,
    AmenityRuleValidator,
    QualityScoreAggregator,
    StepValidator,
    merge_step_payload,
)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class _SessionLock:
    """Per-session mutex plus the number of callers holding or waiting on it."""

    def __init__(self):
        self.lock = threading.Lock()
        self.holders = 0


class OnboardingService:
    """
    Onboarding session state machine.

    ACTIVE -> COMPLETED and ACTIVE -> ABANDONED are the only transitions.
    Every mutation is a read-validate-merge-write unit, serialized per session
    by an in-process lock and guarded across processes by compare-and-swap on
    the session version.
    """

    def __init__(
        self,
        store: SessionStore,
        catalog: AmenityCatalog,
        config: EngineConfig,
        publisher: Optional[CompletionPublisher] = None,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.config = config
        self.amenity_validator = AmenityRuleValidator(catalog.list_amenities())
        self.step_validator = StepValidator(config, self.amenity_validator)
        self.aggregator = QualityScoreAggregator(config)
        self.publisher = publisher or NullCompletionPublisher()
        self.clock = clock or utc_now

        self._locks: Dict[str, _SessionLock] = {}
        self._locks_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _session_lock(self, session_id: str) -> Iterator[None]:
        # entries live only while a caller holds or waits for them
        with self._locks_guard:
            entry = self._locks.get(session_id)
            if entry is None:
                entry = self._locks[session_id] = _SessionLock()
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._locks[session_id]

    def _load(self, session_id: str) -> OnboardingSessionState:
        session = self.store.load(session_id)
        if session is None:
            raise NotFoundError(f"Session {session_id} not found")
        return session

    def _load_active(self, session_id: str, now: datetime) -> OnboardingSessionState:
        session = self._load(session_id)
        if session.status != SessionStatus.ACTIVE:
            logger.warning(f"Rejected mutation of session {session_id} in state {session.status.value}")
            raise InvalidStateError(f"Session {session_id} is {session.status.value}")
        if session.is_expired(now):
            logger.warning(f"Rejected mutation of expired session {session_id}")
            raise ExpiredError(f"Session {session_id} expired at {session.expires_at.isoformat()}")
        return session

    def _summary(self, session: OnboardingSessionState, now: datetime) -> SessionSummary:
        return SessionSummary(
            session_id=session.id,
            hotel_id=session.hotel_id,
            owner_id=session.owner_id,
            status=session.effective_status(now),
            expires_at=session.expires_at,
        )

    def _remaining_required(self, session: OnboardingSessionState) -> List[str]:
        return [step for step in self.config.required_steps if step not in session.completed_steps]

    def _room_amenities(self, draft: Mapping[str, StepPayload]) -> Dict[str, AmenityInheritance]:
        rooms = draft.get(StepId.ROOMS.value)
        if rooms is None:
            return {}
        amenities = draft.get(StepId.AMENITIES.value)
        selection = amenities.selected_amenities if amenities is not None else []
        return {
            room.id: self.amenity_validator.inherit_for_room(selection, room.amenities, room.amenity_overrides)
            for room in rooms.rooms
        }

    def _decode_draft(self, draft: Optional[Mapping[str, Any]]) -> Dict[str, StepPayload]:
        decoded = {}
        for step, raw in (draft or {}).items():
            try:
                decoded[step] = decode_step_payload(step, raw)
            except ValidationError as e:
                raise ValidationError([f"draft.{step}.{error}" for error in e.errors])
        return decoded

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create_session(self, hotel_id: str, owner_id: str) -> SessionSummary:
        """
        Start a new onboarding session.

        Args:
            hotel_id: Hotel being onboarded
            owner_id: Owner running the wizard

        Returns:
            SessionSummary with status ACTIVE and the expiry time

        Raises:
            ValidationError: If an identifier is blank
        """
        errors = []
        if not hotel_id or not hotel_id.strip():
            errors.append("hotel_id: must not be empty")
        if not owner_id or not owner_id.strip():
            errors.append("owner_id: must not be empty")
        if errors:
            raise ValidationError(errors)

        now = self.clock()
        breakdown = self.aggregator.compute({})
        session = OnboardingSessionState(
            id=uuid.uuid4().hex,
            hotel_id=hotel_id,
            owner_id=owner_id,
            status=SessionStatus.ACTIVE,
            quality_score=breakdown.overall,
            version=0,
            created_at=now,
            expires_at=now + timedelta(hours=self.config.session_ttl_hours),
        )
        self.store.save(session)
        logger.info(f"Created onboarding session {session.id} for hotel {hotel_id}")
        return self._summary(session, now)

    def validate_step(
        self,
        step_id: str,
        payload: Any,
        validate_dependencies: bool = False,
        draft: Optional[Mapping[str, Any]] = None,
    ) -> ValidationResult:
        """
        Validate a step payload without touching any session.

        Decode failures are reported as errors in the result rather than
        raised, so the caller always gets {is_valid, errors, warnings}.
        """
        try:
            decoded = decode_step_payload(step_id, payload)
            snapshot = self._decode_draft(draft)
        except ValidationError as e:
            return ValidationResult(is_valid=False, errors=e.errors, warnings=e.warnings)
        return self.step_validator.validate(decoded, validate_dependencies, snapshot)

    def update_step(
        self,
        session_id: str,
        step_id: str,
        payload: Any,
        validate_dependencies: bool = False,
    ) -> StepUpdateResponse:
        """
        Validate a step payload and merge it into the session draft.

        Args:
            session_id: Session to update
            step_id: Wizard step
            payload: Raw payload (mapping) or an already decoded step payload
            validate_dependencies: Also run cross-step checks against the draft

        Returns:
            StepUpdateResponse with the recomputed score and any warnings

        Raises:
            NotFoundError, InvalidStateError, ExpiredError, ValidationError,
            ConflictError (optimistic retries exhausted)
        """
        with self._session_lock(session_id):
            decoded = None
            for _ in range(self.config.cas_max_retries):
                now = self.clock()
                session = self._load_active(session_id, now)
                if decoded is None:
                    step = parse_step_id(step_id)
                    decoded = decode_step_payload(step.value, payload)

                result = self.step_validator.validate(decoded, validate_dependencies, session.draft)
                if not result.is_valid:
                    logger.warning(f"Step {step.value} rejected for session {session_id}: {result.errors}")
                    raise ValidationError(result.errors, result.warnings)

                current = session.draft.get(step.value)
                merged = merge_step_payload(current, decoded)
                unchanged = current is not None and merged.model_dump() == current.model_dump()
                if unchanged and step.value in session.completed_steps:
                    # already applied; nothing to write
                    return StepUpdateResponse(
                        session_id=session.id,
                        step_id=step,
                        quality_score=session.quality_score,
                        breakdown=self.aggregator.compute(session.draft),
                        warnings=result.warnings,
                    )

                draft = dict(session.draft)
                draft[step.value] = merged
                completed_steps = list(session.completed_steps)
                if step.value not in completed_steps:
                    completed_steps.append(step.value)
                breakdown = self.aggregator.compute(draft)

                updated = session.model_copy(update={
                    "draft": draft,
                    "completed_steps": completed_steps,
                    "quality_score": breakdown.overall,
                    "version": session.version + 1,
                })
                if self.store.compare_and_swap(updated, session.version):
                    logger.info(
                        f"Session {session_id} step {step.value} saved "
                        f"(version {updated.version}, score {breakdown.overall:g})"
                    )
                    return StepUpdateResponse(
                        session_id=session.id,
                        step_id=step,
                        quality_score=breakdown.overall,
                        breakdown=breakdown,
                        warnings=result.warnings,
                    )
                logger.debug(f"Version conflict on session {session_id}, retrying")

        raise ConflictError(f"Session {session_id} was modified concurrently, please retry")

    def get_status(self, session_id: str) -> SessionStatusResponse:
        """
        Session, draft, cached score, progress, missing information and
        recommendations. Expired ACTIVE sessions are reported as ABANDONED.
        """
        now = self.clock()
        session = self._load(session_id)
        report = self.aggregator.report(session.draft)
        known = self.config.known_steps
        done = [step for step in known if step in session.completed_steps]

        return SessionStatusResponse(
            session=self._summary(session, now),
            draft=session.draft,
            completed_steps=list(session.completed_steps),
            remaining_required_steps=self._remaining_required(session),
            completion_percentage=round(len(done) / len(known) * 100, 2) if known else 0.0,
            quality_score=session.quality_score,
            missing_info=report.missing_information,
            recommendations=report.recommendations,
            room_amenities=self._room_amenities(session.draft),
        )

    def complete(self, session_id: str) -> CompletionResponse:
        """
        Finalize a session.

        Idempotent: completing an already COMPLETED session returns its stored
        score without side effects. The completion event is published exactly
        once, after the winning state transition.

        Raises:
            NotFoundError: Unknown session
            InvalidStateError: Session was abandoned
            ExpiredError: Session TTL elapsed
            ValidationError: Required steps missing (carries `missing_steps`)
            ConflictError: Optimistic retries exhausted
        """
        with self._session_lock(session_id):
            for _ in range(self.config.cas_max_retries):
                now = self.clock()
                session = self._load(session_id)

                if session.status == SessionStatus.COMPLETED:
                    return CompletionResponse(
                        session_id=session.id,
                        hotel_id=session.hotel_id,
                        status=session.status,
                        quality_score=session.quality_score,
                        already_completed=True,
                    )
                if session.status != SessionStatus.ACTIVE:
                    raise InvalidStateError(f"Session {session_id} is {session.status.value}")
                if session.is_expired(now):
                    logger.warning(f"Rejected completion of expired session {session_id}")
                    raise ExpiredError(f"Session {session_id} expired at {session.expires_at.isoformat()}")

                missing = self._remaining_required(session)
                if missing:
                    logger.warning(f"Completion of session {session_id} blocked, missing steps: {missing}")
                    raise ValidationError(
                        [f"Required step '{step}' is not complete" for step in missing],
                        missing_steps=missing,
                        message="Required steps are incomplete",
                    )

                score = self.aggregator.compute(session.draft).overall
                updated = session.model_copy(update={
                    "status": SessionStatus.COMPLETED,
                    "quality_score": score,
                    "version": session.version + 1,
                })
                if not self.store.compare_and_swap(updated, session.version):
                    logger.debug(f"Version conflict completing session {session_id}, retrying")
                    continue

                logger.info(f"Session {session_id} completed for hotel {session.hotel_id} with score {score:g}")
                self._publish_completion(updated, now)
                return CompletionResponse(
                    session_id=updated.id,
                    hotel_id=updated.hotel_id,
                    status=updated.status,
                    quality_score=score,
                )

        raise ConflictError(f"Session {session_id} was modified concurrently, please retry")

    def _publish_completion(self, session: OnboardingSessionState, now: datetime) -> None:
        event = OnboardingCompletedEvent(
            session_id=session.id,
            hotel_id=session.hotel_id,
            owner_id=session.owner_id,
            quality_score=session.quality_score,
            completed_at=now,
        )
        try:
            self.publisher.publish(event)
        except Exception as e:
            # the transition is committed; a lost event is reported, not rolled back
            logger.error(f"Failed to publish completion event for session {session.id}: {e}")

    def abandon(self, session_id: str) -> SessionSummary:
        """
        Move an ACTIVE session to ABANDONED.

        Raises:
            NotFoundError: Unknown session
            InvalidStateError: Session already COMPLETED or ABANDONED
        """
        with self._session_lock(session_id):
            for _ in range(self.config.cas_max_retries):
                now = self.clock()
                session = self._load(session_id)
                if session.status != SessionStatus.ACTIVE:
                    raise InvalidStateError(f"Session {session_id} is {session.status.value}")

                updated = session.model_copy(update={
                    "status": SessionStatus.ABANDONED,
                    "version": session.version + 1,
                })
                if self.store.compare_and_swap(updated, session.version):
                    logger.info(f"Session {session_id} abandoned")
                    return self._summary(updated, now)

        raise ConflictError(f"Session {session_id} was modified concurrently, please retry")

    def sweep_expired(self) -> int:
        """
        Persist ABANDONED for every ACTIVE session past its expiry.

        Returns:
            Number of sessions abandoned by this sweep
        """
        now = self.clock()
        abandoned = 0
        for candidate in self.store.list_active():
            if not candidate.is_expired(now):
                continue
            with self._session_lock(candidate.id):
                session = self.store.load(candidate.id)
                if session is None or session.status != SessionStatus.ACTIVE or not session.is_expired(now):
                    continue
                updated = session.model_copy(update={
                    "status": SessionStatus.ABANDONED,
                    "version": session.version + 1,
                })
                if self.store.compare_and_swap(updated, session.version):
                    abandoned += 1
                else:
                    logger.warning(f"Sweep skipped session {session.id} after a concurrent update")

        logger.info(f"Expiry sweep abandoned {abandoned} session(s)")
        return abandoned
