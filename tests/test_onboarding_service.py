"""Tests for the onboarding session state machine."""

from concurrent.futures import ThreadPoolExecutor
import pytest
from app.core.exceptions import (
    ConflictError,
    ExpiredError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from app.crud.onboarding import InMemorySessionStore
from app.models.onboarding import SessionStatus
from app.services.onboarding import OnboardingService
from tests.payloads import (
    amenities_payload,
    business_features_payload,
    complete_draft,
    images_payload,
    property_info_payload,
    room,
    rooms_payload,
)


def fill_required_steps(service, session_id):
    for step_id, payload in complete_draft().items():
        service.update_step(session_id, step_id, payload)


class FlakyStore(InMemorySessionStore):
    """Loses the first `failures` compare-and-swap races."""

    def __init__(self, failures):
        super().__init__()
        self.failures = failures

    def compare_and_swap(self, session, expected_version):
        if self.failures:
            self.failures -= 1
            return False
        return super().compare_and_swap(session, expected_version)


class ExplodingPublisher:
    def publish(self, event):
        raise RuntimeError("queue unavailable")


class TestCreateSession:

    def test_create(self, service, clock):
        summary = service.create_session("hotel-1", "owner-1")
        assert summary.status == SessionStatus.ACTIVE
        assert summary.hotel_id == "hotel-1"
        assert (summary.expires_at - clock.now).total_seconds() == 168 * 3600

    def test_blank_ids_rejected(self, service):
        with pytest.raises(ValidationError) as exc:
            service.create_session(" ", "")
        assert len(exc.value.errors) == 2


class TestUpdateStep:

    def test_update_marks_step_complete(self, service, store):
        session_id = service.create_session("hotel-1", "owner-1").session_id
        response = service.update_step(session_id, "amenities", amenities_payload())
        stored = store.load(session_id)
        assert stored.completed_steps == ["amenities"]
        assert stored.quality_score == response.quality_score
        assert response.breakdown.content_completeness.factors["amenities"] == 100

    def test_unknown_session(self, service):
        with pytest.raises(NotFoundError):
            service.update_step("missing", "amenities", amenities_payload())

    def test_unknown_session_wins_over_payload_errors(self, service):
        with pytest.raises(NotFoundError):
            service.update_step("missing", "rooms", {"rooms": "not a list"})
        with pytest.raises(NotFoundError):
            service.update_step("missing", "pool-party", {})

    def test_abandoned_session_wins_over_payload_errors(self, service):
        session_id = service.create_session("hotel-1", "owner-1").session_id
        service.abandon(session_id)
        with pytest.raises(InvalidStateError):
            service.update_step(session_id, "rooms", {"rooms": "not a list"})

    def test_repeated_submission_is_applied_once(self, service, store):
        session_id = service.create_session("hotel-1", "owner-1").session_id
        scores = [service.update_step(session_id, "images", images_payload()).quality_score for _ in range(3)]
        stored = store.load(session_id)
        assert len(set(scores)) == 1
        assert stored.version == 1
        assert len(stored.draft["images"].images) == 6

    def test_concurrent_identical_submissions_converge(self, service, store):
        session_id = service.create_session("hotel-1", "owner-1").session_id
        with ThreadPoolExecutor(max_workers=5) as executor:
            futures = [
                executor.submit(service.update_step, session_id, "amenities", amenities_payload(["wifi"]))
                for _ in range(5)
            ]
            responses = [f.result() for f in futures]
        assert len(responses) == 5
        assert store.load(session_id).draft["amenities"].selected_amenities == ["wifi"]

    def test_concurrent_different_steps_are_not_lost(self, service, store):
        session_id = service.create_session("hotel-1", "owner-1").session_id
        with ThreadPoolExecutor(max_workers=4) as executor:
            futures = [
                executor.submit(service.update_step, session_id, step_id, payload)
                for step_id, payload in complete_draft().items()
            ]
            for f in futures:
                f.result()
        stored = store.load(session_id)
        assert sorted(stored.completed_steps) == ["amenities", "images", "property-info", "rooms"]
        assert stored.version == 4

    def test_empty_rooms_rejected_without_write(self, service, store):
        session_id = service.create_session("hotel-1", "owner-1").session_id
        with pytest.raises(ValidationError) as exc:
            service.update_step(session_id, "rooms", rooms_payload([]))
        assert "rooms: at least one room type is required" in exc.value.errors
        stored = store.load(session_id)
        assert "rooms" not in stored.completed_steps
        assert "rooms" not in stored.draft
        assert stored.version == 0

    def test_invalid_update_keeps_previous_value(self, service, store):
        session_id = service.create_session("hotel-1", "owner-1").session_id
        service.update_step(session_id, "amenities", amenities_payload(["wifi"]))
        with pytest.raises(ValidationError):
            service.update_step(session_id, "amenities", amenities_payload(["ev-charging"]))
        assert store.load(session_id).draft["amenities"].selected_amenities == ["wifi"]

    def test_warnings_are_returned(self, service):
        session_id = service.create_session("hotel-1", "owner-1").session_id
        response = service.update_step(session_id, "property-info", property_info_payload("Short text"))
        assert any("shorter than" in w for w in response.warnings)

    def test_dependency_warnings(self, service):
        session_id = service.create_session("hotel-1", "owner-1").session_id
        service.update_step(session_id, "amenities", amenities_payload(["wifi"]))
        raw = rooms_payload()
        raw["rooms"][0]["amenities"] = ["mini-bar"]
        response = service.update_step(session_id, "rooms", raw, validate_dependencies=True)
        assert any("Mini Bar" in w for w in response.warnings)

    def test_expired_session_rejects_updates(self, service, clock):
        session_id = service.create_session("hotel-1", "owner-1").session_id
        clock.advance(hours=169)
        with pytest.raises(ExpiredError):
            service.update_step(session_id, "amenities", amenities_payload())

    def test_cas_retry_recovers(self, catalog, config, clock):
        service = OnboardingService(FlakyStore(failures=2), catalog, config, clock=clock)
        session_id = service.create_session("hotel-1", "owner-1").session_id
        service.update_step(session_id, "amenities", amenities_payload())
        assert service.store.load(session_id).version == 1

    def test_cas_retries_exhausted(self, catalog, config, clock):
        service = OnboardingService(FlakyStore(failures=100), catalog, config, clock=clock)
        session_id = service.create_session("hotel-1", "owner-1").session_id
        with pytest.raises(ConflictError):
            service.update_step(session_id, "amenities", amenities_payload())


class TestValidateStep:

    def test_does_not_need_a_session(self, service):
        result = service.validate_step("amenities", amenities_payload(["ev-charging"]))
        assert result.is_valid is False

    def test_decode_errors_are_reported(self, service):
        result = service.validate_step("amenities", {"selected_amenities": ["wifi"]})
        assert result.is_valid is False
        assert result.errors == ["property_type: Field required"]

    def test_raw_draft_snapshot(self, service):
        raw = rooms_payload()
        raw["rooms"][0]["amenities"] = ["spa"]
        result = service.validate_step(
            "rooms", raw, validate_dependencies=True, draft={"amenities": amenities_payload(["wifi"])}
        )
        assert result.is_valid is True
        assert any("Spa Services" in w for w in result.warnings)


class TestGetStatus:

    def test_progress(self, service):
        session_id = service.create_session("hotel-1", "owner-1").session_id
        service.update_step(session_id, "amenities", amenities_payload())
        status = service.get_status(session_id)
        assert status.completed_steps == ["amenities"]
        assert status.remaining_required_steps == ["images", "property-info", "rooms"]
        assert status.completion_percentage == 20.0
        assert status.recommendations
        assert {m.category for m in status.missing_info} >= {"Images", "Policies"}

    def test_room_amenities_include_inherited(self, service):
        session_id = service.create_session("hotel-1", "owner-1").session_id
        service.update_step(session_id, "amenities", amenities_payload(["wifi", "parking", "restaurant"]))
        service.update_step(session_id, "rooms", rooms_payload([
            room("deluxe", amenities=["mini-bar"], overrides=[{"amenity_id": "parking", "action": "remove"}]),
        ]))
        inheritance = service.get_status(session_id).room_amenities["deluxe"]
        assert inheritance.inherited == ["wifi", "parking"]
        assert inheritance.final == ["wifi", "mini-bar"]

    def test_no_rooms_no_room_amenities(self, service):
        session_id = service.create_session("hotel-1", "owner-1").session_id
        assert service.get_status(session_id).room_amenities == {}

    def test_expired_session_reads_as_abandoned(self, service, clock):
        session_id = service.create_session("hotel-1", "owner-1").session_id
        clock.advance(days=8)
        assert service.get_status(session_id).session.status == SessionStatus.ABANDONED

    def test_score_is_stable(self, service):
        session_id = service.create_session("hotel-1", "owner-1").session_id
        fill_required_steps(service, session_id)
        assert service.get_status(session_id).quality_score == service.get_status(session_id).quality_score == 100


class TestComplete:

    def test_missing_steps_leave_session_active(self, service, store, publisher):
        session_id = service.create_session("hotel-1", "owner-1").session_id
        service.update_step(session_id, "amenities", amenities_payload())
        with pytest.raises(ValidationError) as exc:
            service.complete(session_id)
        assert exc.value.missing_steps == ["images", "property-info", "rooms"]
        assert store.load(session_id).status == SessionStatus.ACTIVE
        assert publisher.events == []

    def test_business_features_are_optional(self, service):
        session_id = service.create_session("hotel-1", "owner-1").session_id
        fill_required_steps(service, session_id)
        assert service.complete(session_id).status == SessionStatus.COMPLETED

    def test_complete_publishes_once(self, service, publisher):
        session_id = service.create_session("hotel-1", "owner-1").session_id
        fill_required_steps(service, session_id)
        service.update_step(session_id, "business-features", business_features_payload())

        first = service.complete(session_id)
        second = service.complete(session_id)
        assert first.quality_score == 100
        assert first.already_completed is False
        assert second.already_completed is True
        assert second.quality_score == first.quality_score
        assert len(publisher.events) == 1
        assert publisher.events[0].hotel_id == "hotel-1"

    def test_concurrent_completion_transitions_once(self, service, publisher):
        session_id = service.create_session("hotel-1", "owner-1").session_id
        fill_required_steps(service, session_id)
        with ThreadPoolExecutor(max_workers=5) as executor:
            responses = list(executor.map(lambda _: service.complete(session_id), range(5)))
        assert all(r.status == SessionStatus.COMPLETED for r in responses)
        assert len([r for r in responses if not r.already_completed]) == 1
        assert len(publisher.events) == 1

    def test_completed_session_rejects_updates(self, service):
        session_id = service.create_session("hotel-1", "owner-1").session_id
        fill_required_steps(service, session_id)
        service.complete(session_id)
        with pytest.raises(InvalidStateError):
            service.update_step(session_id, "amenities", amenities_payload(["wifi"]))

    def test_publisher_failure_keeps_completion(self, store, catalog, config, clock):
        service = OnboardingService(store, catalog, config, publisher=ExplodingPublisher(), clock=clock)
        session_id = service.create_session("hotel-1", "owner-1").session_id
        fill_required_steps(service, session_id)
        assert service.complete(session_id).status == SessionStatus.COMPLETED
        assert store.load(session_id).status == SessionStatus.COMPLETED

    def test_expired_session_cannot_complete(self, service, clock):
        session_id = service.create_session("hotel-1", "owner-1").session_id
        fill_required_steps(service, session_id)
        clock.advance(hours=200)
        with pytest.raises(ExpiredError):
            service.complete(session_id)


class TestAbandonAndSweep:

    def test_abandon(self, service):
        session_id = service.create_session("hotel-1", "owner-1").session_id
        assert service.abandon(session_id).status == SessionStatus.ABANDONED
        with pytest.raises(InvalidStateError):
            service.abandon(session_id)
        with pytest.raises(InvalidStateError):
            service.complete(session_id)

    def test_sweep_abandons_only_expired_sessions(self, service, store, clock):
        old = service.create_session("hotel-1", "owner-1").session_id
        clock.advance(hours=100)
        fresh = service.create_session("hotel-2", "owner-2").session_id
        clock.advance(hours=100)

        assert service.sweep_expired() == 1
        assert store.load(old).status == SessionStatus.ABANDONED
        assert store.load(fresh).status == SessionStatus.ACTIVE
        assert service.sweep_expired() == 0


class TestSessionLocks:

    def test_failed_lookups_leave_no_locks(self, service):
        for i in range(500):
            with pytest.raises(NotFoundError):
                service.complete(f"missing-{i}")
        assert service._locks == {}

    def test_locks_released_after_lifecycle(self, service):
        session_id = service.create_session("hotel-1", "owner-1").session_id
        fill_required_steps(service, session_id)
        service.complete(session_id)
        service.sweep_expired()
        assert service._locks == {}

    def test_locks_released_after_concurrent_updates(self, service):
        session_ids = [service.create_session(f"hotel-{i}", "owner-1").session_id for i in range(10)]
        with ThreadPoolExecutor(max_workers=8) as executor:
            futures = [
                executor.submit(service.update_step, session_id, "amenities", amenities_payload())
                for session_id in session_ids
                for _ in range(3)
            ]
            for future in futures:
                future.result()
        assert service._locks == {}
