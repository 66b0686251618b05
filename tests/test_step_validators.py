"""Unit tests for step payload decoding and per-step validation."""

import pytest
from app.core.exceptions import ValidationError
from app.schemas.onboarding import AmenitiesPayload, decode_step_payload
from app.services.quality_engine.step_validators import StepValidator
from tests.payloads import (
    amenities_payload,
    business_features_payload,
    image,
    images_payload,
    property_info_payload,
    room,
    rooms_payload,
)


@pytest.fixture
def validator(config, amenity_validator):
    return StepValidator(config, amenity_validator)


def check(validator, step_id, raw, **kwargs):
    return validator.validate(decode_step_payload(step_id, raw), **kwargs)


class TestDecodeStepPayload:

    def test_decodes_tagged_variant(self):
        payload = decode_step_payload("amenities", amenities_payload(["wifi"]))
        assert isinstance(payload, AmenitiesPayload)
        assert payload.step_id == "amenities"

    def test_unknown_step(self):
        with pytest.raises(ValidationError) as exc:
            decode_step_payload("spa-menu", {})
        assert "Unknown step 'spa-menu'" in exc.value.errors[0]

    def test_field_errors_are_enumerated(self):
        with pytest.raises(ValidationError) as exc:
            decode_step_payload("amenities", {"selected_amenities": ["wifi"]})
        assert exc.value.errors == ["property_type: Field required"]

    def test_nested_field_path(self):
        with pytest.raises(ValidationError) as exc:
            decode_step_payload("images", {"images": [{"id": "x", "category": "attic", "url": "u"}]})
        assert exc.value.errors[0].startswith("images.0.category:")

    def test_non_object_payload(self):
        with pytest.raises(ValidationError):
            decode_step_payload("rooms", ["not", "an", "object"])


class TestAmenitiesStep:

    def test_empty_selection_is_structural_error(self, validator):
        result = check(validator, "amenities", amenities_payload([]))
        assert result.is_valid is False
        assert result.errors == ["selected_amenities: at least one amenity must be selected"]

    def test_rule_errors_are_merged(self, validator):
        result = check(validator, "amenities", amenities_payload(["ev-charging"]))
        assert result.is_valid is False
        assert '"EV Charging" requires "Parking" to be selected' in result.errors

    def test_valid_selection(self, validator):
        assert check(validator, "amenities", amenities_payload()).is_valid is True


class TestImagesStep:

    def test_at_least_one_image(self, validator):
        result = check(validator, "images", images_payload([]))
        assert result.is_valid is False

    def test_missing_categories_warn(self, validator):
        result = check(validator, "images", images_payload([image("a", "exterior")]))
        assert result.is_valid is True
        assert "Consider adding lobby images for better presentation" in result.warnings
        assert "Consider adding rooms images for better presentation" in result.warnings

    def test_low_scores_warn(self, validator):
        result = check(validator, "images", images_payload([image("dark", "exterior", score=55)]))
        assert result.is_valid is True
        assert any("dark" in w and "55" in w for w in result.warnings)


class TestPropertyInfoStep:

    def test_missing_description_is_hard_error(self, validator):
        raw = property_info_payload()
        del raw["description"]
        result = check(validator, "property-info", raw)
        assert result.is_valid is False
        assert "description: required field missing" in result.errors

    def test_short_description_only_warns(self, validator):
        result = check(validator, "property-info", property_info_payload("Nice hotel"))
        assert result.is_valid is True
        assert "description: required field missing" not in result.errors
        assert any("shorter than 50" in w for w in result.warnings)

    def test_missing_policies_is_hard_error(self, validator):
        result = check(validator, "property-info", property_info_payload(with_policies=False))
        assert result.is_valid is False
        assert "policies: required field missing" in result.errors

    def test_missing_location_warns(self, validator):
        result = check(validator, "property-info", property_info_payload(with_location=False))
        assert result.is_valid is True
        assert result.warnings


class TestRoomsStep:

    def test_empty_rooms_rejected(self, validator):
        result = check(validator, "rooms", rooms_payload([]))
        assert result.is_valid is False
        assert result.errors == ["rooms: at least one room type is required"]

    def test_room_requires_name_and_occupancy(self, validator):
        result = check(validator, "rooms", rooms_payload([room(name="  ", occupancy=0)]))
        assert result.is_valid is False
        assert "rooms.0.name: room name is required" in result.errors
        assert "rooms.0.occupancy: must be at least 1" in result.errors

    def test_room_without_images_warns(self, validator):
        result = check(validator, "rooms", rooms_payload([room(image_count=0)]))
        assert result.is_valid is True
        assert "Consider adding images for Deluxe King" in result.warnings

    def test_dependency_check_only_when_requested(self, validator):
        draft = {"amenities": decode_step_payload("amenities", amenities_payload(["wifi"]))}
        raw = rooms_payload([room(amenities=["wifi", "mini-bar"])])

        without = check(validator, "rooms", raw, draft=draft)
        assert not any("Mini Bar" in w for w in without.warnings)

        with_deps = check(validator, "rooms", raw, validate_dependencies=True, draft=draft)
        assert with_deps.is_valid is True
        assert with_deps.errors == []
        assert any('"Mini Bar"' in w for w in with_deps.warnings)

    def test_removing_an_amenity_the_room_does_not_inherit_warns(self, validator):
        draft = {"amenities": decode_step_payload("amenities", amenities_payload(["wifi", "restaurant"]))}
        raw = rooms_payload([room(overrides=[
            {"amenity_id": "wifi", "action": "remove"},
            {"amenity_id": "restaurant", "action": "remove"},
        ])])

        result = check(validator, "rooms", raw, validate_dependencies=True, draft=draft)
        assert result.is_valid is True
        assert any('removes amenity "Restaurant"' in w for w in result.warnings)
        assert not any('removes amenity "Free WiFi"' in w for w in result.warnings)

    def test_unknown_override_action_is_rejected(self):
        with pytest.raises(ValidationError):
            decode_step_payload("rooms", rooms_payload([room(overrides=[{"amenity_id": "wifi", "action": "swap"}])]))

    def test_validation_is_pure(self, validator):
        payload = decode_step_payload("rooms", rooms_payload([room(amenities=["spa"])]))
        draft = {"amenities": decode_step_payload("amenities", amenities_payload(["wifi"]))}
        before = (payload.model_dump(), draft["amenities"].model_dump())
        validator.validate(payload, validate_dependencies=True, draft=draft)
        assert (payload.model_dump(), draft["amenities"].model_dump()) == before


class TestBusinessFeaturesStep:

    def test_nothing_provided_is_valid(self, validator):
        result = check(validator, "business-features", {})
        assert result.is_valid is True
        assert result.errors == []

    def test_complete_features(self, validator):
        result = check(validator, "business-features", business_features_payload())
        assert result.is_valid is True
        assert result.warnings == []

    def test_meeting_room_needs_name_and_capacity(self, validator):
        result = check(validator, "business-features", {"meeting_rooms": [{"id": "m1", "name": "Board"}]})
        assert result.is_valid is False
        assert result.errors == ["meeting_rooms.0: meeting rooms must have name and capacity"]

    def test_work_space_needs_name(self, validator):
        result = check(validator, "business-features", {"work_spaces": [{"id": "w1"}]})
        assert result.is_valid is False

    def test_connectivity_without_wifi_speed_warns(self, validator):
        result = check(validator, "business-features", {"connectivity": {"wired_internet": True}})
        assert result.is_valid is True
        assert result.warnings == ["Consider providing WiFi speed information for business travelers"]
