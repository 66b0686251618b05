"""
Per-step validation for the onboarding wizard.

Each validator is a pure function of the decoded payload, the amenity catalog
and (for cross-step checks) a read-only draft snapshot. Hard errors block the
step; warnings are advisory.
"""

from typing import Callable, Dict, Mapping, Optional
from app.core.config import EngineConfig
from app.core.logging_config import logger
from app.schemas.amenity import OverrideAction, ValidationResult
from app.schemas.onboarding import (
    AmenitiesPayload,
    BusinessFeaturesPayload,
    ImageCategory,
    ImagesPayload,
    PropertyInfoPayload,
    RoomsPayload,
    StepId,
    StepPayload,
)
from app.schemas.quality import Severity
from app.services.quality_engine.amenity_rules import AmenityRuleValidator

REQUIRED_IMAGE_CATEGORIES = (ImageCategory.EXTERIOR, ImageCategory.LOBBY, ImageCategory.ROOMS)

Draft = Mapping[str, StepPayload]


class StepValidator:
    """Dispatches a decoded step payload to its validator."""

    def __init__(self, config: EngineConfig, amenity_validator: AmenityRuleValidator):
        self.config = config
        self.amenity_validator = amenity_validator
        self._validators: Dict[StepId, Callable[..., ValidationResult]] = {
            StepId.AMENITIES: self._validate_amenities,
            StepId.IMAGES: self._validate_images,
            StepId.PROPERTY_INFO: self._validate_property_info,
            StepId.ROOMS: self._validate_rooms,
            StepId.BUSINESS_FEATURES: self._validate_business_features,
        }

    def validate(
        self,
        payload: StepPayload,
        validate_dependencies: bool = False,
        draft: Optional[Draft] = None,
    ) -> ValidationResult:
        """
        Validate one step payload.

        Args:
            payload: Decoded step payload (its step_id selects the validator)
            validate_dependencies: Run cross-step checks against `draft`
            draft: Read-only snapshot of the other steps

        Returns:
            ValidationResult with is_valid == (no hard errors)
        """
        step = StepId(payload.step_id)
        result = self._validators[step](payload, validate_dependencies, draft or {})
        result.is_valid = not result.errors
        if result.errors:
            logger.debug(f"Step {step.value} failed validation: {result.errors}")
        return result

    def _validate_amenities(self, payload: AmenitiesPayload, validate_dependencies: bool, draft: Draft) -> ValidationResult:
        result = ValidationResult()
        if not payload.selected_amenities:
            result.errors.append("selected_amenities: at least one amenity must be selected")
            return result
        return result.merge(
            self.amenity_validator.validate(payload.selected_amenities, payload.property_type)
        )

    def _validate_images(self, payload: ImagesPayload, validate_dependencies: bool, draft: Draft) -> ValidationResult:
        result = ValidationResult()
        if not payload.images:
            result.errors.append("images: at least one image is required")
            return result

        present = {image.category for image in payload.images}
        for category in REQUIRED_IMAGE_CATEGORIES:
            if category not in present:
                result.warnings.append(f"Consider adding {category.value} images for better presentation")

        # scores were captured by the analyzer at upload time and are only read here
        for image in payload.images:
            if image.quality_score < self.config.high_quality_image_score:
                result.warnings.append(
                    f"Image {image.id} scored {image.quality_score:g}; "
                    f"images below {self.config.high_quality_image_score:g} lower your quality score"
                )
            if any(issue.severity == Severity.HIGH for issue in image.issues):
                result.warnings.append(f"Image {image.id} has high-severity quality issues")
        return result

    def _validate_property_info(self, payload: PropertyInfoPayload, validate_dependencies: bool, draft: Draft) -> ValidationResult:
        result = ValidationResult()

        if payload.description is None:
            result.errors.append("description: required field missing")
        elif len(payload.description.strip()) < self.config.min_description_length:
            result.warnings.append(
                f"Property description is shorter than {self.config.min_description_length} "
                f"characters; a longer description improves your quality score"
            )

        if payload.policies is None:
            result.errors.append("policies: required field missing")

        if payload.location_details is None:
            result.warnings.append("Adding location details helps guests find your property")
        return result

    def _validate_rooms(self, payload: RoomsPayload, validate_dependencies: bool, draft: Draft) -> ValidationResult:
        result = ValidationResult()
        if not payload.rooms:
            result.errors.append("rooms: at least one room type is required")
            return result

        for index, room in enumerate(payload.rooms):
            if not room.name.strip():
                result.errors.append(f"rooms.{index}.name: room name is required")
            if room.occupancy < 1:
                result.errors.append(f"rooms.{index}.occupancy: must be at least 1")
            if not room.images:
                result.warnings.append(f"Consider adding images for {room.name or 'room'}")

        if validate_dependencies:
            amenities = draft.get(StepId.AMENITIES.value)
            selection = list(amenities.selected_amenities) if amenities is not None else []
            selected = set(selection)
            for room in payload.rooms:
                for amenity_id in room.amenities:
                    if amenity_id not in selected:
                        result.warnings.append(
                            f'Room "{room.name or room.id}" lists amenity '
                            f'"{self.amenity_validator.display_name(amenity_id)}" '
                            f"that is not selected for the property"
                        )
                inheritance = self.amenity_validator.inherit_for_room(selection, room.amenities, room.amenity_overrides)
                for override in room.amenity_overrides:
                    if override.action == OverrideAction.REMOVE and override.amenity_id not in inheritance.inherited:
                        result.warnings.append(
                            f'Room "{room.name or room.id}" removes amenity '
                            f'"{self.amenity_validator.display_name(override.amenity_id)}" '
                            f"that it does not inherit from the property"
                        )
        return result

    def _validate_business_features(self, payload: BusinessFeaturesPayload, validate_dependencies: bool, draft: Draft) -> ValidationResult:
        # The step is optional; only data that was actually provided is checked
        result = ValidationResult()

        for index, room in enumerate(payload.meeting_rooms):
            if not room.name or not room.capacity or room.capacity < 1:
                result.errors.append(f"meeting_rooms.{index}: meeting rooms must have name and capacity")

        for index, space in enumerate(payload.work_spaces):
            if not space.name:
                result.errors.append(f"work_spaces.{index}.name: work spaces must have a name")

        if payload.connectivity is not None and payload.connectivity.wifi_speed is None:
            result.warnings.append("Consider providing WiFi speed information for business travelers")
        return result
