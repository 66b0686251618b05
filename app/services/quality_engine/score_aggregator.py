"""
Composite listing quality score.

The score is a deterministic function of the draft: image quality (40%),
content completeness (40%) and policy clarity (20%). Each component is itself
a weighted sum of 0-100 sub-factors; the sub-factors drive the ranked
recommendation list.
"""

from typing import Dict, List, Mapping, Optional, Tuple
from app.core.config import EngineConfig
from app.schemas.onboarding import (
    AmenitiesPayload,
    BusinessFeaturesPayload,
    ImageCategory,
    ImagesPayload,
    PropertyInfoPayload,
    RoomRecord,
    RoomsPayload,
    StepId,
    StepPayload,
)
from app.schemas.quality import (
    PRIORITY_RANK,
    ComponentScore,
    MissingInformation,
    Priority,
    QualityReport,
    QualityScoreBreakdown,
    Recommendation,
    RecommendationType,
)
from app.services.quality_engine.amenity_rules import dedupe_selection, profile_for

IMAGE_WEIGHT = 0.4
CONTENT_WEIGHT = 0.4
POLICY_WEIGHT = 0.2

IMAGE_FACTOR_WEIGHTS = {
    "quantity": 0.3,
    "quality_ratio": 0.4,
    "coverage": 0.2,
    "professional": 0.1,
}
CONTENT_FACTOR_WEIGHTS = {
    "description": 0.25,
    "amenities": 0.25,
    "location": 0.25,
    "rooms": 0.25,
}
POLICY_FACTOR_WEIGHTS = {
    "cancellation": 0.25,
    "check_in_out": 0.25,
    "booking": 0.25,
    "additional_policies": 0.25,
}

# 5 points per image up to 30 → full marks at 6 images
POINTS_PER_IMAGE = 5
MAX_QUANTITY_POINTS = 30
POINTS_PER_PROFESSIONAL_IMAGE = 2
MAX_PROFESSIONAL_POINTS = 10
PROFESSIONAL_MIN_WIDTH = 1920
PROFESSIONAL_MIN_HEIGHT = 1080

COVERAGE_CATEGORIES = (ImageCategory.EXTERIOR, ImageCategory.LOBBY, ImageCategory.ROOMS)
DESCRIPTION_WORD_BANDS = (50, 100, 150)

HIGH_PRIORITY_SHORTFALL = 20
MEDIUM_PRIORITY_SHORTFALL = 10

Draft = Mapping[str, StepPayload]

# (recommendation type, title, action) per sub-factor
FACTOR_ADVICE: Dict[str, Tuple[RecommendationType, str, str]] = {
    "quantity": (
        RecommendationType.IMAGE,
        "Add more property photos",
        "Upload at least 6 photos covering different areas of the property",
    ),
    "quality_ratio": (
        RecommendationType.IMAGE,
        "Improve image quality",
        "Replace blurry, dark or low-resolution photos with sharp, well-lit ones",
    ),
    "coverage": (
        RecommendationType.IMAGE,
        "Cover the key areas",
        "Add exterior, lobby and room photos",
    ),
    "professional": (
        RecommendationType.IMAGE,
        "Use professional photography",
        "Upload high-scoring photos at 1920x1080 or larger",
    ),
    "description": (
        RecommendationType.CONTENT,
        "Write a detailed description",
        "Describe the property in at least 150 words, covering location and facilities",
    ),
    "amenities": (
        RecommendationType.AMENITY,
        "List more amenities",
        "Select every amenity the property offers",
    ),
    "location": (
        RecommendationType.CONTENT,
        "Complete location details",
        "Add nearby attractions, transportation, accessibility and neighborhood information",
    ),
    "rooms": (
        RecommendationType.CONTENT,
        "Complete room information",
        "Give every room type a name, price, occupancy and at least one photo",
    ),
    "cancellation": (
        RecommendationType.POLICY,
        "Clarify the cancellation policy",
        "Define a cancellation policy and describe its details",
    ),
    "check_in_out": (
        RecommendationType.POLICY,
        "Describe check-in and check-out",
        "Explain the check-in and check-out process for guests",
    ),
    "booking": (
        RecommendationType.POLICY,
        "Define booking terms",
        "Add booking terms including payment terms",
    ),
    "additional_policies": (
        RecommendationType.POLICY,
        "Set pet and smoking policies",
        "State explicitly whether pets and smoking are allowed",
    ),
}


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def _get(draft: Draft, step: StepId):
    return draft.get(step.value)


class QualityScoreAggregator:
    """Computes the quality breakdown, recommendations and missing information for a draft."""

    def __init__(self, config: EngineConfig):
        self.config = config

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    def image_factors(self, images: Optional[ImagesPayload]) -> Dict[str, float]:
        records = images.images if images else []
        total = len(records)
        if total == 0:
            return {name: 0.0 for name in IMAGE_FACTOR_WEIGHTS}

        high = sum(1 for image in records if image.quality_score >= self.config.high_quality_image_score)
        covered = len({image.category for image in records} & set(COVERAGE_CATEGORIES))
        professional = sum(
            1 for image in records
            if image.quality_score >= self.config.professional_image_score
            and image.dimensions is not None
            and image.dimensions.width >= PROFESSIONAL_MIN_WIDTH
            and image.dimensions.height >= PROFESSIONAL_MIN_HEIGHT
        )

        quantity_points = min(total * POINTS_PER_IMAGE, MAX_QUANTITY_POINTS)
        professional_points = min(professional * POINTS_PER_PROFESSIONAL_IMAGE, MAX_PROFESSIONAL_POINTS)
        return {
            "quantity": quantity_points / MAX_QUANTITY_POINTS * 100,
            "quality_ratio": high / total * 100,
            "coverage": covered / len(COVERAGE_CATEGORIES) * 100,
            "professional": professional_points / MAX_PROFESSIONAL_POINTS * 100,
        }

    def description_score(self, description: Optional[str]) -> float:
        text = (description or "").strip()
        if not text:
            return 0.0
        score = 20.0
        if len(text) >= self.config.min_description_length:
            score += 20
        words = len(text.split())
        for band in DESCRIPTION_WORD_BANDS:
            if words >= band:
                score += 20
        return min(score, 100.0)

    def amenity_score(self, amenities: Optional[AmenitiesPayload]) -> float:
        if amenities is None:
            return 0.0
        count = len(dedupe_selection(amenities.selected_amenities))
        expected = profile_for(amenities.property_type).expected_min_amenities
        return min(count / expected, 1.0) * 100

    def location_score(self, info: Optional[PropertyInfoPayload]) -> float:
        details = info.location_details if info else None
        if details is None:
            return 0.0
        present = [
            bool(details.nearby_attractions),
            bool(details.transportation),
            bool(details.accessibility),
            bool(details.neighborhood),
        ]
        return 25.0 * sum(present)

    @staticmethod
    def is_room_complete(room: RoomRecord) -> bool:
        return bool(room.name.strip()) and room.price is not None and room.occupancy >= 1 and bool(room.images)

    def room_score(self, rooms: Optional[RoomsPayload]) -> float:
        records = rooms.rooms if rooms else []
        if not records:
            return 0.0
        complete = sum(1 for room in records if self.is_room_complete(room))
        return complete / len(records) * 100

    def content_factors(self, draft: Draft) -> Dict[str, float]:
        info = _get(draft, StepId.PROPERTY_INFO)
        return {
            "description": self.description_score(info.description if info else None),
            "amenities": self.amenity_score(_get(draft, StepId.AMENITIES)),
            "location": self.location_score(info),
            "rooms": self.room_score(_get(draft, StepId.ROOMS)),
        }

    def policy_factors(self, info: Optional[PropertyInfoPayload]) -> Dict[str, float]:
        policies = info.policies if info else None
        if policies is None:
            return {name: 0.0 for name in POLICY_FACTOR_WEIGHTS}

        cancellation = 0.0
        if policies.cancellation is not None:
            cancellation = 100.0 if policies.cancellation.details else 50.0

        check_in_out = 0.0
        if policies.check_in is not None and policies.check_in.process:
            check_in_out += 50
        if policies.check_out is not None and policies.check_out.process:
            check_in_out += 50

        booking = 0.0
        if policies.booking is not None:
            booking = 100.0 if policies.booking.payment_terms else 50.0

        additional = 50.0 * sum(1 for policy in (policies.pet, policies.smoking) if policy is not None)

        return {
            "cancellation": cancellation,
            "check_in_out": check_in_out,
            "booking": booking,
            "additional_policies": additional,
        }

    @staticmethod
    def _component(factors: Dict[str, float], factor_weights: Dict[str, float], weight: float) -> ComponentScore:
        score = sum(factors[name] * factor_weights[name] for name in factor_weights)
        return ComponentScore(
            score=round(_clamp(score), 2),
            weight=weight,
            factors={name: round(value, 2) for name, value in factors.items()},
        )

    def compute(self, draft: Draft) -> QualityScoreBreakdown:
        """
        Compute the weighted quality breakdown for a draft.

        Args:
            draft: Step payloads keyed by step id

        Returns:
            QualityScoreBreakdown with every component and overall in [0, 100]
        """
        image_quality = self._component(
            self.image_factors(_get(draft, StepId.IMAGES)), IMAGE_FACTOR_WEIGHTS, IMAGE_WEIGHT
        )
        content = self._component(self.content_factors(draft), CONTENT_FACTOR_WEIGHTS, CONTENT_WEIGHT)
        policy = self._component(
            self.policy_factors(_get(draft, StepId.PROPERTY_INFO)), POLICY_FACTOR_WEIGHTS, POLICY_WEIGHT
        )

        overall = _clamp(
            IMAGE_WEIGHT * image_quality.score
            + CONTENT_WEIGHT * content.score
            + POLICY_WEIGHT * policy.score
        )
        return QualityScoreBreakdown(
            image_quality=image_quality,
            content_completeness=content,
            policy_clarity=policy,
            overall=float(round(overall)),
        )

    # ------------------------------------------------------------------
    # Recommendations and missing information
    # ------------------------------------------------------------------

    def _priority(self, value: float) -> Priority:
        shortfall = self.config.factor_good_threshold - value
        if shortfall >= HIGH_PRIORITY_SHORTFALL:
            return Priority.HIGH
        if shortfall >= MEDIUM_PRIORITY_SHORTFALL:
            return Priority.MEDIUM
        return Priority.LOW

    def recommendations(self, breakdown: QualityScoreBreakdown) -> List[Recommendation]:
        """One recommendation per sub-factor below the good threshold, highest priority and impact first."""
        components = (
            (breakdown.image_quality, IMAGE_FACTOR_WEIGHTS),
            (breakdown.content_completeness, CONTENT_FACTOR_WEIGHTS),
            (breakdown.policy_clarity, POLICY_FACTOR_WEIGHTS),
        )

        recommendations = []
        for component, factor_weights in components:
            for name, factor_weight in factor_weights.items():
                value = float(component.factors.get(name, 0.0))
                if value >= self.config.factor_good_threshold:
                    continue
                rec_type, title, action = FACTOR_ADVICE[name]
                recommendations.append(Recommendation(
                    type=rec_type,
                    priority=self._priority(value),
                    # overall points recoverable by maxing out this factor
                    estimated_impact=round(component.weight * factor_weight * (100 - value), 2),
                    action_required=action,
                    title=title,
                    description=f"{name.replace('_', ' ').capitalize()} scores {value:.0f}/100",
                    factor=name,
                ))

        recommendations.sort(key=lambda r: (-PRIORITY_RANK[r.priority], -r.estimated_impact, r.factor))
        return recommendations

    def missing_information(self, draft: Draft) -> List[MissingInformation]:
        """Absent required information grouped by category, independent of the numeric score."""
        sections = [
            self._missing_images(_get(draft, StepId.IMAGES)),
            self._missing_content(draft),
            self._missing_policies(_get(draft, StepId.PROPERTY_INFO)),
            self._missing_business_features(_get(draft, StepId.BUSINESS_FEATURES)),
        ]
        return [section for section in sections if section.items]

    def _missing_images(self, images: Optional[ImagesPayload]) -> MissingInformation:
        records = images.images if images else []
        present = {image.category for image in records}
        items = [f"{category.value} photos" for category in COVERAGE_CATEGORIES if category not in present]
        if len(records) < self.config.min_image_count:
            items.append(f"minimum {self.config.min_image_count} property photos")
        return MissingInformation(
            category="Images",
            items=items,
            priority=Priority.HIGH if items else Priority.LOW,
        )

    def _missing_content(self, draft: Draft) -> MissingInformation:
        info: Optional[PropertyInfoPayload] = _get(draft, StepId.PROPERTY_INFO)
        amenities: Optional[AmenitiesPayload] = _get(draft, StepId.AMENITIES)
        rooms: Optional[RoomsPayload] = _get(draft, StepId.ROOMS)

        items = []
        description = (info.description or "") if info else ""
        if len(description.split()) < DESCRIPTION_WORD_BANDS[0]:
            items.append("detailed property description")
        if amenities is None or not amenities.selected_amenities:
            items.append("property amenities")
        if info is None or info.location_details is None:
            items.append("location details and nearby attractions")
        if rooms is None or not rooms.rooms:
            items.append("room types")
        return MissingInformation(category="Content", items=items, priority=self._count_priority(items))

    def _missing_policies(self, info: Optional[PropertyInfoPayload]) -> MissingInformation:
        policies = info.policies if info else None
        if policies is None:
            return MissingInformation(category="Policies", items=["all booking policies"], priority=Priority.HIGH)

        items = []
        if policies.check_in is None:
            items.append("check-in policy")
        if policies.check_out is None:
            items.append("check-out policy")
        if policies.cancellation is None:
            items.append("cancellation policy")
        if policies.booking is None:
            items.append("booking terms")
        return MissingInformation(category="Policies", items=items, priority=self._count_priority(items))

    @staticmethod
    def _missing_business_features(features: Optional[BusinessFeaturesPayload]) -> MissingInformation:
        if features is None:
            return MissingInformation(
                category="Business Features",
                items=["business amenities and services"],
                priority=Priority.LOW,
            )
        items = []
        if features.connectivity is None or features.connectivity.wifi_speed is None:
            items.append("WiFi speed information")
        if not features.work_spaces:
            items.append("workspace details")
        return MissingInformation(
            category="Business Features",
            items=items,
            priority=Priority.MEDIUM if items else Priority.LOW,
        )

    @staticmethod
    def _count_priority(items: List[str]) -> Priority:
        if len(items) > 2:
            return Priority.HIGH
        return Priority.MEDIUM if items else Priority.LOW

    def report(self, draft: Draft) -> QualityReport:
        breakdown = self.compute(draft)
        return QualityReport(
            breakdown=breakdown,
            recommendations=self.recommendations(breakdown),
            missing_information=self.missing_information(draft),
        )
