"""
Amenity selection validation against the static amenity catalog.

The catalog is read-only and shared by every session. Rule evaluation is a
pure fold over the requires/excludes/implies edges of the selected amenities.
"""

from typing import Dict, Iterable, List, Mapping, Optional
from app.schemas.amenity import (
    AmenityCategory,
    AmenityDefinition,
    AmenityInheritance,
    AmenityOverride,
    OverrideAction,
    PropertyType,
    RuleType,
    ValidationResult,
)


class PropertyTypeProfile:
    """What a complete amenity selection looks like for one property type."""

    def __init__(
        self,
        expected_min_amenities: int,
        recommended_categories: List[AmenityCategory],
        max_per_category: Dict[AmenityCategory, int],
    ):
        self.expected_min_amenities = expected_min_amenities
        self.recommended_categories = recommended_categories
        self.max_per_category = max_per_category


BASE_MAX_PER_CATEGORY: Dict[AmenityCategory, int] = {
    AmenityCategory.PROPERTY_WIDE: 15,
    AmenityCategory.ROOM_SPECIFIC: 10,
    AmenityCategory.BUSINESS: 8,
    AmenityCategory.WELLNESS: 6,
    AmenityCategory.DINING: 5,
    AmenityCategory.SUSTAINABILITY: 8,
    AmenityCategory.RECREATIONAL: 10,
    AmenityCategory.CONNECTIVITY: 5,
}


def _scaled_limits(factor: float) -> Dict[AmenityCategory, int]:
    return {category: int(limit * factor) for category, limit in BASE_MAX_PER_CATEGORY.items()}


def _business_limits() -> Dict[AmenityCategory, int]:
    limits = dict(BASE_MAX_PER_CATEGORY)
    limits[AmenityCategory.BUSINESS] *= 2
    limits[AmenityCategory.CONNECTIVITY] *= 2
    return limits


PROPERTY_TYPE_PROFILES: Dict[PropertyType, PropertyTypeProfile] = {
    PropertyType.HOTEL: PropertyTypeProfile(
        8, [AmenityCategory.PROPERTY_WIDE], dict(BASE_MAX_PER_CATEGORY)),
    PropertyType.BOUTIQUE_HOTEL: PropertyTypeProfile(
        8, [AmenityCategory.PROPERTY_WIDE], dict(BASE_MAX_PER_CATEGORY)),
    PropertyType.APARTMENT: PropertyTypeProfile(
        5, [AmenityCategory.PROPERTY_WIDE], dict(BASE_MAX_PER_CATEGORY)),
    PropertyType.BUSINESS_HOTEL: PropertyTypeProfile(
        10,
        [AmenityCategory.PROPERTY_WIDE, AmenityCategory.BUSINESS, AmenityCategory.CONNECTIVITY],
        _business_limits(),
    ),
    PropertyType.RESORT: PropertyTypeProfile(
        10,
        [AmenityCategory.PROPERTY_WIDE, AmenityCategory.RECREATIONAL, AmenityCategory.WELLNESS],
        _scaled_limits(1.5),
    ),
    PropertyType.LUXURY_HOTEL: PropertyTypeProfile(
        12,
        [AmenityCategory.PROPERTY_WIDE, AmenityCategory.WELLNESS, AmenityCategory.DINING],
        _scaled_limits(1.5),
    ),
    PropertyType.GUEST_HOUSE: PropertyTypeProfile(
        5, [AmenityCategory.PROPERTY_WIDE], _scaled_limits(0.7)),
    PropertyType.HOMESTAY: PropertyTypeProfile(
        4, [AmenityCategory.PROPERTY_WIDE], _scaled_limits(0.7)),
}


def profile_for(property_type: PropertyType) -> PropertyTypeProfile:
    return PROPERTY_TYPE_PROFILES[property_type]


def dedupe_selection(amenity_ids: Iterable[str]) -> List[str]:
    """Drop repeated ids, keeping first-seen order."""
    seen = set()
    result = []
    for amenity_id in amenity_ids:
        if amenity_id not in seen:
            seen.add(amenity_id)
            result.append(amenity_id)
    return result


# Categories a room picks up from the property selection
INHERITABLE_CATEGORIES: List[AmenityCategory] = [
    AmenityCategory.PROPERTY_WIDE,
    AmenityCategory.CONNECTIVITY,
    AmenityCategory.SUSTAINABILITY,
]


def apply_amenity_inheritance(
    property_amenities: Iterable[str],
    room_amenities: Iterable[str],
    overrides: Iterable[AmenityOverride],
    catalog: Mapping[str, AmenityDefinition],
) -> AmenityInheritance:
    """
    Effective amenity list of a room.

    The room inherits the property selection from the inheritable categories
    (grouped in category order), then applies its add/remove overrides in
    order, then appends its own amenities. `modify` overrides keep the
    amenity as is. Ids unknown to the catalog are never inherited.

    Args:
        property_amenities: Property-level selection
        room_amenities: Amenities declared on the room itself
        overrides: Room-level add/remove/modify changes
        catalog: Amenity catalog keyed by id

    Returns:
        AmenityInheritance with the inherited, specific and final lists
    """
    selection = dedupe_selection(property_amenities)
    inherited = [
        amenity_id
        for category in INHERITABLE_CATEGORIES
        for amenity_id in selection
        if amenity_id in catalog and catalog[amenity_id].category == category
    ]

    final = list(inherited)
    for override in overrides:
        if override.action == OverrideAction.ADD and override.amenity_id not in final:
            final.append(override.amenity_id)
        elif override.action == OverrideAction.REMOVE:
            final = [amenity_id for amenity_id in final if amenity_id != override.amenity_id]

    specific = dedupe_selection(room_amenities)
    final.extend(amenity_id for amenity_id in specific if amenity_id not in final)

    return AmenityInheritance(inherited=inherited, specific=specific, final=final)


class AmenityRuleValidator:
    """Validates an amenity selection for a property type."""

    def __init__(self, amenities: Iterable[AmenityDefinition]):
        self._catalog: Mapping[str, AmenityDefinition] = {a.id: a for a in amenities}

    @property
    def catalog(self) -> Mapping[str, AmenityDefinition]:
        return self._catalog

    def get(self, amenity_id: str) -> Optional[AmenityDefinition]:
        return self._catalog.get(amenity_id)

    def display_name(self, amenity_id: str) -> str:
        amenity = self._catalog.get(amenity_id)
        return amenity.name if amenity else amenity_id

    def inherit_for_room(
        self,
        property_amenities: Iterable[str],
        room_amenities: Iterable[str],
        overrides: Iterable[AmenityOverride] = (),
    ) -> AmenityInheritance:
        return apply_amenity_inheritance(property_amenities, room_amenities, overrides, self._catalog)

    def grouped_by_category(self) -> Dict[AmenityCategory, List[AmenityDefinition]]:
        grouped: Dict[AmenityCategory, List[AmenityDefinition]] = {c: [] for c in AmenityCategory}
        for amenity in sorted(self._catalog.values(), key=lambda a: (a.category.value, a.name)):
            grouped[amenity.category].append(amenity)
        return grouped

    def validate(self, amenity_ids: Iterable[str], property_type: PropertyType) -> ValidationResult:
        selected = dedupe_selection(amenity_ids)
        result = ValidationResult()

        if not selected:
            result.warnings.append("No amenities selected")
            return result

        missing = [amenity_id for amenity_id in selected if amenity_id not in self._catalog]
        if missing:
            result.errors.append(f"Invalid amenity IDs: {', '.join(missing)}")

        known = [self._catalog[amenity_id] for amenity_id in selected if amenity_id in self._catalog]

        for amenity in known:
            if amenity.applicable_property_types and property_type not in amenity.applicable_property_types:
                result.errors.append(
                    f'Amenity "{amenity.name}" is not applicable to {property_type.value} properties'
                )

        rule_errors, rule_warnings = self._evaluate_rules(known, set(selected))
        result.errors.extend(rule_errors)
        result.warnings.extend(rule_warnings)
        result.warnings.extend(self._profile_warnings(known, property_type))

        result.is_valid = not result.errors
        return result

    def _evaluate_rules(self, amenities: List[AmenityDefinition], selected: set):
        errors: List[str] = []
        warnings: List[str] = []

        for amenity in amenities:
            for rule in amenity.business_rules:
                other = self.display_name(rule.amenity_id)
                if rule.type == RuleType.REQUIRES and rule.amenity_id not in selected:
                    errors.append(f'"{amenity.name}" requires "{other}" to be selected')
                elif rule.type == RuleType.EXCLUDES and rule.amenity_id in selected:
                    errors.append(f'"{amenity.name}" cannot be selected together with "{other}"')
                elif rule.type == RuleType.IMPLIES and rule.amenity_id not in selected:
                    warnings.append(f'"{amenity.name}" typically includes "{other}". Consider adding it.')

        return errors, warnings

    def _profile_warnings(self, amenities: List[AmenityDefinition], property_type: PropertyType) -> List[str]:
        profile = profile_for(property_type)
        counts: Dict[AmenityCategory, int] = {}
        for amenity in amenities:
            counts[amenity.category] = counts.get(amenity.category, 0) + 1

        warnings = []
        for category in profile.recommended_categories:
            if not counts.get(category):
                warnings.append(
                    f"{property_type.value} properties usually list {category.value} amenities"
                )
        for category, count in counts.items():
            limit = profile.max_per_category.get(category)
            if limit is not None and count > limit:
                warnings.append(
                    f"{count} {category.value} amenities selected; more than {limit} may overwhelm guests"
                )
        return warnings
