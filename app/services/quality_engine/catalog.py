from typing import Iterable, List, Optional, Protocol
from app.schemas.amenity import (
    AmenityCategory as C,
    AmenityDefinition,
    AmenityRule,
    PropertyType as P,
    RuleType,
)


class AmenityCatalog(Protocol):
    """Reader for the amenity catalog."""

    def list_amenities(self) -> List[AmenityDefinition]:
        ...


class StaticAmenityCatalog:
    """Catalog held in memory, e.g. the built-in default set."""

    def __init__(self, amenities: Iterable[AmenityDefinition]):
        self._amenities = list(amenities)

    def list_amenities(self) -> List[AmenityDefinition]:
        return list(self._amenities)


ALL_TYPES: List[P] = []  # empty list means "applicable to every property type"
FULL_SERVICE = [P.HOTEL, P.BUSINESS_HOTEL, P.LUXURY_HOTEL, P.BOUTIQUE_HOTEL]


def _amenity(amenity_id, name, category, description, icon, types=ALL_TYPES, rules=(), eco=False):
    return AmenityDefinition(
        id=amenity_id,
        name=name,
        category=category,
        description=description,
        icon=icon,
        is_eco_friendly=eco,
        applicable_property_types=list(types),
        business_rules=list(rules),
    )


def _rule(rule_type: RuleType, amenity_id: str, condition: Optional[str] = None) -> AmenityRule:
    return AmenityRule(type=rule_type, amenity_id=amenity_id, condition=condition)


DEFAULT_AMENITIES: List[AmenityDefinition] = [
    # Property-wide
    _amenity("wifi", "Free WiFi", C.PROPERTY_WIDE,
             "Complimentary wireless internet access throughout the property", "wifi"),
    _amenity("front-desk-24h", "24/7 Front Desk", C.PROPERTY_WIDE,
             "Round-the-clock reception and guest services", "reception",
             types=[P.HOTEL, P.BUSINESS_HOTEL, P.LUXURY_HOTEL, P.BOUTIQUE_HOTEL, P.RESORT]),
    _amenity("parking", "Parking", C.PROPERTY_WIDE,
             "On-site parking facilities for guests", "parking"),
    _amenity("ev-charging", "EV Charging", C.PROPERTY_WIDE,
             "Electric vehicle charging points", "ev",
             rules=[_rule(RuleType.REQUIRES, "parking", "Chargers are installed in the car park")],
             eco=True),
    _amenity("smoke-free", "Smoke-free Property", C.PROPERTY_WIDE,
             "Smoking is not permitted anywhere on the premises", "no-smoking",
             rules=[_rule(RuleType.EXCLUDES, "smoking-area")]),
    _amenity("smoking-area", "Designated Smoking Area", C.PROPERTY_WIDE,
             "Outdoor area reserved for smoking", "smoking",
             rules=[_rule(RuleType.EXCLUDES, "smoke-free")]),
    # Room-specific
    _amenity("air-conditioning", "Air Conditioning", C.ROOM_SPECIFIC,
             "Climate control system in guest rooms", "ac"),
    _amenity("mini-bar", "Mini Bar", C.ROOM_SPECIFIC,
             "In-room refrigerated mini bar with beverages and snacks", "minibar",
             types=[P.HOTEL, P.LUXURY_HOTEL, P.BUSINESS_HOTEL]),
    # Business
    _amenity("business-center", "Business Center", C.BUSINESS,
             "Dedicated business facilities with computers and printing services", "business",
             types=FULL_SERVICE),
    _amenity("meeting-rooms", "Meeting Rooms", C.BUSINESS,
             "Professional meeting and conference facilities", "meeting",
             types=FULL_SERVICE,
             rules=[_rule(RuleType.IMPLIES, "business-center", "Large properties typically have both")]),
    # Connectivity
    _amenity("high-speed-internet", "High-speed Internet", C.CONNECTIVITY,
             "Business-grade connection of 100 Mbps or more", "speed",
             rules=[_rule(RuleType.REQUIRES, "wifi")]),
    # Wellness
    _amenity("swimming-pool", "Swimming Pool", C.WELLNESS,
             "Outdoor or indoor swimming pool facility", "pool",
             types=[P.RESORT, P.LUXURY_HOTEL, P.HOTEL]),
    _amenity("spa", "Spa Services", C.WELLNESS,
             "Professional spa and wellness treatments", "spa",
             types=[P.RESORT, P.LUXURY_HOTEL]),
    _amenity("fitness-center", "Fitness Center", C.WELLNESS,
             "Gym with cardio and strength equipment", "gym"),
    # Dining
    _amenity("restaurant", "Restaurant", C.DINING,
             "On-site restaurant serving breakfast, lunch and dinner", "restaurant"),
    _amenity("room-service", "Room Service", C.DINING,
             "In-room dining service", "room-service",
             types=FULL_SERVICE + [P.RESORT],
             rules=[_rule(RuleType.IMPLIES, "restaurant")]),
    # Recreational
    _amenity("kids-club", "Kids Club", C.RECREATIONAL,
             "Supervised activities for children", "kids",
             types=[P.RESORT, P.LUXURY_HOTEL]),
    # Sustainability
    _amenity("solar-power", "Solar Power", C.SUSTAINABILITY,
             "Renewable energy from solar panels", "solar", eco=True),
    _amenity("recycling-program", "Recycling Program", C.SUSTAINABILITY,
             "Comprehensive waste recycling and reduction program", "recycle", eco=True),
]


def default_catalog() -> StaticAmenityCatalog:
    return StaticAmenityCatalog(DEFAULT_AMENITIES)
