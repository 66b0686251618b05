from pydantic import BaseModel, Field
from typing import Any, Optional, List, Dict
from enum import Enum


class PropertyType(str, Enum):
    HOTEL = "HOTEL"
    RESORT = "RESORT"
    GUEST_HOUSE = "GUEST_HOUSE"
    HOMESTAY = "HOMESTAY"
    APARTMENT = "APARTMENT"
    BOUTIQUE_HOTEL = "BOUTIQUE_HOTEL"
    BUSINESS_HOTEL = "BUSINESS_HOTEL"
    LUXURY_HOTEL = "LUXURY_HOTEL"


class AmenityCategory(str, Enum):
    PROPERTY_WIDE = "PROPERTY_WIDE"
    ROOM_SPECIFIC = "ROOM_SPECIFIC"
    BUSINESS = "BUSINESS"
    WELLNESS = "WELLNESS"
    DINING = "DINING"
    SUSTAINABILITY = "SUSTAINABILITY"
    RECREATIONAL = "RECREATIONAL"
    CONNECTIVITY = "CONNECTIVITY"


class RuleType(str, Enum):
    REQUIRES = "requires"
    EXCLUDES = "excludes"
    IMPLIES = "implies"


class AmenityRule(BaseModel):
    """A requires/excludes/implies edge from one amenity to another."""
    type: RuleType
    amenity_id: str
    condition: Optional[str] = None


class OverrideAction(str, Enum):
    ADD = "add"
    REMOVE = "remove"
    MODIFY = "modify"


class AmenityOverride(BaseModel):
    """Room-level change to the amenities a room inherits from the property."""
    amenity_id: str = Field(..., min_length=1)
    action: OverrideAction
    value: Optional[Any] = None


class AmenityInheritance(BaseModel):
    """Effective amenities of one room."""
    inherited: List[str] = Field(default_factory=list)
    specific: List[str] = Field(default_factory=list)
    final: List[str] = Field(default_factory=list)


class AmenityDefinition(BaseModel):
    """Static catalog entry. Read by the engine, never mutated by it."""
    id: str
    name: str
    category: AmenityCategory
    description: Optional[str] = None
    icon: Optional[str] = None
    is_eco_friendly: bool = False
    applicable_property_types: List[PropertyType] = Field(default_factory=list)
    business_rules: List[AmenityRule] = Field(default_factory=list)

    class Config:
        from_attributes = True


class ValidationResult(BaseModel):
    is_valid: bool = True
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        errors = self.errors + other.errors
        return ValidationResult(
            is_valid=not errors and self.is_valid and other.is_valid,
            errors=errors,
            warnings=self.warnings + other.warnings,
        )


class AmenityCatalogResponse(BaseModel):
    """Catalog grouped by category for the amenity picker."""
    categories: Dict[AmenityCategory, List[AmenityDefinition]]


class AmenityInheritanceRequest(BaseModel):
    property_amenities: List[str] = Field(default_factory=list)
    room_amenities: List[str] = Field(default_factory=list)
    overrides: List[AmenityOverride] = Field(default_factory=list)
