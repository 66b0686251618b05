from fastapi import APIRouter, Depends, HTTPException, status
from app.dependencies import get_amenity_validator
from app.schemas.amenity import (
    AmenityCatalogResponse,
    AmenityDefinition,
    AmenityInheritance,
    AmenityInheritanceRequest,
    ValidationResult,
)
from app.schemas.onboarding import AmenitiesPayload
from app.services.quality_engine import AmenityRuleValidator

router = APIRouter()


@router.get("", response_model=AmenityCatalogResponse)
def list_amenities(validator: AmenityRuleValidator = Depends(get_amenity_validator)):
    """
    Amenity catalog grouped by category for the amenity picker.
    """
    return AmenityCatalogResponse(categories=validator.grouped_by_category())


@router.get("/{amenity_id}", response_model=AmenityDefinition)
def get_amenity(amenity_id: str, validator: AmenityRuleValidator = Depends(get_amenity_validator)):
    amenity = validator.get(amenity_id)
    if amenity is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Amenity {amenity_id} not found"
        )
    return amenity


@router.post("/validate", response_model=ValidationResult)
def validate_selection(
    selection: AmenitiesPayload,
    validator: AmenityRuleValidator = Depends(get_amenity_validator)
):
    """
    Check a selection against the business rules and property type.
    """
    return validator.validate(selection.selected_amenities, selection.property_type)


@router.post("/inheritance", response_model=AmenityInheritance)
def resolve_room_amenities(
    request: AmenityInheritanceRequest,
    validator: AmenityRuleValidator = Depends(get_amenity_validator)
):
    """
    Effective amenities of a room: property-wide, connectivity and
    sustainability amenities inherited from the property, then the room's
    overrides and its own amenities.
    """
    return validator.inherit_for_room(request.property_amenities, request.room_amenities, request.overrides)
