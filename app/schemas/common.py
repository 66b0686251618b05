from pydantic import BaseModel, Field
from typing import Optional, List

class Location(BaseModel):
    lat: float = Field(..., description="Latitude", ge=-90, le=90)
    lng: float = Field(..., description="Longitude", ge=-180, le=180)

class Address(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    formatted_address: Optional[str] = None

class Attraction(BaseModel):
    name: str
    distance_km: Optional[float] = Field(None, ge=0)
    category: Optional[str] = None

class LocationDetails(BaseModel):
    """Where the property is and how guests get there."""
    address: Optional[Address] = None
    coordinates: Optional[Location] = None
    nearby_attractions: List[Attraction] = Field(default_factory=list)
    transportation: Optional[str] = None
    accessibility: Optional[str] = None
    neighborhood: Optional[str] = None
