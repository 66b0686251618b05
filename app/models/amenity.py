from sqlalchemy import Column, String, Text, Boolean, Enum, JSON
from app.database import Base, TimestampMixin
from app.schemas.amenity import AmenityCategory


class AmenityDefinition(Base, TimestampMixin):
    """
    Amenity catalog entry.

    `applicable_property_types` is a list of PropertyType values (empty means
    every type). `business_rules` is a list of {type, amenity_id, condition}.
    """
    __tablename__ = "amenity_definition"

    id = Column(String(64), primary_key=True)
    name = Column(String, nullable=False)
    category = Column(Enum(AmenityCategory), nullable=False, index=True)
    description = Column(Text, nullable=True)
    icon = Column(String, nullable=True)
    is_eco_friendly = Column(Boolean, nullable=False, default=False)
    applicable_property_types = Column(JSON, nullable=False, default=list)
    business_rules = Column(JSON, nullable=False, default=list)
