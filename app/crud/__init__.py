from app.crud.base import CRUDBase
from .amenity import amenity
from .onboarding import onboarding_session

__all__ = ["CRUDBase", "amenity", "onboarding_session"]
