from typing import Callable, List
from sqlalchemy import func, select
from sqlalchemy.orm import Session
from app.core.logging_config import logger
from app.crud.base import CRUDBase
from app.models.amenity import AmenityDefinition as AmenityDefinitionModel
from app.schemas.amenity import AmenityDefinition
from app.services.quality_engine.catalog import DEFAULT_AMENITIES


class CRUDAmenity(CRUDBase[AmenityDefinitionModel, AmenityDefinition, AmenityDefinition]):
    """
    CRUD operations for the amenity catalog.

    Inherits all standard CRUD operations from CRUDBase.
    """

    def create(self, db: Session, *, obj_in: AmenityDefinition) -> AmenityDefinitionModel:
        """
        Create a catalog entry with its rules stored as plain JSON.
        """
        obj_data = obj_in.model_dump(mode="json")
        obj_data["category"] = obj_in.category
        db_obj = self.model(**obj_data)
        db.add(db_obj)
        db.commit()
        db.refresh(db_obj)
        return db_obj

    def list_all(self, db: Session) -> List[AmenityDefinitionModel]:
        stmt = select(self.model).order_by(self.model.category, self.model.name)
        return list(db.execute(stmt).scalars().all())

    def count(self, db: Session) -> int:
        return db.execute(select(func.count()).select_from(self.model)).scalar_one()


amenity = CRUDAmenity(AmenityDefinitionModel)


class SQLAlchemyAmenityCatalog:
    """Amenity catalog reader backed by the amenity_definition table."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def list_amenities(self) -> List[AmenityDefinition]:
        with self.session_factory() as db:
            return [AmenityDefinition.model_validate(row) for row in amenity.list_all(db)]


def seed_default_amenities(db: Session) -> int:
    """
    Insert the built-in catalog if the table is empty.

    Returns:
        Number of amenities inserted
    """
    existing = amenity.count(db)
    if existing:
        logger.info(f"Amenity catalog already has {existing} entries, skipping seed")
        return 0

    for definition in DEFAULT_AMENITIES:
        amenity.create(db, obj_in=definition)
    logger.info(f"Seeded {len(DEFAULT_AMENITIES)} amenities")
    return len(DEFAULT_AMENITIES)
