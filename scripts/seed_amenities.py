"""
python -m scripts.seed_amenities
"""

import sys

sys.path.insert(0, ".")

from dotenv import load_dotenv
load_dotenv()

from app.database import SessionLocal
from app.crud.amenity import seed_default_amenities


def seed_amenities():
    """Insert the built-in amenity catalog into an empty amenity_definition table."""
    db = SessionLocal()

    try:
        inserted = seed_default_amenities(db)
        print(f"Inserted {inserted} amenities")
    except Exception as e:
        db.rollback()
        print(f"Error: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    seed_amenities()
