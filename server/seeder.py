# server/seeder.py
#
# Replaces the whole product catalog with models/fixtures/products.json.
# Usage (from the server directory): python seeder.py

import json
import logging
import sys
from pathlib import Path
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from config import get_settings
from database import SessionLocal, init_db
import models
from models.product import Product


logger = logging.getLogger(__name__)

# shipped as package data of `models` so installed copies can seed too
PRODUCTS_PATH = Path(models.__file__).resolve().parent / "fixtures" / "products.json"


def load_products(path: Path = PRODUCTS_PATH) -> list[dict]:
    with path.open(encoding="utf-8") as f:
        products = json.load(f)
    if not isinstance(products, list):
        raise ValueError(f"{path} must contain a JSON list of products")
    return products


def seed_products(db: Session, products: list[dict]) -> int:
    """
    Deletes every product and inserts the given ones in a single commit.
    Returns the number of inserted products.
    """
    deleted = db.query(Product).delete()
    logger.info("Products are deleted (%d)", deleted)

    db.add_all([Product(**item) for item in products])
    db.commit()
    logger.info("Products are inserted (%d)", len(products))

    return len(products)


def main() -> int:
    logging.basicConfig(level=get_settings().log_level, format="%(levelname)s %(message)s")
    init_db()

    db = SessionLocal()
    try:
        seed_products(db, load_products())
    except (OSError, ValueError, TypeError, SQLAlchemyError) as e:
        db.rollback()
        logger.error("Seeding failed: %s", e)
        return 1
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
