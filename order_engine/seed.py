"""Load demo catalog products from a CSV file.

Usage: python -m order_engine.seed [path/to/products.csv]
"""

import csv
import sys
from decimal import Decimal
from pathlib import Path
from typing import Dict, List

from sqlalchemy.orm import Session

from order_engine.core_settings import get_settings
from order_engine.domain.models import Product
from order_engine.infrastructure.db import Database

DEFAULT_FILE = Path(__file__).resolve().parent.parent / "seed_data" / "products.csv"

def parse_row(row: Dict[str, str]) -> Product:
    images = [img.strip() for img in (row.get("images") or "").split("|") if img.strip()]
    return Product(
        id=int(row["product_id"]),
        name=row["name"],
        description=row.get("description") or None,
        category=row.get("category") or "general",
        price=Decimal(row["price"]),
        discount=Decimal(row.get("discount") or "0"),
        images=images,
        stock=int(row["stock"]),
        is_active=(row.get("is_active", "true").strip().lower() != "false"),
    )

def load_products(session: Session, path: Path) -> int:
    with open(path, newline="", encoding="utf-8") as f:
        rows: List[Dict[str, str]] = list(csv.DictReader(f))
    loaded = 0
    for row in rows:
        try:
            product = parse_row(row)
        except (KeyError, ValueError, ArithmeticError) as e:
            print(f"Row skipped: {e}")
            continue
        # merge() keeps the loader re-runnable
        session.merge(product)
        loaded += 1
    session.commit()
    return loaded

def main(argv: List[str]) -> None:
    path = Path(argv[0]) if argv else DEFAULT_FILE
    database = Database(get_settings()).open()
    try:
        database.init_models()
        with database.session() as session:
            count = load_products(session, path)
        print(f"Loaded {count} products from {path}")
    finally:
        database.close()

if __name__ == "__main__":
    main(sys.argv[1:])
