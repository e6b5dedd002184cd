from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import select

from chemstock.app.db.session import SessionLocal
from chemstock.app.db.models.models_v1 import Product, ProductBOM, RawMaterial
from chemstock.app.logging_config import configure_logging

logger = logging.getLogger(__name__)

# (id, nom, unité, stock)
RAW_MATERIALS = [
    ("RM-NAOCL", "Sodium hypochlorite 12%", "L", Decimal("500")),
    ("RM-SLES", "Sodium laureth sulfate", "kg", Decimal("200")),
    ("RM-BOTTLE-1L", "HDPE bottle 1L", "pc", Decimal("1000")),
]

# (id, nom, stock)
PRODUCTS = [
    ("P-BLEACH-1L", "Bleach 1L", 120),
    ("P-DISH-1L", "Dishwashing liquid 1L", 80),
]

# (product_id, raw_material_id, quantity_per_unit)
BOM = [
    ("P-BLEACH-1L", "RM-NAOCL", Decimal("0.85")),
    ("P-BLEACH-1L", "RM-BOTTLE-1L", Decimal("1")),
    ("P-DISH-1L", "RM-SLES", Decimal("0.25")),
    ("P-DISH-1L", "RM-BOTTLE-1L", Decimal("1")),
]


def run_seed():
    db = SessionLocal()
    try:
        for rm_id, name, uom, stock in RAW_MATERIALS:
            if not db.get(RawMaterial, rm_id):
                db.add(RawMaterial(id=rm_id, name=name, unit_of_measure=uom, stock=stock))

        for p_id, name, stock in PRODUCTS:
            if not db.get(Product, p_id):
                db.add(Product(id=p_id, name=name, stock=stock))
        db.flush()

        for p_id, rm_id, qpu in BOM:
            exists = db.scalar(
                select(ProductBOM)
                .where(ProductBOM.product_id == p_id)
                .where(ProductBOM.raw_material_id == rm_id)
            )
            if not exists:
                db.add(ProductBOM(product_id=p_id, raw_material_id=rm_id, quantity_per_unit=qpu))

        db.commit()
        logger.info(
            "SEED OK: %d products, %d raw materials, %d BOM rows",
            len(PRODUCTS),
            len(RAW_MATERIALS),
            len(BOM),
        )
    finally:
        db.close()


if __name__ == "__main__":
    configure_logging()
    run_seed()
