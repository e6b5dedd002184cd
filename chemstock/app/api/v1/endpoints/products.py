from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from chemstock.app.api.deps import get_db
from chemstock.app.db.models.models_v1 import ProductBOM
from chemstock.app.schemas.stock_level import BomItemRead

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products")


@router.get("/{product_id}/bom", response_model=list[BomItemRead])
def get_product_bom(product_id: str, db: Session = Depends(get_db)):
    """BOM optionnel : produit sans nomenclature => liste vide."""
    rows = (
        db.execute(
            select(ProductBOM)
            .where(ProductBOM.product_id == product_id)
            .order_by(ProductBOM.id)
        )
        .scalars()
        .all()
    )
    logger.info("Found %d BOM items for product %s", len(rows), product_id)
    return [
        {
            "raw_material_id": b.raw_material_id,
            "quantity_per_unit": float(b.quantity_per_unit or 0),
        }
        for b in rows
    ]
