from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from chemstock.app.api.deps import get_db
from chemstock.app.db.models.models_v1 import Product, RawMaterial
from chemstock.app.schemas.stock_level import ProductStockRead, RawMaterialStockRead

router = APIRouter(prefix="/stock")


@router.get(
    "/products",
    response_model=list[ProductStockRead],
)
def get_product_stock(
    product_id: str | None = None,
    db: Session = Depends(get_db),
):
    """
    Stock produits finis (READ ONLY)
    - décrémenté au passage d'une commande à Completed
    """
    stmt = select(Product).order_by(Product.id)
    if product_id is not None:
        stmt = stmt.where(Product.id == product_id)
    return db.execute(stmt).scalars().all()


@router.get(
    "/raw-materials",
    response_model=list[RawMaterialStockRead],
)
def get_raw_material_stock(
    raw_material_id: str | None = None,
    db: Session = Depends(get_db),
):
    stmt = select(RawMaterial).order_by(RawMaterial.id)
    if raw_material_id is not None:
        stmt = stmt.where(RawMaterial.id == raw_material_id)
    return db.execute(stmt).scalars().all()
