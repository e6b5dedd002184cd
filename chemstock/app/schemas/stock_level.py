from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel


class ProductStockRead(BaseModel):
    id: str
    name: str
    stock: int
    updated_at: datetime

    class Config:
        from_attributes = True


class RawMaterialStockRead(BaseModel):
    id: str
    name: str
    unit_of_measure: str
    stock: Decimal  # décrémenté uniquement par le moteur BOM et les réceptions
    updated_at: datetime

    class Config:
        from_attributes = True


class BomItemRead(BaseModel):
    raw_material_id: str
    quantity_per_unit: float
