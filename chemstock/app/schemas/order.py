from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from chemstock.app.db.models.core_types import OrderStatus
from chemstock.services.inventory import StockSubtractionResult


class OrderStatusUpdate(BaseModel):
    new_status: str = Field(min_length=1, max_length=32)
    notes: str | None = None
    changed_by: str | None = Field(default=None, max_length=255)


class OrderItemRead(BaseModel):
    id: int
    product_id: str
    quantity: int

    class Config:
        from_attributes = True


class OrderRead(BaseModel):
    id: str
    status: OrderStatus
    created_at: datetime
    updated_at: datetime
    items: list[OrderItemRead] = Field(default_factory=list)

    class Config:
        from_attributes = True


class OrderStatusUpdateResponse(BaseModel):
    message: str
    order: OrderRead
    stock_result: StockSubtractionResult | None = None
