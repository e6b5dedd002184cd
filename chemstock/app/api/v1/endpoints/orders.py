from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from chemstock.app.api.deps import atomic_decrement_enabled, get_db
from chemstock.app.db.models.models_v1 import Order
from chemstock.app.schemas.order import OrderRead, OrderStatusUpdate, OrderStatusUpdateResponse
from chemstock.services.orders import update_order_status

router = APIRouter(prefix="/orders")


@router.get("/{order_id}", response_model=OrderRead)
def get_order(order_id: str, db: Session = Depends(get_db)):
    order = db.get(Order, order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found.")
    return OrderRead.model_validate(order)


@router.post("/{order_id}/status", response_model=OrderStatusUpdateResponse)
def update_status(
    order_id: str,
    payload: OrderStatusUpdate,
    db: Session = Depends(get_db),
    atomic: bool = Depends(atomic_decrement_enabled),
):
    """
    Changement de statut d'une commande.
    - passage à Completed => décrément stock produits + matières (BOM)
    - un échec partiel du stock reste un 200, le détail est dans stock_result
    """
    try:
        order, stock_result = update_order_status(
            db,
            order_id,
            payload.new_status,
            changed_by=payload.changed_by,
            notes=payload.notes,
            atomic=atomic,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc))

    return {
        "message": "Order status updated successfully",
        "order": OrderRead.model_validate(order),
        "stock_result": stock_result,
    }
