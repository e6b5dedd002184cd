"""
Order status service.

Orchestre le changement de statut d'une commande (historique inclus) et
déclenche le décrément de stock au passage à Completed.

Toute la logique stock est centralisée dans :
    chemstock.services.inventory
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chemstock.app.db.models.core_types import OrderStatus
from chemstock.app.db.models.models_v1 import Order, OrderStatusHistory
from chemstock.services.inventory import StockSubtractionResult, subtract_stock_on_order_completion
from chemstock.services.stock_store import SqlAlchemyStockStore

logger = logging.getLogger(__name__)


def parse_status(value: str | OrderStatus) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValueError("Invalid status value.") from None


def update_order_status(
    db: Session,
    order_id: str,
    new_status: str | OrderStatus,
    *,
    changed_by: str | None = None,
    notes: str | None = None,
    atomic: bool = False,
) -> tuple[Order, StockSubtractionResult | None]:
    """
    Met à jour le statut puis, si le nouveau statut est Completed, lance
    subtract_stock_on_order_completion avec l'ANCIEN statut (garde
    d'idempotence).

    Lève ValueError (statut invalide) ou LookupError (commande inconnue).
    Un échec partiel du stock ne lève rien : il est dans le résultat.
    """
    status = parse_status(new_status)

    order = db.get(Order, order_id)
    if not order:
        raise LookupError("Order not found.")

    old_status = order.status
    logger.info("Updating order %s status to %s", order_id, status.value)

    order.status = status
    db.commit()
    db.refresh(order)

    try:
        db.add(
            OrderStatusHistory(
                order_id=order_id,
                old_status=old_status.value if old_status else None,
                new_status=status.value,
                changed_by=changed_by,
                notes=notes,
            )
        )
        db.commit()
    except SQLAlchemyError:
        # l'historique ne doit pas bloquer le changement de statut
        db.rollback()
        logger.exception("Error inserting status history for order %s", order_id)

    logger.info("Successfully updated order %s from %s to %s", order_id, old_status, status.value)

    stock_result = None
    if status == OrderStatus.completed:
        stock_result = subtract_stock_on_order_completion(
            SqlAlchemyStockStore(db),
            order_id,
            old_status,
            atomic=atomic,
        )
        if not stock_result.success:
            logger.warning("Stock subtraction for order %s reported errors: %s", order_id, stock_result.error)

    db.refresh(order)
    return order, stock_result
