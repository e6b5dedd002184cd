from __future__ import annotations

import logging
import math
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from chemstock.app.db.models.core_types import OrderStatus
from chemstock.services.errors import StockError
from chemstock.services.stock_store import BomEntry, OrderLineWithStock, StockStore

logger = logging.getLogger(__name__)

LOG_PREFIX = "[Stock Subtraction]"


# ---------- Result ----------
class StockUpdate(BaseModel):
    id: str
    quantity: int
    old_stock: Decimal | int | None = None
    new_stock: Decimal | int


class StockSubtractionResult(BaseModel):
    success: bool
    error: str | None = None
    errors: list[str] = Field(default_factory=list)
    skipped_reason: str | None = None
    product_updates: list[StockUpdate] = Field(default_factory=list)
    raw_material_updates: list[StockUpdate] = Field(default_factory=list)

    def to_contract(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success}
        if self.error:
            out["error"] = self.error
        return out


# ---------- Helpers ----------
def normalize_id(value: Any) -> str:
    """Identifiants comparés en texte trimé (ids int/str ou espaces parasites côté BOM)."""
    return str(value if value is not None else "").strip()


def compute_raw_material_needs(
    lines: list[OrderLineWithStock],
    bom_entries: list[BomEntry],
) -> dict[str, int]:
    """
    Besoin en matières premières par raw_material_id.

    Règle :
        besoin = SUM over (ligne, entrée BOM) of ceil(ligne.quantity * quantity_per_unit)

    L'arrondi supérieur se fait PAR LIGNE puis on somme (pas d'arrondi
    unique sur le total). Deux lignes du même produit comptent deux fois.
    """
    needs: dict[str, int] = {}
    for line in lines:
        line_pid = normalize_id(line.product_id)
        matching = [b for b in bom_entries if normalize_id(b.product_id) == line_pid]
        logger.debug("%s Product %s: Found %d BOM entries", LOG_PREFIX, line.product_id, len(matching))

        for bom in matching:
            total_needed = math.ceil(Decimal(line.quantity) * bom.quantity_per_unit)
            needs[bom.raw_material_id] = needs.get(bom.raw_material_id, 0) + total_needed
            logger.debug(
                "%s Product %s: Need %d of raw material %s (%d units x %s per unit)",
                LOG_PREFIX,
                line.product_id,
                total_needed,
                bom.raw_material_id,
                line.quantity,
                bom.quantity_per_unit,
            )
    return needs


def _status_value(status: str | OrderStatus | None) -> str | None:
    if isinstance(status, OrderStatus):
        return status.value
    return status


def _finish(result: StockSubtractionResult) -> StockSubtractionResult:
    if result.errors:
        result.success = False
        result.error = "; ".join(result.errors)
    else:
        result.success = True
        result.error = None
    return result


# ---------- Products ----------
def _subtract_products(
    store: StockStore,
    lines: list[OrderLineWithStock],
    result: StockSubtractionResult,
    *,
    atomic: bool,
) -> None:
    # stock courant par produit : plusieurs lignes du même produit se cumulent
    running: dict[str, int] = {}

    for line in lines:
        if line.product_stock is None or not line.product_id:
            logger.warning("Product not found for order item %s", line.line_id)
            continue

        qty = line.quantity
        current = running.setdefault(line.product_id, line.product_stock)
        try:
            if atomic:
                current, new_stock = store.decrement_product_stock(line.product_id, qty)
            else:
                new_stock = max(0, current - qty)
                store.update_product_stock(line.product_id, new_stock)
        except StockError as exc:
            msg = str(exc)
            logger.error(msg)
            result.errors.append(msg)
            continue

        running[line.product_id] = new_stock
        result.product_updates.append(
            StockUpdate(id=line.product_id, quantity=qty, old_stock=current, new_stock=new_stock)
        )
        logger.info("Subtracted %d from product %s (stock: %s -> %s)", qty, line.product_id, current, new_stock)


# ---------- Raw materials ----------
def _subtract_raw_materials(
    store: StockStore,
    needs: dict[str, int],
    result: StockSubtractionResult,
    *,
    atomic: bool,
) -> None:
    for raw_material_id, total_qty in needs.items():
        logger.info("%s Processing raw material %s, quantity to subtract: %d", LOG_PREFIX, raw_material_id, total_qty)
        try:
            if atomic:
                current, new_stock = store.decrement_raw_material_stock(raw_material_id, total_qty)
            else:
                current = store.get_raw_material_stock(raw_material_id)
                new_stock = max(Decimal(0), Decimal(current) - total_qty)
                store.update_raw_material_stock(raw_material_id, new_stock)
        except StockError as exc:
            msg = str(exc)
            logger.error(msg)
            result.errors.append(msg)
            continue

        result.raw_material_updates.append(
            StockUpdate(id=raw_material_id, quantity=total_qty, old_stock=current, new_stock=new_stock)
        )
        logger.info(
            "Subtracted %d from raw material %s (stock: %s -> %s)",
            total_qty,
            raw_material_id,
            current,
            new_stock,
        )

    if result.raw_material_updates:
        logger.info("Subtracted raw materials for %d materials", len(result.raw_material_updates))
    elif needs:
        logger.warning("No raw materials were updated despite %d materials needing updates", len(needs))


# ---------- Entry point ----------
def subtract_stock_on_order_completion(
    store: StockStore,
    order_id: str,
    previous_status: str | OrderStatus | None = None,
    *,
    atomic: bool = False,
) -> StockSubtractionResult:
    """
    Décrémente le stock produits + matières premières (via BOM) quand une
    commande passe à "Completed".

    - idempotent : rien n'est fait si le statut précédent était déjà Completed
    - stock plancher à 0 (jamais négatif)
    - best effort : chaque ligne / matière est traitée indépendamment, les
      erreurs sont collectées et l'exécution continue. Pas de rollback.
    - atomic=True : chaque décrément relit la ligne verrouillée (FOR UPDATE)
      dans la même transaction que l'écriture (évite les lost updates
      entre deux commandes concurrentes)
    """
    result = StockSubtractionResult(success=True)

    if _status_value(previous_status) == OrderStatus.completed.value:
        logger.info("Order %s was already completed, skipping stock subtraction", order_id)
        result.skipped_reason = "already_completed"
        return result

    try:
        lines = store.fetch_order_lines(order_id)
    except StockError as exc:
        logger.error("Error fetching order items for order %s: %s", order_id, exc)
        result.errors.append(str(exc))
        return _finish(result)

    if not lines:
        logger.info("No order items found for order %s", order_id)
        result.skipped_reason = "no_line_items"
        return result

    _subtract_products(store, lines, result, atomic=atomic)

    product_ids = list(dict.fromkeys(line.product_id for line in lines if line.product_id))
    logger.info("%s Processing %d products for order %s", LOG_PREFIX, len(product_ids), order_id)

    if not product_ids:
        logger.warning("No product IDs found in order %s. Cannot process BOM.", order_id)
        result.skipped_reason = "no_product_ids"
        return _finish(result)

    try:
        bom_entries = store.fetch_bom_entries(product_ids)
    except StockError as exc:
        logger.error("Error fetching BOM mappings for order %s: %s", order_id, exc)
        result.errors.append(f"BOM fetch error: {exc}")
        return _finish(result)

    logger.info("%s Found %d BOM mappings", LOG_PREFIX, len(bom_entries))
    if not bom_entries:
        logger.warning("No BOM mappings found for products in order %s. Raw materials will not be subtracted.", order_id)
        result.skipped_reason = "no_bom"
        return _finish(result)

    needs = compute_raw_material_needs(lines, bom_entries)
    logger.info("%s Total raw materials needed: %s", LOG_PREFIX, needs)

    _subtract_raw_materials(store, needs, result, atomic=atomic)

    result = _finish(result)
    if result.success:
        logger.info("Subtracted stock for %d products in order %s", len(result.product_updates), order_id)
    else:
        logger.error("Stock subtraction for order %s finished with errors: %s", order_id, result.error)
    return result
