"""
Stock store.

Accès aux données utilisé par le moteur de décrément (orders, products,
product_bom, raw_materials). Le moteur ne parle jamais directement à la
base : il reçoit un StockStore explicite.

- SqlAlchemyStockStore : implémentation par défaut (Session SQLAlchemy)
- InMemoryStockStore   : implémentation dict, utilisée par les tests
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Protocol

from pydantic import BaseModel, field_validator
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chemstock.app.db.models.models_v1 import OrderItem, Product, ProductBOM, RawMaterial
from chemstock.services.errors import LookupFailure, PersistenceFailure


# ---------- DTO ----------
class OrderLineWithStock(BaseModel):
    """Order line joined with its product; product_stock is None when the join found nothing."""

    line_id: str
    product_id: str | None = None
    quantity: int = 0
    product_stock: int | None = None

    @field_validator("line_id", mode="before")
    @classmethod
    def _line_id_as_str(cls, v: Any) -> str:
        return str(v)

    @field_validator("product_id", mode="before")
    @classmethod
    def _product_id_as_str(cls, v: Any) -> str | None:
        return None if v is None else str(v)

    @field_validator("quantity", mode="before")
    @classmethod
    def _none_quantity(cls, v: Any) -> Any:
        return 0 if v is None else v


class BomEntry(BaseModel):
    product_id: str | None = None
    raw_material_id: str
    quantity_per_unit: Decimal = Decimal(0)

    @field_validator("product_id", "raw_material_id", mode="before")
    @classmethod
    def _id_as_str(cls, v: Any) -> Any:
        return None if v is None else str(v)

    @field_validator("quantity_per_unit", mode="before")
    @classmethod
    def _parse_ratio(cls, v: Any) -> Decimal:
        # ratio illisible => 0 (pas de consommation)
        if v is None:
            return Decimal(0)
        try:
            d = Decimal(str(v).strip())
        except (InvalidOperation, ValueError):
            return Decimal(0)
        return d if d.is_finite() else Decimal(0)


# ---------- Interface ----------
class StockStore(Protocol):
    def fetch_order_lines(self, order_id: str) -> list[OrderLineWithStock]: ...

    def update_product_stock(self, product_id: str, new_stock: int) -> None: ...

    def decrement_product_stock(self, product_id: str, quantity: int) -> tuple[int, int]: ...

    def fetch_bom_entries(self, product_ids: Iterable[str]) -> list[BomEntry]: ...

    def get_raw_material_stock(self, raw_material_id: str) -> Decimal: ...

    def update_raw_material_stock(self, raw_material_id: str, new_stock: Decimal) -> None: ...

    def decrement_raw_material_stock(self, raw_material_id: str, quantity: int) -> tuple[Decimal, Decimal]: ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------- SQLAlchemy ----------
class SqlAlchemyStockStore:
    """
    Chaque écriture est flush + commit immédiatement (pas de transaction
    englobante). Une erreur SQL => rollback de la session puis
    PersistenceFailure, les écritures précédentes restent appliquées.
    """

    def __init__(self, db: Session):
        self.db = db

    def _fail(self, exc: SQLAlchemyError, what: str) -> PersistenceFailure:
        self.db.rollback()
        return PersistenceFailure(f"{what}: {exc}")

    def fetch_order_lines(self, order_id: str) -> list[OrderLineWithStock]:
        try:
            rows = self.db.execute(
                select(
                    OrderItem.id,
                    OrderItem.product_id,
                    OrderItem.quantity,
                    Product.stock,
                )
                .outerjoin(Product, Product.id == OrderItem.product_id)
                .where(OrderItem.order_id == order_id)
                .order_by(OrderItem.id)
            ).all()
        except SQLAlchemyError as exc:
            raise self._fail(exc, f"Error fetching order items for order {order_id}") from exc

        return [
            OrderLineWithStock(
                line_id=line_id,
                product_id=product_id,
                quantity=quantity,
                product_stock=stock,
            )
            for line_id, product_id, quantity, stock in rows
        ]

    def update_product_stock(self, product_id: str, new_stock: int) -> None:
        try:
            product = self.db.get(Product, product_id)
            if not product:
                raise LookupFailure(f"Product {product_id} not found")
            product.stock = new_stock
            product.updated_at = _now()
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail(exc, f"Error updating stock for product {product_id}") from exc

    def decrement_product_stock(self, product_id: str, quantity: int) -> tuple[int, int]:
        # lecture verrouillée + écriture dans la même transaction
        try:
            product = self.db.execute(
                select(Product).where(Product.id == product_id).with_for_update()
            ).scalar_one_or_none()
            if not product:
                self.db.rollback()
                raise LookupFailure(f"Product {product_id} not found")
            old_stock = int(product.stock or 0)
            new_stock = max(0, old_stock - quantity)
            product.stock = new_stock
            product.updated_at = _now()
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail(exc, f"Error updating stock for product {product_id}") from exc
        return old_stock, new_stock

    def fetch_bom_entries(self, product_ids: Iterable[str]) -> list[BomEntry]:
        ids = list(product_ids)
        if not ids:
            return []
        try:
            rows = self.db.execute(
                select(ProductBOM.product_id, ProductBOM.raw_material_id, ProductBOM.quantity_per_unit)
                .where(ProductBOM.product_id.in_(ids))
                .order_by(ProductBOM.id)
            ).all()
        except SQLAlchemyError as exc:
            raise self._fail(exc, "Error fetching BOM mappings") from exc

        return [
            BomEntry(product_id=pid, raw_material_id=rm_id, quantity_per_unit=qpu)
            for pid, rm_id, qpu in rows
        ]

    def get_raw_material_stock(self, raw_material_id: str) -> Decimal:
        try:
            rm = self.db.get(RawMaterial, raw_material_id)
        except SQLAlchemyError as exc:
            raise self._fail(exc, f"Error fetching raw material {raw_material_id}") from exc
        if not rm:
            raise LookupFailure(f"Raw material {raw_material_id} not found")
        return Decimal(rm.stock or 0)

    def update_raw_material_stock(self, raw_material_id: str, new_stock: Decimal) -> None:
        try:
            rm = self.db.get(RawMaterial, raw_material_id)
            if not rm:
                raise LookupFailure(f"Raw material {raw_material_id} not found")
            rm.stock = new_stock
            rm.updated_at = _now()
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail(exc, f"Error updating raw material stock for {raw_material_id}") from exc

    def decrement_raw_material_stock(self, raw_material_id: str, quantity: int) -> tuple[Decimal, Decimal]:
        try:
            rm = self.db.execute(
                select(RawMaterial).where(RawMaterial.id == raw_material_id).with_for_update()
            ).scalar_one_or_none()
            if not rm:
                self.db.rollback()
                raise LookupFailure(f"Raw material {raw_material_id} not found")
            old_stock = Decimal(rm.stock or 0)
            new_stock = max(Decimal(0), old_stock - quantity)
            rm.stock = new_stock
            rm.updated_at = _now()
            self.db.commit()
        except SQLAlchemyError as exc:
            raise self._fail(exc, f"Error updating raw material stock for {raw_material_id}") from exc
        return old_stock, new_stock


# ---------- In-memory ----------
class InMemoryStockStore:
    """
    Store dict pour les tests.

    fail_product_writes / fail_raw_material_writes : ids dont l'écriture
    lève PersistenceFailure. fail_bom_fetch / fail_order_lines_fetch idem
    pour les lectures. `writes` garde la trace de chaque mutation.
    """

    def __init__(
        self,
        *,
        products: dict[str, int] | None = None,
        raw_materials: dict[str, Any] | None = None,
        order_lines: dict[str, list[dict]] | None = None,
        bom: list[dict] | None = None,
    ):
        self.products = dict(products or {})
        self.raw_materials = {k: Decimal(str(v)) for k, v in (raw_materials or {}).items()}
        self.order_lines = {k: list(v) for k, v in (order_lines or {}).items()}
        self.bom = [BomEntry(**b) for b in (bom or [])]

        self.fail_product_writes: set[str] = set()
        self.fail_raw_material_writes: set[str] = set()
        self.fail_bom_fetch = False
        self.fail_order_lines_fetch = False

        self.writes: list[tuple[str, str, Any]] = []

    def fetch_order_lines(self, order_id: str) -> list[OrderLineWithStock]:
        if self.fail_order_lines_fetch:
            raise PersistenceFailure(f"Error fetching order items for order {order_id}")
        lines = []
        for i, ln in enumerate(self.order_lines.get(order_id, []), start=1):
            pid = ln.get("product_id")
            lines.append(
                OrderLineWithStock(
                    line_id=ln.get("id", f"{order_id}-{i}"),
                    product_id=pid,
                    quantity=ln.get("quantity"),
                    product_stock=self.products.get(pid) if pid is not None else None,
                )
            )
        return lines

    def update_product_stock(self, product_id: str, new_stock: int) -> None:
        if product_id in self.fail_product_writes:
            raise PersistenceFailure(f"Error updating stock for product {product_id}: write refused")
        if product_id not in self.products:
            raise LookupFailure(f"Product {product_id} not found")
        self.products[product_id] = new_stock
        self.writes.append(("product", product_id, new_stock))

    def decrement_product_stock(self, product_id: str, quantity: int) -> tuple[int, int]:
        if product_id not in self.products:
            raise LookupFailure(f"Product {product_id} not found")
        old_stock = self.products[product_id]
        new_stock = max(0, old_stock - quantity)
        self.update_product_stock(product_id, new_stock)
        return old_stock, new_stock

    def fetch_bom_entries(self, product_ids: Iterable[str]) -> list[BomEntry]:
        if self.fail_bom_fetch:
            raise PersistenceFailure("Error fetching BOM mappings: read refused")
        wanted = {str(p).strip() for p in product_ids}
        return [b for b in self.bom if str(b.product_id or "").strip() in wanted]

    def get_raw_material_stock(self, raw_material_id: str) -> Decimal:
        if raw_material_id not in self.raw_materials:
            raise LookupFailure(f"Raw material {raw_material_id} not found")
        return self.raw_materials[raw_material_id]

    def update_raw_material_stock(self, raw_material_id: str, new_stock: Decimal) -> None:
        if raw_material_id in self.fail_raw_material_writes:
            raise PersistenceFailure(
                f"Error updating raw material stock for {raw_material_id}: write refused"
            )
        if raw_material_id not in self.raw_materials:
            raise LookupFailure(f"Raw material {raw_material_id} not found")
        self.raw_materials[raw_material_id] = Decimal(new_stock)
        self.writes.append(("raw_material", raw_material_id, Decimal(new_stock)))

    def decrement_raw_material_stock(self, raw_material_id: str, quantity: int) -> tuple[Decimal, Decimal]:
        old_stock = self.get_raw_material_stock(raw_material_id)
        new_stock = max(Decimal(0), old_stock - quantity)
        self.update_raw_material_stock(raw_material_id, new_stock)
        return old_stock, new_stock
