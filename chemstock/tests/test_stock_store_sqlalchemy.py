from decimal import Decimal

import pytest
from sqlalchemy import select

from chemstock.app.db.models.core_types import OrderStatus
from chemstock.app.db.models.models_v1 import Order, OrderItem, Product, ProductBOM, RawMaterial
from chemstock.services.errors import LookupFailure, PersistenceFailure
from chemstock.services.inventory import subtract_stock_on_order_completion
from chemstock.services.stock_store import SqlAlchemyStockStore


@pytest.fixture
def seeded(db_session):
    # ---------- ARRANGE : master data ----------
    db_session.add_all(
        [
            Product(id="P1", name="Bleach 1L", stock=3),
            Product(id="P2", name="Dish soap 1L", stock=50),
            RawMaterial(id="RM-A", name="Sodium hypochlorite", unit_of_measure="L", stock=Decimal("20")),
            RawMaterial(id="RM-B", name="HDPE bottle", unit_of_measure="pc", stock=Decimal("100")),
        ]
    )
    db_session.flush()
    db_session.add_all(
        [
            ProductBOM(product_id="P1", raw_material_id="RM-A", quantity_per_unit=Decimal("2.5")),
            ProductBOM(product_id="P1", raw_material_id="RM-B", quantity_per_unit=Decimal("1")),
            ProductBOM(product_id="P2", raw_material_id="RM-B", quantity_per_unit=Decimal("1")),
        ]
    )
    db_session.add(Order(id="ORD-1", status=OrderStatus.processing))
    db_session.flush()
    db_session.add_all(
        [
            OrderItem(order_id="ORD-1", product_id="P1", quantity=5),
            OrderItem(order_id="ORD-1", product_id="P2", quantity=4),
        ]
    )
    db_session.commit()
    return db_session


def test_fetch_order_lines_joins_product_stock(seeded):
    store = SqlAlchemyStockStore(seeded)

    lines = store.fetch_order_lines("ORD-1")

    assert [(ln.product_id, ln.quantity, ln.product_stock) for ln in lines] == [
        ("P1", 5, 3),
        ("P2", 4, 50),
    ]


def test_fetch_order_lines_unknown_order_is_empty(seeded):
    assert SqlAlchemyStockStore(seeded).fetch_order_lines("NOPE") == []


def test_fetch_bom_entries_filters_on_products(seeded):
    store = SqlAlchemyStockStore(seeded)

    entries = store.fetch_bom_entries(["P2"])

    assert [(e.product_id, e.raw_material_id, e.quantity_per_unit) for e in entries] == [
        ("P2", "RM-B", Decimal("1")),
    ]


def test_missing_raw_material_raises_lookup_failure(seeded):
    store = SqlAlchemyStockStore(seeded)

    with pytest.raises(LookupFailure):
        store.get_raw_material_stock("RM-GHOST")


def test_negative_stock_write_is_a_persistence_failure(seeded):
    """La contrainte CHECK stock >= 0 est remontée en PersistenceFailure, session utilisable ensuite."""
    store = SqlAlchemyStockStore(seeded)

    with pytest.raises(PersistenceFailure):
        store.update_raw_material_stock("RM-A", Decimal("-1"))

    assert store.get_raw_material_stock("RM-A") == Decimal("20")


def test_atomic_decrement_clamps_at_zero(seeded):
    store = SqlAlchemyStockStore(seeded)

    assert store.decrement_product_stock("P1", 10) == (3, 0)
    assert store.decrement_raw_material_stock("RM-B", 7) == (Decimal("100"), Decimal("93"))

    with pytest.raises(LookupFailure):
        store.decrement_product_stock("P-GHOST", 1)


def test_subtract_stock_end_to_end(seeded):
    """
    GIVEN
    - P1 stock 3, ligne de 5  (BOM : RM-A 2.5, RM-B 1)
    - P2 stock 50, ligne de 4 (BOM : RM-B 1)

    THEN
    - P1 == 0 (clampé, pas -2), P2 == 46
    - RM-A : 20 - ceil(12.5) = 7
    - RM-B : 100 - (5 + 4) = 91
    """
    # ---------- ACT ----------
    result = subtract_stock_on_order_completion(SqlAlchemyStockStore(seeded), "ORD-1", "Processing")

    # ---------- ASSERT ----------
    assert result.success is True, result.error

    stocks = dict(seeded.execute(select(Product.id, Product.stock)).all())
    assert stocks == {"P1": 0, "P2": 46}

    rm = dict(seeded.execute(select(RawMaterial.id, RawMaterial.stock)).all())
    assert Decimal(rm["RM-A"]) == Decimal("7")
    assert Decimal(rm["RM-B"]) == Decimal("91")


def test_subtract_stock_atomic_end_to_end(seeded):
    result = subtract_stock_on_order_completion(SqlAlchemyStockStore(seeded), "ORD-1", None, atomic=True)

    assert result.success is True, result.error
    assert seeded.get(Product, "P1").stock == 0
    assert Decimal(seeded.get(RawMaterial, "RM-A").stock) == Decimal("7")


@pytest.mark.parametrize("atomic", [False, True])
def test_duplicate_order_items_compound_on_same_product(seeded, atomic):
    """
    GIVEN
    - ORD-2 avec deux lignes P2 (1 + 1), P2 stock 50

    THEN
    - P2 == 48 en mode lecture/écriture comme en mode atomique
    - old_stock de la 2e ligne == new_stock de la 1re
    """
    # ---------- ARRANGE ----------
    seeded.add(Order(id="ORD-2", status=OrderStatus.processing))
    seeded.flush()
    seeded.add_all(
        [
            OrderItem(order_id="ORD-2", product_id="P2", quantity=1),
            OrderItem(order_id="ORD-2", product_id="P2", quantity=1),
        ]
    )
    seeded.commit()

    # ---------- ACT ----------
    result = subtract_stock_on_order_completion(SqlAlchemyStockStore(seeded), "ORD-2", None, atomic=atomic)

    # ---------- ASSERT ----------
    assert result.success is True, result.error
    assert seeded.get(Product, "P2").stock == 48
    assert [(u.old_stock, u.new_stock) for u in result.product_updates] == [(50, 49), (49, 48)]
    # BOM P2 -> RM-B 1 par unité, deux lignes
    assert Decimal(seeded.get(RawMaterial, "RM-B").stock) == Decimal("98")
