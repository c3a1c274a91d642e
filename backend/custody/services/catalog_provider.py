# Overview: Read-only access to store catalogs and store-worker pairings.

from __future__ import annotations

from dataclasses import dataclass

from ..extensions import db
from ..models import StoreAssignment, StoreCatalogItem, StoreCatalogTank
from ..validation import NotFoundError


@dataclass(frozen=True)
class CatalogTank:
    tank_type_id: int
    purchase_price_cents: int
    sell_price_cents: int


@dataclass(frozen=True)
class CatalogItem:
    inventory_item_id: int
    purchase_price_cents: int
    sell_price_cents: int


class CatalogProvider:
    """
    Boundary to store/catalog data owned elsewhere.

    Only active catalog entries are offered for seeding.
    """

    def get_pairing(self, store_assignment_id: int) -> StoreAssignment:
        pairing = db.session.get(StoreAssignment, store_assignment_id)
        if pairing is None:
            raise NotFoundError("Store assignment not found")
        return pairing

    def tanks_for_store(self, store_id: int) -> list[CatalogTank]:
        rows = (
            db.session.query(StoreCatalogTank)
            .filter_by(store_id=store_id, is_active=True)
            .order_by(StoreCatalogTank.tank_type_id.asc())
            .all()
        )
        return [
            CatalogTank(
                tank_type_id=row.tank_type_id,
                purchase_price_cents=row.purchase_price_cents,
                sell_price_cents=row.sell_price_cents,
            )
            for row in rows
        ]

    def items_for_store(self, store_id: int) -> list[CatalogItem]:
        rows = (
            db.session.query(StoreCatalogItem)
            .filter_by(store_id=store_id, is_active=True)
            .order_by(StoreCatalogItem.inventory_item_id.asc())
            .all()
        )
        return [
            CatalogItem(
                inventory_item_id=row.inventory_item_id,
                purchase_price_cents=row.purchase_price_cents,
                sell_price_cents=row.sell_price_cents,
            )
            for row in rows
        ]
