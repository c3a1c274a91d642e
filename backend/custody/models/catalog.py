from __future__ import annotations

from ..extensions import db
from custody.time_utils import to_iso_date, to_utc_z


class Store(db.Model):
    """
    A distribution point that workers are paired with.

    Store and catalog CRUD is owned by the catalog provider; the custody core
    only reads these rows when seeding a new daily assignment.
    """
    __tablename__ = "stores"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Store id={self.id} code={self.code!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class TankType(db.Model):
    """Gas tank product (e.g. 10kg, 20kg, 45kg cylinders)."""
    __tablename__ = "tank_types"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    weight_kg = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "weight_kg": self.weight_kg,
            "is_active": self.is_active,
        }


class InventoryItem(db.Model):
    """Discrete consumable carried alongside tanks (regulators, hoses, valves)."""
    __tablename__ = "inventory_items"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "is_active": self.is_active,
        }


class StoreCatalogTank(db.Model):
    """
    Tank types a store carries, with default prices.

    Prices are snapshotted onto AssignmentTank rows when a new assignment is
    catalog-seeded, so later catalog edits never rewrite past custody.
    """
    __tablename__ = "store_catalog_tanks"
    __table_args__ = (
        db.UniqueConstraint("store_id", "tank_type_id", name="uq_store_catalog_tanks_store_tank"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    tank_type_id = db.Column(db.Integer, db.ForeignKey("tank_types.id"), nullable=False, index=True)

    # Authoritative storage in cents
    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sell_price_cents = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    store = db.relationship("Store", backref=db.backref("catalog_tanks", lazy=True))
    tank_type = db.relationship("TankType")


class StoreCatalogItem(db.Model):
    """Items a store carries, with default prices."""
    __tablename__ = "store_catalog_items"
    __table_args__ = (
        db.UniqueConstraint("store_id", "inventory_item_id", name="uq_store_catalog_items_store_item"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sell_price_cents = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    store = db.relationship("Store", backref=db.backref("catalog_items", lazy=True))
    inventory_item = db.relationship("InventoryItem")


class StoreAssignment(db.Model):
    """
    Store-worker pairing.

    current_inventory_id points at the pairing's latest daily assignment and is
    moved forward by consolidation. It is a plain integer (not a FK) to avoid a
    circular dependency with inventory_assignments.
    """
    __tablename__ = "store_assignments"
    __table_args__ = (
        db.Index("ix_store_assignments_user_store", "user_id", "store_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=True)

    current_inventory_id = db.Column(db.Integer, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    store = db.relationship("Store", backref=db.backref("assignments", lazy=True))

    def __repr__(self) -> str:
        return f"<StoreAssignment id={self.id} user_id={self.user_id} store_id={self.store_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "store_id": self.store_id,
            "start_date": to_iso_date(self.start_date),
            "end_date": to_iso_date(self.end_date),
            "current_inventory_id": self.current_inventory_id,
        }
