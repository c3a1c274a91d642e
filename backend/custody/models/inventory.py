from __future__ import annotations

from ..extensions import db
from custody.time_utils import to_iso_date, to_utc_z


# Assignment lifecycle. One-directional in normal operation:
# created -> assigned -> validated -> consolidated
STATUS_CREATED = "created"
STATUS_ASSIGNED = "assigned"
STATUS_VALIDATED = "validated"
STATUS_CONSOLIDATED = "consolidated"

ASSIGNMENT_STATUSES = (STATUS_CREATED, STATUS_ASSIGNED, STATUS_VALIDATED, STATUS_CONSOLIDATED)

# Ledger transaction types
TX_PURCHASE = "purchase"
TX_SALE = "sale"
TX_RETURN = "return"
TX_TRANSFER = "transfer"
TX_ASSIGNMENT = "assignment"

TRANSACTION_TYPES = (TX_PURCHASE, TX_SALE, TX_RETURN, TX_TRANSFER, TX_ASSIGNMENT)

# Count corrections; written by stock adjustments only, never requested directly
TX_ADJUSTMENT = "adjustment"

# Entity kinds a ledger entry can target
KIND_TANK = "tank"
KIND_ITEM = "item"


class InventoryAssignment(db.Model):
    """
    Daily custody record for one store-worker pairing.

    At most one per (pairing, date). Never hard-deleted; closing a day moves the
    status to consolidated and opens the next day's assignment.
    """
    __tablename__ = "inventory_assignments"
    __table_args__ = (
        db.UniqueConstraint(
            "store_assignment_id", "assignment_date", name="uq_inventory_assignments_pairing_date"
        ),
        db.Index("ix_inventory_assignments_date_status", "assignment_date", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_assignment_id = db.Column(
        db.Integer, db.ForeignKey("store_assignments.id"), nullable=False, index=True
    )
    assignment_date = db.Column(db.Date, nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=STATUS_CREATED, index=True)

    assigned_by_user_id = db.Column(db.Integer, nullable=False)
    auto_assignment = db.Column(db.Boolean, nullable=False, default=False)
    notes = db.Column(db.Text, nullable=True)

    # Set on carry-seeded assignments; unique so a day is rolled forward at most once
    carried_from_inventory_id = db.Column(
        db.Integer, db.ForeignKey("inventory_assignments.id"), nullable=True, unique=True
    )

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    store_assignment = db.relationship("StoreAssignment")
    tanks = db.relationship(
        "AssignmentTank",
        back_populates="assignment",
        lazy=True,
        order_by="AssignmentTank.tank_type_id",
    )
    items = db.relationship(
        "AssignmentItem",
        back_populates="assignment",
        lazy=True,
        order_by="AssignmentItem.inventory_item_id",
    )

    def __repr__(self) -> str:
        return (
            f"<InventoryAssignment id={self.id} pairing={self.store_assignment_id} "
            f"date={self.assignment_date} status={self.status}>"
        )

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "store_assignment_id": self.store_assignment_id,
            "assignment_date": to_iso_date(self.assignment_date),
            "status": self.status,
            "assigned_by_user_id": self.assigned_by_user_id,
            "auto_assignment": self.auto_assignment,
            "notes": self.notes,
            "carried_from_inventory_id": self.carried_from_inventory_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["tanks"] = [t.to_dict() for t in self.tanks]
            data["items"] = [i.to_dict() for i in self.items]
        return data


class AssignmentTank(db.Model):
    """
    Tank custody line. current_* counts are a cache of the ledger sums and are
    only written through the ledger repository.
    """
    __tablename__ = "assignment_tanks"
    __table_args__ = (
        db.UniqueConstraint("inventory_id", "tank_type_id", name="uq_assignment_tanks_inventory_tank"),
        db.CheckConstraint("current_full_tanks >= 0", name="ck_assignment_tanks_full_nonneg"),
        db.CheckConstraint("current_empty_tanks >= 0", name="ck_assignment_tanks_empty_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_id = db.Column(
        db.Integer, db.ForeignKey("inventory_assignments.id"), nullable=False, index=True
    )
    tank_type_id = db.Column(db.Integer, db.ForeignKey("tank_types.id"), nullable=False, index=True)

    # Snapshot of catalog defaults at creation (cents)
    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sell_price_cents = db.Column(db.Integer, nullable=False, default=0)

    opening_full_tanks = db.Column(db.Integer, nullable=False, default=0)
    opening_empty_tanks = db.Column(db.Integer, nullable=False, default=0)
    current_full_tanks = db.Column(db.Integer, nullable=False, default=0)
    current_empty_tanks = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    assignment = db.relationship("InventoryAssignment", back_populates="tanks")
    tank_type = db.relationship("TankType")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_id": self.inventory_id,
            "tank_type_id": self.tank_type_id,
            "purchase_price_cents": self.purchase_price_cents,
            "sell_price_cents": self.sell_price_cents,
            "opening_full_tanks": self.opening_full_tanks,
            "opening_empty_tanks": self.opening_empty_tanks,
            "current_full_tanks": self.current_full_tanks,
            "current_empty_tanks": self.current_empty_tanks,
        }


class AssignmentItem(db.Model):
    """Item custody line; current_quantity is a cache of the ledger sum."""
    __tablename__ = "assignment_items"
    __table_args__ = (
        db.UniqueConstraint("inventory_id", "inventory_item_id", name="uq_assignment_items_inventory_item"),
        db.CheckConstraint("current_quantity >= 0", name="ck_assignment_items_qty_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_id = db.Column(
        db.Integer, db.ForeignKey("inventory_assignments.id"), nullable=False, index=True
    )
    inventory_item_id = db.Column(
        db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True
    )

    purchase_price_cents = db.Column(db.Integer, nullable=False, default=0)
    sell_price_cents = db.Column(db.Integer, nullable=False, default=0)

    opening_quantity = db.Column(db.Integer, nullable=False, default=0)
    current_quantity = db.Column(db.Integer, nullable=False, default=0)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    assignment = db.relationship("InventoryAssignment", back_populates="items")
    inventory_item = db.relationship("InventoryItem")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_id": self.inventory_id,
            "inventory_item_id": self.inventory_item_id,
            "purchase_price_cents": self.purchase_price_cents,
            "sell_price_cents": self.sell_price_cents,
            "opening_quantity": self.opening_quantity,
            "current_quantity": self.current_quantity,
        }


class InventoryTransaction(db.Model):
    """
    Append-only ledger entry for a single quantity change.

    Exactly one of assignment_tank_id / assignment_item_id is set. Tank entries
    carry full/empty deltas, item entries carry item_change. Rows are never
    updated or deleted.
    """
    __tablename__ = "inventory_transactions"
    __table_args__ = (
        db.CheckConstraint(
            "(assignment_tank_id IS NULL) <> (assignment_item_id IS NULL)",
            name="ck_inventory_transactions_one_target",
        ),
        db.Index("ix_inventory_transactions_inventory_occurred", "inventory_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_id = db.Column(
        db.Integer, db.ForeignKey("inventory_assignments.id"), nullable=False, index=True
    )
    assignment_tank_id = db.Column(
        db.Integer, db.ForeignKey("assignment_tanks.id"), nullable=True, index=True
    )
    assignment_item_id = db.Column(
        db.Integer, db.ForeignKey("assignment_items.id"), nullable=True, index=True
    )

    transaction_type = db.Column(db.String(16), nullable=False, index=True)

    full_tanks_change = db.Column(db.Integer, nullable=False, default=0)
    empty_tanks_change = db.Column(db.Integer, nullable=False, default=0)
    item_change = db.Column(db.Integer, nullable=False, default=0)

    user_id = db.Column(db.Integer, nullable=False, index=True)
    reference_id = db.Column(db.String(64), nullable=True, index=True)
    notes = db.Column(db.String(1000), nullable=True)

    # Links the two legs of a transfer
    counterpart_transaction_id = db.Column(
        db.Integer, db.ForeignKey("inventory_transactions.id"), nullable=True
    )

    occurred_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    def __repr__(self) -> str:
        return (
            f"<InventoryTransaction id={self.id} inventory_id={self.inventory_id} "
            f"type={self.transaction_type}>"
        )

    @property
    def entity_kind(self) -> str:
        return KIND_TANK if self.assignment_tank_id is not None else KIND_ITEM

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_id": self.inventory_id,
            "entity_kind": self.entity_kind,
            "assignment_tank_id": self.assignment_tank_id,
            "assignment_item_id": self.assignment_item_id,
            "transaction_type": self.transaction_type,
            "full_tanks_change": self.full_tanks_change,
            "empty_tanks_change": self.empty_tanks_change,
            "item_change": self.item_change,
            "user_id": self.user_id,
            "reference_id": self.reference_id,
            "notes": self.notes,
            "counterpart_transaction_id": self.counterpart_transaction_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }
