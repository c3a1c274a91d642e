# Overview: Ledger repository; the single mutation path for custody quantities.

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import func

from ..extensions import db
from ..models import AssignmentItem, AssignmentTank, InventoryTransaction
from ..models.inventory import KIND_ITEM, KIND_TANK
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import lock_for_update

"""
Custody ledger invariants (authoritative)

- InventoryTransaction rows are append-only; the ledger is the source of truth.
- AssignmentTank.current_full_tanks / current_empty_tanks and
  AssignmentItem.current_quantity are a cache of SUM(deltas) per row.
- apply_tank_change / apply_item_change are the only functions that write the
  cache. They lock the row, check the projected counts, append the ledger entry
  and update the cache in the caller's unit of work (flush, never commit).
- A change that would drive any count below zero raises ConflictError before
  anything is written.
"""


def _insufficient(label: str, available: int, requested: int) -> ConflictError:
    return ConflictError(f"Insufficient {label}. Available: {available}, requested: {requested}")


class LedgerRepository:
    def __init__(self, clock=None):
        # clock() -> naive UTC datetime; defaults to the DB server time
        self._clock = clock

    def _occurred_at(self, occurred_at: Optional[datetime]) -> Optional[datetime]:
        if occurred_at is not None:
            return occurred_at
        return self._clock() if self._clock else None

    # -- row access ---------------------------------------------------------

    def lock_tank(self, inventory_id: int, tank_type_id: int) -> AssignmentTank:
        query = db.session.query(AssignmentTank).filter_by(
            inventory_id=inventory_id, tank_type_id=tank_type_id
        )
        row = lock_for_update(query).first()
        if row is None:
            raise NotFoundError("Tank type is not part of this inventory assignment")
        return row

    def lock_item(self, inventory_id: int, inventory_item_id: int) -> AssignmentItem:
        query = db.session.query(AssignmentItem).filter_by(
            inventory_id=inventory_id, inventory_item_id=inventory_item_id
        )
        row = lock_for_update(query).first()
        if row is None:
            raise NotFoundError("Item is not part of this inventory assignment")
        return row

    # -- mutation primitive -------------------------------------------------

    def apply_tank_change(
        self,
        row: AssignmentTank,
        full_change: int,
        empty_change: int,
        *,
        transaction_type: str,
        user_id: int,
        reference_id: Optional[str] = None,
        notes: Optional[str] = None,
        counterpart_transaction_id: Optional[int] = None,
        occurred_at: Optional[datetime] = None,
    ) -> InventoryTransaction:
        new_full = row.current_full_tanks + full_change
        new_empty = row.current_empty_tanks + empty_change
        if new_full < 0:
            raise _insufficient("full tanks", row.current_full_tanks, -full_change)
        if new_empty < 0:
            raise _insufficient("empty tanks", row.current_empty_tanks, -empty_change)

        tx = InventoryTransaction(
            inventory_id=row.inventory_id,
            assignment_tank_id=row.id,
            transaction_type=transaction_type,
            full_tanks_change=full_change,
            empty_tanks_change=empty_change,
            item_change=0,
            user_id=user_id,
            reference_id=reference_id,
            notes=notes,
            counterpart_transaction_id=counterpart_transaction_id,
        )
        at = self._occurred_at(occurred_at)
        if at is not None:
            tx.occurred_at = at
        db.session.add(tx)

        row.current_full_tanks = new_full
        row.current_empty_tanks = new_empty
        db.session.flush()
        return tx

    def apply_item_change(
        self,
        row: AssignmentItem,
        item_change: int,
        *,
        transaction_type: str,
        user_id: int,
        reference_id: Optional[str] = None,
        notes: Optional[str] = None,
        counterpart_transaction_id: Optional[int] = None,
        occurred_at: Optional[datetime] = None,
    ) -> InventoryTransaction:
        new_quantity = row.current_quantity + item_change
        if new_quantity < 0:
            raise _insufficient("items", row.current_quantity, -item_change)

        tx = InventoryTransaction(
            inventory_id=row.inventory_id,
            assignment_item_id=row.id,
            transaction_type=transaction_type,
            full_tanks_change=0,
            empty_tanks_change=0,
            item_change=item_change,
            user_id=user_id,
            reference_id=reference_id,
            notes=notes,
            counterpart_transaction_id=counterpart_transaction_id,
        )
        at = self._occurred_at(occurred_at)
        if at is not None:
            tx.occurred_at = at
        db.session.add(tx)

        row.current_quantity = new_quantity
        db.session.flush()
        return tx

    @staticmethod
    def link_counterparts(first: InventoryTransaction, second: InventoryTransaction) -> None:
        """Cross-reference the two legs of a transfer (the only permitted post-insert write)."""
        first.counterpart_transaction_id = second.id
        second.counterpart_transaction_id = first.id
        db.session.flush()

    # -- convenience wrappers ------------------------------------------------
    # Quantities are magnitudes; the wrapper picks the sign.

    @staticmethod
    def _magnitude(value: int, field: str) -> int:
        if value < 0:
            raise ValidationError(f"{field} must not be negative", field=field)
        return value

    def increment_tank_by_inventory_id(
        self, inventory_id: int, tank_type_id: int, *, full: int = 0, empty: int = 0, **entry
    ) -> InventoryTransaction:
        row = self.lock_tank(inventory_id, tank_type_id)
        return self.apply_tank_change(
            row, self._magnitude(full, "full"), self._magnitude(empty, "empty"), **entry
        )

    def decrement_tank_by_inventory_id(
        self, inventory_id: int, tank_type_id: int, *, full: int = 0, empty: int = 0, **entry
    ) -> InventoryTransaction:
        row = self.lock_tank(inventory_id, tank_type_id)
        return self.apply_tank_change(
            row, -self._magnitude(full, "full"), -self._magnitude(empty, "empty"), **entry
        )

    def increment_item_by_inventory_id(
        self, inventory_id: int, inventory_item_id: int, quantity: int, **entry
    ) -> InventoryTransaction:
        row = self.lock_item(inventory_id, inventory_item_id)
        return self.apply_item_change(row, self._magnitude(quantity, "quantity"), **entry)

    def decrement_item_by_inventory_id(
        self, inventory_id: int, inventory_item_id: int, quantity: int, **entry
    ) -> InventoryTransaction:
        row = self.lock_item(inventory_id, inventory_item_id)
        return self.apply_item_change(row, -self._magnitude(quantity, "quantity"), **entry)

    # -- reads ----------------------------------------------------------------

    def get_current_tank_quantities(self, inventory_id: int, tank_type_id: int) -> dict:
        row = (
            db.session.query(AssignmentTank)
            .filter_by(inventory_id=inventory_id, tank_type_id=tank_type_id)
            .first()
        )
        if row is None:
            raise NotFoundError("Tank type is not part of this inventory assignment")
        return {"full_tanks": row.current_full_tanks, "empty_tanks": row.current_empty_tanks}

    def get_current_item_quantity(self, inventory_id: int, inventory_item_id: int) -> int:
        row = (
            db.session.query(AssignmentItem)
            .filter_by(inventory_id=inventory_id, inventory_item_id=inventory_item_id)
            .first()
        )
        if row is None:
            raise NotFoundError("Item is not part of this inventory assignment")
        return row.current_quantity

    def list_transactions(
        self,
        inventory_id: int,
        *,
        entity_kind: Optional[str] = None,
        transaction_type: Optional[str] = None,
        limit: int = 200,
    ) -> list[InventoryTransaction]:
        query = db.session.query(InventoryTransaction).filter_by(inventory_id=inventory_id)
        if entity_kind == KIND_TANK:
            query = query.filter(InventoryTransaction.assignment_tank_id.isnot(None))
        elif entity_kind == KIND_ITEM:
            query = query.filter(InventoryTransaction.assignment_item_id.isnot(None))
        if transaction_type:
            query = query.filter_by(transaction_type=transaction_type)
        return (
            query.order_by(InventoryTransaction.occurred_at.asc(), InventoryTransaction.id.asc())
            .limit(limit)
            .all()
        )

    def has_activity(self, inventory_id: int) -> bool:
        return (
            db.session.query(InventoryTransaction.id).filter_by(inventory_id=inventory_id).first()
            is not None
        )

    def totals_by_type(self, inventory_id: int) -> dict:
        """
        Ledger sums per line and transaction type.

        Keys are ("tank", assignment_tank_id) / ("item", assignment_item_id);
        values map transaction_type -> {"full_tanks", "empty_tanks", "items"}.
        """
        rows = (
            db.session.query(
                InventoryTransaction.assignment_tank_id,
                InventoryTransaction.assignment_item_id,
                InventoryTransaction.transaction_type,
                func.sum(InventoryTransaction.full_tanks_change),
                func.sum(InventoryTransaction.empty_tanks_change),
                func.sum(InventoryTransaction.item_change),
            )
            .filter(InventoryTransaction.inventory_id == inventory_id)
            .group_by(
                InventoryTransaction.assignment_tank_id,
                InventoryTransaction.assignment_item_id,
                InventoryTransaction.transaction_type,
            )
            .all()
        )
        totals: dict = {}
        for tank_id, item_id, tx_type, full, empty, items in rows:
            key = (KIND_TANK, tank_id) if tank_id is not None else (KIND_ITEM, item_id)
            totals.setdefault(key, {})[tx_type] = {
                "full_tanks": full or 0,
                "empty_tanks": empty or 0,
                "items": items or 0,
            }
        return totals

    def find_ledger_mismatches(self, inventory_id: int) -> list[dict]:
        """
        Compare cached counts with ledger sums for every line of an assignment.

        Empty list means the cache and the ledger agree.
        """
        tank_sums = dict(
            (row_id, (full or 0, empty or 0))
            for row_id, full, empty in db.session.query(
                InventoryTransaction.assignment_tank_id,
                func.sum(InventoryTransaction.full_tanks_change),
                func.sum(InventoryTransaction.empty_tanks_change),
            )
            .filter(
                InventoryTransaction.inventory_id == inventory_id,
                InventoryTransaction.assignment_tank_id.isnot(None),
            )
            .group_by(InventoryTransaction.assignment_tank_id)
            .all()
        )
        item_sums = dict(
            (row_id, total or 0)
            for row_id, total in db.session.query(
                InventoryTransaction.assignment_item_id,
                func.sum(InventoryTransaction.item_change),
            )
            .filter(
                InventoryTransaction.inventory_id == inventory_id,
                InventoryTransaction.assignment_item_id.isnot(None),
            )
            .group_by(InventoryTransaction.assignment_item_id)
            .all()
        )

        mismatches = []
        for tank in db.session.query(AssignmentTank).filter_by(inventory_id=inventory_id).all():
            ledger_full, ledger_empty = tank_sums.get(tank.id, (0, 0))
            if (ledger_full, ledger_empty) != (tank.current_full_tanks, tank.current_empty_tanks):
                mismatches.append({
                    "entity_kind": KIND_TANK,
                    "tank_type_id": tank.tank_type_id,
                    "cached": {"full_tanks": tank.current_full_tanks, "empty_tanks": tank.current_empty_tanks},
                    "ledger": {"full_tanks": ledger_full, "empty_tanks": ledger_empty},
                })
        for item in db.session.query(AssignmentItem).filter_by(inventory_id=inventory_id).all():
            ledger_qty = item_sums.get(item.id, 0)
            if ledger_qty != item.current_quantity:
                mismatches.append({
                    "entity_kind": KIND_ITEM,
                    "inventory_item_id": item.inventory_item_id,
                    "cached": {"quantity": item.current_quantity},
                    "ledger": {"quantity": ledger_qty},
                })
        return mismatches
