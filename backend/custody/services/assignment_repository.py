# Overview: Persistence for the daily assignment aggregate (assignment + tank/item lines).

from __future__ import annotations

from datetime import date
from typing import Optional

from ..extensions import db
from ..models import AssignmentItem, AssignmentTank, InventoryAssignment, StoreAssignment
from ..models.inventory import STATUS_CONSOLIDATED, STATUS_CREATED
from ..validation import NotFoundError
from .concurrency import lock_for_update


class AssignmentRepository:
    def get(self, inventory_id: int) -> InventoryAssignment:
        assignment = db.session.get(InventoryAssignment, inventory_id)
        if assignment is None:
            raise NotFoundError("Inventory assignment not found")
        return assignment

    def lock(self, inventory_id: int) -> InventoryAssignment:
        query = db.session.query(InventoryAssignment).filter_by(id=inventory_id)
        assignment = lock_for_update(query).first()
        if assignment is None:
            raise NotFoundError("Inventory assignment not found")
        return assignment

    def find(
        self,
        *,
        user_id: Optional[int] = None,
        store_id: Optional[int] = None,
        assignment_date: Optional[date] = None,
        status: Optional[str] = None,
        limit: int = 200,
    ) -> list[InventoryAssignment]:
        query = db.session.query(InventoryAssignment)
        if user_id is not None or store_id is not None:
            query = query.join(
                StoreAssignment, StoreAssignment.id == InventoryAssignment.store_assignment_id
            )
            if user_id is not None:
                query = query.filter(StoreAssignment.user_id == user_id)
            if store_id is not None:
                query = query.filter(StoreAssignment.store_id == store_id)
        if assignment_date is not None:
            query = query.filter(InventoryAssignment.assignment_date == assignment_date)
        if status is not None:
            query = query.filter(InventoryAssignment.status == status)
        return (
            query.order_by(InventoryAssignment.assignment_date.desc(), InventoryAssignment.id.desc())
            .limit(limit)
            .all()
        )

    def find_for_pairing_and_date(
        self, store_assignment_id: int, assignment_date: date
    ) -> Optional[InventoryAssignment]:
        return (
            db.session.query(InventoryAssignment)
            .filter_by(store_assignment_id=store_assignment_id, assignment_date=assignment_date)
            .first()
        )

    def find_successor(self, inventory_id: int) -> Optional[InventoryAssignment]:
        return (
            db.session.query(InventoryAssignment)
            .filter_by(carried_from_inventory_id=inventory_id)
            .first()
        )

    def find_open_for_pairing(self, store_assignment_id: int) -> Optional[InventoryAssignment]:
        """
        The pairing's current daily assignment, if it is still open.

        Prefers the current_inventory_id pointer and falls back to the latest
        non-consolidated assignment.
        """
        pairing = db.session.get(StoreAssignment, store_assignment_id)
        if pairing is None:
            raise NotFoundError("Store assignment not found")
        if pairing.current_inventory_id is not None:
            current = db.session.get(InventoryAssignment, pairing.current_inventory_id)
            if current is not None and current.status != STATUS_CONSOLIDATED:
                return current
        return (
            db.session.query(InventoryAssignment)
            .filter(
                InventoryAssignment.store_assignment_id == store_assignment_id,
                InventoryAssignment.status != STATUS_CONSOLIDATED,
            )
            .order_by(InventoryAssignment.assignment_date.desc())
            .first()
        )

    def create(
        self,
        *,
        store_assignment_id: int,
        assignment_date: date,
        assigned_by_user_id: int,
        notes: Optional[str] = None,
        auto_assignment: bool = False,
        carried_from_inventory_id: Optional[int] = None,
    ) -> InventoryAssignment:
        assignment = InventoryAssignment(
            store_assignment_id=store_assignment_id,
            assignment_date=assignment_date,
            status=STATUS_CREATED,
            assigned_by_user_id=assigned_by_user_id,
            notes=notes,
            auto_assignment=auto_assignment,
            carried_from_inventory_id=carried_from_inventory_id,
        )
        db.session.add(assignment)
        db.session.flush()
        return assignment

    def add_tank_line(
        self, inventory_id: int, tank_type_id: int, purchase_price_cents: int, sell_price_cents: int
    ) -> AssignmentTank:
        """Lines always start at zero; opening stock enters through the ledger."""
        row = AssignmentTank(
            inventory_id=inventory_id,
            tank_type_id=tank_type_id,
            purchase_price_cents=purchase_price_cents,
            sell_price_cents=sell_price_cents,
            opening_full_tanks=0,
            opening_empty_tanks=0,
            current_full_tanks=0,
            current_empty_tanks=0,
        )
        db.session.add(row)
        db.session.flush()
        return row

    def add_item_line(
        self, inventory_id: int, inventory_item_id: int, purchase_price_cents: int, sell_price_cents: int
    ) -> AssignmentItem:
        row = AssignmentItem(
            inventory_id=inventory_id,
            inventory_item_id=inventory_item_id,
            purchase_price_cents=purchase_price_cents,
            sell_price_cents=sell_price_cents,
            opening_quantity=0,
            current_quantity=0,
        )
        db.session.add(row)
        db.session.flush()
        return row

    def tank_lines(self, inventory_id: int) -> list[AssignmentTank]:
        return (
            db.session.query(AssignmentTank)
            .filter_by(inventory_id=inventory_id)
            .order_by(AssignmentTank.tank_type_id.asc())
            .all()
        )

    def item_lines(self, inventory_id: int) -> list[AssignmentItem]:
        return (
            db.session.query(AssignmentItem)
            .filter_by(inventory_id=inventory_id)
            .order_by(AssignmentItem.inventory_item_id.asc())
            .all()
        )

    def update_status(self, assignment: InventoryAssignment, status: str) -> InventoryAssignment:
        assignment.status = status
        db.session.flush()
        return assignment

    def point_pairing_at(self, store_assignment_id: int, inventory_id: int) -> None:
        pairing = db.session.get(StoreAssignment, store_assignment_id)
        if pairing is None:
            raise NotFoundError("Store assignment not found")
        pairing.current_inventory_id = inventory_id
        db.session.flush()

    @staticmethod
    def with_lines(assignment: InventoryAssignment) -> dict:
        """Serialize with tank/item lines, reloading collections written by FK."""
        db.session.expire(assignment, ["tanks", "items"])
        return assignment.to_dict(include_lines=True)
