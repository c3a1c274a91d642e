# Overview: End-of-day consolidation: close an assignment and open the next one with carried quantities.

from __future__ import annotations

import logging
from typing import Optional

from ..models import InventoryAssignment
from ..models.inventory import (
    STATUS_CONSOLIDATED,
    STATUS_CREATED,
    STATUS_VALIDATED,
    TX_ASSIGNMENT,
)
from ..validation import ConflictError
from .assignment_repository import AssignmentRepository
from .catalog_provider import CatalogProvider
from .concurrency import run_in_transaction
from .date_service import InventoryDateService
from .ledger_repository import LedgerRepository
from .status_history_service import StatusHistoryService, automated_reason, stale_recovery_notes


logger = logging.getLogger(__name__)


class ConsolidationWorkflow:
    """
    Closes one day's custody and opens the next.

    Everything happens in one unit of work: the source is never left
    consolidated without its next-day assignment.
    """

    def __init__(
        self,
        assignments: AssignmentRepository,
        ledger: LedgerRepository,
        catalog: CatalogProvider,
        history: StatusHistoryService,
        date_service: InventoryDateService,
    ):
        self.assignments = assignments
        self.ledger = ledger
        self.catalog = catalog
        self.history = history
        self.date_service = date_service

    def consolidate_and_create_next(
        self,
        inventory_id: int,
        user_id: int,
        skip_weekends: bool = False,
        *,
        automated: bool = True,
        notes: Optional[str] = None,
    ) -> dict:
        return run_in_transaction(
            lambda: self.consolidate_in_session(
                inventory_id, user_id, skip_weekends, automated=automated, notes=notes
            )
        )

    def consolidate_in_session(
        self,
        inventory_id: int,
        user_id: int,
        skip_weekends: bool = False,
        *,
        automated: bool = True,
        notes: Optional[str] = None,
    ) -> dict:
        """Same as consolidate_and_create_next but inside the caller's unit of work."""
        current = self.assignments.lock(inventory_id)

        if current.status == STATUS_CONSOLIDATED:
            return self._already_consolidated(current)

        if current.status != STATUS_VALIDATED:
            raise ConflictError(
                f"Cannot consolidate inventory assignment in status '{current.status}'; "
                f"it must be '{STATUS_VALIDATED}'"
            )

        today = self.date_service.get_current_date_in_timezone()
        stale = self.date_service.is_stale_inventory(current.assignment_date, today)
        next_date = self.date_service.calculate_next_inventory_date(current.assignment_date, skip_weekends)

        closing_tanks = self.assignments.tank_lines(current.id)
        closing_items = self.assignments.item_lines(current.id)

        self.assignments.update_status(current, STATUS_CONSOLIDATED)
        history_notes = f"Inventory consolidated. Next inventory scheduled for {next_date.isoformat()}."
        if notes:
            history_notes += " " + notes
        if stale:
            history_notes += " " + stale_recovery_notes(
                f"Stale inventory (original date {current.assignment_date.isoformat()}, "
                f"consolidated {today.isoformat()}); next inventory created for today."
            )
        self.history.record_transition(
            current.id,
            STATUS_VALIDATED,
            STATUS_CONSOLIDATED,
            user_id,
            reason=automated_reason("Workflow consolidation") if automated else "Consolidated by user",
            notes=history_notes,
        )

        next_day = self._next_day_assignment(current, next_date, user_id, stale)
        self._carry_forward(current, next_day, closing_tanks, closing_items, user_id)
        self.assignments.point_pairing_at(current.store_assignment_id, next_day.id)

        if stale:
            logger.warning(
                "Stale recovery: inventory %s dated %s consolidated on %s; next inventory %s re-anchored to %s",
                current.id, current.assignment_date, today, next_day.id, next_date,
            )
        logger.info("Consolidated inventory %s into %s (%s)", current.id, next_day.id, next_date)

        return {
            "current_inventory": current.to_dict(),
            "next_day_inventory": self.assignments.with_lines(next_day),
            "stale_recovery": stale,
            "already_consolidated": False,
        }

    def _already_consolidated(self, current: InventoryAssignment) -> dict:
        successor = self.assignments.find_successor(current.id)
        if successor is None:
            raise ConflictError(
                f"Inventory assignment {current.id} is consolidated but has no next-day assignment"
            )
        return {
            "current_inventory": current.to_dict(),
            "next_day_inventory": self.assignments.with_lines(successor),
            "stale_recovery": False,
            "already_consolidated": True,
        }

    def _next_day_assignment(self, current, next_date, user_id, stale) -> InventoryAssignment:
        existing = self.assignments.find_for_pairing_and_date(current.store_assignment_id, next_date)
        if existing is not None:
            if (
                existing.status != STATUS_CREATED
                or existing.carried_from_inventory_id is not None
                or self.ledger.has_activity(existing.id)
            ):
                raise ConflictError(
                    f"An inventory assignment for {next_date.isoformat()} already exists and is in use"
                )
            existing.carried_from_inventory_id = current.id
            return existing

        if stale:
            notes = "Inventory created by stale workflow recovery"
        else:
            notes = "Inventory created automatically from the previous day's consolidation"
        next_day = self.assignments.create(
            store_assignment_id=current.store_assignment_id,
            assignment_date=next_date,
            assigned_by_user_id=user_id,
            notes=notes,
            auto_assignment=True,
            carried_from_inventory_id=current.id,
        )
        self.history.record_transition(
            next_day.id,
            None,
            STATUS_CREATED,
            user_id,
            reason=automated_reason("Inventory creation"),
            notes=(
                f"Created for {next_date.isoformat()} with opening quantities carried from "
                f"inventory {current.id}."
            ),
        )
        return next_day

    def _carry_forward(self, current, next_day, closing_tanks, closing_items, user_id) -> None:
        """
        Closing counts become opening counts. Each non-zero opening enters through
        an assignment ledger entry so the cache still equals the ledger sum.
        """
        entry = dict(
            transaction_type=TX_ASSIGNMENT,
            user_id=user_id,
            reference_id=f"carry:{current.id}",
            notes=f"Carried forward from inventory {current.id}",
        )

        tank_rows = {row.tank_type_id: row for row in self.assignments.tank_lines(next_day.id)}
        for closing in closing_tanks:
            row = tank_rows.get(closing.tank_type_id)
            if row is None:
                row = self.assignments.add_tank_line(
                    next_day.id, closing.tank_type_id,
                    closing.purchase_price_cents, closing.sell_price_cents,
                )
                tank_rows[closing.tank_type_id] = row
            row.opening_full_tanks = closing.current_full_tanks
            row.opening_empty_tanks = closing.current_empty_tanks
            if closing.current_full_tanks or closing.current_empty_tanks:
                self.ledger.apply_tank_change(
                    row, closing.current_full_tanks, closing.current_empty_tanks, **entry
                )

        item_rows = {row.inventory_item_id: row for row in self.assignments.item_lines(next_day.id)}
        for closing in closing_items:
            row = item_rows.get(closing.inventory_item_id)
            if row is None:
                row = self.assignments.add_item_line(
                    next_day.id, closing.inventory_item_id,
                    closing.purchase_price_cents, closing.sell_price_cents,
                )
                item_rows[closing.inventory_item_id] = row
            row.opening_quantity = closing.current_quantity
            if closing.current_quantity:
                self.ledger.apply_item_change(row, closing.current_quantity, **entry)

        # Catalog entries the store gained since the closing day start at zero
        store_id = self.catalog.get_pairing(current.store_assignment_id).store_id
        for tank in self.catalog.tanks_for_store(store_id):
            if tank.tank_type_id not in tank_rows:
                tank_rows[tank.tank_type_id] = self.assignments.add_tank_line(
                    next_day.id, tank.tank_type_id, tank.purchase_price_cents, tank.sell_price_cents
                )
        for item in self.catalog.items_for_store(store_id):
            if item.inventory_item_id not in item_rows:
                item_rows[item.inventory_item_id] = self.assignments.add_item_line(
                    next_day.id, item.inventory_item_id, item.purchase_price_cents, item.sell_price_cents
                )
