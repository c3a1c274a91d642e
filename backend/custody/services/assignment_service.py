# Overview: Service-layer operations for daily inventory assignments; status machine and legacy delivery API.

"""
Daily Inventory Assignment Service

================================================================================
PURPOSE: Own the lifecycle of a worker's daily custody record
================================================================================

STATE MACHINE:
    created -> assigned -> validated -> consolidated

    created:      Catalog-seeded lines, all quantities zero
    assigned:     Worker has recorded opening counts
    validated:    Counts reconciled and approved
    consolidated: Closed for the day; the next day's assignment exists

RULES:
1. Transitions move exactly one step forward (no skipping, no reversing)
2. Every transition writes a status history entry in the same unit of work
3. consolidated is entered only through the consolidation workflow
4. Fresh assignments start at zero regardless of catalog prices; only
   consolidation seeds opening quantities (carry-forward)

LEGACY DELIVERY API:
delivery_out / delivery_return accept the old per-line delta payloads and run
each line through the transaction processor, so there is one mutation path.

STOCK ADJUSTMENT:
stock_adjustment posts (adjusted - current) per line as an "adjustment" ledger
entry, so physical count corrections stay out of the sale and purchase totals.
================================================================================
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from sqlalchemy.exc import IntegrityError

from ..models.inventory import (
    ASSIGNMENT_STATUSES,
    KIND_ITEM,
    KIND_TANK,
    STATUS_ASSIGNED,
    STATUS_CONSOLIDATED,
    STATUS_CREATED,
    STATUS_VALIDATED,
    TX_ADJUSTMENT,
    TX_RETURN,
    TX_SALE,
)
from ..validation import (
    ConflictError,
    ValidationError,
    coerce_bool,
    coerce_int,
    coerce_notes,
    coerce_optional_id,
)
from .assignment_repository import AssignmentRepository
from .catalog_provider import CatalogProvider
from .concurrency import run_in_transaction
from .consolidation_service import ConsolidationWorkflow
from .date_service import InventoryDateService
from .ledger_repository import LedgerRepository
from .status_history_service import StatusHistoryService
from .transactions import TANK_EMPTY, TANK_FULL, TransactionProcessor, TransactionRequest


logger = logging.getLogger(__name__)


NEXT_STATUS = {
    STATUS_CREATED: STATUS_ASSIGNED,
    STATUS_ASSIGNED: STATUS_VALIDATED,
    STATUS_VALIDATED: STATUS_CONSOLIDATED,
}


def validate_status(status) -> str:
    if not isinstance(status, str) or status.strip().lower() not in ASSIGNMENT_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(ASSIGNMENT_STATUSES)}",
            field="status",
        )
    return status.strip().lower()


def can_transition(from_status: str, to_status: str) -> bool:
    return NEXT_STATUS.get(from_status) == to_status


class AssignmentService:
    def __init__(
        self,
        assignments: AssignmentRepository,
        ledger: LedgerRepository,
        catalog: CatalogProvider,
        history: StatusHistoryService,
        date_service: InventoryDateService,
        processor: TransactionProcessor,
        consolidation: ConsolidationWorkflow,
        skip_weekends_default: bool = False,
    ):
        self.assignments = assignments
        self.ledger = ledger
        self.catalog = catalog
        self.history = history
        self.date_service = date_service
        self.processor = processor
        self.consolidation = consolidation
        self.skip_weekends_default = skip_weekends_default

    # -- reads ------------------------------------------------------------------

    def find_assignments(
        self,
        *,
        user_id: Optional[int] = None,
        store_id: Optional[int] = None,
        assignment_date: Optional[date] = None,
        status: Optional[str] = None,
    ) -> list[dict]:
        if status is not None:
            status = validate_status(status)
        rows = self.assignments.find(
            user_id=user_id, store_id=store_id, assignment_date=assignment_date, status=status
        )
        return [row.to_dict() for row in rows]

    def get_assignment(self, inventory_id: int) -> dict:
        return self.assignments.with_lines(self.assignments.get(inventory_id))

    def list_transactions(self, inventory_id: int, *, entity_kind=None, transaction_type=None, limit=200):
        self.assignments.get(inventory_id)
        if entity_kind is not None and entity_kind not in (KIND_TANK, KIND_ITEM):
            raise ValidationError("entity_kind must be 'tank' or 'item'", field="entity_kind")
        rows = self.ledger.list_transactions(
            inventory_id, entity_kind=entity_kind, transaction_type=transaction_type, limit=limit
        )
        return [row.to_dict() for row in rows]

    def get_reconciliation(self, inventory_id: int) -> dict:
        """Opening vs current per line, ledger totals per type, and any cache/ledger mismatch."""
        assignment = self.assignments.get(inventory_id)
        totals = self.ledger.totals_by_type(inventory_id)

        tanks = []
        for row in self.assignments.tank_lines(inventory_id):
            by_type = totals.get((KIND_TANK, row.id), {})
            tanks.append({
                "tank_type_id": row.tank_type_id,
                "opening": {"full_tanks": row.opening_full_tanks, "empty_tanks": row.opening_empty_tanks},
                "current": {"full_tanks": row.current_full_tanks, "empty_tanks": row.current_empty_tanks},
                "by_transaction_type": {
                    tx_type: {"full_tanks": t["full_tanks"], "empty_tanks": t["empty_tanks"]}
                    for tx_type, t in by_type.items()
                },
            })
        items = []
        for row in self.assignments.item_lines(inventory_id):
            by_type = totals.get((KIND_ITEM, row.id), {})
            items.append({
                "inventory_item_id": row.inventory_item_id,
                "opening": row.opening_quantity,
                "current": row.current_quantity,
                "by_transaction_type": {tx_type: t["items"] for tx_type, t in by_type.items()},
            })

        mismatches = self.ledger.find_ledger_mismatches(inventory_id)
        return {
            "inventory_id": assignment.id,
            "status": assignment.status,
            "assignment_date": assignment.assignment_date.isoformat(),
            "tanks": tanks,
            "items": items,
            "ledger_consistent": not mismatches,
            "mismatches": mismatches,
        }

    # -- creation ---------------------------------------------------------------

    def create_inventory_assignment(
        self,
        store_assignment_id: int,
        assignment_date: date,
        assigned_by: int,
        notes: Optional[str] = None,
    ) -> dict:
        def _op():
            return self.assignments.with_lines(
                self._create_in_session(store_assignment_id, assignment_date, assigned_by, notes)
            )

        try:
            return run_in_transaction(_op)
        except IntegrityError:
            # Lost a race on the (pairing, date) unique constraint
            raise ConflictError(
                f"An inventory assignment already exists for {assignment_date.isoformat()}"
            )

    def _create_in_session(self, store_assignment_id, assignment_date, assigned_by, notes):
        pairing = self.catalog.get_pairing(store_assignment_id)
        if pairing.start_date and assignment_date < pairing.start_date:
            raise ValidationError("assignment_date is before the store assignment starts", field="assignment_date")
        if pairing.end_date and assignment_date > pairing.end_date:
            raise ValidationError("assignment_date is after the store assignment ends", field="assignment_date")
        if self.assignments.find_for_pairing_and_date(store_assignment_id, assignment_date) is not None:
            raise ConflictError(
                f"An inventory assignment already exists for {assignment_date.isoformat()}"
            )

        assignment = self.assignments.create(
            store_assignment_id=store_assignment_id,
            assignment_date=assignment_date,
            assigned_by_user_id=assigned_by,
            notes=coerce_notes(notes),
        )
        for tank in self.catalog.tanks_for_store(pairing.store_id):
            self.assignments.add_tank_line(
                assignment.id, tank.tank_type_id, tank.purchase_price_cents, tank.sell_price_cents
            )
        for item in self.catalog.items_for_store(pairing.store_id):
            self.assignments.add_item_line(
                assignment.id, item.inventory_item_id, item.purchase_price_cents, item.sell_price_cents
            )

        self.history.record_transition(
            assignment.id, None, STATUS_CREATED, assigned_by,
            reason="Inventory assignment created",
            notes=assignment.notes,
        )
        self.assignments.point_pairing_at(store_assignment_id, assignment.id)
        logger.info(
            "Created inventory assignment %s for pairing %s on %s",
            assignment.id, store_assignment_id, assignment_date,
        )
        return assignment

    def create_or_get_todays_inventory(self, store_assignment_id: int, assigned_by: int) -> tuple[dict, bool]:
        """Returns (assignment, created)."""
        today = self.date_service.get_current_date_in_timezone()
        existing = self.assignments.find_for_pairing_and_date(store_assignment_id, today)
        if existing is not None:
            return self.assignments.with_lines(existing), False
        return self.create_inventory_assignment(store_assignment_id, today, assigned_by), True

    # -- status -----------------------------------------------------------------

    def update_assignment_status(
        self,
        inventory_id: int,
        status,
        user_id: int,
        skip_weekends=None,
        notes: Optional[str] = None,
    ) -> dict:
        new_status = validate_status(status)
        skip = coerce_bool(skip_weekends, "skip_weekends", default=self.skip_weekends_default)

        if new_status == STATUS_CONSOLIDATED:
            return self.consolidation.consolidate_and_create_next(
                inventory_id, user_id, skip, automated=False, notes=coerce_notes(notes)
            )

        def _op():
            assignment = self.assignments.lock(inventory_id)
            current = assignment.status
            if not can_transition(current, new_status):
                raise ConflictError(f"Invalid status transition: {current} -> {new_status}")
            self.assignments.update_status(assignment, new_status)
            self.history.record_transition(
                assignment.id, current, new_status, user_id,
                reason="Status updated by user",
                notes=coerce_notes(notes),
            )
            return {"current_inventory": assignment.to_dict()}

        result = run_in_transaction(_op)
        logger.info("Inventory %s moved to %s by user %s", inventory_id, new_status, user_id)
        return result

    # -- legacy delivery API ---------------------------------------------------

    def delivery_out(self, inventory_id: int, user_id: int, lines: list) -> dict:
        """Goods leaving with the worker to customers: one sale per line."""
        return self._run_lines(inventory_id, user_id, lines, TX_SALE)

    def delivery_return(self, inventory_id: int, user_id: int, lines: list) -> dict:
        """Goods coming back: one return per line; is_empty picks the tank discriminator."""
        return self._run_lines(inventory_id, user_id, lines, TX_RETURN)

    def _run_lines(self, inventory_id, user_id, lines, transaction_type) -> dict:
        if not isinstance(lines, list) or not lines:
            raise ValidationError("lines must be a non-empty list", field="lines")

        requests = []
        for line in lines:
            if not isinstance(line, dict):
                raise ValidationError("Each line must be an object", field="lines")
            payload = {
                "inventory_id": inventory_id,
                "transaction_type": transaction_type,
                "quantity": line.get("quantity"),
                "tank_type_id": line.get("tank_type_id"),
                "inventory_item_id": line.get("inventory_item_id"),
                "reference_id": line.get("reference_id"),
                "notes": line.get("notes"),
            }
            if line.get("tank_type_id") is not None:
                is_empty = coerce_bool(line.get("is_empty"), "is_empty", default=False)
                payload["tank_type"] = TANK_EMPTY if is_empty else TANK_FULL
            requests.append(TransactionRequest.from_payload(payload, user_id))

        def _op():
            return [self.processor.execute(request) for request in requests]

        results = run_in_transaction(_op)
        return {"success": True, "inventory_id": inventory_id, "results": results}


    # -- stock adjustment --------------------------------------------------------

    def stock_adjustment(self, inventory_id: int, user_id: int, adjustments: list) -> dict:
        """
        Correct counted quantities after a physical count.

        Each line carries the count the caller saw (current_quantity) and the
        count it should become (adjusted_quantity). The signed difference is
        posted as an adjustment ledger entry with the reason in its notes. A line
        whose current_quantity no longer matches the cache is rejected with
        ConflictError and nothing from the request is written.
        """
        if not isinstance(adjustments, list) or not adjustments:
            raise ValidationError("adjustments must be a non-empty list", field="adjustments")
        lines = [self._parse_adjustment(line) for line in adjustments]

        def _op():
            assignment = self.assignments.lock(inventory_id)
            if assignment.status == STATUS_CONSOLIDATED:
                raise ConflictError(
                    f"Inventory assignment {inventory_id} is consolidated; adjust the next day's assignment"
                )
            return [self._apply_adjustment(inventory_id, user_id, line) for line in lines]

        results = run_in_transaction(_op)
        logger.info(
            "Stock adjustment on inventory %s by user %s: %d line(s)", inventory_id, user_id, len(results)
        )
        return {"success": True, "inventory_id": inventory_id, "adjustments": results}

    @staticmethod
    def _parse_adjustment(line) -> dict:
        if not isinstance(line, dict):
            raise ValidationError("Each adjustment must be an object", field="adjustments")

        tank_type_id = coerce_optional_id(line.get("tank_type_id"), "tank_type_id")
        inventory_item_id = coerce_optional_id(line.get("inventory_item_id"), "inventory_item_id")
        if (tank_type_id is None) == (inventory_item_id is None):
            raise ValidationError(
                "Exactly one of tank_type_id or inventory_item_id is required",
                field="tank_type_id" if tank_type_id is None else "inventory_item_id",
            )

        counts = {}
        for field in ("current_quantity", "adjusted_quantity"):
            counts[field] = coerce_int(line.get(field), field)
            if counts[field] < 0:
                raise ValidationError(f"{field} must not be negative", field=field)

        reason = coerce_notes(line.get("reason"), "reason")
        if reason is None:
            raise ValidationError("reason is required", field="reason")

        tank_type = line.get("tank_type")
        if tank_type_id is not None:
            tank_type = TANK_FULL if tank_type is None else str(tank_type).strip().lower()
            if tank_type not in (TANK_FULL, TANK_EMPTY):
                raise ValidationError("tank_type must be 'full' or 'empty'", field="tank_type")
        elif tank_type is not None:
            raise ValidationError("tank_type only applies to tank adjustments", field="tank_type")

        return {
            "tank_type_id": tank_type_id,
            "inventory_item_id": inventory_item_id,
            "tank_type": tank_type,
            "reason": reason,
            **counts,
        }

    def _apply_adjustment(self, inventory_id: int, user_id: int, line: dict) -> dict:
        entry = dict(
            transaction_type=TX_ADJUSTMENT,
            user_id=user_id,
            notes=f"Stock adjustment: {line['reason']}",
        )
        expected = line["current_quantity"]
        difference = line["adjusted_quantity"] - expected
        tx = None

        if line["tank_type_id"] is not None:
            tank_type_id = line["tank_type_id"]
            row = self.ledger.lock_tank(inventory_id, tank_type_id)
            on_hand = row.current_full_tanks if line["tank_type"] == TANK_FULL else row.current_empty_tanks
            if on_hand != expected:
                raise ConflictError(
                    f"Count for tank type {tank_type_id} ({line['tank_type']}) changed: "
                    f"expected {expected}, on hand {on_hand}"
                )
            change = {line["tank_type"]: abs(difference)}
            if difference > 0:
                tx = self.ledger.increment_tank_by_inventory_id(inventory_id, tank_type_id, **change, **entry)
            elif difference < 0:
                tx = self.ledger.decrement_tank_by_inventory_id(inventory_id, tank_type_id, **change, **entry)
            return {
                "tank_type_id": tank_type_id,
                "tank_type": line["tank_type"],
                "difference": difference,
                "transaction": tx.to_dict() if tx is not None else None,
                "current_quantities": {
                    "full_tanks": row.current_full_tanks,
                    "empty_tanks": row.current_empty_tanks,
                },
            }

        item_id = line["inventory_item_id"]
        row = self.ledger.lock_item(inventory_id, item_id)
        if row.current_quantity != expected:
            raise ConflictError(
                f"Count for item {item_id} changed: expected {expected}, on hand {row.current_quantity}"
            )
        if difference > 0:
            tx = self.ledger.increment_item_by_inventory_id(inventory_id, item_id, difference, **entry)
        elif difference < 0:
            tx = self.ledger.decrement_item_by_inventory_id(inventory_id, item_id, -difference, **entry)
        return {
            "inventory_item_id": item_id,
            "difference": difference,
            "transaction": tx.to_dict() if tx is not None else None,
            "current_quantity": row.current_quantity,
        }
