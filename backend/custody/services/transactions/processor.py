# Overview: Dispatches transaction requests to strategies and applies them through the ledger.

from __future__ import annotations

import logging

from ...models import AssignmentItem, AssignmentTank, InventoryAssignment
from ...models.inventory import KIND_TANK, STATUS_CONSOLIDATED
from ...validation import ConflictError, CustodyError, ValidationError
from ..assignment_repository import AssignmentRepository
from ..concurrency import run_in_transaction
from ..ledger_repository import LedgerRepository
from .requests import TransactionRequest
from .strategies import Quantities, TransactionStrategy, get_strategy


logger = logging.getLogger(__name__)


def _snapshot(row) -> Quantities:
    if isinstance(row, AssignmentTank):
        return Quantities(full_tanks=row.current_full_tanks, empty_tanks=row.current_empty_tanks)
    return Quantities(items=row.current_quantity)


class TransactionProcessor:
    def __init__(self, ledger: LedgerRepository, assignments: AssignmentRepository):
        self.ledger = ledger
        self.assignments = assignments

    def resolve_strategy(self, request: TransactionRequest) -> TransactionStrategy:
        strategy = get_strategy(request.transaction_type, request.entity_kind)
        strategy.check_request(request)
        return strategy

    def calculate_transaction_changes(self, request: TransactionRequest) -> dict:
        """Pure: the deltas a request would apply. No I/O."""
        strategy = self.resolve_strategy(request)
        kind = request.entity_kind
        changes = {"source": strategy.compute_delta(request).to_dict(kind)}
        target = strategy.target_delta(request)
        if target is not None:
            changes["target"] = target.to_dict(kind)
        return changes

    # -- row resolution ---------------------------------------------------------

    @staticmethod
    def _ensure_open(assignment: InventoryAssignment) -> None:
        if assignment.status == STATUS_CONSOLIDATED:
            raise ConflictError(
                f"Inventory assignment {assignment.id} is consolidated; record transactions on the next day's assignment"
            )

    def _lock_line(self, inventory_id: int, request: TransactionRequest):
        if request.entity_kind == KIND_TANK:
            return self.ledger.lock_tank(inventory_id, request.tank_type_id)
        return self.ledger.lock_item(inventory_id, request.inventory_item_id)

    def _resolve_target(self, source: InventoryAssignment, request: TransactionRequest) -> InventoryAssignment:
        if request.target_store_assignment_id == source.store_assignment_id:
            raise ValidationError(
                "Cannot transfer to the same store assignment",
                field="target_store_assignment_id",
            )
        target = self.assignments.find_open_for_pairing(request.target_store_assignment_id)
        if target is None:
            raise ConflictError("Target store assignment has no open inventory assignment")
        return self.assignments.lock(target.id)

    def _apply(self, row, delta: Quantities, request: TransactionRequest, counterpart_id=None):
        entry = dict(
            transaction_type=request.transaction_type,
            user_id=request.user_id,
            reference_id=request.reference_id,
            notes=request.notes,
            counterpart_transaction_id=counterpart_id,
        )
        if isinstance(row, AssignmentItem):
            return self.ledger.apply_item_change(row, delta.items, **entry)
        return self.ledger.apply_tank_change(row, delta.full_tanks, delta.empty_tanks, **entry)

    # -- operations -------------------------------------------------------------

    def execute(self, request: TransactionRequest) -> dict:
        """
        Apply one request inside the caller's unit of work (flush only).

        Transfers write both legs here, so a failed target leg leaves nothing
        behind once the caller rolls back.
        """
        strategy = self.resolve_strategy(request)
        kind = request.entity_kind

        source = self.assignments.lock(request.inventory_id)
        self._ensure_open(source)
        target = None
        if strategy.requires_target:
            target = self._resolve_target(source, request)
            self._ensure_open(target)

        row = self._lock_line(source.id, request)
        strategy.validate(request, _snapshot(row))
        tx = self._apply(row, strategy.compute_delta(request), request)

        target_result = None
        if target is not None:
            target_row = self._lock_line(target.id, request)
            target_tx = self._apply(target_row, strategy.target_delta(request), request, counterpart_id=tx.id)
            self.ledger.link_counterparts(tx, target_tx)
            target_result = {
                "inventory_id": target.id,
                "transaction": target_tx.to_dict(),
                **self._current(target_row, kind),
            }

        result = {
            "success": True,
            "message": strategy.success_message(),
            "transaction": tx.to_dict(),
            **self._current(row, kind),
        }
        if target_result is not None:
            result["target"] = target_result
        return result

    @staticmethod
    def _current(row, kind: str) -> dict:
        snapshot = _snapshot(row)
        if kind == KIND_TANK:
            return {"current_quantities": snapshot.to_dict(kind)}
        return {"current_quantity": snapshot.items}

    def process_transaction(self, request: TransactionRequest) -> dict:
        """Single transaction in its own unit of work; errors propagate."""
        result = run_in_transaction(lambda: self.execute(request))
        logger.info(
            "Processed %s %s on inventory %s (qty=%s, user=%s)",
            request.entity_kind, request.transaction_type, request.inventory_id,
            request.quantity, request.user_id,
        )
        return result

    def validate_transaction(self, request: TransactionRequest) -> dict:
        """Dry run against current state. Reads only; nothing is written."""
        try:
            strategy = self.resolve_strategy(request)
            kind = request.entity_kind
            source = self.assignments.get(request.inventory_id)
            self._ensure_open(source)
            if strategy.requires_target:
                if request.target_store_assignment_id == source.store_assignment_id:
                    raise ValidationError(
                        "Cannot transfer to the same store assignment",
                        field="target_store_assignment_id",
                    )
                target = self.assignments.find_open_for_pairing(request.target_store_assignment_id)
                if target is None:
                    raise ConflictError("Target store assignment has no open inventory assignment")

            current = self._read_current(source.id, request)
            strategy.validate(request, current)
            if strategy.requires_target:
                # The receiving assignment must carry the same line
                self._read_current(target.id, request)
            delta = strategy.compute_delta(request)
        except CustodyError as exc:
            return {"valid": False, "errors": [exc.to_dict()]}

        return {
            "valid": True,
            "calculated_changes": self.calculate_transaction_changes(request),
            "current_quantities": current.to_dict(kind),
            "projected_quantities": (current + delta).to_dict(kind),
        }

    def _read_current(self, inventory_id: int, request: TransactionRequest) -> Quantities:
        if request.entity_kind == KIND_TANK:
            counts = self.ledger.get_current_tank_quantities(inventory_id, request.tank_type_id)
            return Quantities(full_tanks=counts["full_tanks"], empty_tanks=counts["empty_tanks"])
        return Quantities(items=self.ledger.get_current_item_quantity(inventory_id, request.inventory_item_id))
