# Overview: One strategy per (transaction type x entity kind); computes signed deltas and checks preconditions.

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ...models.inventory import (
    KIND_ITEM,
    KIND_TANK,
    TX_ASSIGNMENT,
    TX_PURCHASE,
    TX_RETURN,
    TX_SALE,
    TX_TRANSFER,
)
from ...validation import ConflictError, ValidationError
from .requests import TANK_FULL, TransactionRequest


@dataclass(frozen=True)
class Quantities:
    """Counts (snapshot) or signed changes (delta) for one tank or item line."""

    full_tanks: int = 0
    empty_tanks: int = 0
    items: int = 0

    def __add__(self, other: "Quantities") -> "Quantities":
        return Quantities(
            self.full_tanks + other.full_tanks,
            self.empty_tanks + other.empty_tanks,
            self.items + other.items,
        )

    def negated(self) -> "Quantities":
        return Quantities(-self.full_tanks, -self.empty_tanks, -self.items)

    def to_dict(self, entity_kind: str) -> dict:
        if entity_kind == KIND_TANK:
            return {"full_tanks": self.full_tanks, "empty_tanks": self.empty_tanks}
        return {"quantity": self.items}


class TransactionStrategy:
    transaction_type: str = ""
    entity_kind: str = ""
    requires_tank_type = False
    requires_target = False
    description = ""

    def check_request(self, request: TransactionRequest) -> None:
        """Structural checks; raises ValidationError naming the missing field."""
        if request.quantity is None or request.quantity <= 0:
            raise ValidationError("quantity must be a positive integer", field="quantity")
        if self.requires_tank_type and request.tank_type is None:
            raise ValidationError(
                f"tank_type ('full' or 'empty') is required for tank {self.transaction_type}",
                field="tank_type",
            )
        if self.requires_target and request.target_store_assignment_id is None:
            raise ValidationError(
                "target_store_assignment_id is required for transfers",
                field="target_store_assignment_id",
            )

    def compute_delta(self, request: TransactionRequest) -> Quantities:
        raise NotImplementedError

    def target_delta(self, request: TransactionRequest) -> Optional[Quantities]:
        """Delta applied to the counterpart line; only transfers have one."""
        return None

    def validate(self, request: TransactionRequest, current: Quantities) -> None:
        """Raise ConflictError if applying the delta would drive a count negative."""
        delta = self.compute_delta(request)
        projected = current + delta
        if projected.full_tanks < 0:
            raise ConflictError(
                f"Insufficient full tanks. Available: {current.full_tanks}, requested: {-delta.full_tanks}"
            )
        if projected.empty_tanks < 0:
            raise ConflictError(
                f"Insufficient empty tanks. Available: {current.empty_tanks}, requested: {-delta.empty_tanks}"
            )
        if projected.items < 0:
            raise ConflictError(
                f"Insufficient items. Available: {current.items}, requested: {-delta.items}"
            )

    def success_message(self) -> str:
        return f"{self.entity_kind.capitalize()} {self.transaction_type} processed"

    def describe(self) -> dict:
        return {
            "transaction_type": self.transaction_type,
            "entity_kind": self.entity_kind,
            "requires_tank_type": self.requires_tank_type,
            "requires_target": self.requires_target,
            "description": self.description,
        }


def _tank_change(request: TransactionRequest, sign: int) -> Quantities:
    if request.tank_type == TANK_FULL:
        return Quantities(full_tanks=sign * request.quantity)
    return Quantities(empty_tanks=sign * request.quantity)


# -- tanks ------------------------------------------------------------------


class TankSale(TransactionStrategy):
    transaction_type = TX_SALE
    entity_kind = KIND_TANK
    description = "Full tanks delivered to a customer"

    def compute_delta(self, request):
        return Quantities(full_tanks=-request.quantity)


class TankPurchase(TransactionStrategy):
    transaction_type = TX_PURCHASE
    entity_kind = KIND_TANK
    description = "Full tanks received from the supplier (empties exchanged externally)"

    def compute_delta(self, request):
        return Quantities(full_tanks=request.quantity)


class TankReturn(TransactionStrategy):
    transaction_type = TX_RETURN
    entity_kind = KIND_TANK
    requires_tank_type = True
    description = "Tanks returned into custody (full or empty)"

    def compute_delta(self, request):
        return _tank_change(request, 1)


class TankTransfer(TransactionStrategy):
    transaction_type = TX_TRANSFER
    entity_kind = KIND_TANK
    requires_tank_type = True
    requires_target = True
    description = "Tanks moved to another store assignment"

    def compute_delta(self, request):
        return _tank_change(request, -1)

    def target_delta(self, request):
        return _tank_change(request, 1)


class TankAssignment(TransactionStrategy):
    transaction_type = TX_ASSIGNMENT
    entity_kind = KIND_TANK
    requires_tank_type = True
    description = "Opening or corrective tank quantities"

    def compute_delta(self, request):
        return _tank_change(request, 1)


# -- items ------------------------------------------------------------------


class ItemSale(TransactionStrategy):
    transaction_type = TX_SALE
    entity_kind = KIND_ITEM
    description = "Items delivered to a customer"

    def compute_delta(self, request):
        return Quantities(items=-request.quantity)


class ItemPurchase(TransactionStrategy):
    transaction_type = TX_PURCHASE
    entity_kind = KIND_ITEM
    description = "Items received from the supplier"

    def compute_delta(self, request):
        return Quantities(items=request.quantity)


class ItemReturn(TransactionStrategy):
    transaction_type = TX_RETURN
    entity_kind = KIND_ITEM
    description = "Items returned into custody"

    def compute_delta(self, request):
        return Quantities(items=request.quantity)


class ItemTransfer(TransactionStrategy):
    transaction_type = TX_TRANSFER
    entity_kind = KIND_ITEM
    requires_target = True
    description = "Items moved to another store assignment"

    def compute_delta(self, request):
        return Quantities(items=-request.quantity)

    def target_delta(self, request):
        return Quantities(items=request.quantity)


class ItemAssignment(TransactionStrategy):
    transaction_type = TX_ASSIGNMENT
    entity_kind = KIND_ITEM
    description = "Opening or corrective item quantities"

    def compute_delta(self, request):
        return Quantities(items=request.quantity)


STRATEGIES: dict[tuple[str, str], TransactionStrategy] = {
    (s.transaction_type, s.entity_kind): s
    for s in (
        TankSale(), TankPurchase(), TankReturn(), TankTransfer(), TankAssignment(),
        ItemSale(), ItemPurchase(), ItemReturn(), ItemTransfer(), ItemAssignment(),
    )
}


def get_strategy(transaction_type: str, entity_kind: str) -> TransactionStrategy:
    strategy = STRATEGIES.get((transaction_type, entity_kind))
    if strategy is None:
        raise ValidationError(
            f"Unsupported transaction type '{transaction_type}' for {entity_kind}",
            field="transaction_type",
        )
    return strategy


def supported_transaction_types(entity_kind: str) -> list[dict]:
    if entity_kind not in (KIND_TANK, KIND_ITEM):
        raise ValidationError("entity_kind must be 'tank' or 'item'", field="entity_kind")
    return [s.describe() for (_, kind), s in STRATEGIES.items() if kind == entity_kind]
