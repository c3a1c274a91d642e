from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Optional

from ...models.inventory import KIND_ITEM, KIND_TANK, TRANSACTION_TYPES
from ...validation import (
    ValidationError,
    coerce_notes,
    coerce_optional_id,
    coerce_positive_int,
)


TANK_FULL = "full"
TANK_EMPTY = "empty"
TANK_CONDITIONS = (TANK_FULL, TANK_EMPTY)

MAX_REFERENCE_LENGTH = 64


@dataclass
class TransactionRequest:
    """
    Entity-agnostic transaction request.

    Exactly one of tank_type_id / inventory_item_id selects the entity kind.
    tank_type is the full/empty discriminator used by tank returns, transfers
    and assignments.
    """

    inventory_id: int
    transaction_type: str
    quantity: int
    user_id: int
    tank_type_id: Optional[int] = None
    inventory_item_id: Optional[int] = None
    tank_type: Optional[str] = None
    target_store_assignment_id: Optional[int] = None
    reference_id: Optional[str] = None
    notes: Optional[str] = None

    @property
    def entity_kind(self) -> str:
        return KIND_TANK if self.tank_type_id is not None else KIND_ITEM

    def to_dict(self) -> dict:
        data = asdict(self)
        data["entity_kind"] = self.entity_kind
        return data

    @classmethod
    def from_payload(cls, payload, user_id: int) -> "TransactionRequest":
        """
        Build a request from a JSON body, raising ValidationError naming the
        offending field. The acting user comes from the identity provider, never
        from the body.
        """
        if not isinstance(payload, dict):
            raise ValidationError("Transaction must be a JSON object")

        inventory_id = coerce_optional_id(payload.get("inventory_id"), "inventory_id")
        if inventory_id is None:
            raise ValidationError("inventory_id is required", field="inventory_id")

        transaction_type = payload.get("transaction_type")
        if not isinstance(transaction_type, str) or not transaction_type.strip():
            raise ValidationError("transaction_type is required", field="transaction_type")
        transaction_type = transaction_type.strip().lower()
        if transaction_type not in TRANSACTION_TYPES:
            raise ValidationError(
                f"transaction_type must be one of: {', '.join(TRANSACTION_TYPES)}",
                field="transaction_type",
            )

        quantity = coerce_positive_int(payload.get("quantity"), "quantity")

        tank_type_id = coerce_optional_id(payload.get("tank_type_id"), "tank_type_id")
        inventory_item_id = coerce_optional_id(payload.get("inventory_item_id"), "inventory_item_id")
        if (tank_type_id is None) == (inventory_item_id is None):
            raise ValidationError(
                "Exactly one of tank_type_id or inventory_item_id is required",
                field="tank_type_id" if tank_type_id is None else "inventory_item_id",
            )

        tank_type = payload.get("tank_type")
        if tank_type is not None:
            if not isinstance(tank_type, str) or tank_type.strip().lower() not in TANK_CONDITIONS:
                raise ValidationError("tank_type must be 'full' or 'empty'", field="tank_type")
            tank_type = tank_type.strip().lower()
            if inventory_item_id is not None:
                raise ValidationError("tank_type only applies to tank transactions", field="tank_type")

        target = coerce_optional_id(
            payload.get("target_store_assignment_id"), "target_store_assignment_id"
        )

        reference_id = payload.get("reference_id")
        if reference_id is not None:
            reference_id = str(reference_id).strip() or None
            if reference_id and len(reference_id) > MAX_REFERENCE_LENGTH:
                raise ValidationError(
                    f"reference_id exceeds max length {MAX_REFERENCE_LENGTH}", field="reference_id"
                )

        return cls(
            inventory_id=inventory_id,
            transaction_type=transaction_type,
            quantity=quantity,
            user_id=user_id,
            tank_type_id=tank_type_id,
            inventory_item_id=inventory_item_id,
            tank_type=tank_type,
            target_store_assignment_id=target,
            reference_id=reference_id,
            notes=coerce_notes(payload.get("notes")),
        )
