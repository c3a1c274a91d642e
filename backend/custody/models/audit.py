from __future__ import annotations

from ..extensions import db
from custody.time_utils import to_utc_z


class InventoryStatusHistory(db.Model):
    """
    Append-only status transition log for daily assignments.

    from_status is NULL for the creation entry. Automated transitions carry a
    marker in reason; stale recoveries carry a marker in notes (see
    status_history_service).
    """
    __tablename__ = "inventory_status_history"
    __table_args__ = (
        db.Index("ix_inventory_status_history_inventory_changed", "inventory_id", "changed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    inventory_id = db.Column(
        db.Integer, db.ForeignKey("inventory_assignments.id"), nullable=False, index=True
    )
    from_status = db.Column(db.String(16), nullable=True)
    to_status = db.Column(db.String(16), nullable=False)

    changed_by_user_id = db.Column(db.Integer, nullable=False, index=True)
    reason = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    changed_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self) -> str:
        return (
            f"<InventoryStatusHistory id={self.id} inventory_id={self.inventory_id} "
            f"{self.from_status}->{self.to_status}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_id": self.inventory_id,
            "from_status": self.from_status,
            "to_status": self.to_status,
            "changed_by_user_id": self.changed_by_user_id,
            "reason": self.reason,
            "notes": self.notes,
            "changed_at": to_utc_z(self.changed_at),
        }
