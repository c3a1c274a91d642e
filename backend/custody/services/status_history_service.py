# Overview: Status transition audit trail for daily assignments; queries and the audit report.

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from ..extensions import db
from ..models import InventoryStatusHistory
from ..models.inventory import STATUS_CONSOLIDATED
from ..validation import ValidationError
from .date_service import InventoryDateService


logger = logging.getLogger(__name__)


# Classification markers. Writers embed them; readers only ever test through
# is_automated / is_stale_recovery.
AUTOMATED_REASON_MARKER = "[automated]"
STALE_RECOVERY_MARKER = "[stale-recovery]"


def is_automated(entry: InventoryStatusHistory) -> bool:
    return bool(entry.reason) and AUTOMATED_REASON_MARKER in entry.reason


def is_stale_recovery(entry: InventoryStatusHistory) -> bool:
    return bool(entry.notes) and STALE_RECOVERY_MARKER in entry.notes


def automated_reason(text: str) -> str:
    return f"{AUTOMATED_REASON_MARKER} {text}"


def stale_recovery_notes(text: str) -> str:
    return f"{STALE_RECOVERY_MARKER} {text}"


def transition_key(from_status: Optional[str], to_status: str) -> str:
    return f"{from_status or 'null'}_to_{to_status}"


class StatusHistoryService:
    def __init__(self, date_service: InventoryDateService):
        self.date_service = date_service

    def record_transition(
        self,
        inventory_id: int,
        from_status: Optional[str],
        to_status: str,
        changed_by_user_id: int,
        *,
        reason: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> InventoryStatusHistory:
        """
        Append a history entry inside the caller's unit of work.

        Does not commit; the transition and its history row succeed or fail together.
        """
        entry = InventoryStatusHistory(
            inventory_id=inventory_id,
            from_status=from_status,
            to_status=to_status,
            changed_by_user_id=changed_by_user_id,
            reason=reason,
            notes=notes,
            changed_at=self.date_service.now_utc(),
        )
        db.session.add(entry)
        db.session.flush()
        return entry

    @staticmethod
    def _newest_first(query):
        return query.order_by(InventoryStatusHistory.changed_at.desc(), InventoryStatusHistory.id.desc())

    def get_history_by_inventory_id(self, inventory_id: int) -> list[InventoryStatusHistory]:
        query = db.session.query(InventoryStatusHistory).filter_by(inventory_id=inventory_id)
        return self._newest_first(query).all()

    def get_history_by_date_range(self, start: date, end: date) -> list[InventoryStatusHistory]:
        """Entries whose business date (fixed-offset local) falls in [start, end], inclusive."""
        if start > end:
            raise ValidationError("start_date must be on or before end_date", field="start_date")
        lower, upper = self.date_service.business_day_bounds_utc(start, end)
        query = db.session.query(InventoryStatusHistory).filter(
            InventoryStatusHistory.changed_at >= lower,
            InventoryStatusHistory.changed_at < upper,
        )
        return self._newest_first(query).all()

    def get_history_by_user(self, user_id: int) -> list[InventoryStatusHistory]:
        query = db.session.query(InventoryStatusHistory).filter_by(changed_by_user_id=user_id)
        return self._newest_first(query).all()

    def get_stale_inventory_consolidations(self) -> list[InventoryStatusHistory]:
        """Consolidations that took the stale-recovery path (re-anchored on today)."""
        query = db.session.query(InventoryStatusHistory).filter_by(to_status=STATUS_CONSOLIDATED)
        return [entry for entry in self._newest_first(query).all() if is_stale_recovery(entry)]

    def get_audit_report(self, start: date, end: date) -> dict:
        history = self.get_history_by_date_range(start, end)

        changes_by_transition: dict[str, int] = {}
        automated = 0
        stale = 0
        for entry in history:
            key = transition_key(entry.from_status, entry.to_status)
            changes_by_transition[key] = changes_by_transition.get(key, 0) + 1
            if is_automated(entry):
                automated += 1
            if is_stale_recovery(entry):
                stale += 1

        report = {
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "total_changes": len(history),
            "changes_by_transition": changes_by_transition,
            "automated_changes": automated,
            "manual_changes": len(history) - automated,
            "stale_recoveries": stale,
        }
        logger.info(
            "Audit report %s..%s: %d changes (%d automated, %d stale recoveries)",
            start, end, len(history), automated, stale,
        )
        return report
