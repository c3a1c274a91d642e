# backend/custody/routes/status_history.py
"""
Status history and audit API routes.
"""
from flask import Blueprint, request, jsonify
from custody.responses import error_response, unexpected_error
from custody.decorators import require_actor
from custody.container import get_services
from custody.validation import CustodyError, coerce_date


status_history_bp = Blueprint(
    "inventory_status_history", __name__, url_prefix="/api/inventory-status-history"
)


def _date_range():
    start = coerce_date(request.args.get("start_date"), "start_date")
    end = coerce_date(request.args.get("end_date"), "end_date")
    return start, end


@status_history_bp.route("/inventory/<int:inventory_id>", methods=["GET"])
@require_actor
def history_by_inventory(inventory_id: int):
    try:
        services = get_services()
        services.assignments.get(inventory_id)
        entries = services.history.get_history_by_inventory_id(inventory_id)
        return jsonify({"history": [e.to_dict() for e in entries]}), 200
    except CustodyError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("load status history")


@status_history_bp.route("/date-range", methods=["GET"])
@require_actor
def history_by_date_range():
    """Query params: start_date, end_date (YYYY-MM-DD, inclusive business dates)."""
    try:
        start, end = _date_range()
        entries = get_services().history.get_history_by_date_range(start, end)
        return jsonify({"history": [e.to_dict() for e in entries]}), 200
    except CustodyError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("load status history by date range")


@status_history_bp.route("/user/<int:user_id>", methods=["GET"])
@require_actor
def history_by_user(user_id: int):
    try:
        entries = get_services().history.get_history_by_user(user_id)
        return jsonify({"history": [e.to_dict() for e in entries]}), 200
    except Exception:
        return unexpected_error("load status history by user")


@status_history_bp.route("/stale-recoveries", methods=["GET"])
@require_actor
def stale_recoveries():
    try:
        entries = get_services().history.get_stale_inventory_consolidations()
        return jsonify({"history": [e.to_dict() for e in entries]}), 200
    except Exception:
        return unexpected_error("load stale recoveries")


@status_history_bp.route("/audit-report", methods=["GET"])
@require_actor
def audit_report():
    """
    Aggregate transitions in a business-date window.

    Query params: start_date, end_date (YYYY-MM-DD)
    """
    try:
        start, end = _date_range()
        return jsonify(get_services().history.get_audit_report(start, end)), 200
    except CustodyError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("build audit report")
