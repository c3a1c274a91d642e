# backend/custody/routes/assignments.py
"""
Daily inventory assignment API routes.
"""
from flask import Blueprint, request, jsonify, g, current_app
from custody.responses import error_response, unexpected_error
from custody.decorators import require_actor
from custody.container import get_services
from custody.validation import (
    CustodyError,
    coerce_bool,
    coerce_date,
    coerce_id,
    coerce_int,
    coerce_json_object,
    coerce_notes,
    coerce_optional_id,
)


assignments_bp = Blueprint("inventory_assignments", __name__, url_prefix="/api/inventory-assignments")


@assignments_bp.route("", methods=["GET"])
@require_actor
def list_assignments():
    """
    List daily assignments.

    Query params: user_id, store_id, assignment_date (YYYY-MM-DD), status
    """
    try:
        rows = get_services().assignment_service.find_assignments(
            user_id=coerce_optional_id(request.args.get("user_id"), "user_id"),
            store_id=coerce_optional_id(request.args.get("store_id"), "store_id"),
            assignment_date=coerce_date(request.args.get("assignment_date"), "assignment_date", required=False),
            status=request.args.get("status") or None,
        )
        return jsonify({"inventory_assignments": rows}), 200
    except CustodyError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("list inventory assignments")


@assignments_bp.route("", methods=["POST"])
@require_actor
def create_assignment():
    """
    Create a catalog-seeded assignment (all quantities zero).

    Request body:
    {
        "store_assignment_id": int,
        "assignment_date": "YYYY-MM-DD",
        "notes": str (optional)
    }

    Returns:
        201: Assignment created
        400: Invalid request
        404: Store assignment not found
        409: Assignment already exists for that date
    """
    data = request.get_json(silent=True)

    try:
        data = coerce_json_object(data)
        store_assignment_id = coerce_id(data.get("store_assignment_id"), "store_assignment_id")
        assignment = get_services().assignment_service.create_inventory_assignment(
            store_assignment_id,
            coerce_date(data.get("assignment_date"), "assignment_date"),
            g.user_id,
            notes=coerce_notes(data.get("notes")),
        )
        return jsonify({"inventory_assignment": assignment}), 201
    except CustodyError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("create inventory assignment")


@assignments_bp.route("/today", methods=["POST"])
@require_actor
def create_or_get_today():
    """
    Get today's assignment for a pairing, creating it if missing.

    Returns 201 when created, 200 when it already existed.
    """
    data = request.get_json(silent=True)

    try:
        data = coerce_json_object(data)
        store_assignment_id = coerce_id(data.get("store_assignment_id"), "store_assignment_id")
        assignment, created = get_services().assignment_service.create_or_get_todays_inventory(
            store_assignment_id, g.user_id
        )
        return jsonify({"inventory_assignment": assignment, "created": created}), 201 if created else 200
    except CustodyError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("create today's inventory assignment")


@assignments_bp.route("/<int:inventory_id>", methods=["GET"])
@require_actor
def get_assignment(inventory_id: int):
    try:
        return jsonify({"inventory_assignment": get_services().assignment_service.get_assignment(inventory_id)}), 200
    except CustodyError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("get inventory assignment")


@assignments_bp.route("/<int:inventory_id>/status", methods=["PATCH"])
@require_actor
def update_status(inventory_id: int):
    """
    Move an assignment one step along created -> assigned -> validated -> consolidated.

    Request body:
    {
        "status": str,
        "skip_weekends": bool (optional, consolidation only),
        "notes": str (optional)
    }

    Returns:
        200: Updated (consolidated also returns the next day's assignment)
        400: Unknown status
        404: Assignment not found
        409: Transition not allowed
    """
    data = request.get_json(silent=True)

    try:
        data = coerce_json_object(data)
        result = get_services().assignment_service.update_assignment_status(
            inventory_id,
            data.get("status"),
            g.user_id,
            skip_weekends=data.get("skip_weekends"),
            notes=data.get("notes"),
        )
        return jsonify(result), 200
    except CustodyError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("update inventory assignment status")


@assignments_bp.route("/<int:inventory_id>/consolidate", methods=["POST"])
@require_actor
def consolidate(inventory_id: int):
    """
    Run the consolidation workflow: close this day and open the next.

    Request body (optional):
    {
        "skip_weekends": bool
    }

    Returns:
        200: Consolidated (or already consolidated; same successor returned)
        404: Assignment not found
        409: Assignment not validated, or next-day assignment already in use
    """
    data = request.get_json(silent=True)
    services = get_services()

    try:
        data = coerce_json_object(data)
        skip = coerce_bool(
            data.get("skip_weekends"),
            "skip_weekends",
            default=current_app.config.get("SKIP_WEEKENDS_DEFAULT", False),
        )
        result = services.consolidation.consolidate_and_create_next(inventory_id, g.user_id, skip)
        return jsonify(result), 200
    except CustodyError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("consolidate inventory assignment")


@assignments_bp.route("/<int:inventory_id>/transactions", methods=["GET"])
@require_actor
def list_transactions(inventory_id: int):
    try:
        limit = coerce_int(request.args.get("limit"), "limit", required=False) or 200
        rows = get_services().assignment_service.list_transactions(
            inventory_id,
            entity_kind=request.args.get("entity_kind") or None,
            transaction_type=request.args.get("transaction_type") or None,
            limit=max(1, min(limit, 1000)),
        )
        return jsonify({"transactions": rows}), 200
    except CustodyError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("list inventory transactions")


@assignments_bp.route("/<int:inventory_id>/reconciliation", methods=["GET"])
@require_actor
def reconciliation(inventory_id: int):
    try:
        return jsonify(get_services().assignment_service.get_reconciliation(inventory_id)), 200
    except CustodyError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("build reconciliation")


@assignments_bp.route("/<int:inventory_id>/delivery-out", methods=["POST"])
@require_actor
def delivery_out(inventory_id: int):
    """
    Legacy delivery API: one sale per line, all lines in one unit of work.

    Request body:
    {
        "lines": [{"tank_type_id": int | "inventory_item_id": int, "quantity": int}]
    }
    """
    data = request.get_json(silent=True)

    try:
        data = coerce_json_object(data)
        result = get_services().assignment_service.delivery_out(inventory_id, g.user_id, data.get("lines"))
        return jsonify(result), 200
    except CustodyError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("record delivery out")


@assignments_bp.route("/<int:inventory_id>/delivery-return", methods=["POST"])
@require_actor
def delivery_return(inventory_id: int):
    """
    Legacy delivery API: one return per line.

    Request body:
    {
        "lines": [{"tank_type_id": int, "quantity": int, "is_empty": bool} | {"inventory_item_id": int, "quantity": int}]
    }
    """
    data = request.get_json(silent=True)

    try:
        data = coerce_json_object(data)
        result = get_services().assignment_service.delivery_return(inventory_id, g.user_id, data.get("lines"))
        return jsonify(result), 200
    except CustodyError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("record delivery return")


@assignments_bp.route("/<int:inventory_id>/stock-adjustment", methods=["POST"])
@require_actor
def stock_adjustment(inventory_id: int):
    """
    Correct counts after a physical count; all lines in one unit of work.

    Request body:
    {
        "adjustments": [{
            "tank_type_id": int, "tank_type": "full" | "empty" (default full)
            | "inventory_item_id": int,
            "current_quantity": int,
            "adjusted_quantity": int,
            "reason": str
        }]
    }

    Returns:
        200: Adjusted
        400: Invalid request
        404: Assignment, tank type or item not found
        409: current_quantity is stale, or assignment consolidated
    """
    data = request.get_json(silent=True)

    try:
        data = coerce_json_object(data)
        result = get_services().assignment_service.stock_adjustment(
            inventory_id, g.user_id, data.get("adjustments")
        )
        return jsonify(result), 200
    except CustodyError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("record stock adjustment")
