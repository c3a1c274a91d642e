# backend/custody/routes/transactions.py
"""
Inventory transaction API routes (single, batch, dry-run).
"""
from flask import Blueprint, request, jsonify, g
from custody.responses import error_response, unexpected_error
from custody.decorators import require_actor
from custody.container import get_services
from custody.services.transactions import TransactionRequest
from custody.validation import CustodyError, ValidationError, coerce_json_object


transactions_bp = Blueprint("inventory_transactions", __name__, url_prefix="/api/inventory-transactions")


@transactions_bp.route("", methods=["POST"])
@require_actor
def create_transaction():
    """
    Apply one business transaction to a daily assignment.

    Request body:
    {
        "inventory_id": int,
        "transaction_type": "sale" | "purchase" | "return" | "transfer" | "assignment",
        "quantity": int,
        "tank_type_id": int | "inventory_item_id": int,
        "tank_type": "full" | "empty" (tank return/transfer/assignment),
        "target_store_assignment_id": int (transfer),
        "reference_id": str (optional),
        "notes": str (optional)
    }

    Returns:
        201: Applied; body carries current quantities
        400: Invalid request
        404: Assignment, tank type or item not found
        409: Would drive a quantity negative, or assignment consolidated
    """
    data = request.get_json(silent=True)

    try:
        tx_request = TransactionRequest.from_payload(data, g.user_id)
        result = get_services().transactions.create_transaction(tx_request)
        return jsonify(result), 201
    except CustodyError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("process inventory transaction")


@transactions_bp.route("/batch", methods=["POST"])
@require_actor
def process_batch():
    """
    Apply transactions in order; failing lines are reported, the rest still apply.

    Request body:
    {
        "transactions": [ <transaction>, ... ]
    }

    Returns:
        200: All lines applied
        207: Some lines failed (see "failures")
        400: Not a list, empty, or larger than the batch limit
    """
    data = request.get_json(silent=True)

    try:
        data = coerce_json_object(data)
        lines = data.get("transactions")
        if not isinstance(lines, list):
            raise ValidationError("transactions must be a list", field="transactions")
        result = get_services().transactions.process_batch(lines, user_id=g.user_id)
        return jsonify(result), 200 if result["success"] else 207
    except CustodyError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("process inventory transaction batch")


@transactions_bp.route("/validate", methods=["POST"])
@require_actor
def validate_transaction():
    """Dry run: report calculated changes or the reason it would be rejected. Writes nothing."""
    data = request.get_json(silent=True)

    try:
        tx_request = TransactionRequest.from_payload(data, g.user_id)
        return jsonify(get_services().transactions.validate_transaction(tx_request)), 200
    except CustodyError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("validate inventory transaction")


@transactions_bp.route("/supported-types/<entity_kind>", methods=["GET"])
@require_actor
def supported_types(entity_kind: str):
    try:
        types = get_services().transactions.get_supported_transaction_types(entity_kind)
        return jsonify({"entity_kind": entity_kind, "transaction_types": types}), 200
    except CustodyError as e:
        return error_response(e)
    except Exception:
        return unexpected_error("list supported transaction types")
