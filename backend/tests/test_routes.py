"""
HTTP API tests for the custody blueprints.

Requests run in their own app context (and session); the test session is
expired before reading back anything a request wrote.
"""

from datetime import date

import pytest

from conftest import (
    ADMIN_ID,
    WORKER_ID,
    actor_headers,
    advance_to_validated,
    create_assignment,
    seed_full_tanks,
)
from custody.models import InventoryAssignment


@pytest.fixture
def inventory(services, pairing, catalog):
    inv = create_assignment(services, pairing)["id"]
    seed_full_tanks(services, inv, catalog["tank_a"].id, 10)
    return inv


def sale(inventory_id, tank_type_id, quantity):
    return {
        "inventory_id": inventory_id,
        "transaction_type": "sale",
        "quantity": quantity,
        "tank_type_id": tank_type_id,
    }


class TestIdentity:
    def test_missing_actor_header(self, client, db_session):
        response = client.get("/api/inventory-assignments")
        assert response.status_code == 401
        assert response.get_json()["error"] == "Authentication required"

    @pytest.mark.parametrize("value", ["abc", "0", "-3"])
    def test_invalid_actor_header(self, client, db_session, value):
        response = client.get("/api/inventory-assignments", headers={"X-User-Id": value})
        assert response.status_code == 401

    def test_health_needs_no_identity(self, client, db_session, catalog):
        response = client.get("/health")
        assert response.status_code == 200
        body = response.get_json()
        assert body["status"] == "healthy"
        assert body["business_date"] == "2024-03-13"
        assert body["checks"]["database"]["details"]["stores"] == 1


class TestAssignmentRoutes:
    def test_create_and_duplicate(self, client, pairing):
        payload = {"store_assignment_id": pairing.id, "assignment_date": "2024-03-13"}

        response = client.post("/api/inventory-assignments", json=payload, headers=actor_headers())
        assert response.status_code == 201
        created = response.get_json()["inventory_assignment"]
        assert created["status"] == "created"
        assert created["assigned_by_user_id"] == ADMIN_ID
        assert len(created["tanks"]) == 2

        response = client.post("/api/inventory-assignments", json=payload, headers=actor_headers())
        assert response.status_code == 409

    def test_create_rejects_bad_date(self, client, pairing):
        response = client.post(
            "/api/inventory-assignments",
            json={"store_assignment_id": pairing.id, "assignment_date": "13/03/2024"},
            headers=actor_headers(),
        )
        assert response.status_code == 400
        assert response.get_json()["field"] == "assignment_date"

    def test_create_unknown_pairing(self, client, db_session):
        response = client.post(
            "/api/inventory-assignments",
            json={"store_assignment_id": 999, "assignment_date": "2024-03-13"},
            headers=actor_headers(),
        )
        assert response.status_code == 404

    def test_today_creates_then_returns_existing(self, client, pairing):
        payload = {"store_assignment_id": pairing.id}
        first = client.post("/api/inventory-assignments/today", json=payload, headers=actor_headers())
        assert first.status_code == 201
        assert first.get_json()["inventory_assignment"]["assignment_date"] == "2024-03-13"

        second = client.post("/api/inventory-assignments/today", json=payload, headers=actor_headers())
        assert second.status_code == 200
        assert second.get_json()["created"] is False
        assert second.get_json()["inventory_assignment"]["id"] == first.get_json()["inventory_assignment"]["id"]

    def test_list_filters(self, client, services, pairing, other_pairing):
        create_assignment(services, pairing)
        create_assignment(services, other_pairing)

        response = client.get(f"/api/inventory-assignments?user_id={WORKER_ID}", headers=actor_headers())
        rows = response.get_json()["inventory_assignments"]
        assert [r["store_assignment_id"] for r in rows] == [pairing.id]

        response = client.get("/api/inventory-assignments?status=bogus", headers=actor_headers())
        assert response.status_code == 400

    def test_get_unknown(self, client, db_session):
        response = client.get("/api/inventory-assignments/77", headers=actor_headers())
        assert response.status_code == 404
        assert response.get_json() == {"error": "Inventory assignment not found"}

    def test_status_patch(self, client, services, pairing):
        inv = create_assignment(services, pairing)["id"]
        response = client.patch(
            f"/api/inventory-assignments/{inv}/status", json={"status": "assigned"}, headers=actor_headers()
        )
        assert response.status_code == 200
        assert response.get_json()["current_inventory"]["status"] == "assigned"

        response = client.patch(
            f"/api/inventory-assignments/{inv}/status", json={"status": "consolidated"}, headers=actor_headers()
        )
        assert response.status_code == 409

    def test_consolidate_endpoint(self, client, services, db_session, inventory, catalog):
        advance_to_validated(services, inventory)

        response = client.post(f"/api/inventory-assignments/{inventory}/consolidate", headers=actor_headers())

        assert response.status_code == 200
        body = response.get_json()
        assert body["current_inventory"]["status"] == "consolidated"
        assert body["next_day_inventory"]["assignment_date"] == "2024-03-14"
        carried = next(t for t in body["next_day_inventory"]["tanks"] if t["tank_type_id"] == catalog["tank_a"].id)
        assert carried["opening_full_tanks"] == 10

        db_session.expire_all()
        assert db_session.query(InventoryAssignment).count() == 2

        again = client.post(f"/api/inventory-assignments/{inventory}/consolidate", headers=actor_headers())
        assert again.get_json()["already_consolidated"] is True

    def test_consolidate_rejects_bad_flag(self, client, inventory):
        response = client.post(
            f"/api/inventory-assignments/{inventory}/consolidate",
            json={"skip_weekends": "sometimes"},
            headers=actor_headers(),
        )
        assert response.status_code == 400
        assert response.get_json()["field"] == "skip_weekends"

    def test_transactions_and_reconciliation(self, client, inventory, catalog):
        tank_id = catalog["tank_a"].id
        client.post("/api/inventory-transactions", json=sale(inventory, tank_id, 3), headers=actor_headers(WORKER_ID))

        response = client.get(
            f"/api/inventory-assignments/{inventory}/transactions?transaction_type=sale", headers=actor_headers()
        )
        rows = response.get_json()["transactions"]
        assert len(rows) == 1
        assert rows[0]["user_id"] == WORKER_ID

        response = client.get(f"/api/inventory-assignments/{inventory}/reconciliation", headers=actor_headers())
        body = response.get_json()
        assert body["ledger_consistent"] is True
        line = next(t for t in body["tanks"] if t["tank_type_id"] == tank_id)
        assert line["current"] == {"full_tanks": 7, "empty_tanks": 0}
        assert line["by_transaction_type"]["sale"] == {"full_tanks": -3, "empty_tanks": 0}

    def test_delivery_out_and_return(self, client, inventory, catalog):
        tank_id = catalog["tank_a"].id
        out = client.post(
            f"/api/inventory-assignments/{inventory}/delivery-out",
            json={"lines": [{"tank_type_id": tank_id, "quantity": 4}]},
            headers=actor_headers(WORKER_ID),
        )
        assert out.status_code == 200
        assert out.get_json()["results"][0]["current_quantities"] == {"full_tanks": 6, "empty_tanks": 0}

        back = client.post(
            f"/api/inventory-assignments/{inventory}/delivery-return",
            json={"lines": [
                {"tank_type_id": tank_id, "quantity": 3, "is_empty": True},
                {"inventory_item_id": catalog["item"].id, "quantity": 1},
            ]},
            headers=actor_headers(WORKER_ID),
        )
        assert back.status_code == 200
        results = back.get_json()["results"]
        assert results[0]["current_quantities"] == {"full_tanks": 6, "empty_tanks": 3}
        assert results[1]["current_quantity"] == 1

    def test_delivery_out_is_all_or_nothing(self, client, services, inventory, catalog):
        response = client.post(
            f"/api/inventory-assignments/{inventory}/delivery-out",
            json={"lines": [
                {"tank_type_id": catalog["tank_a"].id, "quantity": 4},
                {"tank_type_id": catalog["tank_a"].id, "quantity": 20},
            ]},
            headers=actor_headers(WORKER_ID),
        )
        assert response.status_code == 409
        counts = services.ledger.get_current_tank_quantities(inventory, catalog["tank_a"].id)
        assert counts["full_tanks"] == 10

    def test_stock_adjustment(self, client, db_session, inventory, catalog):
        tank_id = catalog["tank_a"].id
        response = client.post(
            f"/api/inventory-assignments/{inventory}/stock-adjustment",
            json={"adjustments": [
                {"tank_type_id": tank_id, "current_quantity": 10, "adjusted_quantity": 8, "reason": "Recount"},
            ]},
            headers=actor_headers(),
        )
        assert response.status_code == 200
        (line,) = response.get_json()["adjustments"]
        assert line["difference"] == -2
        assert line["current_quantities"] == {"full_tanks": 8, "empty_tanks": 0}

        stale = client.post(
            f"/api/inventory-assignments/{inventory}/stock-adjustment",
            json={"adjustments": [
                {"tank_type_id": tank_id, "current_quantity": 10, "adjusted_quantity": 9, "reason": "Recount"},
            ]},
            headers=actor_headers(),
        )
        assert stale.status_code == 409

        db_session.expire_all()
        body = client.get(f"/api/inventory-assignments/{inventory}/reconciliation", headers=actor_headers()).get_json()
        tank = next(t for t in body["tanks"] if t["tank_type_id"] == tank_id)
        assert tank["by_transaction_type"]["adjustment"] == {"full_tanks": -2, "empty_tanks": 0}
        assert body["ledger_consistent"] is True


class TestBodyShape:
    @pytest.mark.parametrize("path", [
        "/api/inventory-transactions/batch",
        "/api/inventory-assignments",
        "/api/inventory-assignments/today",
        "/api/inventory-assignments/{inv}/status",
        "/api/inventory-assignments/{inv}/consolidate",
        "/api/inventory-assignments/{inv}/delivery-out",
        "/api/inventory-assignments/{inv}/stock-adjustment",
    ])
    @pytest.mark.parametrize("body", [[{"a": 1}], "text", 7])
    def test_non_object_json_is_400(self, client, inventory, path, body):
        method = client.patch if path.endswith("/status") else client.post
        response = method(path.format(inv=inventory), json=body, headers=actor_headers())
        assert response.status_code == 400
        assert response.get_json()["error"] == "Request body must be a JSON object"


class TestTransactionRoutes:
    def test_create_transaction(self, client, inventory, catalog):
        response = client.post(
            "/api/inventory-transactions", json=sale(inventory, catalog["tank_a"].id, 3), headers=actor_headers()
        )
        assert response.status_code == 201
        body = response.get_json()
        assert body["current_quantities"] == {"full_tanks": 7, "empty_tanks": 0}
        assert body["transaction"]["full_tanks_change"] == -3

    def test_insufficient_stock_is_409(self, client, inventory, catalog):
        response = client.post(
            "/api/inventory-transactions", json=sale(inventory, catalog["tank_a"].id, 11), headers=actor_headers()
        )
        assert response.status_code == 409
        assert "Insufficient full tanks" in response.get_json()["error"]

    def test_invalid_quantity_names_field(self, client, inventory, catalog):
        response = client.post(
            "/api/inventory-transactions", json=sale(inventory, catalog["tank_a"].id, 2.5), headers=actor_headers()
        )
        assert response.status_code == 400
        assert response.get_json()["field"] == "quantity"

    def test_non_json_body(self, client, db_session):
        response = client.post("/api/inventory-transactions", data="nope", headers=actor_headers())
        assert response.status_code == 400

    def test_batch_partial_failure_is_207(self, client, inventory, catalog):
        tank_id = catalog["tank_a"].id
        lines = [sale(inventory, tank_id, 2), sale(inventory, tank_id, 50), sale(inventory, tank_id, 1)]
        response = client.post(
            "/api/inventory-transactions/batch", json={"transactions": lines}, headers=actor_headers()
        )
        assert response.status_code == 207
        body = response.get_json()
        assert body["batch"] == {"total_requested": 3, "successfully_processed": 2, "failed": 1}
        assert body["failures"][0]["index"] == 1

    def test_batch_all_ok_is_200(self, client, inventory, catalog):
        response = client.post(
            "/api/inventory-transactions/batch",
            json={"transactions": [sale(inventory, catalog["tank_a"].id, 1)]},
            headers=actor_headers(),
        )
        assert response.status_code == 200

    def test_batch_requires_list(self, client, db_session):
        response = client.post(
            "/api/inventory-transactions/batch", json={"transactions": {"a": 1}}, headers=actor_headers()
        )
        assert response.status_code == 400
        assert response.get_json()["field"] == "transactions"

    def test_validate_endpoint(self, client, inventory, catalog):
        response = client.post(
            "/api/inventory-transactions/validate", json=sale(inventory, catalog["tank_a"].id, 4), headers=actor_headers()
        )
        assert response.status_code == 200
        assert response.get_json()["projected_quantities"] == {"full_tanks": 6, "empty_tanks": 0}

    def test_supported_types(self, client, db_session):
        response = client.get("/api/inventory-transactions/supported-types/item", headers=actor_headers())
        assert response.status_code == 200
        assert len(response.get_json()["transaction_types"]) == 5

        response = client.get("/api/inventory-transactions/supported-types/crate", headers=actor_headers())
        assert response.status_code == 400


class TestStatusHistoryRoutes:
    def test_history_for_inventory(self, client, services, pairing):
        inv = create_assignment(services, pairing)["id"]
        response = client.get(f"/api/inventory-status-history/inventory/{inv}", headers=actor_headers())
        assert response.status_code == 200
        history = response.get_json()["history"]
        assert history[0]["from_status"] is None
        assert history[0]["to_status"] == "created"

    def test_history_for_unknown_inventory(self, client, db_session):
        response = client.get("/api/inventory-status-history/inventory/31", headers=actor_headers())
        assert response.status_code == 404

    def test_date_range_requires_both_bounds(self, client, db_session):
        response = client.get(
            "/api/inventory-status-history/date-range?start_date=2024-03-13", headers=actor_headers()
        )
        assert response.status_code == 400
        assert response.get_json()["field"] == "end_date"

    def test_audit_report_and_stale_recoveries(self, client, services, pairing):
        inv = create_assignment(services, pairing, date(2024, 3, 11))["id"]
        advance_to_validated(services, inv)
        client.post(f"/api/inventory-assignments/{inv}/consolidate", headers=actor_headers())

        response = client.get(
            "/api/inventory-status-history/audit-report?start_date=2024-03-13&end_date=2024-03-13",
            headers=actor_headers(),
        )
        report = response.get_json()
        assert report["total_changes"] == 5
        assert report["stale_recoveries"] == 1
        assert report["changes_by_transition"]["validated_to_consolidated"] == 1

        response = client.get("/api/inventory-status-history/stale-recoveries", headers=actor_headers())
        assert [e["inventory_id"] for e in response.get_json()["history"]] == [inv]

        response = client.get(f"/api/inventory-status-history/user/{ADMIN_ID}", headers=actor_headers())
        assert len(response.get_json()["history"]) == 5
