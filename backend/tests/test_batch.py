# Overview: Pytest coverage for batch transaction processing (continue-on-error).

import pytest
from sqlalchemy.exc import OperationalError

from conftest import WORKER_ID, create_assignment, seed_full_tanks, tank_request
from custody.validation import ValidationError


class TestBatch:
    def test_invalid_line_does_not_stop_the_rest(self, services, pairing, catalog):
        tank_id = catalog["tank_a"].id
        inv = create_assignment(services, pairing)["id"]
        seed_full_tanks(services, inv, tank_id, 5)

        batch = [
            tank_request(inv, tank_id, "sale", 1),
            tank_request(inv, tank_id, "sale", 1),
            tank_request(inv, tank_id, "sale", 50),
            tank_request(inv, tank_id, "return", 2, tank_type="empty"),
            tank_request(inv, tank_id, "sale", 1),
        ]
        result = services.transactions.process_batch(batch)

        assert result["success"] is False
        assert result["batch"] == {"total_requested": 5, "successfully_processed": 4, "failed": 1}
        assert [r["index"] for r in result["results"]] == [0, 1, 3, 4]
        assert result["failures"][0]["index"] == 2
        assert "Insufficient full tanks" in result["failures"][0]["error"]
        assert services.ledger.get_current_tank_quantities(inv, tank_id) == {"full_tanks": 2, "empty_tanks": 2}
        assert services.ledger.find_ledger_mismatches(inv) == []

    def test_all_lines_succeed(self, services, pairing, catalog):
        inv = create_assignment(services, pairing)["id"]
        batch = [tank_request(inv, catalog["tank_a"].id, "purchase", 1) for _ in range(3)]
        result = services.transactions.process_batch(batch)
        assert result["success"] is True
        assert result["failures"] == []
        assert result["message"] == "Processed 3 of 3 transactions"

    def test_malformed_dict_line_is_a_per_line_failure(self, services, pairing, catalog):
        inv = create_assignment(services, pairing)["id"]
        lines = [
            {"inventory_id": inv, "transaction_type": "purchase", "quantity": 2, "tank_type_id": catalog["tank_a"].id},
            {"inventory_id": inv, "transaction_type": "purchase", "quantity": "1e3", "tank_type_id": catalog["tank_a"].id},
            "not an object",
        ]
        result = services.transactions.process_batch(lines, user_id=WORKER_ID)

        assert result["batch"]["successfully_processed"] == 1
        assert result["failures"][0]["index"] == 1
        assert result["failures"][0]["field"] == "quantity"
        assert result["failures"][1]["index"] == 2
        assert result["results"][0]["transaction"]["user_id"] == WORKER_ID

    def test_failure_on_unknown_assignment_is_reported(self, services, catalog):
        result = services.transactions.process_batch([tank_request(4242, catalog["tank_a"].id, "purchase", 1)])
        assert result["batch"]["failed"] == 1
        assert result["failures"][0]["error"] == "Inventory assignment not found"

    def test_empty_batch_rejected(self, services):
        with pytest.raises(ValidationError):
            services.transactions.process_batch([])

    def test_oversized_batch_rejected(self, app, services, pairing, catalog):
        inv = create_assignment(services, pairing)["id"]
        limit = app.config["BATCH_MAX_TRANSACTIONS"]
        batch = [tank_request(inv, catalog["tank_a"].id, "purchase", 1) for _ in range(limit + 1)]
        with pytest.raises(ValidationError) as exc:
            services.transactions.process_batch(batch)
        assert exc.value.field == "transactions"
        assert services.ledger.get_current_tank_quantities(inv, catalog["tank_a"].id)["full_tanks"] == 0

    def test_dict_lines_need_an_actor(self, services, pairing, catalog):
        inv = create_assignment(services, pairing)["id"]
        lines = [{"inventory_id": inv, "transaction_type": "purchase", "quantity": 2, "tank_type_id": catalog["tank_a"].id}]
        with pytest.raises(ValidationError) as exc:
            services.transactions.process_batch(lines)
        assert exc.value.field == "user_id"
        assert services.ledger.has_activity(inv) is False

    def test_database_error_is_reported_per_line(self, services, monkeypatch, pairing, catalog):
        inv = create_assignment(services, pairing)["id"]

        def failing(request):
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(services.transactions.processor, "process_transaction", failing)
        result = services.transactions.process_batch([tank_request(inv, catalog["tank_a"].id, "purchase", 1)])

        assert result["failures"] == [{"index": 0, "error": "Internal error"}]
