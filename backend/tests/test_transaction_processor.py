# Overview: Pytest coverage for the transaction processor and the ledger it writes through.

import pytest

from conftest import (
    advance_to_validated,
    create_assignment,
    item_request,
    make_pairing,
    seed_full_tanks,
    tank_request,
)
from custody.models import InventoryTransaction, Store, StoreCatalogTank
from custody.validation import ConflictError, NotFoundError, ValidationError


def tank_counts(services, inventory_id, tank_type_id):
    return services.ledger.get_current_tank_quantities(inventory_id, tank_type_id)


class TestTankLifecycle:
    def test_sale_return_and_rejected_oversell(self, services, pairing, catalog):
        tank_id = catalog["tank_a"].id
        inv = create_assignment(services, pairing)["id"]
        seed_full_tanks(services, inv, tank_id, 10)
        assert tank_counts(services, inv, tank_id) == {"full_tanks": 10, "empty_tanks": 0}

        result = services.processor.process_transaction(tank_request(inv, tank_id, "sale", 3))
        assert result["success"] is True
        assert result["message"] == "Tank sale processed"
        assert result["current_quantities"] == {"full_tanks": 7, "empty_tanks": 0}

        result = services.processor.process_transaction(
            tank_request(inv, tank_id, "return", 2, tank_type="empty")
        )
        assert result["current_quantities"] == {"full_tanks": 7, "empty_tanks": 2}

        with pytest.raises(ConflictError) as exc:
            services.processor.process_transaction(tank_request(inv, tank_id, "sale", 10))
        assert "Insufficient full tanks" in str(exc.value)
        assert tank_counts(services, inv, tank_id) == {"full_tanks": 7, "empty_tanks": 2}

    def test_cache_matches_ledger_sums(self, services, pairing, catalog):
        tank_id = catalog["tank_a"].id
        item_id = catalog["item"].id
        inv = create_assignment(services, pairing)["id"]
        seed_full_tanks(services, inv, tank_id, 10)
        services.processor.process_transaction(tank_request(inv, tank_id, "sale", 4))
        services.processor.process_transaction(tank_request(inv, tank_id, "return", 4, tank_type="empty"))
        services.processor.process_transaction(item_request(inv, item_id, "purchase", 6))
        services.processor.process_transaction(item_request(inv, item_id, "sale", 2))

        assert services.ledger.find_ledger_mismatches(inv) == []
        assert services.ledger.get_current_item_quantity(inv, item_id) == 4

    def test_rejected_transaction_writes_no_ledger_entry(self, services, db_session, pairing, catalog):
        tank_id = catalog["tank_a"].id
        inv = create_assignment(services, pairing)["id"]
        with pytest.raises(ConflictError):
            services.processor.process_transaction(tank_request(inv, tank_id, "sale", 1))
        assert db_session.query(InventoryTransaction).filter_by(inventory_id=inv).count() == 0

    def test_empty_tank_sale_still_draws_full_stock(self, services, pairing, catalog):
        tank_id = catalog["tank_a"].id
        inv = create_assignment(services, pairing)["id"]
        seed_full_tanks(services, inv, tank_id, 2)
        result = services.processor.process_transaction(
            tank_request(inv, tank_id, "sale", 2, tank_type="empty")
        )
        assert result["current_quantities"] == {"full_tanks": 0, "empty_tanks": 0}


class TestItems:
    def test_item_sale_beyond_stock(self, services, pairing, catalog):
        item_id = catalog["item"].id
        inv = create_assignment(services, pairing)["id"]
        services.processor.process_transaction(item_request(inv, item_id, "assignment", 1))
        with pytest.raises(ConflictError) as exc:
            services.processor.process_transaction(item_request(inv, item_id, "sale", 2))
        assert "Available: 1, requested: 2" in str(exc.value)

    def test_item_result_reports_single_quantity(self, services, pairing, catalog):
        item_id = catalog["item"].id
        inv = create_assignment(services, pairing)["id"]
        result = services.processor.process_transaction(item_request(inv, item_id, "return", 3))
        assert result["current_quantity"] == 3
        assert result["transaction"]["entity_kind"] == "item"
        assert result["transaction"]["item_change"] == 3


class TestTransfers:
    def test_transfer_moves_stock_and_links_legs(self, services, db_session, pairing, other_pairing, catalog):
        tank_id = catalog["tank_a"].id
        source = create_assignment(services, pairing)["id"]
        target = create_assignment(services, other_pairing)["id"]
        seed_full_tanks(services, source, tank_id, 6)

        result = services.processor.process_transaction(
            tank_request(source, tank_id, "transfer", 4, tank_type="full",
                         target_store_assignment_id=other_pairing.id)
        )

        assert result["current_quantities"] == {"full_tanks": 2, "empty_tanks": 0}
        assert result["target"]["inventory_id"] == target
        assert result["target"]["current_quantities"] == {"full_tanks": 4, "empty_tanks": 0}

        out_leg = db_session.get(InventoryTransaction, result["transaction"]["id"])
        in_leg = db_session.get(InventoryTransaction, result["target"]["transaction"]["id"])
        assert out_leg.counterpart_transaction_id == in_leg.id
        assert in_leg.counterpart_transaction_id == out_leg.id
        assert out_leg.full_tanks_change == -4
        assert in_leg.full_tanks_change == 4
        assert services.ledger.find_ledger_mismatches(source) == []
        assert services.ledger.find_ledger_mismatches(target) == []

    def test_item_transfer(self, services, pairing, other_pairing, catalog):
        item_id = catalog["item"].id
        source = create_assignment(services, pairing)["id"]
        create_assignment(services, other_pairing)
        services.processor.process_transaction(item_request(source, item_id, "assignment", 5))

        result = services.processor.process_transaction(
            item_request(source, item_id, "transfer", 5, target_store_assignment_id=other_pairing.id)
        )
        assert result["current_quantity"] == 0
        assert result["target"]["current_quantity"] == 5

    def test_transfer_to_same_pairing_rejected(self, services, pairing, catalog):
        tank_id = catalog["tank_a"].id
        inv = create_assignment(services, pairing)["id"]
        seed_full_tanks(services, inv, tank_id, 3)
        with pytest.raises(ValidationError) as exc:
            services.processor.process_transaction(
                tank_request(inv, tank_id, "transfer", 1, tank_type="full",
                             target_store_assignment_id=pairing.id)
            )
        assert exc.value.field == "target_store_assignment_id"

    def test_transfer_without_open_target_assignment(self, services, pairing, other_pairing, catalog):
        tank_id = catalog["tank_a"].id
        inv = create_assignment(services, pairing)["id"]
        seed_full_tanks(services, inv, tank_id, 3)
        with pytest.raises(ConflictError):
            services.processor.process_transaction(
                tank_request(inv, tank_id, "transfer", 1, tank_type="full",
                             target_store_assignment_id=other_pairing.id)
            )
        assert tank_counts(services, inv, tank_id)["full_tanks"] == 3

    def test_failed_target_leg_rolls_back_source(self, services, db_session, pairing, catalog):
        tank_a = catalog["tank_a"].id
        tank_b = catalog["tank_b"].id
        # A second store that only carries tank_a
        south = Store(code="SUR", name="Depot Sur")
        db_session.add(south)
        db_session.flush()
        db_session.add(StoreCatalogTank(store_id=south.id, tank_type_id=tank_a,
                                        purchase_price_cents=28000, sell_price_cents=35000))
        db_session.commit()
        south_pairing = make_pairing(db_session, south, user_id=9)

        source = create_assignment(services, pairing)["id"]
        create_assignment(services, south_pairing)
        seed_full_tanks(services, source, tank_b, 5)

        with pytest.raises(NotFoundError):
            services.processor.process_transaction(
                tank_request(source, tank_b, "transfer", 2, tank_type="full",
                             target_store_assignment_id=south_pairing.id)
            )
        assert tank_counts(services, source, tank_b) == {"full_tanks": 5, "empty_tanks": 0}
        assert db_session.query(InventoryTransaction).filter_by(transaction_type="transfer").count() == 0


class TestGuards:
    def test_consolidated_assignment_rejects_transactions(self, services, pairing, catalog):
        tank_id = catalog["tank_a"].id
        inv = create_assignment(services, pairing)["id"]
        seed_full_tanks(services, inv, tank_id, 3)
        advance_to_validated(services, inv)
        services.consolidation.consolidate_and_create_next(inv, 1)

        with pytest.raises(ConflictError) as exc:
            services.processor.process_transaction(tank_request(inv, tank_id, "sale", 1))
        assert "consolidated" in str(exc.value)

    def test_unknown_assignment(self, services, catalog):
        with pytest.raises(NotFoundError):
            services.processor.process_transaction(tank_request(999, catalog["tank_a"].id, "sale", 1))

    def test_tank_type_not_on_assignment(self, services, pairing, catalog):
        inv = create_assignment(services, pairing)["id"]
        with pytest.raises(NotFoundError) as exc:
            services.processor.process_transaction(tank_request(inv, 9999, "purchase", 1))
        assert "not part of this inventory assignment" in str(exc.value)

    def test_missing_discriminator_is_a_validation_error(self, services, pairing, catalog):
        inv = create_assignment(services, pairing)["id"]
        with pytest.raises(ValidationError) as exc:
            services.processor.process_transaction(tank_request(inv, catalog["tank_a"].id, "return", 1))
        assert exc.value.field == "tank_type"


class TestDryRun:
    def test_validate_reports_projection_without_writing(self, services, db_session, pairing, catalog):
        tank_id = catalog["tank_a"].id
        inv = create_assignment(services, pairing)["id"]
        seed_full_tanks(services, inv, tank_id, 10)
        before = db_session.query(InventoryTransaction).count()

        result = services.processor.validate_transaction(tank_request(inv, tank_id, "sale", 3))

        assert result["valid"] is True
        assert result["calculated_changes"] == {"source": {"full_tanks": -3, "empty_tanks": 0}}
        assert result["current_quantities"] == {"full_tanks": 10, "empty_tanks": 0}
        assert result["projected_quantities"] == {"full_tanks": 7, "empty_tanks": 0}
        assert db_session.query(InventoryTransaction).count() == before
        assert tank_counts(services, inv, tank_id)["full_tanks"] == 10

    def test_validate_reports_errors(self, services, pairing, catalog):
        inv = create_assignment(services, pairing)["id"]
        result = services.processor.validate_transaction(tank_request(inv, catalog["tank_a"].id, "sale", 1))
        assert result["valid"] is False
        assert "Insufficient full tanks" in result["errors"][0]["error"]

    def test_validate_transfer_agrees_with_execution(self, services, db_session, pairing, catalog):
        tank_a = catalog["tank_a"].id
        tank_b = catalog["tank_b"].id
        south = Store(code="SUR", name="Depot Sur")
        db_session.add(south)
        db_session.flush()
        db_session.add(StoreCatalogTank(store_id=south.id, tank_type_id=tank_a,
                                        purchase_price_cents=28000, sell_price_cents=35000))
        db_session.commit()
        south_pairing = make_pairing(db_session, south, user_id=9)

        source = create_assignment(services, pairing)["id"]
        create_assignment(services, south_pairing)
        seed_full_tanks(services, source, tank_b, 5)
        request = tank_request(source, tank_b, "transfer", 2, tank_type="full",
                               target_store_assignment_id=south_pairing.id)

        result = services.processor.validate_transaction(request)

        assert result["valid"] is False
        assert result["errors"][0]["error"] == "Tank type is not part of this inventory assignment"
        with pytest.raises(NotFoundError):
            services.processor.process_transaction(request)

    def test_calculate_changes_for_transfer(self, services):
        request = item_request(1, 2, "transfer", 3, target_store_assignment_id=5)
        assert services.processor.calculate_transaction_changes(request) == {
            "source": {"quantity": -3},
            "target": {"quantity": 3},
        }
