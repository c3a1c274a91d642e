"""
Pytest fixtures for custody backend tests.

Provides test database setup, a pinned business clock, catalog/pairing
fixtures, and test client.
"""

from datetime import date, datetime, time, timedelta

import pytest
from custody import create_app
from custody.config import TestConfig
from custody.container import get_services
from custody.extensions import db
from custody.models import (
    InventoryItem, Store, StoreAssignment, StoreCatalogItem, StoreCatalogTank, TankType,
)
from custody.models.inventory import STATUS_ASSIGNED, STATUS_VALIDATED
from custody.services.transactions import TransactionRequest


# Wednesday
TODAY = date(2024, 3, 13)
BUSINESS_OFFSET_HOURS = -5

WORKER_ID = 7
ADMIN_ID = 1


class FixedClock:
    """Callable clock returning a settable naive-UTC instant."""

    def __init__(self):
        self.set_business_date(TODAY)

    def __call__(self):
        return self.now

    def set_business_date(self, value: date, hour: int = 10):
        # Local business time -> UTC
        self.now = datetime.combine(value, time(hour)) - timedelta(hours=BUSINESS_OFFSET_HOURS)


@pytest.fixture(scope='session')
def clock():
    return FixedClock()


@pytest.fixture(scope='session')
def app(clock):
    """Create application for testing."""
    app = create_app(TestConfig, clock=clock)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app, clock):
    """Create fresh database for each test."""
    clock.set_business_date(TODAY)
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def services(db_session):
    return get_services()


@pytest.fixture(scope='function')
def catalog(db_session):
    """Store with two tank types and one item in its catalog."""
    store = Store(code="NORTE", name="Depot Norte")
    tank_a = TankType(code="GAS-20", name="20kg cylinder", weight_kg=20)
    tank_b = TankType(code="GAS-45", name="45kg cylinder", weight_kg=45)
    regulator = InventoryItem(code="REG", name="Regulator")
    db_session.add_all([store, tank_a, tank_b, regulator])
    db_session.flush()

    db_session.add_all([
        StoreCatalogTank(store_id=store.id, tank_type_id=tank_a.id, purchase_price_cents=28000, sell_price_cents=35000),
        StoreCatalogTank(store_id=store.id, tank_type_id=tank_b.id, purchase_price_cents=61000, sell_price_cents=74000),
        StoreCatalogItem(store_id=store.id, inventory_item_id=regulator.id, purchase_price_cents=4500, sell_price_cents=6500),
    ])
    db_session.commit()
    return {"store": store, "tank_a": tank_a, "tank_b": tank_b, "item": regulator}


def make_pairing(db_session, store, user_id=WORKER_ID, start=date(2024, 1, 1)):
    pairing = StoreAssignment(user_id=user_id, store_id=store.id, start_date=start)
    db_session.add(pairing)
    db_session.commit()
    return pairing


@pytest.fixture(scope='function')
def pairing(db_session, catalog):
    return make_pairing(db_session, catalog["store"])


@pytest.fixture(scope='function')
def other_pairing(db_session, catalog):
    return make_pairing(db_session, catalog["store"], user_id=8)


def tank_request(inventory_id, tank_type_id, transaction_type, quantity, tank_type=None, **extra):
    return TransactionRequest(
        inventory_id=inventory_id,
        transaction_type=transaction_type,
        quantity=quantity,
        user_id=extra.pop("user_id", WORKER_ID),
        tank_type_id=tank_type_id,
        tank_type=tank_type,
        **extra,
    )


def item_request(inventory_id, item_id, transaction_type, quantity, **extra):
    return TransactionRequest(
        inventory_id=inventory_id,
        transaction_type=transaction_type,
        quantity=quantity,
        user_id=extra.pop("user_id", WORKER_ID),
        inventory_item_id=item_id,
        **extra,
    )


def create_assignment(services, pairing, assignment_date=TODAY):
    return services.assignment_service.create_inventory_assignment(pairing.id, assignment_date, ADMIN_ID)


def seed_full_tanks(services, inventory_id, tank_type_id, quantity):
    services.processor.process_transaction(
        tank_request(inventory_id, tank_type_id, "assignment", quantity, tank_type="full")
    )


def advance_to_validated(services, inventory_id):
    services.assignment_service.update_assignment_status(inventory_id, STATUS_ASSIGNED, ADMIN_ID)
    services.assignment_service.update_assignment_status(inventory_id, STATUS_VALIDATED, ADMIN_ID)


def actor_headers(user_id=ADMIN_ID) -> dict:
    """Helper to create identity headers."""
    return {'X-User-Id': str(user_id)}
