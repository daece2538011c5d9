from datetime import date, timedelta

import pytest

from bloodbank import create_app
from bloodbank.extensions import db
from bloodbank.ledger import InventoryLedger
from bloodbank.lifecycle import RequestLifecycle
from bloodbank.registry import Registry


@pytest.fixture
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'blood_bank.db'}",
        "LOG_LEVEL": "WARNING",
    })
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def ledger(app):
    return InventoryLedger(db.session, app.extensions["bloodbank.locks"])


@pytest.fixture
def lifecycle(ledger):
    return RequestLifecycle(db.session, ledger)


@pytest.fixture
def registry(ledger):
    return Registry(db.session, ledger)


@pytest.fixture
def bank(registry):
    return registry.create_bank("Central Bank", "Pune", "555-0100", "central@example.com", 200)


@pytest.fixture
def recipient(registry):
    return registry.create_recipient("General Hospital", "Hospital", "Dr. Rao", "555-0199")


@pytest.fixture
def next_week():
    return date.today() + timedelta(days=7)
