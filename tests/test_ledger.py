import random

import pytest

from bloodbank.errors import InsufficientInventoryError, NotFoundError, ValidationError
from bloodbank.extensions import db
from bloodbank.ledger import InventoryView
from bloodbank.models import InventoryEntry


def test_credit_creates_entry_lazily(ledger, bank):
    assert ledger.entry(bank.id, "A+") is None
    entry = ledger.credit(bank.id, "a+", 10)
    db.session.commit()
    assert entry.blood_group == "A+"
    assert entry.available_units == 10
    ledger.credit(bank.id, "A+", 5)
    db.session.commit()
    assert ledger.available(bank.id, "A+") == 15
    assert db.session.query(InventoryEntry).count() == 1


@pytest.mark.parametrize("units", [0, -1, "x"])
def test_credit_requires_positive_units(ledger, bank, units):
    with pytest.raises(ValidationError):
        ledger.credit(bank.id, "A+", units)


def test_credit_unknown_bank(ledger):
    with pytest.raises(NotFoundError):
        ledger.credit(42, "A+", 1)


def test_debit_refuses_to_go_negative(ledger, bank):
    ledger.credit(bank.id, "B-", 3)
    db.session.commit()
    with pytest.raises(InsufficientInventoryError) as exc:
        ledger.debit(bank.id, "B-", 4)
    assert exc.value.available == 3
    assert ledger.debit(bank.id, "B-", 3).available_units == 0
    with pytest.raises(InsufficientInventoryError):
        ledger.debit(bank.id, "B-", 1)


def test_debit_missing_entry(ledger, bank):
    with pytest.raises(InsufficientInventoryError) as exc:
        ledger.debit(bank.id, "AB+", 1)
    assert exc.value.available == 0


def test_units_never_negative_over_random_operations(ledger, bank):
    rng = random.Random(7)
    expected = 0
    for _ in range(60):
        units = rng.randint(1, 6)
        if rng.random() < 0.5:
            ledger.credit(bank.id, "O+", units)
            expected += units
        else:
            try:
                ledger.debit(bank.id, "O+", units)
                expected -= units
            except InsufficientInventoryError:
                pass
        db.session.commit()
        assert ledger.available(bank.id, "O+") == expected >= 0


def test_query_is_lazy_and_restartable(ledger, registry, bank):
    other = registry.create_bank("North Bank", "Nashik")
    view = ledger.query()
    assert isinstance(view, InventoryView)
    assert list(view) == []

    ledger.credit(bank.id, "A+", 2)
    ledger.credit(bank.id, "O-", 1)
    ledger.credit(other.id, "A+", 4)
    db.session.commit()

    # same view picks up rows written after it was created
    assert [(e.bank_id, e.blood_group) for e in view] == [
        (bank.id, "A+"), (bank.id, "O-"), (other.id, "A+")]
    assert len(list(view)) == 3
    assert [e.bank_id for e in ledger.query(blood_group="a+")] == [bank.id, other.id]
    assert [e.blood_group for e in ledger.query(bank_id=other.id)] == ["A+"]
    assert ledger.query(blood_group="A+").total_units() == 6


def test_query_rejects_bad_group(ledger):
    with pytest.raises(ValidationError):
        ledger.query(blood_group="Z")


def test_stats(ledger, registry, bank):
    other = registry.create_bank("North Bank", "Nashik")
    ledger.credit(bank.id, "A+", 2)
    ledger.credit(other.id, "A+", 3)
    ledger.credit(other.id, "O-", 1)
    db.session.commit()
    stats = ledger.stats()
    assert stats["total_units"] == 6
    assert {"blood_group": "A+", "total_units": 5} in stats["by_blood_group"]
