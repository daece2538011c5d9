from datetime import date, timedelta

import pytest

from bloodbank.errors import NotFoundError, ValidationError
from bloodbank.models import Donation


def test_duplicate_bank_name(registry, bank):
    with pytest.raises(ValidationError):
        registry.create_bank("Central Bank", "Elsewhere")


def test_bank_requires_name_and_location(registry):
    with pytest.raises(ValidationError):
        registry.create_bank("", "Pune")
    with pytest.raises(ValidationError):
        registry.create_bank("South", None)


def test_recipient_type_is_checked(registry):
    with pytest.raises(ValidationError):
        registry.create_recipient("Clinic", "Pharmacy")
    assert registry.create_recipient("Clinic", "EMS").type == "EMS"


def test_get_unknown(registry):
    with pytest.raises(NotFoundError):
        registry.get_bank(5)
    with pytest.raises(NotFoundError):
        registry.get_recipient(5)


def test_donation_credits_inventory(registry, ledger, bank):
    donor = registry.create_donor("Alice", "a+")
    donation = registry.record_donation(donor.id, bank.id, "A+", 2, "2025-01-10")
    assert donation.expiry_date == date(2025, 2, 21)
    assert donation.status == "valid"
    assert donor.last_donation_date == date(2025, 1, 10)
    assert ledger.available(bank.id, "A+") == 2
    assert [d.id for d in registry.list_donations(bank_id=bank.id)] == [donation.id]


def test_donation_blood_group_must_match_donor(registry, ledger, bank):
    donor = registry.create_donor("Bob", "O-")
    with pytest.raises(ValidationError):
        registry.record_donation(donor.id, bank.id, "A+", 1)
    assert ledger.available(bank.id, "A+") == 0


def test_donation_interval(registry, ledger, bank):
    recent = date.today() - timedelta(days=10)
    donor = registry.create_donor("Carol", "B+", last_donation_date=recent.isoformat())
    with pytest.raises(ValidationError):
        registry.record_donation(donor.id, bank.id, "B+", 1)
    registry.record_donation(donor.id, bank.id, "B+", 1, recent + timedelta(days=56))
    assert ledger.available(bank.id, "B+") == 1


def test_ineligible_donor(registry, bank):
    donor = registry.create_donor("Dan", "AB-", health_status="Not Eligible")
    with pytest.raises(ValidationError):
        registry.record_donation(donor.id, bank.id, "AB-", 1)


def test_donation_unknown_references(registry, ledger, bank):
    donor = registry.create_donor("Eve", "A-")
    with pytest.raises(NotFoundError):
        registry.record_donation(999, bank.id, "A-", 1)
    with pytest.raises(NotFoundError):
        registry.record_donation(donor.id, 999, "A-", 1)
    assert registry.session.query(Donation).count() == 0


def test_donations_api(client, registry, bank):
    donor = registry.create_donor("Frank", "O+")
    res = client.post("/donations", json={"donor_id": donor.id, "bank_id": bank.id,
                                          "blood_group": "O+", "units": 3})
    assert res.status_code == 201
    assert client.get("/inventory").get_json()[0]["available_units"] == 3
    assert len(client.get(f"/donations?donor_id={donor.id}").get_json()) == 1
    assert client.get("/donors?blood_group=O%2B").get_json()[0]["full_name"] == "Frank"
