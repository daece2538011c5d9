from datetime import datetime

from bloodbank.extensions import db

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"
FULFILLED = "fulfilled"
REQUEST_STATUSES = [PENDING, APPROVED, REJECTED, FULFILLED]

RECIPIENT_TYPES = ["Hospital", "Research", "EMS", "Other"]
HEALTH_STATUSES = ["Eligible", "Not Eligible"]
DONATION_STATUSES = ["valid", "expired", "used"]


def _iso(value):
    return value.isoformat() if value else None


class BloodBank(db.Model):  # type: ignore[name-defined]
    __tablename__ = "blood_banks"
    id = db.Column(db.Integer, primary_key=True)
    bank_name = db.Column(db.String(120), unique=True, nullable=False)
    location = db.Column(db.String(200), nullable=False)
    contact_number = db.Column(db.String(32))
    email = db.Column(db.String(120))
    capacity = db.Column(db.Integer)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __init__(self, bank_name, location, contact_number=None, email=None, capacity=None):
        self.bank_name = bank_name
        self.location = location
        self.contact_number = contact_number
        self.email = email
        self.capacity = capacity

    def to_dict(self):
        return {
            "id": self.id, "bank_name": self.bank_name, "location": self.location,
            "contact_number": self.contact_number, "email": self.email,
            "capacity": self.capacity, "created_at": _iso(self.created_at),
        }


class Recipient(db.Model):  # type: ignore[name-defined]
    __tablename__ = "recipients"
    id = db.Column(db.Integer, primary_key=True)
    organization_name = db.Column(db.String(200), unique=True, nullable=False)
    type = db.Column(db.String(16), nullable=False, default="Hospital")
    contact_person = db.Column(db.String(120))
    contact_number = db.Column(db.String(32))
    email = db.Column(db.String(120))
    address = db.Column(db.String(200))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __init__(self, organization_name, type="Hospital", contact_person=None,
                 contact_number=None, email=None, address=None):
        self.organization_name = organization_name
        self.type = type
        self.contact_person = contact_person
        self.contact_number = contact_number
        self.email = email
        self.address = address

    def to_dict(self):
        return {
            "id": self.id, "organization_name": self.organization_name, "type": self.type,
            "contact_person": self.contact_person, "contact_number": self.contact_number,
            "email": self.email, "address": self.address, "created_at": _iso(self.created_at),
        }


class Donor(db.Model):  # type: ignore[name-defined]
    __tablename__ = "donors"
    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(120), nullable=False)
    blood_group = db.Column(db.String(4), nullable=False)
    contact_number = db.Column(db.String(32))
    email = db.Column(db.String(120))
    health_status = db.Column(db.String(16), nullable=False, default="Eligible")
    last_donation_date = db.Column(db.Date, nullable=True)

    def __init__(self, full_name, blood_group, contact_number=None, email=None,
                 health_status="Eligible", last_donation_date=None):
        self.full_name = full_name
        self.blood_group = blood_group
        self.contact_number = contact_number
        self.email = email
        self.health_status = health_status
        self.last_donation_date = last_donation_date

    def to_dict(self):
        return {
            "id": self.id, "full_name": self.full_name, "blood_group": self.blood_group,
            "contact_number": self.contact_number, "email": self.email,
            "health_status": self.health_status,
            "last_donation_date": _iso(self.last_donation_date),
        }


class Donation(db.Model):  # type: ignore[name-defined]
    __tablename__ = "donations"
    id = db.Column(db.Integer, primary_key=True)
    donor_id = db.Column(db.Integer, db.ForeignKey("donors.id"), nullable=False)
    bank_id = db.Column(db.Integer, db.ForeignKey("blood_banks.id"), nullable=False)
    blood_group = db.Column(db.String(4), nullable=False)
    units = db.Column(db.Integer, nullable=False)
    donation_date = db.Column(db.Date, nullable=False)
    expiry_date = db.Column(db.Date, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="valid")

    def __init__(self, donor_id, bank_id, blood_group, units, donation_date, expiry_date, status="valid"):
        self.donor_id = donor_id
        self.bank_id = bank_id
        self.blood_group = blood_group
        self.units = units
        self.donation_date = donation_date
        self.expiry_date = expiry_date
        self.status = status

    def to_dict(self):
        return {
            "id": self.id, "donor_id": self.donor_id, "bank_id": self.bank_id,
            "blood_group": self.blood_group, "units": self.units,
            "donation_date": _iso(self.donation_date), "expiry_date": _iso(self.expiry_date),
            "status": self.status,
        }


class InventoryEntry(db.Model):  # type: ignore[name-defined]
    __tablename__ = "blood_inventory"
    __table_args__ = (
        db.UniqueConstraint("bank_id", "blood_group", name="uq_inventory_bank_group"),
        db.CheckConstraint("available_units >= 0", name="ck_inventory_non_negative"),
    )
    id = db.Column(db.Integer, primary_key=True)
    bank_id = db.Column(db.Integer, db.ForeignKey("blood_banks.id"), nullable=False)
    blood_group = db.Column(db.String(4), nullable=False)
    available_units = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    bank = db.relationship("BloodBank", lazy="joined")

    def __init__(self, bank_id, blood_group, available_units=0):
        self.bank_id = bank_id
        self.blood_group = blood_group
        self.available_units = available_units

    def to_dict(self):
        return {
            "id": self.id, "bank_id": self.bank_id,
            "bank_name": self.bank.bank_name if self.bank else None,
            "blood_group": self.blood_group, "available_units": self.available_units,
            "updated_at": _iso(self.updated_at),
        }


class BloodRequest(db.Model):  # type: ignore[name-defined]
    __tablename__ = "blood_requests"
    id = db.Column(db.Integer, primary_key=True)
    recipient_id = db.Column(db.Integer, db.ForeignKey("recipients.id"), nullable=False)
    bank_id = db.Column(db.Integer, db.ForeignKey("blood_banks.id"), nullable=False)
    blood_group = db.Column(db.String(4), nullable=False)
    units_requested = db.Column(db.Integer, nullable=False)
    required_by = db.Column(db.Date, nullable=False)
    purpose = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=PENDING, index=True)
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    reviewed_at = db.Column(db.DateTime, nullable=True)
    fulfilled_at = db.Column(db.DateTime, nullable=True)

    recipient = db.relationship("Recipient", lazy="joined")
    bank = db.relationship("BloodBank", lazy="joined")

    def __init__(self, recipient_id, bank_id, blood_group, units_requested, required_by, purpose, notes=None):
        self.recipient_id = recipient_id
        self.bank_id = bank_id
        self.blood_group = blood_group
        self.units_requested = units_requested
        self.required_by = required_by
        self.purpose = purpose
        self.notes = notes
        self.status = PENDING

    def to_dict(self):
        return {
            "id": self.id,
            "recipient_id": self.recipient_id,
            "recipient_name": self.recipient.organization_name if self.recipient else None,
            "bank_id": self.bank_id,
            "bank_name": self.bank.bank_name if self.bank else None,
            "blood_group": self.blood_group,
            "units_requested": self.units_requested,
            "required_by": _iso(self.required_by),
            "purpose": self.purpose,
            "status": self.status,
            "notes": self.notes,
            "created_at": _iso(self.created_at),
            "reviewed_at": _iso(self.reviewed_at),
            "fulfilled_at": _iso(self.fulfilled_at),
        }


class ActivityLog(db.Model):  # type: ignore[name-defined]
    __tablename__ = "activity_logs"
    id = db.Column(db.Integer, primary_key=True)
    activity_type = db.Column(db.String(32), nullable=False)
    description = db.Column(db.String(255), nullable=False)
    details = db.Column(db.JSON)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def __init__(self, activity_type, description, details=None):
        self.activity_type = activity_type
        self.description = description
        self.details = details

    def to_dict(self):
        return {
            "id": self.id, "activity_type": self.activity_type,
            "description": self.description, "details": self.details,
            "created_at": _iso(self.created_at),
        }
