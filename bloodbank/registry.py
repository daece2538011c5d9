import logging
from datetime import date, timedelta

from bloodbank import activity
from bloodbank.errors import NotFoundError, ValidationError
from bloodbank.extensions import storage_guard
from bloodbank.models import (HEALTH_STATUSES, RECIPIENT_TYPES, BloodBank, Donation, Donor,
                              Recipient)
from bloodbank.validators import (normalize_bg, parse_date, parse_id, parse_units,
                                  require_text)

logger = logging.getLogger(__name__)

DONATION_EXPIRY_DAYS = 42
DONATION_INTERVAL_DAYS = 56


class Registry:
    """Blood banks, recipients, donors and donation intake."""

    def __init__(self, session, ledger, expiry_days=DONATION_EXPIRY_DAYS,
                 interval_days=DONATION_INTERVAL_DAYS, clock=None):
        self.session = session
        self.ledger = ledger
        self.expiry_days = expiry_days
        self.interval_days = interval_days
        self.clock = clock or date.today

    # Banks
    def create_bank(self, bank_name, location, contact_number=None, email=None, capacity=None):
        bank_name = require_text(bank_name, "bank_name")
        location = require_text(location, "location")
        if capacity is not None:
            capacity = parse_units(capacity, "capacity")
        if self.session.query(BloodBank).filter_by(bank_name=bank_name).first():
            raise ValidationError("Blood bank with this name already exists")
        with storage_guard(self.session, "creating blood bank"):
            bank = BloodBank(bank_name, location, contact_number, email, capacity)
            self.session.add(bank)
            self.session.flush()
            activity.record(self.session, "registry", f"New blood bank added: {bank_name}",
                            bank_id=bank.id, location=location)
            self.session.commit()
        return bank

    def get_bank(self, bank_id):
        bank = self.session.get(BloodBank, parse_id(bank_id, "bank_id"))
        if bank is None:
            raise NotFoundError("Blood bank not found")
        return bank

    def list_banks(self):
        return self.session.query(BloodBank).order_by(BloodBank.bank_name).all()

    # Recipients
    def create_recipient(self, organization_name, type="Hospital", contact_person=None,
                         contact_number=None, email=None, address=None):
        organization_name = require_text(organization_name, "organization_name")
        if type not in RECIPIENT_TYPES:
            raise ValidationError("Invalid recipient type. Must be one of: " + ", ".join(RECIPIENT_TYPES))
        if self.session.query(Recipient).filter_by(organization_name=organization_name).first():
            raise ValidationError("Recipient with this name already exists")
        with storage_guard(self.session, "creating recipient"):
            rec = Recipient(organization_name, type, contact_person, contact_number, email, address)
            self.session.add(rec)
            self.session.flush()
            activity.record(self.session, "registry", f"New recipient added: {organization_name}",
                            recipient_id=rec.id, type=type)
            self.session.commit()
        return rec

    def get_recipient(self, recipient_id):
        rec = self.session.get(Recipient, parse_id(recipient_id, "recipient_id"))
        if rec is None:
            raise NotFoundError("Recipient not found")
        return rec

    def list_recipients(self):
        return self.session.query(Recipient).order_by(Recipient.organization_name).all()

    # Donors
    def create_donor(self, full_name, blood_group, contact_number=None, email=None,
                     health_status="Eligible", last_donation_date=None):
        full_name = require_text(full_name, "full_name")
        bg = normalize_bg(blood_group)
        if health_status not in HEALTH_STATUSES:
            raise ValidationError("Invalid health status. Must be one of: " + ", ".join(HEALTH_STATUSES))
        if last_donation_date:
            last_donation_date = parse_date(last_donation_date, "last_donation_date")
        with storage_guard(self.session, "creating donor"):
            donor = Donor(full_name, bg, contact_number, email, health_status, last_donation_date or None)
            self.session.add(donor)
            self.session.commit()
        return donor

    def list_donors(self, blood_group=None):
        q = self.session.query(Donor)
        if blood_group:
            q = q.filter(Donor.blood_group == normalize_bg(blood_group))
        return q.order_by(Donor.full_name).all()

    # Donations
    def record_donation(self, donor_id, bank_id, blood_group, units, donation_date=None):
        """Record a donation and credit the bank's stock in one transaction."""
        bg = normalize_bg(blood_group)
        units = parse_units(units)
        when = parse_date(donation_date, "donation_date") if donation_date else self.clock()
        donor = self.session.get(Donor, parse_id(donor_id, "donor_id"))
        if donor is None:
            raise NotFoundError("Donor not found")
        bank = self.get_bank(bank_id)
        if donor.blood_group != bg:
            raise ValidationError(
                f"Blood group mismatch. Donor's blood group is {donor.blood_group}, but donation is for {bg}")
        if donor.health_status == "Not Eligible":
            raise ValidationError("Donor is not eligible to donate at this time")
        if donor.last_donation_date:
            days = (when - donor.last_donation_date).days
            if days < self.interval_days:
                raise ValidationError(
                    f"Donor's last donation was less than {self.interval_days} days ago ({days} days)")

        with storage_guard(self.session, "recording donation"):
            donation = Donation(donor.id, bank.id, bg, units, when,
                                when + timedelta(days=self.expiry_days))
            self.session.add(donation)
            donor.last_donation_date = when
            self.session.flush()
            self.ledger.credit(bank.id, bg, units)
            activity.record(self.session, "donation",
                            f"New donation: {units} units of {bg} from {donor.full_name}",
                            donation_id=donation.id, donor_id=donor.id, bank_id=bank.id,
                            blood_group=bg, units=units)
            self.session.commit()
        logger.info("Donation %s recorded: %s unit(s) of %s at bank %s", donation.id, units, bg, bank.id)
        return donation

    def list_donations(self, bank_id=None, donor_id=None):
        q = self.session.query(Donation)
        if bank_id is not None:
            q = q.filter(Donation.bank_id == bank_id)
        if donor_id is not None:
            q = q.filter(Donation.donor_id == donor_id)
        return q.order_by(Donation.donation_date.desc(), Donation.id.desc()).all()
