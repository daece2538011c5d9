"""Blood request lifecycle.

    pending  -> approved | rejected
    approved -> fulfilled

rejected and fulfilled are terminal. Approval debits the bank's stock for
the request's blood group in the same transaction as the status change;
if the debit is refused nothing is written and the request stays pending.
"""
import logging
from datetime import date, datetime

from sqlalchemy import func, update

from bloodbank import activity
from bloodbank.errors import InvalidStateError, NotFoundError, ValidationError
from bloodbank.extensions import storage_guard
from bloodbank.models import (APPROVED, FULFILLED, PENDING, REJECTED, BloodBank,
                              BloodRequest, Recipient)
from bloodbank.validators import (normalize_bg, parse_date, parse_id, parse_units,
                                  require_text)

logger = logging.getLogger(__name__)

APPROVE = "approve"
REJECT = "reject"
DECISIONS = [APPROVE, REJECT]

requests_table = BloodRequest.__table__


class RequestLifecycle:
    def __init__(self, session, ledger, clock=None):
        self.session = session
        self.ledger = ledger
        self.clock = clock or date.today

    def submit(self, recipient_id, bank_id, blood_group, units, required_by, purpose, notes=None):
        recipient_id = parse_id(recipient_id, "recipient_id")
        bank_id = parse_id(bank_id, "bank_id")
        bg = normalize_bg(blood_group)
        units = parse_units(units, "units_requested")
        required_by = parse_date(required_by, "required_by")
        if required_by < self.clock():
            raise ValidationError("Required by date must be in the future")
        purpose = require_text(purpose, "purpose")

        recipient = self.session.get(Recipient, recipient_id)
        if recipient is None:
            raise NotFoundError("Recipient not found")
        bank = self.session.get(BloodBank, bank_id)
        if bank is None:
            raise NotFoundError("Blood bank not found")

        with storage_guard(self.session, "submitting blood request"):
            req = BloodRequest(recipient_id, bank_id, bg, units, required_by, purpose,
                               (notes or "").strip() or None)
            self.session.add(req)
            self.session.flush()
            activity.record(
                self.session, "request",
                f"New blood request: {units} units of {bg} from {recipient.organization_name}",
                request_id=req.id, recipient_id=recipient_id, bank_id=bank_id,
                bank_name=bank.bank_name, blood_group=bg, units_requested=units, purpose=purpose,
            )
            self.session.commit()
        logger.info("Request %s submitted: %s unit(s) of %s at bank %s", req.id, units, bg, bank_id)
        return req

    def review(self, request_id, decision, notes=None):
        decision = (decision or "").strip().lower()
        if decision not in DECISIONS:
            raise ValidationError("Decision must be 'approve' or 'reject'")
        notes = (notes or "").strip()
        req = self.get(request_id)
        if req.status != PENDING:
            logger.warning("Refused %s of request %s: status is %s", decision, req.id, req.status)
            raise InvalidStateError(f"Cannot review a request that is already {req.status}")

        if decision == REJECT:
            if not notes:
                raise ValidationError("Notes are required when rejecting a request")
            with storage_guard(self.session, "rejecting blood request"):
                self._transition(req, PENDING, REJECTED, notes=notes, reviewed_at=datetime.utcnow())
                activity.record(
                    self.session, "rejection",
                    f"Blood request rejected: {req.blood_group} ({req.units_requested} units)",
                    request_id=req.id, old_status=PENDING, new_status=REJECTED,
                )
                self.session.commit()
            logger.info("Request %s rejected", req.id)
            return req

        values = {"reviewed_at": datetime.utcnow()}
        if notes:
            values["notes"] = notes
        with self.ledger.hold(req.bank_id, req.blood_group):
            with storage_guard(self.session, "approving blood request"):
                self._transition(req, PENDING, APPROVED, **values)
                self.ledger.debit(req.bank_id, req.blood_group, req.units_requested)
                activity.record(
                    self.session, "approval",
                    f"Blood request approved: {req.blood_group} ({req.units_requested} units)",
                    request_id=req.id, bank_id=req.bank_id, blood_group=req.blood_group,
                    units=req.units_requested, old_status=PENDING, new_status=APPROVED,
                )
                self.session.commit()
        logger.info("Request %s approved, %s unit(s) of %s debited at bank %s",
                    req.id, req.units_requested, req.blood_group, req.bank_id)
        return req

    def fulfill(self, request_id):
        req = self.get(request_id)
        if req.status != APPROVED:
            raise InvalidStateError(f"Only approved requests can be fulfilled, this one is {req.status}")
        with storage_guard(self.session, "fulfilling blood request"):
            self._transition(req, APPROVED, FULFILLED, fulfilled_at=datetime.utcnow())
            activity.record(
                self.session, "fulfillment",
                f"Blood request fulfilled: {req.blood_group} ({req.units_requested} units)",
                request_id=req.id, old_status=APPROVED, new_status=FULFILLED,
            )
            self.session.commit()
        logger.info("Request %s fulfilled", req.id)
        return req

    def get(self, request_id):
        req = self.session.get(BloodRequest, parse_id(request_id, "request_id"))
        if req is None:
            raise NotFoundError("Blood request not found")
        return req

    def list(self, status=None, recipient_id=None, bank_id=None):
        q = self.session.query(BloodRequest)
        if status:
            q = q.filter(BloodRequest.status == status)
        if recipient_id is not None:
            q = q.filter(BloodRequest.recipient_id == recipient_id)
        if bank_id is not None:
            q = q.filter(BloodRequest.bank_id == bank_id)
        return q.order_by(BloodRequest.created_at.desc(), BloodRequest.id.desc()).all()

    def stats(self):
        units = func.coalesce(func.sum(BloodRequest.units_requested), 0)
        by_status = (self.session.query(BloodRequest.status, func.count(BloodRequest.id), units)
                     .group_by(BloodRequest.status).all())
        by_group = (self.session.query(BloodRequest.blood_group, func.count(BloodRequest.id), units)
                    .group_by(BloodRequest.blood_group).order_by(BloodRequest.blood_group).all())

        total = sum(count for _, count, _ in by_status)
        granted = [row for row in by_status if row[0] in (APPROVED, FULFILLED)]
        approved_count = sum(count for _, count, _ in granted)
        return {
            "by_status": [{"status": s, "count": c, "total_units": int(u)} for s, c, u in by_status],
            "by_blood_group": [{"blood_group": g, "count": c, "total_units": int(u)} for g, c, u in by_group],
            "totals": {
                "total_requests": total,
                "total_units_requested": sum(int(u) for _, _, u in by_status),
                "approved_count": approved_count,
                "approved_units": sum(int(u) for _, _, u in granted),
                "approval_rate": round(approved_count * 100.0 / total, 2) if total else 0.0,
            },
        }

    def _transition(self, req, from_status, to_status, **values):
        # guarded on the expected status so concurrent reviewers cannot both win
        result = self.session.execute(
            update(requests_table)
            .where(requests_table.c.id == req.id, requests_table.c.status == from_status)
            .values(status=to_status, **values)
        )
        if result.rowcount != 1:
            raise InvalidStateError(f"Request {req.id} is no longer {from_status}")
