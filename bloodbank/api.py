import logging

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import text
from werkzeug.exceptions import HTTPException

from bloodbank import activity
from bloodbank.errors import BloodBankError
from bloodbank.extensions import db, storage_guard
from bloodbank.ledger import InventoryLedger
from bloodbank.lifecycle import RequestLifecycle
from bloodbank.registry import Registry
from bloodbank.validators import parse_units

logger = logging.getLogger(__name__)

api = Blueprint("api", __name__)


def build_services():
    ledger = InventoryLedger(db.session, current_app.extensions["bloodbank.locks"])
    registry = Registry(db.session, ledger,
                        expiry_days=current_app.config["DONATION_EXPIRY_DAYS"],
                        interval_days=current_app.config["DONATION_INTERVAL_DAYS"])
    return registry, ledger, RequestLifecycle(db.session, ledger)


def _body():
    return request.get_json(silent=True) or {}


def _pick(data, *names):
    # accepts both snake_case and the frontend's camelCase keys
    for name in names:
        if data.get(name) is not None:
            return data[name]
    return None


@api.app_errorhandler(BloodBankError)
def handle_domain_error(e):
    if e.status_code >= 500:
        logger.error("%s: %s", type(e).__name__, e.message)
    return jsonify(e.to_dict()), e.status_code


@api.app_errorhandler(HTTPException)
def handle_http_error(e):
    return jsonify({"error": e.description}), e.code


@api.app_errorhandler(Exception)
def handle_unexpected(e):
    logger.exception("Unhandled error on %s %s", request.method, request.path)
    return jsonify({"error": "Server Error"}), 500


@api.route("/health", methods=["GET"])
def health():
    with storage_guard(db.session, "checking health"):
        db.session.execute(text("SELECT 1"))
    return jsonify({"status": "ok"})


# Requests

@api.route("/requests", methods=["GET", "POST"])
def requests_collection():
    _, _, lifecycle = build_services()
    if request.method == "POST":
        d = _body()
        req = lifecycle.submit(
            recipient_id=_pick(d, "recipient_id", "recipientId"),
            bank_id=_pick(d, "bank_id", "bankId"),
            blood_group=_pick(d, "blood_group", "bloodGroup"),
            units=_pick(d, "units", "units_requested", "unitsRequested"),
            required_by=_pick(d, "required_by", "requiredBy"),
            purpose=d.get("purpose"),
            notes=d.get("notes"),
        )
        return jsonify(req.to_dict()), 201
    reqs = lifecycle.list(status=request.args.get("status"),
                          recipient_id=request.args.get("recipient_id", type=int),
                          bank_id=request.args.get("bank_id", type=int))
    return jsonify([r.to_dict() for r in reqs])


@api.route("/requests/stats", methods=["GET"])
def request_stats():
    _, _, lifecycle = build_services()
    return jsonify(lifecycle.stats())


@api.route("/requests/<int:rid>", methods=["GET"])
def request_detail(rid):
    _, _, lifecycle = build_services()
    return jsonify(lifecycle.get(rid).to_dict())


@api.route("/requests/<int:rid>/status", methods=["PUT"])
def request_review(rid):
    _, _, lifecycle = build_services()
    d = _body()
    req = lifecycle.review(rid, d.get("decision"), d.get("notes"))
    return jsonify(req.to_dict())


@api.route("/requests/<int:rid>/fulfill", methods=["POST"])
def request_fulfill(rid):
    _, _, lifecycle = build_services()
    return jsonify(lifecycle.fulfill(rid).to_dict())


# Inventory

@api.route("/inventory", methods=["GET", "POST"])
def inventory():
    _, ledger, _ = build_services()
    if request.method == "POST":
        d = _body()
        units = parse_units(d.get("units"))
        with storage_guard(db.session, "crediting inventory"):
            entry = ledger.credit(_pick(d, "bank_id", "bankId"), _pick(d, "blood_group", "bloodGroup"), units)
            activity.record(db.session, "inventory_update",
                            f"Manual inventory add: {units} units of {entry.blood_group} at {entry.bank.bank_name}",
                            bank_id=entry.bank_id, blood_group=entry.blood_group, units=units)
            db.session.commit()
        return jsonify(entry.to_dict())
    view = ledger.query(bank_id=request.args.get("bank_id", type=int),
                        blood_group=request.args.get("blood_group"))
    return jsonify([e.to_dict() for e in view])


@api.route("/inventory/stats", methods=["GET"])
def inventory_stats():
    _, ledger, _ = build_services()
    return jsonify(ledger.stats())


# Banks, recipients, donors, donations

@api.route("/banks", methods=["GET", "POST"])
def banks():
    registry, _, _ = build_services()
    if request.method == "POST":
        d = _body()
        bank = registry.create_bank(d.get("bank_name"), d.get("location"), d.get("contact_number"),
                                    d.get("email"), d.get("capacity"))
        return jsonify(bank.to_dict()), 201
    return jsonify([b.to_dict() for b in registry.list_banks()])


@api.route("/banks/<int:bid>", methods=["GET"])
def bank_detail(bid):
    registry, _, _ = build_services()
    return jsonify(registry.get_bank(bid).to_dict())


@api.route("/recipients", methods=["GET", "POST"])
def recipients():
    registry, _, _ = build_services()
    if request.method == "POST":
        d = _body()
        rec = registry.create_recipient(d.get("organization_name"), d.get("type", "Hospital"),
                                        d.get("contact_person"), d.get("contact_number"),
                                        d.get("email"), d.get("address"))
        return jsonify(rec.to_dict()), 201
    return jsonify([r.to_dict() for r in registry.list_recipients()])


@api.route("/recipients/<int:rid>", methods=["GET"])
def recipient_detail(rid):
    registry, _, _ = build_services()
    return jsonify(registry.get_recipient(rid).to_dict())


@api.route("/donors", methods=["GET", "POST"])
def donors():
    registry, _, _ = build_services()
    if request.method == "POST":
        d = _body()
        donor = registry.create_donor(d.get("full_name"), d.get("blood_group"), d.get("contact_number"),
                                      d.get("email"), d.get("health_status", "Eligible"),
                                      d.get("last_donation_date"))
        return jsonify(donor.to_dict()), 201
    return jsonify([x.to_dict() for x in registry.list_donors(request.args.get("blood_group"))])


@api.route("/donations", methods=["GET", "POST"])
def donations():
    registry, _, _ = build_services()
    if request.method == "POST":
        d = _body()
        donation = registry.record_donation(d.get("donor_id"), d.get("bank_id"), d.get("blood_group"),
                                            d.get("units"), d.get("donation_date"))
        return jsonify(donation.to_dict()), 201
    ds = registry.list_donations(bank_id=request.args.get("bank_id", type=int),
                                 donor_id=request.args.get("donor_id", type=int))
    return jsonify([x.to_dict() for x in ds])


@api.route("/activity", methods=["GET"])
def activity_feed():
    limit = request.args.get("limit", default=50, type=int)
    return jsonify([a.to_dict() for a in activity.recent(db.session, max(1, min(limit, 500)))])
