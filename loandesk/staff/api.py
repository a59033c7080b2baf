from flask import jsonify, request

from ..access import ensure_customer_access, filter_customers_by_user, filter_loans_by_user, get_partner_name
from ..auth.decorators import current_user, login_required, role_required
from ..finance.ledger import customer_balance
from ..store import get_store
from . import staff_api_bp
from .customers import add_address, create_customer, update_kyc_status


def _customer_row(customer, partners):
    return {**customer, "partner_name": get_partner_name(customer.get("partner_id"), partners)}


@staff_api_bp.route("/customers", methods=["GET"])
@login_required
@role_required("admin", "staff")
def list_customers():
    """Visible customers; optional ``q`` (name/phone) and ``kyc_status`` filters."""
    store = get_store()
    customers = filter_customers_by_user(store.customers, current_user())
    q = (request.args.get("q") or "").strip().lower()
    if q:
        customers = [c for c in customers if q in c["name"].lower() or q in (c.get("phone") or "")]
    kyc = request.args.get("kyc_status")
    if kyc:
        customers = [c for c in customers if c.get("kyc_status") == kyc]
    return jsonify({
        "status": "success",
        "count": len(customers),
        "customers": [_customer_row(c, store.partners) for c in customers],
    })


@staff_api_bp.route("/customers", methods=["POST"])
@login_required
@role_required("admin", "staff")
def register_customer():
    store = get_store()
    customer = create_customer(store, request.get_json(silent=True) or {})
    return jsonify({
        "status": "success",
        "message": "Customer created",
        "customer": _customer_row(customer, store.partners),
        "partner_assigned": customer["partner_id"] is not None,
    }), 201


@staff_api_bp.route("/customers/<int:customer_id>", methods=["GET"])
@login_required
@role_required("admin", "staff")
def get_customer(customer_id):
    store = get_store()
    user = current_user()
    customer = store.require("customers", customer_id, "Customer")
    ensure_customer_access(user, customer)
    loans = filter_loans_by_user(store.where("loans", customer_id=customer_id), store.customers, user)
    return jsonify({
        "status": "success",
        "customer": _customer_row(customer, store.partners),
        "addresses": store.where("addresses", customer_id=customer_id),
        "loans": loans,
        "balance": customer_balance(store.transactions, customer_id),
    })


@staff_api_bp.route("/customers/<int:customer_id>/kyc", methods=["POST"])
@login_required
@role_required("admin", "staff")
def set_kyc(customer_id):
    data = request.get_json(silent=True) or {}
    customer = update_kyc_status(get_store(), customer_id, data.get("kyc_status"), current_user())
    return jsonify({"status": "success", "message": "KYC status updated", "customer": customer})


@staff_api_bp.route("/customers/<int:customer_id>/addresses", methods=["GET"])
@login_required
@role_required("admin", "staff")
def list_addresses(customer_id):
    store = get_store()
    ensure_customer_access(current_user(), store.require("customers", customer_id, "Customer"))
    return jsonify({"status": "success", "addresses": store.where("addresses", customer_id=customer_id)})


@staff_api_bp.route("/customers/<int:customer_id>/addresses", methods=["POST"])
@login_required
@role_required("admin", "staff")
def create_address(customer_id):
    address = add_address(get_store(), customer_id, request.get_json(silent=True) or {}, current_user())
    return jsonify({"status": "success", "message": "Address added", "address": address}), 201
