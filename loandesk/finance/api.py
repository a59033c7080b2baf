from flask import current_app, jsonify, request

from ..access import (
    accessible_customer_ids,
    ensure_customer_access,
    ensure_loan_access,
    filter_loan_applications_by_user,
    filter_loans_by_user,
    is_admin,
)
from ..auth.decorators import current_user, login_required, role_required
from ..errors import AccessDenied, ValidationError
from ..models import (
    AMORTIZATION_TYPES,
    APPLICATION_STATUSES,
    CALCULATION_METHODS,
    CLOSURE_STATUSES,
    LOAN_STATUSES,
    PENALTY_TYPES,
    PRIORITIES,
    SCHEDULE_STATUSES,
    TOPUP_STATUSES,
    VOUCHER_TYPES,
)
from ..store import get_store
from ..utils import in_date_range, safe_float, safe_int
from . import finance_bp
from .applications import create_application, update_application_status
from .emi import calculate_prepayment_savings, generate_amortization_schedule, loan_summary
from .ledger import create_journal, create_voucher, customer_balance, customer_ledger, totals_by_type, voucher_receipt
from .servicing import (
    assign_collection,
    calculate_outstanding,
    decide_topup,
    finalize_closure,
    loan_repayments,
    pay_emi,
    refresh_overdue,
    request_closure,
    request_topup,
)

# Calculator inputs beyond these overflow float arithmetic.
MAX_CALCULATOR_PRINCIPAL = 1_000_000_000_000
MAX_CALCULATOR_RATE = 100
MAX_CALCULATOR_TENURE_MONTHS = 480


def _payload():
    return request.get_json(silent=True) or {}


def _filter_arg(rows, key, allowed):
    """Narrow rows to the ``?key=`` query value, which must be one of ``allowed``."""
    value = request.args.get(key)
    if not value:
        return rows
    if value not in allowed:
        raise ValidationError(f"Unknown {key}: {value}")
    return [row for row in rows if row.get(key) == value]


def _check_calculator_limits(principal, rate, tenure):
    if principal > MAX_CALCULATOR_PRINCIPAL or rate > MAX_CALCULATOR_RATE or tenure > MAX_CALCULATOR_TENURE_MONTHS:
        raise ValidationError(
            f"Calculator limits: principal up to {MAX_CALCULATOR_PRINCIPAL}, "
            f"interest_rate up to {MAX_CALCULATOR_RATE}, tenure_months up to {MAX_CALCULATOR_TENURE_MONTHS}"
        )


def _loan_for_user(store, loan_id):
    loan = store.require("loans", loan_id, "Loan")
    ensure_loan_access(current_user(), loan, store.customers)
    return loan


def _visible_loan_ids(store):
    return {loan["id"] for loan in filter_loans_by_user(store.loans, store.customers, current_user())}


def _customer_name(store, customer_id):
    customer = store.get("customers", customer_id)
    return customer["name"] if customer else None


# --- Applications ---
@finance_bp.route("/applications", methods=["GET"])
@login_required
def list_applications():
    store = get_store()
    apps = filter_loan_applications_by_user(store.loan_applications, store.customers, current_user())
    apps = _filter_arg(apps, "status", APPLICATION_STATUSES)
    rows = [{**a, "customer_name": _customer_name(store, a["customer_id"])} for a in apps]
    return jsonify({"status": "success", "count": len(rows), "applications": rows})


@finance_bp.route("/applications", methods=["POST"])
@login_required
@role_required("admin", "staff")
def new_application():
    application = create_application(get_store(), _payload(), current_user())
    return jsonify({"status": "success", "message": "Application created", "application": application}), 201


@finance_bp.route("/applications/<int:application_id>", methods=["GET"])
@login_required
def get_application(application_id):
    store = get_store()
    application = store.require("loan_applications", application_id, "Application")
    ensure_customer_access(current_user(), store.require("customers", application["customer_id"], "Customer"))
    return jsonify({
        "status": "success",
        "application": {**application, "customer_name": _customer_name(store, application["customer_id"])},
    })


@finance_bp.route("/applications/<int:application_id>/status", methods=["POST"])
@login_required
@role_required("admin", "staff")
def change_application_status(application_id):
    data = _payload()
    if not data.get("status"):
        raise ValidationError("status is required")
    application, loan = update_application_status(
        get_store(), application_id, data["status"], current_user(),
        disbursement_date=data.get("disbursement_date"), remarks=data.get("remarks"),
    )
    body = {"status": "success", "message": f"Application {application['status']}", "application": application}
    if loan:
        body["loan"] = loan
    return jsonify(body)


# --- Loans ---
@finance_bp.route("/loans", methods=["GET"])
@login_required
def list_loans():
    store = get_store()
    loans = filter_loans_by_user(store.loans, store.customers, current_user())
    loans = _filter_arg(loans, "status", LOAN_STATUSES)
    loans = _filter_arg(loans, "amortization_type", AMORTIZATION_TYPES)
    rows = [{
        **loan,
        "customer_name": _customer_name(store, loan["customer_id"]),
        "outstanding": calculate_outstanding(loan, store.repayments),
    } for loan in loans]
    return jsonify({"status": "success", "count": len(rows), "loans": rows})


@finance_bp.route("/loans/<int:loan_id>", methods=["GET"])
@login_required
def get_loan(loan_id):
    store = get_store()
    loan = _loan_for_user(store, loan_id)
    repayments = loan_repayments(store, loan_id)
    return jsonify({
        "status": "success",
        "loan": loan,
        "customer": store.get("customers", loan["customer_id"]),
        "outstanding": calculate_outstanding(loan, store.repayments),
        "repayments": repayments,
        "penalties": store.where("penalties", loan_id=loan_id),
        "top_ups": store.where("top_ups", loan_id=loan_id),
        "closures": store.where("loan_closures", loan_id=loan_id),
    })


@finance_bp.route("/loans/<int:loan_id>/schedule", methods=["GET"])
@login_required
def loan_schedule(loan_id):
    store = get_store()
    loan = _loan_for_user(store, loan_id)
    schedule = generate_amortization_schedule(
        loan["amount"], loan["interest_rate"], loan["tenure_months"], loan["disbursement_date"]
    )
    return jsonify({"status": "success", "loan_id": loan_id, "emi": loan["emi"], "schedule": schedule})


@finance_bp.route("/loans/<int:loan_id>/pay", methods=["POST"])
@login_required
@role_required("admin", "staff")
def pay_loan_emi(loan_id):
    store = get_store()
    _loan_for_user(store, loan_id)
    data = _payload()
    result = pay_emi(
        store, loan_id,
        amount=data.get("amount"),
        payment_mode=data.get("payment_mode") or "Cash",
        paid_on=data.get("paid_date"),
        collected_by=data.get("collection_agent") or current_user()["name"],
    )
    return jsonify({
        "status": "success",
        "message": f"Installment {result['repayment']['installment_number']} {result['repayment']['status']}",
        "repayment": result["repayment"],
        "voucher": result["voucher"],
        "penalty": result["penalty"],
        "loan_status": result["loan"]["status"],
    })


# --- Calculators ---
@finance_bp.route("/emi-calculator", methods=["GET", "POST"])
@login_required
def emi_calculator():
    data = _payload() if request.method == "POST" else request.args
    principal = safe_float(data.get("principal"))
    rate = safe_float(data.get("interest_rate"), -1)
    tenure = safe_int(data.get("tenure_months"))
    if principal <= 0 or rate < 0 or tenure <= 0:
        raise ValidationError("principal and tenure_months must be positive; interest_rate must be a non-negative number")
    _check_calculator_limits(principal, rate, tenure)
    summary = loan_summary(principal, rate, tenure)
    schedule = generate_amortization_schedule(principal, rate, tenure, data.get("start_date"))
    return jsonify({"status": "success", "summary": summary, "schedule": schedule})


@finance_bp.route("/prepayment-calculator", methods=["POST"])
@login_required
def prepayment_calculator():
    data = _payload()
    principal = safe_float(data.get("principal"))
    rate = safe_float(data.get("interest_rate"), -1)
    tenure = safe_int(data.get("tenure_months"))
    prepayment = safe_float(data.get("prepayment_amount"))
    months_paid = safe_int(data.get("months_paid"))
    if principal <= 0 or rate < 0 or tenure <= 0 or prepayment <= 0 or months_paid < 0:
        raise ValidationError("principal, tenure_months and prepayment_amount must be positive")
    _check_calculator_limits(principal, rate, tenure)
    savings = calculate_prepayment_savings(principal, rate, tenure, prepayment, months_paid)
    return jsonify({"status": "success", **savings})


# --- Collections ---
@finance_bp.route("/collections", methods=["GET"])
@login_required
def list_collections():
    store = get_store()
    visible = _visible_loan_ids(store)
    rows = [s for s in store.collection_schedules if s["loan_id"] in visible]
    rows = _filter_arg(rows, "status", SCHEDULE_STATUSES)
    rows = _filter_arg(rows, "priority", PRIORITIES)
    agent = request.args.get("collection_agent")
    if agent:
        rows = [s for s in rows if s.get("collection_agent") == agent]
    start, end = request.args.get("start_date"), request.args.get("end_date")
    if start or end:
        rows = [s for s in rows if in_date_range(s["due_date"], start, end)]
    rows = sorted(rows, key=lambda s: (s["due_date"], s["id"]))
    return jsonify({
        "status": "success",
        "count": len(rows),
        "collections": [{**s, "customer_name": _customer_name(store, s["customer_id"])} for s in rows],
    })


@finance_bp.route("/collections/assign", methods=["POST"])
@login_required
@role_required("admin", "staff")
def assign_collection_agent():
    store = get_store()
    data = _payload()
    loan_id = safe_int(data.get("loan_id"))
    _loan_for_user(store, loan_id)
    schedules = assign_collection(store, loan_id, data.get("collection_agent"), data.get("priority") or "Medium")
    return jsonify({"status": "success", "message": f"{len(schedules)} installments assigned", "collections": schedules})


@finance_bp.route("/collections/refresh", methods=["POST"])
@login_required
@role_required("admin")
def refresh_collections():
    data = _payload()
    result = refresh_overdue(get_store(), data.get("as_of"), current_app.config["DEFAULT_THRESHOLD_DAYS"])
    return jsonify({"status": "success", **result})


# --- Top-ups ---
@finance_bp.route("/top-ups", methods=["GET"])
@login_required
def list_topups():
    store = get_store()
    visible = _visible_loan_ids(store)
    rows = [t for t in store.top_ups if t["loan_id"] in visible]
    rows = _filter_arg(rows, "status", TOPUP_STATUSES)
    return jsonify({"status": "success", "top_ups": rows})


@finance_bp.route("/top-ups", methods=["POST"])
@login_required
@role_required("admin", "staff")
def create_topup():
    store = get_store()
    data = _payload()
    loan_id = safe_int(data.get("loan_id"))
    _loan_for_user(store, loan_id)
    topup = request_topup(
        store, loan_id, data.get("requested_amount"),
        tenure_months=data.get("tenure_months"), interest_rate=data.get("interest_rate"),
        default_tenure=current_app.config["TOPUP_DEFAULT_TENURE_MONTHS"],
        default_rate=current_app.config["TOPUP_DEFAULT_RATE"],
    )
    return jsonify({"status": "success", "message": "Top-up requested", "top_up": topup}), 201


@finance_bp.route("/top-ups/<int:topup_id>/<decision>", methods=["POST"])
@login_required
@role_required("admin")
def decide_topup_request(topup_id, decision):
    if decision not in ("approve", "reject"):
        raise ValidationError("Decision must be approve or reject")
    topup = decide_topup(get_store(), topup_id, decision == "approve", _payload().get("approved_date"))
    return jsonify({"status": "success", "message": f"Top-up {topup['status']}", "top_up": topup})


# --- Penalties ---
@finance_bp.route("/penalties", methods=["GET"])
@login_required
def list_penalties():
    store = get_store()
    visible = _visible_loan_ids(store)
    rows = [p for p in store.penalties if p["loan_id"] in visible]
    rows = _filter_arg(rows, "penalty_type", PENALTY_TYPES)
    rows = _filter_arg(rows, "calculation_method", CALCULATION_METHODS)
    return jsonify({"status": "success", "penalties": rows, "total": round(sum(p["amount"] for p in rows), 2)})


# --- Closures ---
@finance_bp.route("/closures", methods=["GET"])
@login_required
def list_closures():
    store = get_store()
    visible = _visible_loan_ids(store)
    rows = _filter_arg([c for c in store.loan_closures if c["loan_id"] in visible], "status", CLOSURE_STATUSES)
    return jsonify({"status": "success", "closures": rows})


@finance_bp.route("/closures", methods=["POST"])
@login_required
@role_required("admin", "staff")
def create_closure():
    store = get_store()
    data = _payload()
    loan_id = safe_int(data.get("loan_id"))
    _loan_for_user(store, loan_id)
    closure = request_closure(store, loan_id, data.get("remarks"), current_user()["name"])
    return jsonify({"status": "success", "message": "Closure requested", "closure": closure}), 201


@finance_bp.route("/closures/<int:closure_id>/finalize", methods=["POST"])
@login_required
@role_required("admin")
def close_loan(closure_id):
    result = finalize_closure(get_store(), closure_id, current_user()["name"])
    return jsonify({
        "status": "success",
        "message": f"Loan {result['loan']['id']} {result['loan']['status']}",
        "closure": result["closure"],
        "loan": result["loan"],
        "penalty": result["penalty"],
    })


# --- Accounting ---
def _visible_vouchers(store):
    user = current_user()
    if is_admin(user):
        return list(store.vouchers)
    customers = accessible_customer_ids(store.customers, user)
    return [v for v in store.vouchers if v.get("customer_id") in customers]


@finance_bp.route("/vouchers", methods=["GET"])
@login_required
def list_vouchers():
    store = get_store()
    rows = _visible_vouchers(store)
    rows = _filter_arg(rows, "type", VOUCHER_TYPES)
    start, end = request.args.get("start_date"), request.args.get("end_date")
    if start or end:
        rows = [v for v in rows if in_date_range(v["date"], start, end)]
    return jsonify({"status": "success", "vouchers": rows, **totals_by_type(rows)})


@finance_bp.route("/vouchers", methods=["POST"])
@login_required
@role_required("admin", "staff")
def add_voucher():
    store = get_store()
    data = _payload()
    if data.get("loan_id"):
        _loan_for_user(store, safe_int(data["loan_id"]))
    elif data.get("customer_id"):
        ensure_customer_access(current_user(), store.require("customers", safe_int(data["customer_id"]), "Customer"))
    elif not is_admin(current_user()):
        raise ValidationError("Staff vouchers must reference a loan or customer")
    voucher = create_voucher(store, data)
    return jsonify({"status": "success", "message": "Voucher created", "voucher": voucher}), 201


@finance_bp.route("/vouchers/<int:voucher_id>/receipt", methods=["GET"])
@login_required
def get_voucher_receipt(voucher_id):
    store = get_store()
    voucher = store.require("vouchers", voucher_id, "Voucher")
    if voucher["id"] not in {v["id"] for v in _visible_vouchers(store)}:
        raise AccessDenied("You do not have access to this voucher")
    return jsonify({"status": "success", **voucher_receipt(store, voucher, current_app.config["ORGANISATION_NAME"])})


@finance_bp.route("/journals", methods=["GET"])
@login_required
def list_journals():
    store = get_store()
    rows = store.journals
    if not is_admin(current_user()):
        visible = _visible_loan_ids(store)
        rows = [j for j in rows if j.get("loan_id") in visible]
    return jsonify({"status": "success", "journals": rows})


@finance_bp.route("/journals", methods=["POST"])
@login_required
@role_required("admin")
def add_journal():
    journal = create_journal(get_store(), _payload())
    return jsonify({"status": "success", "message": "Journal entry created", "journal": journal}), 201


@finance_bp.route("/transactions", methods=["GET"])
@login_required
def list_transactions():
    store = get_store()
    rows = store.transactions
    if not is_admin(current_user()):
        customers = accessible_customer_ids(store.customers, current_user())
        rows = [t for t in rows if t.get("customer_id") in customers]
    customer_id = safe_int(request.args.get("customer_id"))
    if customer_id:
        rows = [t for t in rows if t.get("customer_id") == customer_id]
    return jsonify({"status": "success", "transactions": rows})


@finance_bp.route("/customers/<int:customer_id>/ledger", methods=["GET"])
@login_required
def get_customer_ledger(customer_id):
    store = get_store()
    ensure_customer_access(current_user(), store.require("customers", customer_id, "Customer"))
    return jsonify({
        "status": "success",
        "customer_id": customer_id,
        "ledger": customer_ledger(store.transactions, customer_id),
        "balance": customer_balance(store.transactions, customer_id),
    })
