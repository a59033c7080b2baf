from flask import jsonify, request

from ..access import (
    filter_customers_by_user,
    filter_loan_applications_by_user,
    filter_loans_by_user,
    is_admin,
    visible_partners,
)
from ..auth.decorators import current_user, login_required
from ..errors import NotFound
from ..store import get_store
from . import reports_bp
from .builders import (
    application_report,
    collection_report,
    customer_report,
    financial_report,
    portfolio_report,
    risk_summary,
)
from .export import excel_response

FILTER_KEYS = ("start_date", "end_date", "partner_id", "status", "product")


def _filters():
    return {key: request.args[key] for key in FILTER_KEYS if request.args.get(key)}


def build_report(name, store, user, filters, today=None):
    customers = filter_customers_by_user(store.customers, user)
    loans = filter_loans_by_user(store.loans, store.customers, user)
    loan_ids = {loan["id"] for loan in loans}
    repayments = [r for r in store.repayments if r["loan_id"] in loan_ids]

    if name == "portfolio":
        return portfolio_report(loans, repayments, store.customers, filters, store.loan_products)
    if name == "collection":
        schedules = [s for s in store.collection_schedules if s["loan_id"] in loan_ids]
        return collection_report(schedules, filters, today)
    if name == "financial":
        if is_admin(user):
            vouchers, journals = store.vouchers, store.journals
        else:
            customer_ids = {c["id"] for c in customers}
            vouchers = [v for v in store.vouchers if v.get("customer_id") in customer_ids]
            journals = [j for j in store.journals if j.get("loan_id") in loan_ids]
        return financial_report(vouchers, journals, filters)
    if name == "customers":
        return customer_report(customers, loans, visible_partners(store.partners, user), filters, today)
    if name == "applications":
        applications = filter_loan_applications_by_user(store.loan_applications, store.customers, user)
        return application_report(applications, store.customers, filters)
    if name == "risk":
        return risk_summary(loans, repayments, customers)
    raise NotFound(f"Unknown report: {name}")


@reports_bp.route("/<name>", methods=["GET"])
@login_required
def get_report(name):
    report = build_report(name, get_store(), current_user(), _filters(), request.args.get("as_of"))
    return jsonify({"status": "success", "report": name, "filters": _filters(), "data": report})


@reports_bp.route("/<name>/excel", methods=["GET"])
@login_required
def export_report(name):
    report = build_report(name, get_store(), current_user(), _filters(), request.args.get("as_of"))
    return excel_response(report, f"{name}_report")
