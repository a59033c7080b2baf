"""
Report builders
===============
Each builder takes already-visible records (see ``loandesk.access``) and an
optional filter dict with ``start_date``, ``end_date``, ``partner_id``,
``status`` and ``product`` keys. Date ranges are inclusive and either bound
may be left open. Percentages are plain floats in the 0-100 range.
"""
from datetime import date, timedelta

from ..access import (
    filter_customers_by_user,
    filter_loan_applications_by_user,
    filter_loans_by_user,
)
from ..models import PENDING_APPLICATION_STATUSES
from ..notification.alerts import generate_notifications, get_critical_notification_count
from ..utils import add_months, in_date_range, parse_date, parse_datetime, safe_int


def _pct(part, whole):
    return (part / whole) * 100 if whole else 0


def _has_dates(filters):
    return bool(filters.get("start_date") or filters.get("end_date"))


def _partner_of(customers):
    return {c["id"]: c.get("partner_id") for c in customers}


def _overdue_loan_ids(repayments):
    return {r["loan_id"] for r in repayments if r["status"] == "Overdue"}


def portfolio_report(loans, repayments, customers, filters=None, products=None):
    filters = filters or {}
    partner_id = safe_int(filters.get("partner_id"))
    if partner_id:
        owner = _partner_of(customers)
        loans = [loan for loan in loans if owner.get(loan["customer_id"]) == partner_id]
    if _has_dates(filters):
        loans = [loan for loan in loans
                 if in_date_range(loan["disbursement_date"], filters.get("start_date"), filters.get("end_date"))]
    if filters.get("status"):
        loans = [loan for loan in loans if loan["status"] == filters["status"]]
    if filters.get("product") and products is not None:
        wanted = {p["id"] for p in products if filters["product"] in (p["name"], p["code"])}
        loans = [loan for loan in loans if loan.get("product_id") in wanted]

    loan_ids = {loan["id"] for loan in loans}
    active = [loan for loan in loans if loan["status"] == "Active"]
    active_ids = {loan["id"] for loan in active}
    total_disbursed = sum(loan["amount"] for loan in loans)

    paid_principal = {}
    for r in repayments:
        if r["status"] == "Paid":
            paid_principal[r["loan_id"]] = paid_principal.get(r["loan_id"], 0) + r["principal_amount"]
    total_outstanding = sum(loan["amount"] - paid_principal.get(loan["id"], 0) for loan in active)

    total_collected = sum(r["paid_amount"] for r in repayments
                          if r["status"] == "Paid" and r["loan_id"] in loan_ids)
    overdue = [r for r in repayments if r["status"] == "Overdue" and r["loan_id"] in active_ids]

    return {
        "total_loans": len(loans),
        "active_loans": len(active),
        "closed_loans": sum(1 for loan in loans if loan["status"] == "Closed"),
        "preclosed_loans": sum(1 for loan in loans if loan["status"] == "PreClosed"),
        "defaulted_loans": sum(1 for loan in loans if loan["status"] == "Defaulted"),
        "total_disbursed": total_disbursed,
        "total_outstanding": total_outstanding,
        "total_collected": total_collected,
        "average_loan_size": total_disbursed / len(loans) if loans else 0,
        "average_interest_rate": sum(loan["interest_rate"] for loan in loans) / len(loans) if loans else 0,
        "collection_efficiency": _pct(total_collected, total_disbursed),
        "overdue_amount": sum(r["expected_amount"] for r in overdue),
        "overdue_loans": len(_overdue_loan_ids(overdue)),
    }


def collection_report(schedules, filters=None, today=None):
    filters = filters or {}
    today = parse_date(today) or date.today()
    if _has_dates(filters):
        schedules = [s for s in schedules
                     if in_date_range(s["due_date"], filters.get("start_date"), filters.get("end_date"))]

    total_due = sum(s["emi_amount"] for s in schedules)
    collected = sum(s["emi_amount"] for s in schedules if s["status"] == "Paid")
    overdue = [s for s in schedules if s["status"] == "Overdue"]

    week_ahead = today + timedelta(days=7)
    month_ahead = add_months(today, 1)
    unpaid_dates = [parse_date(s["due_date"]) for s in schedules if s["status"] != "Paid"]

    agents = {}
    for s in schedules:
        name = s.get("collection_agent")
        if not name:
            continue
        row = agents.setdefault(name, {
            "agent_name": name, "total_assigned": 0, "collected": 0,
            "overdue": 0, "efficiency": 0, "total_amount": 0,
        })
        row["total_assigned"] += 1
        row["total_amount"] += s["emi_amount"]
        if s["status"] == "Paid":
            row["collected"] += 1
        elif s["status"] == "Overdue":
            row["overdue"] += 1
        row["efficiency"] = _pct(row["collected"], row["total_assigned"])

    return {
        "total_due": total_due,
        "collected_amount": collected,
        "overdue_amount": sum(s["emi_amount"] for s in overdue),
        "collection_efficiency": _pct(collected, total_due),
        "overdue_loans": len(overdue),
        "due_today": sum(1 for d in unpaid_dates if d == today),
        "due_this_week": sum(1 for d in unpaid_dates if today <= d <= week_ahead),
        "due_this_month": sum(1 for d in unpaid_dates if today <= d <= month_ahead),
        "agent_performance": list(agents.values()),
    }


def financial_report(vouchers, journals, filters=None):
    filters = filters or {}
    if _has_dates(filters):
        start, end = filters.get("start_date"), filters.get("end_date")
        vouchers = [v for v in vouchers if in_date_range(v["date"], start, end)]
        journals = [j for j in journals if in_date_range(j["date"], start, end)]

    receipts = sum(v["amount"] for v in vouchers if v["type"] == "Receipt")
    payments = sum(v["amount"] for v in vouchers if v["type"] == "Payment")
    interest = [j for j in journals if "interest" in j["entry"].lower()]

    def _category_total(word):
        return sum(v["amount"] for v in vouchers if word in (v.get("category") or "").lower())

    months = {}
    for v in vouchers:
        month = str(parse_date(v["date"]))[:7]
        row = months.setdefault(month, {"month": month, "receipts": 0, "payments": 0,
                                        "net_amount": 0, "interest_earned": 0})
        if v["type"] == "Receipt":
            row["receipts"] += v["amount"]
        else:
            row["payments"] += v["amount"]
        row["net_amount"] = row["receipts"] - row["payments"]
    # Interest only lands in months that already have voucher activity.
    for j in interest:
        month = str(parse_date(j["date"]))[:7]
        if month in months:
            months[month]["interest_earned"] += j["amount"]

    return {
        "total_receipts": receipts,
        "total_payments": payments,
        "net_balance": receipts - payments,
        "interest_earned": sum(j["amount"] for j in interest),
        "fees_collected": _category_total("fee"),
        "penalties_collected": _category_total("penalty"),
        "monthly_breakdown": [months[m] for m in sorted(months)],
    }


def customer_report(customers, loans, partners, filters=None, today=None):
    filters = filters or {}
    today = parse_date(today) or date.today()
    all_customers = customers
    partner_id = safe_int(filters.get("partner_id"))
    if partner_id:
        customers = [c for c in customers if c.get("partner_id") == partner_id]
    if _has_dates(filters):
        customers = [c for c in customers
                     if in_date_range(c["created_at"], filters.get("start_date"), filters.get("end_date"))]

    cutoff = today - timedelta(days=30)
    with_active_loan = {loan["customer_id"] for loan in loans if loan["status"] == "Active"}
    owner = _partner_of(all_customers)

    by_partner = []
    for partner in partners:
        partner_loans = [loan for loan in loans if owner.get(loan["customer_id"]) == partner["id"]]
        by_partner.append({
            "partner_id": partner["id"],
            "partner_name": partner["name"],
            "total_customers": sum(1 for c in all_customers if c.get("partner_id") == partner["id"]),
            "active_loans": sum(1 for loan in partner_loans if loan["status"] == "Active"),
            "total_disbursed": sum(loan["amount"] for loan in partner_loans),
        })

    return {
        "total_customers": len(customers),
        "new_customers": sum(1 for c in customers if parse_date(c["created_at"]) >= cutoff),
        "active_customers": sum(1 for c in customers if c["id"] in with_active_loan),
        "kyc_pending": sum(1 for c in customers if c.get("kyc_status") == "Pending"),
        "kyc_verified": sum(1 for c in customers if c.get("kyc_status") == "Verified"),
        "kyc_rejected": sum(1 for c in customers if c.get("kyc_status") == "Rejected"),
        "customer_by_partner": by_partner,
    }


def application_report(applications, customers, filters=None):
    filters = filters or {}
    partner_id = safe_int(filters.get("partner_id"))
    if partner_id:
        owner = _partner_of(customers)
        applications = [a for a in applications if owner.get(a["customer_id"]) == partner_id]
    if _has_dates(filters):
        applications = [a for a in applications
                        if in_date_range(a["created_at"], filters.get("start_date"), filters.get("end_date"))]
    if filters.get("status"):
        applications = [a for a in applications if a["status"] == filters["status"]]
    if filters.get("product"):
        applications = [a for a in applications if a["product"] == filters["product"]]

    approved = sum(1 for a in applications if a["status"] == "Approved")
    rejected = sum(1 for a in applications if a["status"] == "Rejected")
    pending = sum(1 for a in applications if a["status"] in PENDING_APPLICATION_STATUSES)

    decided = [a for a in applications if a["status"] in ("Approved", "Rejected")]
    seconds = sum(
        (parse_datetime(a["updated_at"]) - parse_datetime(a["created_at"])).total_seconds()
        for a in decided
    )

    products = {}
    for a in applications:
        row = products.setdefault(a["product"], {"product": a["product"], "total": 0, "approved": 0,
                                                 "rejected": 0, "pending": 0, "approval_rate": 0})
        row["total"] += 1
        if a["status"] == "Approved":
            row["approved"] += 1
        elif a["status"] == "Rejected":
            row["rejected"] += 1
        else:
            row["pending"] += 1
        row["approval_rate"] = _pct(row["approved"], row["total"])

    return {
        "total_applications": len(applications),
        "approved_applications": approved,
        "rejected_applications": rejected,
        "pending_applications": pending,
        "approval_rate": _pct(approved, len(applications)),
        "average_processing_time": seconds / len(decided) / 86400 if decided else 0,
        "applications_by_product": list(products.values()),
    }


def risk_summary(loans, repayments, customers):
    total_portfolio = sum(loan["amount"] for loan in loans)
    loan_ids = {loan["id"] for loan in loans}
    overdue_rows = [r for r in repayments if r["status"] == "Overdue" and r["loan_id"] in loan_ids]
    overdue_ids = _overdue_loan_ids(overdue_rows)
    overdue_amount = sum(r["expected_amount"] for r in overdue_rows)
    defaulted_amount = sum(loan["amount"] for loan in loans if loan["status"] == "Defaulted")

    portfolio_at_risk = _pct(overdue_amount, total_portfolio)
    default_rate = _pct(defaulted_amount, total_portfolio)

    scores = []
    for customer in customers:
        own = [loan for loan in loans if loan["customer_id"] == customer["id"]]
        borrowed = sum(loan["amount"] for loan in own)
        overdue_count = sum(1 for loan in own if loan["id"] in overdue_ids)
        score = 0
        if borrowed > 50000:
            score += 30
        if overdue_count:
            score += 40
        if len(own) > 3:
            score += 20
        if customer.get("kyc_status") == "Pending":
            score += 10
        scores.append({
            "customer_id": customer["id"],
            "customer_name": customer["name"],
            "risk_score": min(score, 100),
            "total_borrowed": borrowed,
            "loan_count": len(own),
            "overdue_count": overdue_count,
        })
    scores.sort(key=lambda row: row["risk_score"], reverse=True)

    return {
        "total_portfolio": total_portfolio,
        "overdue_amount": overdue_amount,
        "overdue_loans": len(overdue_ids),
        "defaulted_amount": defaulted_amount,
        "portfolio_at_risk": portfolio_at_risk,
        "default_rate": default_rate,
        "total_risk_exposure": portfolio_at_risk + default_rate,
        "risk_buckets": {
            "low": sum(1 for loan in loans if loan["amount"] <= 5000),
            "medium": sum(1 for loan in loans if 5000 < loan["amount"] <= 20000),
            "high": sum(1 for loan in loans if loan["amount"] > 20000),
        },
        "customer_risk": scores,
    }


def dashboard_summary(store, user, today=None):
    """Headline numbers for the signed-in user's slice of the book."""
    today = parse_date(today) or date.today()
    loans = filter_loans_by_user(store.loans, store.customers, user)
    customers = filter_customers_by_user(store.customers, user)
    applications = filter_loan_applications_by_user(store.loan_applications, store.customers, user)
    loan_ids = {loan["id"] for loan in loans}
    repayments = [r for r in store.repayments if r["loan_id"] in loan_ids]

    disbursed = sum(loan["amount"] for loan in loans)
    collected = sum(r["paid_amount"] for r in repayments if r["status"] == "Paid")
    overdue = [r for r in repayments if r["status"] == "Overdue"]
    notifications = generate_notifications(store, user, today)

    return {
        "total_customers": len(customers),
        "total_applications": len(applications),
        "active_loans": sum(1 for loan in loans if loan["status"] == "Active"),
        "total_disbursed": disbursed,
        "total_collected": collected,
        "collection_efficiency": _pct(collected, disbursed),
        "overdue_amount": sum(r["expected_amount"] for r in overdue),
        "overdue_loans": len(_overdue_loan_ids(overdue)),
        "pending_applications": sum(1 for a in applications if a["status"] in PENDING_APPLICATION_STATUSES),
        "kyc_pending": sum(1 for c in customers if c.get("kyc_status") == "Pending"),
        "due_today": sum(1 for r in repayments if r["status"] == "Pending" and parse_date(r["due_date"]) == today),
        "critical_alerts": get_critical_notification_count(notifications),
    }
