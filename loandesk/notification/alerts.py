"""Alerts raised for the signed-in user over the records they can see."""
from datetime import date

from ..access import filter_customers_by_user, filter_loan_applications_by_user, filter_loans_by_user
from ..models import PENDING_APPLICATION_STATUSES
from ..utils import format_currency, now_iso, parse_date

NOTIFICATION_PRIORITY_ORDER = {"critical": 4, "high": 3, "medium": 2, "low": 1}


def _overdue_priority(days):
    if days > 30:
        return "critical"
    if days > 15:
        return "high"
    return "medium"


def generate_notifications(store, user, today=None):
    today = parse_date(today) or date.today()
    stamp = now_iso()
    loans = {loan["id"]: loan for loan in filter_loans_by_user(store.loans, store.customers, user)}
    customers = {c["id"]: c for c in filter_customers_by_user(store.customers, user)}
    applications = filter_loan_applications_by_user(store.loan_applications, store.customers, user)
    notifications = []

    def add(kind, title, message, priority, related_id, related_type):
        notifications.append({
            "id": len(notifications) + 1,
            "type": kind,
            "title": title,
            "message": message,
            "priority": priority,
            "created_at": stamp,
            "is_read": False,
            "related_id": related_id,
            "related_type": related_type,
        })

    def owner(repayment):
        loan = loans.get(repayment["loan_id"])
        return loan, customers.get(loan["customer_id"]) if loan else None

    for r in store.repayments:
        loan, customer = owner(r)
        if customer and r["status"] == "Overdue":
            add("overdue", "Overdue Payment",
                f"{customer['name']} has an overdue payment of {format_currency(r['expected_amount'])} "
                f"for Loan #{loan['id']}",
                _overdue_priority(r.get("overdue_days") or 0), loan["id"], "loan")

    for r in store.repayments:
        loan, customer = owner(r)
        if customer and r["status"] == "Pending" and parse_date(r["due_date"]) == today:
            add("due_today", "Payment Due Today",
                f"{customer['name']} has a payment due today of {format_currency(r['expected_amount'])} "
                f"for Loan #{loan['id']}",
                "medium", loan["id"], "loan")

    for customer in customers.values():
        if customer.get("kyc_status") == "Pending":
            add("kyc_pending", "KYC Pending", f"KYC verification is pending for {customer['name']}",
                "medium", customer["id"], "customer")

    for application in applications:
        customer = customers.get(application["customer_id"])
        if customer and application["status"] in PENDING_APPLICATION_STATUSES:
            add("application_pending", "Application Pending",
                f"Application #{application['id']} from {customer['name']} is pending review",
                "low", application["id"], "application")

    # Stable sort keeps generation order within a priority.
    notifications.sort(key=lambda n: NOTIFICATION_PRIORITY_ORDER[n["priority"]], reverse=True)
    return notifications


def get_notification_count(notifications):
    return sum(1 for n in notifications if not n["is_read"])


def get_critical_notification_count(notifications):
    return sum(1 for n in notifications if not n["is_read"] and n["priority"] == "critical")
