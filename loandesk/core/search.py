"""Global search over the customers, loans and applications a user can see."""
from ..access import filter_customers_by_user, filter_loan_applications_by_user, filter_loans_by_user
from ..utils import format_currency

MAX_RESULTS = 10
MAX_SUGGESTIONS = 20
COMMON_STATUSES = ("Active", "Pending", "Approved", "Rejected", "Overdue")


def search_all(query, store, user):
    term = (query or "").strip().lower()
    if len(term) < 2:
        return []

    customers = filter_customers_by_user(store.customers, user)
    names = {c["id"]: c["name"] for c in customers}
    results = []

    for c in customers:
        fields = (c["name"].lower(), c.get("phone") or "", (c.get("email") or "").lower(), c.get("pincode") or "")
        if any(term in field for field in fields):
            results.append({
                "type": "customer",
                "id": c["id"],
                "title": c["name"],
                "subtitle": c.get("phone") or "",
                "description": f"{c.get('email') or '-'} • {c.get('kyc_status')} • {c.get('pincode')}",
                "url": f"/staff/api/customers/{c['id']}",
                "priority": 3 if c["name"].lower().startswith(term) else 1,
            })

    for loan in filter_loans_by_user(store.loans, store.customers, user):
        name = names.get(loan["customer_id"])
        fields = (str(loan["id"]), (name or "").lower(), loan["status"].lower(), format_currency(loan["amount"]))
        if any(term in field for field in fields):
            results.append({
                "type": "loan",
                "id": loan["id"],
                "title": f"Loan #{loan['id']}",
                "subtitle": name or "Unknown Customer",
                "description": f"{format_currency(loan['amount'])} • {loan['status']} • "
                               f"{loan['interest_rate']}% • {loan['tenure_months']} months",
                "url": f"/finance/api/loans/{loan['id']}",
                "priority": 3 if term in str(loan["id"]) else 1,
            })

    for app in filter_loan_applications_by_user(store.loan_applications, store.customers, user):
        name = names.get(app["customer_id"])
        fields = (str(app["id"]), (name or "").lower(), app["product"].lower(),
                  app["status"].lower(), format_currency(app["amount"]))
        if any(term in field for field in fields):
            results.append({
                "type": "application",
                "id": app["id"],
                "title": f"Application #{app['id']}",
                "subtitle": name or "Unknown Customer",
                "description": f"{app['product']} • {format_currency(app['amount'])} • {app['status']}",
                "url": f"/finance/api/applications/{app['id']}",
                "priority": 3 if term in str(app["id"]) else 1,
            })

    results.sort(key=lambda r: (-r["priority"], r["title"]))
    return results[:MAX_RESULTS]


def get_search_suggestions(store, user):
    suggestions = [c["name"] for c in filter_customers_by_user(store.customers, user)]
    suggestions += [f"Loan #{loan['id']}" for loan in filter_loans_by_user(store.loans, store.customers, user)]
    suggestions += [f"Application #{a['id']}"
                    for a in filter_loan_applications_by_user(store.loan_applications, store.customers, user)]
    suggestions += COMMON_STATUSES
    return suggestions[:MAX_SUGGESTIONS]
