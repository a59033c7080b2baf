"""Partner assignment and per-user visibility of customers, applications and loans.

Admins see everything. Staff are scoped to the partner they belong to: a
customer is visible when it was assigned to that partner, and applications
and loans follow their primary customer. Staff without a partner see nothing.
"""
from .errors import AccessDenied
from .utils import is_valid_pincode


def assign_partner_by_pincode(pincode, partners):
    for partner in partners:
        if partner.get("status") == "Active" and pincode in (partner.get("servicing_pincodes") or []):
            return partner
    return None


def is_admin(user):
    return bool(user) and user.get("role") == "admin"


def _staff_partner(user):
    if user and user.get("role") == "staff" and user.get("partner_id"):
        return user["partner_id"]
    return None


def filter_by_user_access(items, user):
    if is_admin(user):
        return list(items)
    partner_id = _staff_partner(user)
    if partner_id:
        return [item for item in items if item.get("partner_id") == partner_id]
    return []


def filter_customers_by_user(customers, user):
    return filter_by_user_access(customers, user)


def accessible_customer_ids(customers, user):
    return {c["id"] for c in filter_customers_by_user(customers, user)}


def filter_loan_applications_by_user(applications, customers, user):
    if is_admin(user):
        return list(applications)
    if _staff_partner(user):
        visible = accessible_customer_ids(customers, user)
        return [app for app in applications if app.get("customer_id") in visible]
    return []


def filter_loans_by_user(loans, customers, user):
    if is_admin(user):
        return list(loans)
    if _staff_partner(user):
        visible = accessible_customer_ids(customers, user)
        return [loan for loan in loans if loan.get("customer_id") in visible]
    return []


def can_access_customer(user, customer):
    return bool(filter_customers_by_user([customer], user))


def ensure_customer_access(user, customer):
    if not can_access_customer(user, customer):
        raise AccessDenied("You do not have access to this customer")


def ensure_loan_access(user, loan, customers):
    if not filter_loans_by_user([loan], customers, user):
        raise AccessDenied("You do not have access to this loan")


def visible_partners(partners, user):
    if is_admin(user):
        return list(partners)
    partner_id = _staff_partner(user)
    return [p for p in partners if p["id"] == partner_id] if partner_id else []


def get_partner_name(partner_id, partners):
    for partner in partners:
        if partner["id"] == partner_id:
            return partner.get("name") or "Unknown Partner"
    return "Unknown Partner"


def parse_servicing_pincodes(raw):
    """Accept a comma separated string or a list; keep only well-formed pincodes."""
    if raw is None:
        return []
    values = raw.split(",") if isinstance(raw, str) else list(raw)
    pincodes = []
    for value in values:
        pincode = str(value).strip()
        if is_valid_pincode(pincode) and pincode not in pincodes:
            pincodes.append(pincode)
    return pincodes
