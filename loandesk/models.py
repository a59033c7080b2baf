# Allowed values for the fields of store records. Records themselves are
# plain dicts.

PARTNER_STATUSES = ("Active", "Inactive")
USER_ROLES = ("admin", "staff")
USER_STATUSES = ("Active", "Inactive")

GENDERS = ("Male", "Female", "Other")
KYC_STATUSES = ("NotStarted", "Pending", "Verified", "Rejected")
ADDRESS_TYPES = ("permanent", "residence", "office")

REPAYMENT_FREQUENCIES = ("Monthly", "Weekly", "Daily", "Quarterly")
APPLICATION_STATUSES = ("Draft", "Submitted", "Under Review", "Approved", "Rejected")
PENDING_APPLICATION_STATUSES = ("Draft", "Submitted", "Under Review")
# Allowed forward moves of the application workflow; Approved and Rejected are terminal.
APPLICATION_TRANSITIONS = {
    "Draft": ("Submitted", "Rejected"),
    "Submitted": ("Under Review", "Rejected"),
    "Under Review": ("Approved", "Rejected"),
    "Approved": (),
    "Rejected": (),
}

LOAN_STATUSES = ("Active", "Closed", "Defaulted", "PreClosed")
AMORTIZATION_TYPES = ("EMI", "Flat", "Reducing")

REPAYMENT_STATUSES = ("Pending", "Paid", "Overdue", "Partial")
UNPAID_REPAYMENT_STATUSES = ("Pending", "Overdue", "Partial")
PAYMENT_MODES = ("Cash", "UPI", "BankTransfer")

SCHEDULE_STATUSES = ("Upcoming", "Due", "Overdue", "Paid", "Partial")
PRIORITIES = ("Low", "Medium", "High", "Critical")

PENALTY_TYPES = ("LatePayment", "PreClosure", "BounceCharge")
CALCULATION_METHODS = ("Fixed", "Percentage", "PerDay")

TOPUP_STATUSES = ("Requested", "Approved", "Rejected")
CLOSURE_STATUSES = ("Pending", "Closed")

VOUCHER_TYPES = ("Receipt", "Payment")
ENTRY_TYPES = ("Debit", "Credit")

PRODUCT_CATEGORIES = ("Personal", "Business", "Home", "Vehicle", "Education", "Other")
PRODUCT_STATUSES = ("Active", "Inactive")

COLLECTIONS = (
    "partners",
    "users",
    "customers",
    "addresses",
    "loan_applications",
    "loans",
    "repayments",
    "collection_schedules",
    "penalties",
    "top_ups",
    "loan_closures",
    "vouchers",
    "journals",
    "transactions",
    "loan_products",
)


def priority_rank(priority):
    """Position of a priority in ascending severity (Low=0 .. Critical=3)."""
    try:
        return PRIORITIES.index(priority)
    except ValueError:
        return 0


def priority_for_overdue_days(days):
    if days > 30:
        return "Critical"
    if days > 15:
        return "High"
    if days > 0:
        return "Medium"
    return "Low"
