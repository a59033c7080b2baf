"""Loan application workflow and conversion of approved applications into loans."""
import logging

from ..access import ensure_customer_access
from ..errors import ValidationError
from ..models import APPLICATION_STATUSES, APPLICATION_TRANSITIONS, REPAYMENT_FREQUENCIES
from ..products import (
    calculate_processing_fee,
    check_customer_eligibility,
    get_product_by_id,
    validate_loan_amount,
    validate_loan_tenure,
)
from ..utils import clean_text, format_currency, now_iso, parse_date, safe_float, safe_int
from .emi import calculate_emi, generate_amortization_schedule
from .ledger import post_transaction, post_voucher

log = logging.getLogger(__name__)


def _customer_ids(store, raw, label):
    ids = []
    for value in raw or []:
        customer_id = safe_int(value)
        if not store.get("customers", customer_id):
            raise ValidationError(f"{label} {value} is not a known customer")
        if customer_id not in ids:
            ids.append(customer_id)
    return ids


def create_application(store, data, user, today=None):
    """Validate and record a new application in Draft status."""
    customer_id = safe_int(data.get("customer_id"))
    product_id = safe_int(data.get("product_id"))
    amount = safe_float(data.get("amount"))
    purpose = clean_text(data.get("purpose"), "purpose")
    if not customer_id or not product_id or not amount or not purpose:
        raise ValidationError("Please fill in all required fields")

    product = get_product_by_id(store.loan_products, product_id)
    customer = store.get("customers", customer_id)
    if not product or not customer:
        raise ValidationError("Invalid product or customer selection")
    if product.get("status") != "Active":
        raise ValidationError(f"Product {product['name']} is not active")
    ensure_customer_access(user, customer)

    eligible, reasons = check_customer_eligibility(product, customer, today)
    if not eligible:
        raise ValidationError("Eligibility check failed: " + ", ".join(reasons))

    tenure_months = safe_int(data.get("tenure_months"), product["min_tenure_months"])
    amount_ok, amount_msg = validate_loan_amount(product, amount)
    tenure_ok, tenure_msg = validate_loan_tenure(product, tenure_months)
    if not amount_ok or not tenure_ok:
        raise ValidationError(" ".join(m for m in (amount_msg, tenure_msg) if m))

    frequency = data.get("repayment_frequency") or "Monthly"
    if frequency not in REPAYMENT_FREQUENCIES:
        raise ValidationError(f"Unknown repayment frequency: {frequency}")

    co_applicants = _customer_ids(store, data.get("co_applicant_ids"), "Co-applicant")
    guarantors = _customer_ids(store, data.get("guarantor_ids"), "Guarantor")
    if customer_id in co_applicants or customer_id in guarantors:
        raise ValidationError("The primary applicant cannot also be a co-applicant or guarantor")

    interest_rate = product["interest_rate"]
    if data.get("interest_rate") not in (None, ""):
        interest_rate = safe_float(data.get("interest_rate"), -1)
        if interest_rate < 0:
            raise ValidationError("Interest rate must be a non-negative number")

    stamp = now_iso()
    application = store.insert("loan_applications", {
        "customer_id": customer_id,
        "product_id": product_id,
        "product": product["name"],
        "amount": amount,
        "purpose": purpose,
        "interest_rate": interest_rate,
        "tenure_months": tenure_months,
        "repayment_frequency": frequency,
        "status": "Draft",
        "remarks": data.get("remarks") or "",
        "documents": list(data.get("documents") or []),
        "co_applicant_ids": co_applicants,
        "guarantor_ids": guarantors,
        "created_at": stamp,
        "updated_at": stamp,
    })
    log.info("Application %s created for customer %s (%s)", application["id"], customer_id, product["name"])
    return application


def update_application_status(store, application_id, new_status, user=None,
                              disbursement_date=None, remarks=None):
    """Move an application along the workflow; approval books the loan.

    Returns ``(application, loan)`` where ``loan`` is None unless the
    application was approved by this call.
    """
    if new_status not in APPLICATION_STATUSES:
        raise ValidationError(f"Unknown application status: {new_status}")
    application = store.require("loan_applications", application_id, "Application")
    if user is not None:
        ensure_customer_access(user, store.require("customers", application["customer_id"], "Customer"))

    current = application["status"]
    if new_status not in APPLICATION_TRANSITIONS[current]:
        raise ValidationError(f"Cannot move application from {current} to {new_status}")

    application["status"] = new_status
    application["updated_at"] = now_iso()
    if remarks:
        application["remarks"] = remarks

    loan = None
    if new_status == "Approved":
        loan = create_loan_from_application(store, application, disbursement_date)
    log.info("Application %s moved %s -> %s", application_id, current, new_status)
    return application, loan


def create_loan_from_application(store, application, disbursement_date=None):
    """Book an approved application as an active loan with its full installment plan."""
    stamp = now_iso()
    disbursed_on = parse_date(disbursement_date) or parse_date(stamp)
    emi = calculate_emi(application["amount"], application["interest_rate"], application["tenure_months"])
    product = get_product_by_id(store.loan_products, application.get("product_id"))

    loan = store.insert("loans", {
        "customer_id": application["customer_id"],
        "application_id": application["id"],
        "product_id": application.get("product_id"),
        "amount": application["amount"],
        "interest_rate": application["interest_rate"],
        "tenure_months": application["tenure_months"],
        "emi": emi,
        "disbursement_date": disbursed_on.isoformat(),
        "grace_period_days": 0,
        "repayment_frequency": application["repayment_frequency"],
        "amortization_type": "EMI",
        "overdue_days": 0,
        "status": "Active",
        "co_applicant_ids": list(application.get("co_applicant_ids") or []),
        "guarantor_ids": list(application.get("guarantor_ids") or []),
        "created_at": stamp,
        "updated_at": stamp,
    })

    schedule = generate_amortization_schedule(
        loan["amount"], loan["interest_rate"], loan["tenure_months"], disbursed_on
    )
    for row in schedule:
        repayment = store.insert("repayments", {
            "loan_id": loan["id"],
            "installment_number": row["installment_number"],
            "due_date": row["due_date"],
            "paid_date": None,
            "paid_amount": 0,
            "expected_amount": row["emi"],
            "principal_amount": row["principal"],
            "interest_amount": row["interest"],
            "payment_mode": "Cash",
            "is_advance_payment": False,
            "status": "Pending",
            "overdue_days": 0,
            "collection_agent": None,
            "remarks": None,
        })
        store.insert("collection_schedules", {
            "loan_id": loan["id"],
            "customer_id": loan["customer_id"],
            "repayment_id": repayment["id"],
            "due_date": row["due_date"],
            "emi_amount": row["emi"],
            "status": "Upcoming",
            "overdue_days": 0,
            "collection_agent": None,
            "last_reminder_date": None,
            "next_reminder_date": None,
            "priority": "Low",
        })

    post_voucher(store, "Payment", loan["amount"], "Loan Disbursement",
                 loan_id=loan["id"], customer_id=loan["customer_id"],
                 category="Disbursement", date=stamp)
    post_transaction(store, loan["customer_id"], loan["amount"], "Debit", "Loan Disbursement",
                     loan_id=loan["id"], date=stamp)

    fee = calculate_processing_fee(product, loan["amount"]) if product else 0
    if fee > 0:
        post_voucher(store, "Receipt", fee, "Processing Fee",
                     loan_id=loan["id"], customer_id=loan["customer_id"],
                     category="Processing Fee", date=stamp)

    log.info("Loan %s created from application %s with EMI %s",
             loan["id"], application["id"], format_currency(emi))
    return loan
