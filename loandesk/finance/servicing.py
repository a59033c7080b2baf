"""Servicing of booked loans: EMI collection, overdue tracking, top-ups and closure."""
import logging
from datetime import date

from ..errors import ValidationError
from ..models import (
    PAYMENT_MODES,
    PRIORITIES,
    UNPAID_REPAYMENT_STATUSES,
    priority_for_overdue_days,
    priority_rank,
)
from ..products import (
    calculate_late_payment_penalty,
    calculate_prepayment_penalty,
    get_product_by_id,
)
from ..utils import clean_text, format_currency, now_iso, parse_date, safe_float, safe_int
from .ledger import customer_balance, post_journal, post_transaction, post_voucher

log = logging.getLogger(__name__)


def loan_repayments(store, loan_id):
    return sorted(store.where("repayments", loan_id=loan_id), key=lambda r: r["installment_number"])


def calculate_outstanding(loan, repayments):
    """Loan amount less the principal of every fully paid installment."""
    paid_principal = sum(
        r["principal_amount"] for r in repayments
        if r["loan_id"] == loan["id"] and r["status"] == "Paid"
    )
    return loan["amount"] - paid_principal


def settlement_due(store, loan):
    """Cash still needed to close a loan: outstanding principal less part-payments already taken."""
    part_paid = sum(r["paid_amount"] for r in loan_repayments(store, loan["id"])
                    if r["status"] in UNPAID_REPAYMENT_STATUSES)
    return max(0, calculate_outstanding(loan, store.repayments) - part_paid)


def next_unpaid_installment(store, loan_id):
    for repayment in loan_repayments(store, loan_id):
        if repayment["status"] in UNPAID_REPAYMENT_STATUSES:
            return repayment
    return None


def _schedule_for(store, repayment):
    rows = store.where("collection_schedules", repayment_id=repayment["id"])
    return rows[0] if rows else None


def pay_emi(store, loan_id, amount=None, payment_mode="Cash", paid_on=None, collected_by=None):
    """Collect the earliest unpaid installment of an active loan.

    ``amount`` defaults to whatever is still due on that installment; a
    smaller amount leaves it Partial. Returns a dict with the repayment,
    voucher and any penalty raised for paying late.
    """
    loan = store.require("loans", loan_id, "Loan")
    if loan["status"] != "Active":
        raise ValidationError(f"Loan {loan_id} is {loan['status']}; payments are only accepted on active loans")
    if payment_mode not in PAYMENT_MODES:
        raise ValidationError(f"Unknown payment mode: {payment_mode}")

    repayment = next_unpaid_installment(store, loan_id)
    if repayment is None:
        raise ValidationError(f"Loan {loan_id} has no unpaid installments")

    paid_on = parse_date(paid_on) or date.today()
    due = repayment["expected_amount"] - repayment["paid_amount"]
    pay = due if amount in (None, "") else safe_float(amount)
    if pay <= 0:
        raise ValidationError("Payment amount must be greater than zero")
    if pay > due:
        raise ValidationError(f"Payment exceeds the {format_currency(due)} due on installment "
                              f"{repayment['installment_number']}")

    stamp = now_iso()
    due_date = parse_date(repayment["due_date"])
    was_late = paid_on > due_date
    voucher = post_voucher(store, "Receipt", pay, "EMI Payment",
                           loan_id=loan_id, customer_id=loan["customer_id"],
                           category="EMI", reference_id=f"RP{repayment['id']}", date=stamp)

    repayment["paid_amount"] += pay
    repayment["paid_date"] = paid_on.isoformat()
    repayment["payment_mode"] = payment_mode
    repayment["is_advance_payment"] = paid_on < due_date
    if collected_by:
        repayment["collection_agent"] = collected_by
    completed = repayment["paid_amount"] >= repayment["expected_amount"]
    repayment["status"] = "Paid" if completed else "Partial"
    if completed:
        repayment["overdue_days"] = max(0, (paid_on - due_date).days)

    schedule = _schedule_for(store, repayment)
    if schedule:
        schedule["status"] = repayment["status"]
        if completed:
            schedule["overdue_days"] = 0

    if completed:
        if repayment["paid_amount"] == pay:
            post_transaction(store, loan["customer_id"], repayment["principal_amount"], "Credit",
                             "EMI Principal Payment", loan_id=loan_id, date=stamp)
            post_transaction(store, loan["customer_id"], repayment["interest_amount"], "Credit",
                             "Interest Accrued", loan_id=loan_id, date=stamp)
        else:
            post_transaction(store, loan["customer_id"], pay, "Credit",
                             "EMI Payment (balance of partial installment)", loan_id=loan_id, date=stamp)
        post_journal(store, "Interest Accrued", repayment["interest_amount"], "Credit",
                     loan_id=loan_id, date=stamp)
        post_journal(store, "Principal Reduction", repayment["principal_amount"], "Debit",
                     loan_id=loan_id, date=stamp)
    else:
        post_transaction(store, loan["customer_id"], pay, "Credit",
                         "EMI Partial Payment", loan_id=loan_id, date=stamp)

    penalty = None
    if completed and was_late:
        penalty = _late_payment_penalty(store, loan, repayment, (paid_on - due_date).days)

    if completed and next_unpaid_installment(store, loan_id) is None:
        loan["status"] = "Closed"
        loan["overdue_days"] = 0
        log.info("Loan %s fully repaid and closed", loan_id)
    loan["updated_at"] = stamp

    log.info("Collected %s on loan %s installment %s (%s)", format_currency(pay), loan_id,
             repayment["installment_number"], repayment["status"])
    return {"repayment": repayment, "voucher": voucher, "penalty": penalty, "loan": loan}


def _late_payment_penalty(store, loan, repayment, days_late):
    product = get_product_by_id(store.loan_products, loan.get("product_id"))
    if not product:
        return None
    amount = round(calculate_late_payment_penalty(product, repayment["expected_amount"]), 2)
    if amount <= 0:
        return None
    return store.insert("penalties", {
        "loan_id": loan["id"],
        "repayment_id": repayment["id"],
        "date": now_iso(),
        "amount": amount,
        "reason": f"Installment {repayment['installment_number']} paid {days_late} days late",
        "penalty_type": "LatePayment",
        "calculation_method": "Percentage",
    })


def refresh_overdue(store, today=None, default_threshold_days=90):
    """Re-derive overdue state of every unpaid installment as of ``today``."""
    today = parse_date(today) or date.today()
    worst = {}
    for repayment in store.repayments:
        if repayment["status"] not in UNPAID_REPAYMENT_STATUSES:
            continue
        due_date = parse_date(repayment["due_date"])
        days = max(0, (today - due_date).days)
        repayment["overdue_days"] = days
        if days > 0 and repayment["status"] == "Pending":
            repayment["status"] = "Overdue"
        worst[repayment["loan_id"]] = max(worst.get(repayment["loan_id"], 0), days)

        schedule = _schedule_for(store, repayment)
        if schedule is None:
            continue
        schedule["overdue_days"] = days
        if repayment["status"] == "Partial" and days == 0:
            schedule["status"] = "Partial"
        elif days > 0:
            schedule["status"] = "Overdue"
        elif due_date == today:
            schedule["status"] = "Due"
        else:
            schedule["status"] = "Upcoming"
        escalated = priority_for_overdue_days(days)
        if priority_rank(escalated) > priority_rank(schedule["priority"]):
            schedule["priority"] = escalated

    defaulted = []
    for loan in store.loans:
        if loan["status"] not in ("Active", "Defaulted"):
            continue
        loan["overdue_days"] = worst.get(loan["id"], 0)
        if loan["status"] == "Active" and loan["overdue_days"] > default_threshold_days:
            loan["status"] = "Defaulted"
            loan["updated_at"] = now_iso()
            defaulted.append(loan["id"])
            log.warning("Loan %s marked Defaulted after %s overdue days", loan["id"], loan["overdue_days"])
    return {"as_of": today.isoformat(), "defaulted_loans": defaulted}


def assign_collection(store, loan_id, collection_agent, priority="Medium"):
    store.require("loans", loan_id, "Loan")
    agent = clean_text(collection_agent, "collection_agent")
    if not agent:
        raise ValidationError("Collection agent is required")
    if priority not in PRIORITIES:
        raise ValidationError(f"Unknown priority: {priority}")
    schedules = store.where("collection_schedules", loan_id=loan_id)
    for schedule in schedules:
        schedule["collection_agent"] = agent
        schedule["priority"] = priority
    log.info("Loan %s assigned to collection agent %s (%s)", loan_id, agent, priority)
    return schedules


def request_topup(store, loan_id, requested_amount, tenure_months=None, interest_rate=None,
                  default_tenure=6, default_rate=15):
    loan = store.require("loans", loan_id, "Loan")
    if loan["status"] != "Active":
        raise ValidationError("Top-ups are only available on active loans")
    amount = safe_float(requested_amount)
    if amount <= 0:
        raise ValidationError("Requested amount must be greater than zero")
    return store.insert("top_ups", {
        "loan_id": loan_id,
        "requested_amount": amount,
        "tenure_months": safe_int(tenure_months, default_tenure) or default_tenure,
        "interest_rate": safe_float(interest_rate, default_rate) if interest_rate not in (None, "") else default_rate,
        "status": "Requested",
        "request_date": now_iso(),
        "approved_date": None,
    })


def decide_topup(store, topup_id, approve, decided_on=None):
    topup = store.require("top_ups", topup_id, "Top-up")
    if topup["status"] != "Requested":
        raise ValidationError(f"Top-up {topup_id} is already {topup['status']}")
    if not approve:
        topup["status"] = "Rejected"
        return topup

    loan = store.require("loans", topup["loan_id"], "Loan")
    stamp = now_iso()
    topup["status"] = "Approved"
    topup["approved_date"] = (parse_date(decided_on) or parse_date(stamp)).isoformat()
    post_voucher(store, "Payment", topup["requested_amount"], "Top-up Disbursement",
                 loan_id=loan["id"], customer_id=loan["customer_id"],
                 category="Disbursement", reference_id=f"TU{topup_id}", date=stamp)
    post_transaction(store, loan["customer_id"], topup["requested_amount"], "Debit",
                     "Top-up Disbursement", loan_id=loan["id"], reference_id=f"TU{topup_id}", date=stamp)
    log.info("Top-up %s approved on loan %s", topup_id, loan["id"])
    return topup


def request_closure(store, loan_id, remarks=None, closed_by=None):
    loan = store.require("loans", loan_id, "Loan")
    if loan["status"] not in ("Active", "Defaulted"):
        raise ValidationError(f"Loan {loan_id} is already {loan['status']}")
    if any(c["status"] == "Pending" for c in store.where("loan_closures", loan_id=loan_id)):
        raise ValidationError(f"Loan {loan_id} already has a pending closure request")
    return store.insert("loan_closures", {
        "loan_id": loan_id,
        "closure_date": None,
        "status": "Pending",
        "settlement_amount": settlement_due(store, loan),
        "remarks": remarks or "",
        "closed_by": closed_by,
        "request_date": now_iso(),
    })


def finalize_closure(store, closure_id, closed_by=None):
    """Settle the loan in full and close it."""
    closure = store.require("loan_closures", closure_id, "Closure")
    if closure["status"] == "Closed":
        raise ValidationError(f"Closure {closure_id} is already closed")
    loan = store.require("loans", closure["loan_id"], "Loan")
    stamp = now_iso()
    today = parse_date(stamp).isoformat()

    outstanding = calculate_outstanding(loan, store.repayments)
    unpaid = [r for r in loan_repayments(store, loan["id"]) if r["status"] in UNPAID_REPAYMENT_STATUSES]
    partly_paid = sum(r["paid_amount"] for r in unpaid)
    settlement = max(0, outstanding - partly_paid)

    closure["status"] = "Closed"
    closure["closure_date"] = stamp
    closure["settlement_amount"] = settlement
    if closed_by:
        closure["closed_by"] = closed_by
    loan["status"] = "PreClosed" if unpaid else "Closed"
    loan["overdue_days"] = 0
    loan["updated_at"] = stamp

    unpaid_ids = {r["id"] for r in unpaid}
    store.remove("repayments", lambda r: r["id"] in unpaid_ids)
    store.remove("collection_schedules", lambda s: s.get("repayment_id") in unpaid_ids)

    penalty = None
    if outstanding > 0:
        if settlement > 0:
            post_voucher(store, "Receipt", settlement, "Final Settlement Payment - Loan Closure",
                         loan_id=loan["id"], customer_id=loan["customer_id"],
                         category="Settlement", date=stamp)
            post_transaction(store, loan["customer_id"], settlement, "Credit",
                             "Final Settlement Payment - Loan Closure", loan_id=loan["id"], date=stamp)
        # The removed part-paid installments carried cash already received; it moves onto this row.
        received = settlement + partly_paid
        numbers = [r["installment_number"] for r in loan_repayments(store, loan["id"])]
        store.insert("repayments", {
            "loan_id": loan["id"],
            "installment_number": max(numbers, default=0) + 1,
            "due_date": today,
            "paid_date": today,
            "paid_amount": received,
            "expected_amount": received,
            "principal_amount": outstanding,
            "interest_amount": received - outstanding,
            "payment_mode": "BankTransfer",
            "is_advance_payment": False,
            "status": "Paid",
            "overdue_days": 0,
            "collection_agent": None,
            "remarks": "Final settlement" + (f" (includes {format_currency(partly_paid)} part-paid earlier)"
                                             if partly_paid else ""),
        })
        post_journal(store, "Final Principal Payment - Loan Closure", outstanding, "Debit",
                     loan_id=loan["id"], date=stamp)

        balance = customer_balance(store.transactions, loan["customer_id"])
        if balance > 0:
            post_transaction(store, loan["customer_id"], balance, "Debit",
                             "Balance Settlement - Loan Closure", loan_id=loan["id"], date=stamp)
            post_journal(store, "Balance Settlement - Loan Closure", balance, "Debit",
                         loan_id=loan["id"], date=stamp)

        if loan["status"] == "PreClosed":
            product = get_product_by_id(store.loan_products, loan.get("product_id"))
            charge = round(calculate_prepayment_penalty(product, outstanding), 2) if product else 0
            if charge > 0:
                penalty = store.insert("penalties", {
                    "loan_id": loan["id"],
                    "repayment_id": None,
                    "date": stamp,
                    "amount": charge,
                    "reason": "Pre-closure of loan",
                    "penalty_type": "PreClosure",
                    "calculation_method": "Percentage",
                })

    log.info("Loan %s closed as %s with settlement %s", loan["id"], loan["status"], format_currency(settlement))
    return {"closure": closure, "loan": loan, "penalty": penalty}
