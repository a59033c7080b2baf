from datetime import date

import pytest

from loandesk.admin.management import create_partner, create_product
from loandesk.errors import ValidationError
from loandesk.finance.applications import create_application, update_application_status
from loandesk.finance.ledger import customer_balance
from loandesk.finance.servicing import (
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
from loandesk.staff.customers import create_customer

ADMIN = {"id": 1, "role": "admin", "name": "Admin"}


@pytest.fixture
def book(empty_store):
    """A store holding one fresh 3 month loan disbursed on 2026-01-10."""
    create_partner(empty_store, {"name": "North", "code": "N", "servicing_pincodes": "110001"})
    product = create_product(empty_store, {
        "name": "Micro Loan", "code": "ML", "min_amount": 1000, "max_amount": 100000,
        "min_tenure_months": 1, "max_tenure_months": 12, "interest_rate": 12,
        "processing_fee": 0, "prepayment_penalty": 2, "late_payment_penalty": 5,
    })
    customer = create_customer(empty_store, {
        "name": "Test Borrower", "phone": "9000000000", "pincode": "110001",
        "dob": "1990-01-01", "kyc_status": "Verified", "monthly_income": 30000,
    })
    application = create_application(empty_store, {
        "customer_id": customer["id"], "product_id": product["id"], "amount": 30000,
        "tenure_months": 3, "purpose": "Stock",
    }, ADMIN, date(2026, 1, 1))
    for status in ("Submitted", "Under Review"):
        update_application_status(empty_store, application["id"], status)
    _, loan = update_application_status(empty_store, application["id"], "Approved", disbursement_date="2026-01-10")
    return empty_store, loan


def test_full_payment_on_due_date(book):
    store, loan = book
    result = pay_emi(store, loan["id"], paid_on="2026-02-10", payment_mode="UPI")
    repayment = result["repayment"]
    assert repayment["status"] == "Paid"
    assert repayment["paid_amount"] == repayment["expected_amount"]
    assert repayment["is_advance_payment"] is False
    assert result["penalty"] is None
    assert result["voucher"]["type"] == "Receipt"
    assert result["voucher"]["category"] == "EMI"

    journals = store.where("journals", loan_id=loan["id"])
    assert [(j["entry"], j["type"]) for j in journals] == [
        ("Interest Accrued", "Credit"), ("Principal Reduction", "Debit")]
    schedule = store.where("collection_schedules", repayment_id=repayment["id"])[0]
    assert schedule["status"] == "Paid"
    assert calculate_outstanding(loan, store.repayments) == 30000 - repayment["principal_amount"]


def test_partial_then_remaining(book):
    store, loan = book
    first = pay_emi(store, loan["id"], amount=4000, paid_on="2026-02-05")["repayment"]
    assert first["status"] == "Partial"
    assert first["paid_amount"] == 4000
    assert not store.where("journals", loan_id=loan["id"])

    second = pay_emi(store, loan["id"], paid_on="2026-02-08")["repayment"]
    assert second["id"] == first["id"]
    assert second["status"] == "Paid"
    assert second["is_advance_payment"] is True


def test_overpayment_and_bad_amounts_rejected(book):
    store, loan = book
    with pytest.raises(ValidationError, match="exceeds"):
        pay_emi(store, loan["id"], amount=loan["emi"] + 1, paid_on="2026-02-10")
    with pytest.raises(ValidationError, match="greater than zero"):
        pay_emi(store, loan["id"], amount=-5, paid_on="2026-02-10")
    with pytest.raises(ValidationError, match="payment mode"):
        pay_emi(store, loan["id"], payment_mode="Cheque", paid_on="2026-02-10")


def test_late_payment_records_penalty(book):
    store, loan = book
    result = pay_emi(store, loan["id"], paid_on="2026-02-20")
    penalty = result["penalty"]
    assert penalty["penalty_type"] == "LatePayment"
    assert penalty["calculation_method"] == "Percentage"
    assert penalty["amount"] == round(result["repayment"]["expected_amount"] * 5 / 100, 2)
    assert result["repayment"]["overdue_days"] == 10


def test_paying_every_installment_closes_loan(book):
    store, loan = book
    for paid_on in ("2026-02-10", "2026-03-10", "2026-04-10"):
        pay_emi(store, loan["id"], paid_on=paid_on)
    assert loan["status"] == "Closed"
    assert calculate_outstanding(loan, store.repayments) == 0
    with pytest.raises(ValidationError):
        pay_emi(store, loan["id"], paid_on="2026-04-11")


def test_refresh_marks_overdue_and_escalates(book):
    store, loan = book
    assign_collection(store, loan["id"], "Field Agent", "High")
    refresh_overdue(store, "2026-02-15")

    first, second, _ = loan_repayments(store, loan["id"])
    assert first["status"] == "Overdue"
    assert first["overdue_days"] == 5
    assert second["status"] == "Pending"
    schedules = {s["repayment_id"]: s for s in store.collection_schedules}
    assert schedules[first["id"]]["status"] == "Overdue"
    # Escalation never lowers an assigned priority.
    assert schedules[first["id"]]["priority"] == "High"
    assert schedules[second["id"]]["status"] == "Upcoming"
    assert loan["overdue_days"] == 5

    refresh_overdue(store, "2026-03-10")
    assert schedules[second["id"]]["status"] == "Due"
    assert schedules[first["id"]]["overdue_days"] == 28

    refresh_overdue(store, "2026-03-15")
    assert schedules[first["id"]]["priority"] == "Critical"
    assert second["status"] == "Overdue"


def test_loan_defaults_past_threshold(book):
    store, loan = book
    result = refresh_overdue(store, "2026-06-01", default_threshold_days=90)
    assert loan["status"] == "Defaulted"
    assert result["defaulted_loans"] == [loan["id"]]


def test_assign_collection_validates(book):
    store, loan = book
    with pytest.raises(ValidationError):
        assign_collection(store, loan["id"], "  ")
    with pytest.raises(ValidationError):
        assign_collection(store, loan["id"], "Agent", "Urgent")
    schedules = assign_collection(store, loan["id"], "Agent", "Medium")
    assert len(schedules) == 3
    assert {s["collection_agent"] for s in schedules} == {"Agent"}


def test_topup_defaults_and_approval(book):
    store, loan = book
    topup = request_topup(store, loan["id"], 10000)
    assert (topup["tenure_months"], topup["interest_rate"], topup["status"]) == (6, 15, "Requested")

    decide_topup(store, topup["id"], approve=True, decided_on="2026-02-01")
    assert topup["status"] == "Approved"
    assert topup["approved_date"] == "2026-02-01"
    voucher = store.where("vouchers", reference_id=f"TU{topup['id']}")[0]
    assert (voucher["type"], voucher["amount"]) == ("Payment", 10000)
    assert store.where("transactions", reference_id=f"TU{topup['id']}")[0]["type"] == "Debit"

    with pytest.raises(ValidationError, match="already"):
        decide_topup(store, topup["id"], approve=False)


def test_topup_rejection(book):
    store, loan = book
    topup = request_topup(store, loan["id"], 5000, tenure_months=12, interest_rate=18)
    decide_topup(store, topup["id"], approve=False)
    assert topup["status"] == "Rejected"
    assert topup["approved_date"] is None


def test_preclosure_settles_and_balances_ledger(book):
    store, loan = book
    pay_emi(store, loan["id"], paid_on="2026-02-10")
    outstanding = calculate_outstanding(loan, store.repayments)

    closure = request_closure(store, loan["id"], remarks="Customer request")
    assert closure["settlement_amount"] == outstanding
    with pytest.raises(ValidationError, match="pending closure"):
        request_closure(store, loan["id"])

    result = finalize_closure(store, closure["id"], closed_by="Admin")
    assert result["closure"]["status"] == "Closed"
    assert loan["status"] == "PreClosed"
    repayments = loan_repayments(store, loan["id"])
    assert all(r["status"] == "Paid" for r in repayments)
    assert repayments[-1]["principal_amount"] == outstanding
    assert repayments[-1]["payment_mode"] == "BankTransfer"
    assert calculate_outstanding(loan, store.repayments) == 0
    assert not [s for s in store.collection_schedules if s["status"] != "Paid"]
    assert customer_balance(store.transactions, loan["customer_id"]) == 0
    assert result["penalty"]["penalty_type"] == "PreClosure"
    assert result["penalty"]["amount"] == round(outstanding * 2 / 100, 2)


def test_cannot_close_twice(book):
    store, loan = book
    closure = request_closure(store, loan["id"])
    finalize_closure(store, closure["id"])
    with pytest.raises(ValidationError):
        finalize_closure(store, closure["id"])
    with pytest.raises(ValidationError):
        request_closure(store, loan["id"])


def test_closure_after_partial_payment_keeps_collected_cash(book):
    store, loan = book
    pay_emi(store, loan["id"], paid_on="2026-02-10")
    pay_emi(store, loan["id"], amount=4000, paid_on="2026-03-05")
    outstanding = calculate_outstanding(loan, store.repayments)

    closure = request_closure(store, loan["id"])
    assert closure["settlement_amount"] == outstanding - 4000

    result = finalize_closure(store, closure["id"])
    assert result["closure"]["settlement_amount"] == outstanding - 4000
    settlement_vouchers = [v for v in store.vouchers if v["loan_id"] == loan["id"] and v["category"] == "Settlement"]
    assert [v["amount"] for v in settlement_vouchers] == [outstanding - 4000]

    repayments = loan_repayments(store, loan["id"])
    final = repayments[-1]
    assert final["paid_amount"] == outstanding
    assert final["principal_amount"] == outstanding
    assert "part-paid" in final["remarks"]
    assert calculate_outstanding(loan, store.repayments) == 0

    collected = sum(r["paid_amount"] for r in repayments)
    received = sum(v["amount"] for v in store.vouchers
                   if v["loan_id"] == loan["id"] and v["category"] in ("EMI", "Settlement"))
    assert collected == received
    assert customer_balance(store.transactions, loan["customer_id"]) == 0
