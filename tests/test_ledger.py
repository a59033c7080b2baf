import pytest

from loandesk.errors import ValidationError
from loandesk.finance.ledger import (
    create_journal,
    create_voucher,
    customer_balance,
    customer_ledger,
    totals_by_type,
    voucher_receipt,
)
from loandesk.utils import amount_to_words, format_currency


def test_manual_voucher_mirrors_transaction(store):
    voucher = create_voucher(store, {"type": "Receipt", "amount": "2500", "note": "Bounce charge recovered",
                                     "loan_id": 2, "category": "Penalty", "reference_id": "BC-1"})
    assert voucher["customer_id"] == 3
    tx = store.transactions[-1]
    assert (tx["type"], tx["amount"], tx["customer_id"], tx["reference_id"]) == ("Credit", 2500.0, 3, "BC-1")

    payment = create_voucher(store, {"type": "Payment", "amount": 300, "note": "Refund", "customer_id": 1})
    assert payment["loan_id"] is None
    assert store.transactions[-1]["type"] == "Debit"


@pytest.mark.parametrize("data,message", [
    ({"type": "Transfer", "amount": 10, "note": "x"}, "Receipt or Payment"),
    ({"type": "Receipt", "amount": 0, "note": "x"}, "greater than zero"),
    ({"type": "Receipt", "amount": 10, "note": " "}, "Note is required"),
    ({"type": "Receipt", "amount": 10, "note": "x", "loan_id": 99}, "Loan 99 not found"),
])
def test_voucher_validation(store, data, message):
    with pytest.raises(ValidationError, match=message):
        create_voucher(store, data)


def test_journal_entry(store):
    journal = create_journal(store, {"entry": "Write-off provision", "amount": 1500, "type": "Debit", "loan_id": 2})
    assert journal["loan_id"] == 2
    with pytest.raises(ValidationError):
        create_journal(store, {"entry": "Bad", "amount": 10, "type": "Sideways"})


def test_ledger_running_balance():
    transactions = [
        {"id": 1, "customer_id": 7, "amount": 1000, "type": "Debit", "date": "2026-01-01T10:00:00"},
        {"id": 2, "customer_id": 7, "amount": 400, "type": "Credit", "date": "2026-02-01T10:00:00"},
        {"id": 3, "customer_id": 8, "amount": 50, "type": "Credit", "date": "2026-02-01T10:00:00"},
        {"id": 4, "customer_id": 7, "amount": 100, "type": "Credit", "date": "2026-01-15T10:00:00"},
    ]
    ledger = customer_ledger(transactions, 7)
    assert [row["id"] for row in ledger] == [1, 4, 2]
    assert [row["balance_after"] for row in ledger] == [-1000, -900, -500]
    assert customer_balance(transactions, 7) == -500


def test_totals_by_type():
    vouchers = [{"type": "Receipt", "amount": 500}, {"type": "Payment", "amount": 200}, {"type": "Receipt", "amount": 50}]
    assert totals_by_type(vouchers) == {"total_receipts": 550, "total_payments": 200, "net_balance": 350}


def test_receipt_spells_amount(store):
    voucher = create_voucher(store, {"type": "Receipt", "amount": 100000, "note": "Settlement", "customer_id": 1})
    receipt = voucher_receipt(store, voucher, "LoanDesk Finance")
    assert receipt["customer"] == {"id": 1, "name": "Rahul Sharma"}
    assert receipt["amount_words"] == "One Lakh Rupees Only"
    assert receipt["organisation_name"] == "LoanDesk Finance"


def test_amount_words_and_currency():
    assert amount_to_words(0) == "Zero Rupees Only"
    assert amount_to_words(25000000) == "Two Crore Fifty Lakh Rupees Only"
    assert format_currency(100000) == "₹1,00,000"
    assert format_currency(1234567) == "₹12,34,567"
    assert format_currency(999) == "₹999"
