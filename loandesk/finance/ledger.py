"""Vouchers, journals and customer transactions.

Lifecycle events post their accounting side effects through these helpers
so every money movement lands in the same three books.
"""
from ..errors import ValidationError
from ..models import ENTRY_TYPES, VOUCHER_TYPES
from ..utils import amount_to_words, clean_text, now_iso, safe_float, safe_int


def post_voucher(store, voucher_type, amount, note, loan_id=None, customer_id=None,
                 category=None, reference_id=None, date=None):
    return store.insert("vouchers", {
        "type": voucher_type,
        "amount": amount,
        "note": note,
        "loan_id": loan_id,
        "customer_id": customer_id,
        "reference_id": reference_id,
        "category": category,
        "date": date or now_iso(),
    })


def post_journal(store, entry, amount, entry_type, loan_id=None, category=None,
                 reference_id=None, date=None):
    return store.insert("journals", {
        "entry": entry,
        "loan_id": loan_id,
        "amount": amount,
        "type": entry_type,
        "reference_id": reference_id,
        "category": category,
        "date": date or now_iso(),
    })


def post_transaction(store, customer_id, amount, entry_type, description, loan_id=None,
                     reference_id=None, date=None):
    return store.insert("transactions", {
        "customer_id": customer_id,
        "loan_id": loan_id,
        "description": description,
        "amount": amount,
        "type": entry_type,
        "date": date or now_iso(),
        "reference_id": reference_id,
    })


def create_voucher(store, data):
    """Manual voucher from the accounting desk; mirrors itself as a transaction."""
    voucher_type = data.get("type")
    if voucher_type not in VOUCHER_TYPES:
        raise ValidationError("Voucher type must be Receipt or Payment")
    amount = safe_float(data.get("amount"))
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    note = clean_text(data.get("note"), "note")
    if not note:
        raise ValidationError("Note is required")

    customer_id = safe_int(data.get("customer_id")) or None
    loan_id = safe_int(data.get("loan_id")) or None
    if loan_id and not store.get("loans", loan_id):
        raise ValidationError(f"Loan {loan_id} not found")
    if loan_id and not customer_id:
        customer_id = store.get("loans", loan_id)["customer_id"]

    voucher = post_voucher(
        store, voucher_type, amount, note,
        loan_id=loan_id, customer_id=customer_id,
        category=data.get("category") or None,
        reference_id=data.get("reference_id") or None,
    )
    post_transaction(
        store, customer_id or 0, amount,
        "Credit" if voucher_type == "Receipt" else "Debit",
        note, loan_id=loan_id, reference_id=voucher["reference_id"], date=voucher["date"],
    )
    return voucher


def create_journal(store, data):
    entry = clean_text(data.get("entry"), "entry")
    if not entry:
        raise ValidationError("Journal entry text is required")
    entry_type = data.get("type")
    if entry_type not in ENTRY_TYPES:
        raise ValidationError("Journal type must be Debit or Credit")
    amount = safe_float(data.get("amount"))
    if amount <= 0:
        raise ValidationError("Amount must be greater than zero")
    loan_id = safe_int(data.get("loan_id")) or None
    if loan_id and not store.get("loans", loan_id):
        raise ValidationError(f"Loan {loan_id} not found")
    return post_journal(
        store, entry, amount, entry_type, loan_id=loan_id,
        category=data.get("category") or None,
        reference_id=data.get("reference_id") or None,
    )


def customer_balance(transactions, customer_id):
    """Credits minus debits across a customer's transactions."""
    balance = 0
    for tx in transactions:
        if tx.get("customer_id") != customer_id:
            continue
        balance += tx["amount"] if tx["type"] == "Credit" else -tx["amount"]
    return balance


def customer_ledger(transactions, customer_id):
    rows = sorted(
        (tx for tx in transactions if tx.get("customer_id") == customer_id),
        key=lambda tx: (str(tx.get("date") or ""), tx["id"]),
    )
    running = 0
    ledger = []
    for tx in rows:
        running += tx["amount"] if tx["type"] == "Credit" else -tx["amount"]
        ledger.append({**tx, "balance_after": running})
    return ledger


def totals_by_type(vouchers):
    receipts = sum(v["amount"] for v in vouchers if v["type"] == "Receipt")
    payments = sum(v["amount"] for v in vouchers if v["type"] == "Payment")
    return {"total_receipts": receipts, "total_payments": payments, "net_balance": receipts - payments}


def voucher_receipt(store, voucher, organisation_name):
    customer = store.get("customers", voucher["customer_id"]) if voucher.get("customer_id") else None
    return {
        "organisation_name": organisation_name,
        "voucher": voucher,
        "customer": {"id": customer["id"], "name": customer["name"]} if customer else None,
        "amount_words": amount_to_words(voucher["amount"]),
    }
