from loandesk import models
from loandesk.models import priority_for_overdue_days, priority_rank
from loandesk.store import MemoryStore


VOCABULARIES = [
    ("partners", "status", models.PARTNER_STATUSES),
    ("users", "role", models.USER_ROLES),
    ("users", "status", models.USER_STATUSES),
    ("customers", "gender", models.GENDERS),
    ("customers", "kyc_status", models.KYC_STATUSES),
    ("addresses", "type", models.ADDRESS_TYPES),
    ("loan_applications", "status", models.APPLICATION_STATUSES),
    ("loan_applications", "repayment_frequency", models.REPAYMENT_FREQUENCIES),
    ("loans", "status", models.LOAN_STATUSES),
    ("loans", "amortization_type", models.AMORTIZATION_TYPES),
    ("repayments", "status", models.REPAYMENT_STATUSES),
    ("repayments", "payment_mode", models.PAYMENT_MODES),
    ("collection_schedules", "status", models.SCHEDULE_STATUSES),
    ("collection_schedules", "priority", models.PRIORITIES),
    ("vouchers", "type", models.VOUCHER_TYPES),
    ("journals", "type", models.ENTRY_TYPES),
    ("transactions", "type", models.ENTRY_TYPES),
    ("loan_products", "category", models.PRODUCT_CATEGORIES),
    ("loan_products", "status", models.PRODUCT_STATUSES),
]


def test_seeded_records_use_known_values(store):
    for collection, field, allowed in VOCABULARIES:
        for row in store.collection(collection):
            assert row[field] in allowed, (collection, field, row[field])


def test_lifecycle_records_use_known_values(store):
    from loandesk.finance.servicing import decide_topup, finalize_closure, pay_emi, request_closure, request_topup

    pay_emi(store, 2, paid_on="2026-06-15")
    decide_topup(store, request_topup(store, 1, 10000)["id"], approve=True)
    finalize_closure(store, request_closure(store, 1)["id"])

    assert {p["penalty_type"] for p in store.penalties} <= set(models.PENALTY_TYPES)
    assert {p["calculation_method"] for p in store.penalties} <= set(models.CALCULATION_METHODS)
    assert {t["status"] for t in store.top_ups} <= set(models.TOPUP_STATUSES)
    assert {c["status"] for c in store.loan_closures} <= set(models.CLOSURE_STATUSES)


def test_application_transitions_cover_every_status():
    assert set(models.APPLICATION_TRANSITIONS) == set(models.APPLICATION_STATUSES)
    assert models.APPLICATION_TRANSITIONS["Approved"] == ()
    assert models.APPLICATION_TRANSITIONS["Rejected"] == ()


def test_priorities():
    assert priority_for_overdue_days(0) == "Low"
    assert priority_for_overdue_days(1) == "Medium"
    assert priority_for_overdue_days(16) == "High"
    assert priority_for_overdue_days(31) == "Critical"
    assert priority_rank("Critical") > priority_rank("High") > priority_rank("Low")


def test_store_ids_and_queries():
    store = MemoryStore()
    first = store.insert("partners", {"name": "A", "status": "Active"})
    second = store.insert("partners", {"name": "B", "status": "Inactive"})
    assert (first["id"], second["id"]) == (1, 2)
    assert store.where("partners", status="Inactive") == [second]
    assert store.remove("partners", lambda p: p["id"] == 1) == 1
    assert store.insert("partners", {"name": "C"})["id"] == 3
    assert store.counts()["partners"] == 2
