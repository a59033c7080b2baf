"""Demo dataset, built through the same services the API uses.

Dates are laid out relative to ``today`` so the book always has a mix of
paid, due and overdue installments.
"""
import logging
from datetime import date, timedelta

from .admin.management import create_partner, create_product, create_user
from .finance.applications import create_application, update_application_status
from .finance.servicing import assign_collection, pay_emi, refresh_overdue
from .staff.customers import add_address, create_customer
from .utils import add_months

log = logging.getLogger(__name__)

PARTNERS = [
    {"name": "North Zone Finance", "code": "NZF", "status": "Active",
     "servicing_pincodes": ["110001", "110002", "110003"]},
    {"name": "South Region Credit", "code": "SRC", "status": "Active",
     "servicing_pincodes": ["560001", "560002"]},
    {"name": "West Coast Lending", "code": "WCL", "status": "Inactive",
     "servicing_pincodes": ["400001"]},
]

PRODUCTS = [
    {"name": "Personal Loan", "code": "PL001", "category": "Personal",
     "description": "Unsecured loan for personal needs",
     "min_amount": 10000, "max_amount": 500000, "min_tenure_months": 6, "max_tenure_months": 60,
     "interest_rate": 14, "processing_fee": 1000, "prepayment_penalty": 2, "late_payment_penalty": 2,
     "eligibility_criteria": {"min_age": 21, "max_age": 60, "min_income": 15000,
                              "required_documents": ["PAN", "Aadhaar", "Salary Slip"]}},
    {"name": "Business Loan", "code": "BL001", "category": "Business",
     "description": "Working capital for small businesses",
     "min_amount": 50000, "max_amount": 2000000, "min_tenure_months": 12, "max_tenure_months": 84,
     "interest_rate": 16, "processing_fee": 2500, "prepayment_penalty": 3, "late_payment_penalty": 2.5,
     "eligibility_criteria": {"min_age": 25, "max_age": 65, "min_income": 30000,
                              "required_documents": ["PAN", "GST Certificate", "Bank Statement"]}},
    {"name": "Vehicle Loan", "code": "VL001", "category": "Vehicle",
     "description": "Two and four wheeler financing",
     "min_amount": 50000, "max_amount": 1500000, "min_tenure_months": 12, "max_tenure_months": 84,
     "interest_rate": 11, "processing_fee": 1500, "prepayment_penalty": 1, "late_payment_penalty": 2,
     "eligibility_criteria": {"min_age": 21, "max_age": 65, "min_income": 20000,
                              "required_documents": ["PAN", "Driving Licence"]}},
]

CUSTOMERS = [
    {"name": "Rahul Sharma", "phone": "9810012345", "email": "rahul.sharma@example.com", "dob": "1988-04-12",
     "gender": "Male", "occupation": "Software Engineer", "income_source": "Salary", "monthly_income": 85000,
     "kyc_status": "Verified", "pincode": "110001"},
    {"name": "Priya Singh", "phone": "9810023456", "email": "priya.singh@example.com", "dob": "1992-09-03",
     "gender": "Female", "occupation": "Boutique Owner", "income_source": "Business", "monthly_income": 60000,
     "kyc_status": "Verified", "pincode": "110002"},
    {"name": "Amit Kumar", "phone": "9845034567", "email": "amit.kumar@example.com", "dob": "1985-01-20",
     "gender": "Male", "occupation": "Shop Owner", "income_source": "Business", "monthly_income": 45000,
     "kyc_status": "Verified", "pincode": "560001"},
    {"name": "Sneha Reddy", "phone": "9845045678", "email": "sneha.reddy@example.com", "dob": "1995-06-30",
     "gender": "Female", "occupation": "Teacher", "income_source": "Salary", "monthly_income": 35000,
     "kyc_status": "Pending", "pincode": "560002"},
    {"name": "Vikram Patel", "phone": "9820056789", "email": "vikram.patel@example.com", "dob": "1980-11-11",
     "gender": "Male", "occupation": "Consultant", "income_source": "Professional", "monthly_income": 120000,
     "kyc_status": "Verified", "pincode": "400001"},
    {"name": "Anita Desai", "phone": "9810067890", "email": "anita.desai@example.com", "dob": "1990-02-14",
     "gender": "Female", "occupation": "Nurse", "income_source": "Salary", "monthly_income": 40000,
     "kyc_status": "Pending", "pincode": "110003"},
]

USERS = [
    ("Admin User", "admin@loandesk.in", "admin", None),
    ("North Staff", "staff.north@loandesk.in", "staff", "NZF"),
    ("South Staff", "staff.south@loandesk.in", "staff", "SRC"),
    ("Unassigned Staff", "staff.unassigned@loandesk.in", "staff", None),
]


def _approve(store, admin, application, disbursed_on):
    for status in ("Submitted", "Under Review"):
        update_application_status(store, application["id"], status, admin)
    _, loan = update_application_status(store, application["id"], "Approved", admin,
                                         disbursement_date=disbursed_on)
    return loan


def seed_demo(store, password, today=None):
    """Load partners, users, products, customers and a small loan book."""
    today = today or date.today()
    store.clear()

    partners = {p["code"]: create_partner(store, p) for p in PARTNERS}
    for name, email, role, partner_code in USERS:
        partner_id = partners[partner_code]["id"] if partner_code else None
        create_user(store, name, email, password, role, partner_id)
    products = {p["code"]: create_product(store, p) for p in PRODUCTS}
    admin = store.users[0]

    customers = []
    for i, data in enumerate(CUSTOMERS):
        created = (today - timedelta(days=200 - 30 * i)).isoformat()
        customers.append(create_customer(store, {**data, "created_at": created}))
    rahul, priya, amit, sneha, vikram, anita = customers
    add_address(store, rahul["id"], {"type": "permanent", "line1": "12 Janpath", "city": "New Delhi",
                                     "state": "Delhi", "pincode": "110001", "is_verified": True})
    add_address(store, amit["id"], {"type": "office", "line1": "45 MG Road", "city": "Bengaluru",
                                    "state": "Karnataka", "pincode": "560001"})

    # Rahul: on schedule.
    application = create_application(store, {
        "customer_id": rahul["id"], "product_id": products["PL001"]["id"], "amount": 100000,
        "interest_rate": 12, "tenure_months": 12, "purpose": "Home renovation",
    }, admin, today)
    loan = _approve(store, admin, application, add_months(today, -4))
    for n in range(1, 4):
        pay_emi(store, loan["id"], payment_mode="UPI", paid_on=add_months(today, n - 4), collected_by="Ravi Verma")
    assign_collection(store, loan["id"], "Ravi Verma", "Low")

    # Amit: two installments paid, then missed payments.
    application = create_application(store, {
        "customer_id": amit["id"], "product_id": products["BL001"]["id"], "amount": 250000,
        "tenure_months": 24, "purpose": "Inventory purchase",
    }, admin, today)
    loan = _approve(store, admin, application, add_months(today, -5))
    for n in range(1, 3):
        pay_emi(store, loan["id"], payment_mode="Cash", paid_on=add_months(today, n - 5), collected_by="Suresh Rao")
    assign_collection(store, loan["id"], "Suresh Rao", "Medium")

    # Vikram: no servicing partner, visible to admins only.
    application = create_application(store, {
        "customer_id": vikram["id"], "product_id": products["VL001"]["id"], "amount": 600000,
        "tenure_months": 36, "purpose": "Car purchase",
    }, admin, today)
    _approve(store, admin, application, add_months(today, -1))

    # Open and decided applications.
    submitted = create_application(store, {
        "customer_id": priya["id"], "product_id": products["BL001"]["id"], "amount": 150000,
        "tenure_months": 18, "purpose": "Shop expansion",
    }, admin, today)
    update_application_status(store, submitted["id"], "Submitted", admin)
    create_application(store, {
        "customer_id": priya["id"], "product_id": products["PL001"]["id"], "amount": 30000,
        "tenure_months": 6, "purpose": "Medical expenses",
    }, admin, today)
    rejected = create_application(store, {
        "customer_id": rahul["id"], "product_id": products["VL001"]["id"], "amount": 80000,
        "tenure_months": 12, "purpose": "Two wheeler",
    }, admin, today)
    update_application_status(store, rejected["id"], "Rejected", admin, remarks="Existing exposure too high")

    refresh_overdue(store, today)
    log.info("Demo data loaded: %s", store.counts())
    return store
