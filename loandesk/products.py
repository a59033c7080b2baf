"""Loan product rules: amount/tenure bounds, customer eligibility and fees."""
import math
from datetime import date

from .utils import format_currency, parse_date, safe_float


def validate_loan_amount(product, amount):
    if not math.isfinite(amount):
        return False, "Loan amount must be a number"
    if amount < product["min_amount"]:
        return False, f"Minimum loan amount is {format_currency(product['min_amount'])}"
    if amount > product["max_amount"]:
        return False, f"Maximum loan amount is {format_currency(product['max_amount'])}"
    return True, None


def validate_loan_tenure(product, tenure_months):
    if tenure_months < product["min_tenure_months"]:
        return False, f"Minimum tenure is {product['min_tenure_months']} months"
    if tenure_months > product["max_tenure_months"]:
        return False, f"Maximum tenure is {product['max_tenure_months']} months"
    return True, None


def customer_age(customer, today=None):
    dob = parse_date(customer.get("dob"))
    if dob is None:
        return None
    today = today or date.today()
    return today.year - dob.year


def check_customer_eligibility(product, customer, today=None):
    """Return (is_eligible, reasons) for a customer against a product's criteria."""
    criteria = product.get("eligibility_criteria") or {}
    reasons = []

    age = customer_age(customer, today)
    if age is not None:
        if age < criteria.get("min_age", 0):
            reasons.append(f"Customer must be at least {criteria['min_age']} years old")
        if criteria.get("max_age") and age > criteria["max_age"]:
            reasons.append(f"Customer must be under {criteria['max_age']} years old")

    income = customer.get("monthly_income")
    min_income = criteria.get("min_income") or 0
    if income and income < min_income:
        reasons.append(f"Minimum monthly income required is {format_currency(min_income)}")

    if customer.get("kyc_status") != "Verified":
        reasons.append("KYC must be verified")

    return not reasons, reasons


def get_active_products(products):
    return [product for product in products if product.get("status") == "Active"]


def get_product_by_code(products, code):
    for product in products:
        if product.get("code") == code:
            return product
    return None


def get_product_by_id(products, product_id):
    for product in products:
        if product["id"] == product_id:
            return product
    return None


def calculate_processing_fee(product, amount):
    # Flat fee per product regardless of amount.
    return safe_float(product.get("processing_fee"))


def calculate_prepayment_penalty(product, outstanding_amount):
    return outstanding_amount * safe_float(product.get("prepayment_penalty")) / 100


def calculate_late_payment_penalty(product, overdue_amount):
    return overdue_amount * safe_float(product.get("late_payment_penalty")) / 100
