"""Partner, product and user administration."""
import logging

from werkzeug.security import generate_password_hash

from ..access import parse_servicing_pincodes
from ..errors import ValidationError
from ..models import PARTNER_STATUSES, PRODUCT_CATEGORIES, PRODUCT_STATUSES, USER_ROLES
from ..utils import clean_text, is_valid_email, now_iso, safe_float, safe_int

log = logging.getLogger(__name__)


def _check_unique_code(rows, code, exclude_id=None, label="Code"):
    for row in rows:
        if row.get("code", "").upper() == code.upper() and row["id"] != exclude_id:
            raise ValidationError(f"{label} {code} is already in use")


def create_partner(store, data):
    name = clean_text(data.get("name"), "name")
    code = clean_text(data.get("code"), "code").upper()
    if not name or not code:
        raise ValidationError("Partner name and code are required")
    _check_unique_code(store.partners, code, label="Partner code")
    status = data.get("status") or "Active"
    if status not in PARTNER_STATUSES:
        raise ValidationError(f"Unknown partner status: {status}")
    pincodes = parse_servicing_pincodes(data.get("servicing_pincodes"))
    if not pincodes:
        raise ValidationError("At least one valid 6-digit servicing pincode is required")
    stamp = now_iso()
    partner = store.insert("partners", {
        "name": name,
        "code": code,
        "status": status,
        "servicing_pincodes": pincodes,
        "created_at": stamp,
        "updated_at": stamp,
    })
    log.info("Partner %s created servicing %s", code, ", ".join(pincodes))
    return partner


def update_partner(store, partner_id, data):
    partner = store.require("partners", partner_id, "Partner")
    if "name" in data:
        name = clean_text(data.get("name"), "name")
        if not name:
            raise ValidationError("Partner name cannot be empty")
        partner["name"] = name
    if "code" in data:
        code = clean_text(data.get("code"), "code").upper()
        if not code:
            raise ValidationError("Partner code cannot be empty")
        _check_unique_code(store.partners, code, exclude_id=partner_id, label="Partner code")
        partner["code"] = code
    if "status" in data:
        if data["status"] not in PARTNER_STATUSES:
            raise ValidationError(f"Unknown partner status: {data['status']}")
        partner["status"] = data["status"]
    if "servicing_pincodes" in data:
        pincodes = parse_servicing_pincodes(data.get("servicing_pincodes"))
        if not pincodes:
            raise ValidationError("At least one valid 6-digit servicing pincode is required")
        partner["servicing_pincodes"] = pincodes
    partner["updated_at"] = now_iso()
    return partner


def delete_partner(store, partner_id):
    partner = store.require("partners", partner_id, "Partner")
    if store.where("customers", partner_id=partner_id) or store.where("users", partner_id=partner_id):
        raise ValidationError(f"Partner {partner['code']} still has customers or staff; deactivate it instead")
    store.remove("partners", lambda p: p["id"] == partner_id)
    log.info("Partner %s deleted", partner["code"])
    return partner


def _product_fields(data, current=None):
    current = current or {}
    merged = {**current, **{k: v for k, v in data.items() if v is not None}}
    name = clean_text(merged.get("name"), "name")
    code = clean_text(merged.get("code"), "code").upper()
    if not name or not code:
        raise ValidationError("Product name and code are required")
    category = merged.get("category") or "Personal"
    if category not in PRODUCT_CATEGORIES:
        raise ValidationError(f"Unknown product category: {category}")

    min_amount = safe_float(merged.get("min_amount"))
    max_amount = safe_float(merged.get("max_amount"))
    min_tenure = safe_int(merged.get("min_tenure_months"))
    max_tenure = safe_int(merged.get("max_tenure_months"))
    rate = safe_float(merged.get("interest_rate"), -1)
    if min_amount <= 0 or max_amount < min_amount:
        raise ValidationError("Amount range is invalid")
    if min_tenure <= 0 or max_tenure < min_tenure:
        raise ValidationError("Tenure range is invalid")
    if rate < 0:
        raise ValidationError("Interest rate must be zero or more")

    criteria = dict(current.get("eligibility_criteria") or {})
    criteria.update(data.get("eligibility_criteria") or {})
    return {
        "name": name,
        "code": code,
        "description": merged.get("description") or "",
        "category": category,
        "min_amount": min_amount,
        "max_amount": max_amount,
        "min_tenure_months": min_tenure,
        "max_tenure_months": max_tenure,
        "interest_rate": rate,
        "processing_fee": safe_float(merged.get("processing_fee")),
        "prepayment_penalty": safe_float(merged.get("prepayment_penalty")),
        "late_payment_penalty": safe_float(merged.get("late_payment_penalty")),
        "eligibility_criteria": {
            "min_age": safe_int(criteria.get("min_age"), 18),
            "max_age": safe_int(criteria.get("max_age"), 65),
            "min_income": safe_float(criteria.get("min_income")),
            "required_documents": list(criteria.get("required_documents") or []),
            "credit_score_required": safe_int(criteria.get("credit_score_required")) or None,
        },
    }


def create_product(store, data):
    fields = _product_fields(data)
    _check_unique_code(store.loan_products, fields["code"], label="Product code")
    status = data.get("status") or "Active"
    if status not in PRODUCT_STATUSES:
        raise ValidationError(f"Unknown product status: {status}")
    stamp = now_iso()
    product = store.insert("loan_products", {**fields, "status": status, "created_at": stamp, "updated_at": stamp})
    log.info("Loan product %s created", product["code"])
    return product


def update_product(store, product_id, data):
    product = store.require("loan_products", product_id, "Product")
    fields = _product_fields(data, product)
    _check_unique_code(store.loan_products, fields["code"], exclude_id=product_id, label="Product code")
    product.update(fields)
    product["updated_at"] = now_iso()
    return product


def toggle_product_status(store, product_id):
    product = store.require("loan_products", product_id, "Product")
    product["status"] = "Inactive" if product["status"] == "Active" else "Active"
    product["updated_at"] = now_iso()
    log.info("Loan product %s is now %s", product["code"], product["status"])
    return product


def create_user(store, name, email, password, role="staff", partner_id=None):
    email = clean_text(email, "email").lower()
    if not name or not is_valid_email(email):
        raise ValidationError("A name and a valid email are required")
    if not password:
        raise ValidationError("Password is required")
    if role not in USER_ROLES:
        raise ValidationError(f"Role must be one of {', '.join(USER_ROLES)}")
    if any(u["email"].lower() == email for u in store.users):
        raise ValidationError(f"User {email} already exists")
    if role == "admin":
        partner_id = None
    elif partner_id is not None:
        store.require("partners", partner_id, "Partner")
    stamp = now_iso()
    return store.insert("users", {
        "name": name,
        "email": email,
        "role": role,
        "partner_id": partner_id,
        "status": "Active",
        "password_hash": generate_password_hash(password),
        "login_attempts": 0,
        "blocked": False,
        "created_at": stamp,
        "updated_at": stamp,
    })


def unblock_user(store, user_id):
    user = store.require("users", user_id, "User")
    user["blocked"] = False
    user["login_attempts"] = 0
    user["updated_at"] = now_iso()
    return user
