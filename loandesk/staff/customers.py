"""Customer onboarding: registration, addresses and KYC."""
import logging

from ..access import assign_partner_by_pincode, ensure_customer_access
from ..errors import ValidationError
from ..models import ADDRESS_TYPES, GENDERS, KYC_STATUSES
from ..utils import clean_text, is_valid_email, is_valid_pincode, now_iso, parse_date, parse_datetime, safe_float

log = logging.getLogger(__name__)


def create_customer(store, data):
    name = clean_text(data.get("name"), "name")
    phone = clean_text(data.get("phone"), "phone")
    pincode = clean_text(data.get("pincode"), "pincode")
    if not name or not phone or not pincode:
        raise ValidationError("Name, phone and pincode are required")
    if not is_valid_pincode(pincode):
        raise ValidationError("Pincode must be exactly 6 digits")

    email = clean_text(data.get("email"), "email") or None
    if email and not is_valid_email(email):
        raise ValidationError("Invalid email address")
    gender = data.get("gender") or None
    if gender and gender not in GENDERS:
        raise ValidationError(f"Unknown gender: {gender}")
    kyc_status = data.get("kyc_status") or "Pending"
    if kyc_status not in KYC_STATUSES:
        raise ValidationError(f"Unknown KYC status: {kyc_status}")
    dob = parse_date(data.get("dob"))
    created_at = parse_datetime(data.get("created_at"))

    partner = assign_partner_by_pincode(pincode, store.partners)
    customer = store.insert("customers", {
        "name": name,
        "phone": phone,
        "email": email,
        "dob": dob.isoformat() if dob else None,
        "gender": gender,
        "guardian_name": data.get("guardian_name") or None,
        "occupation": data.get("occupation") or None,
        "income_source": data.get("income_source") or None,
        "monthly_income": safe_float(data.get("monthly_income")) or None,
        "kyc_status": kyc_status,
        "pincode": pincode,
        "partner_id": partner["id"] if partner else None,
        "created_at": created_at.isoformat(timespec="seconds") if created_at else now_iso(),
    })
    if partner:
        log.info("Customer %s registered under partner %s", customer["id"], partner["code"])
    else:
        log.info("Customer %s registered; no partner services pincode %s", customer["id"], pincode)
    return customer


def add_address(store, customer_id, data, user=None):
    customer = store.require("customers", customer_id, "Customer")
    if user is not None:
        ensure_customer_access(user, customer)
    address_type = data.get("type") or "residence"
    if address_type not in ADDRESS_TYPES:
        raise ValidationError(f"Address type must be one of {', '.join(ADDRESS_TYPES)}")
    line1 = clean_text(data.get("line1"), "line1")
    city = clean_text(data.get("city"), "city")
    state = clean_text(data.get("state"), "state")
    pincode = clean_text(data.get("pincode"), "pincode")
    if not line1 or not city or not state:
        raise ValidationError("Address line, city and state are required")
    if not is_valid_pincode(pincode):
        raise ValidationError("Pincode must be exactly 6 digits")
    return store.insert("addresses", {
        "customer_id": customer["id"],
        "type": address_type,
        "line1": line1,
        "line2": data.get("line2") or "",
        "city": city,
        "state": state,
        "pincode": pincode,
        "is_verified": bool(data.get("is_verified")),
        "verification_date": now_iso() if data.get("is_verified") else None,
    })


def update_kyc_status(store, customer_id, status, user=None):
    customer = store.require("customers", customer_id, "Customer")
    if user is not None:
        ensure_customer_access(user, customer)
    if status not in KYC_STATUSES:
        raise ValidationError(f"KYC status must be one of {', '.join(KYC_STATUSES)}")
    customer["kyc_status"] = status
    log.info("Customer %s KYC set to %s", customer_id, status)
    return customer
