from flask import jsonify, request

from ..access import is_admin, visible_partners
from ..auth.decorators import current_user, login_required, role_required
from ..auth.routes import public_user
from ..errors import ValidationError
from ..models import USER_STATUSES
from ..products import get_active_products
from ..store import get_store
from . import admin_api_bp
from .management import (
    create_partner,
    create_product,
    delete_partner,
    toggle_product_status,
    unblock_user,
    update_partner,
    update_product,
)


# --- Partners ---
@admin_api_bp.route("/partners", methods=["GET"])
@login_required
def list_partners():
    store = get_store()
    partners = visible_partners(store.partners, current_user())
    rows = []
    for partner in partners:
        rows.append({
            **partner,
            "customer_count": len(store.where("customers", partner_id=partner["id"])),
            "staff_count": len(store.where("users", partner_id=partner["id"])),
        })
    return jsonify({"status": "success", "partners": rows})


@admin_api_bp.route("/partners", methods=["POST"])
@login_required
@role_required("admin")
def add_partner():
    partner = create_partner(get_store(), request.get_json(silent=True) or {})
    return jsonify({"status": "success", "message": "Partner created", "partner": partner}), 201


@admin_api_bp.route("/partners/<int:partner_id>", methods=["PUT"])
@login_required
@role_required("admin")
def edit_partner(partner_id):
    partner = update_partner(get_store(), partner_id, request.get_json(silent=True) or {})
    return jsonify({"status": "success", "message": "Partner updated", "partner": partner})


@admin_api_bp.route("/partners/<int:partner_id>", methods=["DELETE"])
@login_required
@role_required("admin")
def remove_partner(partner_id):
    delete_partner(get_store(), partner_id)
    return jsonify({"status": "success", "message": "Partner deleted"})


# --- Loan products ---
@admin_api_bp.route("/products", methods=["GET"])
@login_required
def list_products():
    """All products for admins; staff only see active ones (``?active=1`` forces that for admins too)."""
    products = get_store().loan_products
    if not is_admin(current_user()) or request.args.get("active") in ("1", "true"):
        products = get_active_products(products)
    return jsonify({"status": "success", "products": products})


@admin_api_bp.route("/products", methods=["POST"])
@login_required
@role_required("admin")
def add_product():
    product = create_product(get_store(), request.get_json(silent=True) or {})
    return jsonify({"status": "success", "message": "Product created", "product": product}), 201


@admin_api_bp.route("/products/<int:product_id>", methods=["PUT"])
@login_required
@role_required("admin")
def edit_product(product_id):
    product = update_product(get_store(), product_id, request.get_json(silent=True) or {})
    return jsonify({"status": "success", "message": "Product updated", "product": product})


@admin_api_bp.route("/products/<int:product_id>/toggle", methods=["POST"])
@login_required
@role_required("admin")
def toggle_product(product_id):
    product = toggle_product_status(get_store(), product_id)
    return jsonify({"status": "success", "message": f"Product is now {product['status']}", "product": product})


# --- Users ---
@admin_api_bp.route("/users", methods=["GET"])
@login_required
@role_required("admin")
def list_users():
    store = get_store()
    status = request.args.get("status")
    if status and status not in USER_STATUSES:
        raise ValidationError(f"Unknown status: {status}")
    users = []
    for user in store.users:
        if status and user["status"] != status:
            continue
        row = public_user(user, store.partners)
        row["blocked"] = bool(user.get("blocked"))
        users.append(row)
    return jsonify({"status": "success", "users": users})


@admin_api_bp.route("/users/<int:user_id>/unblock", methods=["POST"])
@login_required
@role_required("admin")
def unblock(user_id):
    user = unblock_user(get_store(), user_id)
    return jsonify({"status": "success", "message": f"{user['email']} unblocked"})
