from flask import Blueprint

# Loan, collection and accounting endpoints share one blueprint.
finance_bp = Blueprint("finance", __name__, url_prefix="/finance/api")

from . import api  # noqa: E402,F401
