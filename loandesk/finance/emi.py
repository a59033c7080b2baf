"""
EMI / amortization engine
=========================
Reducing-balance EMI, month-by-month amortization schedules and prepayment
savings. Amounts are whole currency units: the EMI and every interest
component are rounded half-up to the nearest rupee.
"""
from datetime import date

from ..utils import add_months, parse_date, round_half_up


def monthly_rate(annual_rate):
    return annual_rate / 100 / 12


def calculate_emi(principal, annual_rate, tenure_months):
    """EMI = P·r·(1+r)^n / ((1+r)^n − 1), rounded to a whole rupee.

    With no tenure or a zero rate there is nothing to amortize and the
    principal is returned unchanged.
    """
    if tenure_months == 0 or annual_rate == 0:
        return principal

    r = monthly_rate(annual_rate)
    growth = (1 + r) ** tenure_months
    emi = principal * r * growth / (growth - 1)
    return round_half_up(emi)


def calculate_total_interest(principal, emi, tenure_months):
    return emi * tenure_months - principal


def calculate_total_amount(principal, emi, tenure_months):
    return emi * tenure_months


def generate_amortization_schedule(principal, annual_rate, tenure_months, disbursement_date=None):
    """Per-installment breakdown of a loan.

    Each row carries installment_number, due_date, emi, principal, interest,
    outstanding_balance and cumulative_interest. The last installment takes
    whatever principal is left so the schedule always ends at exactly zero,
    absorbing the rounding drift of the earlier rows.
    """
    r = monthly_rate(annual_rate)
    emi = calculate_emi(principal, annual_rate, tenure_months)
    start = parse_date(disbursement_date) or date.today()
    schedule = []

    outstanding = principal
    cumulative_interest = 0

    for i in range(1, tenure_months + 1):
        interest = round_half_up(outstanding * r)
        last = i == tenure_months
        # Never take more principal than is still owed.
        principal_paid = outstanding if last else min(emi - interest, outstanding)
        new_outstanding = outstanding - principal_paid
        cumulative_interest += interest

        schedule.append({
            "installment_number": i,
            "due_date": add_months(start, i).isoformat(),
            "emi": principal_paid + interest if last else emi,
            "principal": principal_paid if last else round_half_up(principal_paid),
            "interest": interest,
            "outstanding_balance": 0 if last else max(0, round_half_up(new_outstanding)),
            "cumulative_interest": cumulative_interest,
        })
        outstanding = new_outstanding

    return schedule


def outstanding_after(principal, annual_rate, tenure_months, months_paid):
    """Scheduled outstanding balance once ``months_paid`` installments are in."""
    if months_paid <= 0:
        return principal
    if months_paid >= tenure_months:
        return 0
    schedule = generate_amortization_schedule(principal, annual_rate, tenure_months)
    return schedule[months_paid - 1]["outstanding_balance"]


def calculate_prepayment_savings(original_principal, original_rate, original_tenure,
                                 prepayment_amount, months_paid):
    """Effect of a lump-sum prepayment made after ``months_paid`` installments.

    The remaining balance less the prepayment is re-amortized over the
    remaining tenure at the same rate; the saving is the difference in
    interest still to be paid.
    """
    if months_paid >= original_tenure:
        return {"new_emi": 0, "new_tenure": 0, "interest_saved": 0, "total_savings": 0}

    original_emi = calculate_emi(original_principal, original_rate, original_tenure)
    remaining_principal = outstanding_after(original_principal, original_rate,
                                            original_tenure, months_paid)
    remaining_tenure = original_tenure - months_paid
    original_interest = calculate_total_interest(remaining_principal, original_emi, remaining_tenure)
    new_principal = max(0, remaining_principal - prepayment_amount)

    if new_principal <= 0:
        return {
            "new_emi": 0,
            "new_tenure": 0,
            "interest_saved": original_interest,
            "total_savings": original_interest,
        }

    new_emi = calculate_emi(new_principal, original_rate, remaining_tenure)
    new_interest = calculate_total_interest(new_principal, new_emi, remaining_tenure)
    interest_saved = original_interest - new_interest

    return {
        "new_emi": new_emi,
        "new_tenure": remaining_tenure,
        "interest_saved": interest_saved,
        "total_savings": interest_saved,
    }


def loan_summary(principal, annual_rate, tenure_months):
    emi = calculate_emi(principal, annual_rate, tenure_months)
    return {
        "principal": principal,
        "annual_rate": annual_rate,
        "monthly_rate_percent": round(monthly_rate(annual_rate) * 100, 4),
        "tenure_months": tenure_months,
        "emi": emi,
        "total_interest": calculate_total_interest(principal, emi, tenure_months),
        "total_amount": calculate_total_amount(principal, emi, tenure_months),
    }
