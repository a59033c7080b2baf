import math
import re
from datetime import date, datetime

import inflect

from .errors import ValidationError

p = inflect.engine()

_PINCODE_RE = re.compile(r"^\d{6}$")
_EMAIL_RE = re.compile(r"[^@]+@[^@]+\.[^@]+")


def now_iso():
    return datetime.now().isoformat(timespec="seconds")


def parse_date(value):
    """Parse an ISO date or datetime string (or date object) into a ``date``."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).replace("Z", "+00:00")
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(text[:10], "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"Invalid date {value!r}; expected YYYY-MM-DD") from None


def parse_datetime(value):
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    text = str(value).replace("Z", "+00:00")
    try:
        return datetime.fromisoformat(text).replace(tzinfo=None)
    except ValueError:
        raise ValidationError(f"Invalid date {value!r}; expected an ISO timestamp") from None


def add_months(sourcedate, months):
    """Calendar-month offset, clamped to the last day of shorter months."""
    month = sourcedate.month - 1 + months
    year = sourcedate.year + month // 12
    month = month % 12 + 1
    day = min(sourcedate.day, [31,
        29 if year % 4 == 0 and not year % 100 == 0 or year % 400 == 0 else 28,
        31, 30, 31, 30, 31, 31, 30, 31, 30, 31][month - 1])
    return date(year, month, day)


def in_date_range(value, start, end):
    """Inclusive range check; a missing bound leaves that side open."""
    d = parse_date(value)
    if d is None:
        return False
    start_d = parse_date(start)
    end_d = parse_date(end)
    if start_d and d < start_d:
        return False
    if end_d and d > end_d:
        return False
    return True


def round_half_up(value):
    """Round to the nearest integer with .5 going up, like a cashier would."""
    return int(math.floor(value + 0.5))


def clean_text(value, field="value"):
    """Stripped text of a request value; numbers are taken in their string form."""
    if value is None:
        return ""
    if isinstance(value, (dict, list)):
        raise ValidationError(f"{field} must be text")
    return str(value).strip()


def safe_float(value, default=0.0):
    """Float or ``default``; NaN and infinities count as unparseable."""
    try:
        number = float(value) if value not in (None, "", "None") else default
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def safe_int(value, default=0):
    try:
        return int(float(value)) if value not in (None, "", "None") else default
    except (TypeError, ValueError, OverflowError):
        return default


def is_valid_pincode(pincode):
    """Pincodes are exactly six digits."""
    return bool(pincode) and bool(_PINCODE_RE.match(str(pincode)))


def is_valid_email(email):
    return bool(email) and bool(_EMAIL_RE.match(email))


def _group_indian(digits):
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups) + "," + tail


def format_currency(amount):
    """Rupee amount with Indian digit grouping and no decimals, e.g. ₹1,00,000."""
    value = round_half_up(abs(safe_float(amount)))
    sign = "-" if safe_float(amount) < 0 and value else ""
    return f"{sign}₹{_group_indian(str(value))}"


def _words(num):
    return p.number_to_words(num, andword='').replace(',', '')


def amount_to_words(amount):
    """Amount in words using the lakh/crore system, e.g. 'One Lakh Rupees Only'."""
    try:
        n = int(float(amount))
    except (TypeError, ValueError):
        return str(amount)
    if n == 0:
        return "Zero Rupees Only"
    parts = []
    crores, rem = divmod(n, 10000000)
    lakhs, rem = divmod(rem, 100000)
    if crores:
        parts.append(_words(crores) + " Crore")
    if lakhs:
        parts.append(_words(lakhs) + " Lakh")
    if rem:
        parts.append(_words(rem))
    return " ".join(parts).title() + " Rupees Only"

