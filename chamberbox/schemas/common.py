import re
from typing import Optional

BD_PHONE_PATTERN = re.compile(r"^01\d{9}$")
CALENDLY_URL_PATTERN = re.compile(r"^https?://(calendly\.com/[\w-]+|cal\.com/[\w-]+)")


def normalize_phone(value: Optional[str]) -> Optional[str]:
    """Reduce a Bangladeshi mobile number to its local 11-digit form."""
    if value is None:
        return None
    digits = re.sub(r"\D", "", value)
    if digits.startswith("880"):
        digits = digits[2:]
    if not BD_PHONE_PATTERN.match(digits):
        raise ValueError("Phone number must be a valid Bangladeshi mobile number (01XXXXXXXXX)")
    return digits


def validate_calendly_url(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return None
    value = value.strip()
    if not CALENDLY_URL_PATTERN.match(value):
        raise ValueError("Please enter a valid Calendly or Cal.com URL")
    return value
