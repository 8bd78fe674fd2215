"""Phone number format validation."""

import re

from ..models import PhoneCheck

_NON_DIGITS = re.compile(r"[^0-9]")


def normalize_phone_digits(phone: str) -> str | None:
    """Reduce a phone number to its 10 national digits.

    Returns None when the digit count is not 10, or 11 with a leading 1.
    """
    digits = _NON_DIGITS.sub("", phone or "")
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    if len(digits) != 10:
        return None
    return digits


def validate_phone_number(phone: str) -> PhoneCheck:
    """Validate a US phone number and format it for display.

    Args:
        phone: Free-form phone string, e.g. "510-555-1234" or "+1 (510) 555 1234"

    Returns:
        PhoneCheck with `normalized` in "(XXX) XXX-XXXX" form on success
    """
    digits = normalize_phone_digits(phone)
    if digits is None:
        return PhoneCheck(passed=False, format="invalid")

    return PhoneCheck(
        passed=True,
        format="US",
        normalized=f"({digits[:3]}) {digits[3:6]}-{digits[6:]}",
    )
