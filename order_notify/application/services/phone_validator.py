"""Brazilian mobile phone validation and formatting for WhatsApp.

Accepted inputs (any punctuation is stripped first):
- "5511999999999"  → already international (55 + DDD + 9 digits)
- "011999999999"   → trunk prefix 0 + DDD + 9 digits
- "11999999999"    → DDD + 9 digits

Landlines (8-digit local numbers) are rejected because WhatsApp
notifications require a mobile number.
"""

import re
from dataclasses import dataclass
from typing import Optional

from order_notify.core.exceptions import InvalidPhoneNumberError

BRAZIL_COUNTRY_CODE = "55"

MOBILE_AREA_CODES = frozenset({
    "11", "12", "13", "14", "15", "16", "17", "18", "19",  # SP
    "21", "22", "24",  # RJ
    "27", "28",  # ES
    "31", "32", "33", "34", "35", "37", "38",  # MG
    "41", "42", "43", "44", "45", "46",  # PR
    "47", "48", "49",  # SC
    "51", "53", "54", "55",  # RS
    "61",  # DF
    "62", "64",  # GO
    "63",  # TO
    "65", "66",  # MT
    "67",  # MS
    "68",  # AC
    "69",  # RO
    "71", "73", "74", "75", "77",  # BA
    "79",  # SE
    "81", "87",  # PE
    "82",  # AL
    "83",  # PB
    "84",  # RN
    "85", "88",  # CE
    "86", "89",  # PI
    "91", "93", "94",  # PA
    "92", "97",  # AM
    "95",  # RR
    "96",  # AP
    "98", "99",  # MA
})

LANDLINE_ERROR = "WhatsApp requires mobile numbers (11 digits with area code)"


@dataclass(frozen=True)
class PhoneValidation:
    is_valid: bool
    formatted_number: Optional[str] = None
    error: Optional[str] = None


def _digits(phone: str) -> str:
    return re.sub(r"\D", "", phone)


def _check_national(national: str) -> Optional[str]:
    """Validate DDD + local part. Returns an error message or None."""
    area_code, local = national[:2], national[2:]
    if area_code not in MOBILE_AREA_CODES:
        return f"Invalid Brazilian area code: {area_code}"
    if not local.startswith("9"):
        return "Brazilian mobile numbers must start with 9"
    return None


def validate_phone_number(phone: Optional[str]) -> PhoneValidation:
    """Validate a phone number and normalize it to 55 + DDD + 9 digits."""
    if not phone or not isinstance(phone, str):
        return PhoneValidation(False, error="Phone number is required")

    cleaned = _digits(phone)
    if not cleaned:
        return PhoneValidation(False, error="Phone number cannot be empty")

    if cleaned.startswith(BRAZIL_COUNTRY_CODE) and len(cleaned) in (12, 13):
        national = cleaned[2:]
    elif cleaned.startswith("0") and len(cleaned) in (11, 12):
        national = cleaned[1:]
    elif len(cleaned) in (10, 11):
        national = cleaned
    else:
        return PhoneValidation(
            False,
            error=f"Invalid phone number length: {len(cleaned)} digits. Expected 11 digits for Brazilian mobile.",
        )

    if len(national) == 10:
        if national[:2] not in MOBILE_AREA_CODES:
            return PhoneValidation(False, error=f"Invalid Brazilian area code: {national[:2]}")
        return PhoneValidation(False, error=LANDLINE_ERROR)

    error = _check_national(national)
    if error:
        return PhoneValidation(False, error=error)

    return PhoneValidation(True, formatted_number=BRAZIL_COUNTRY_CODE + national)


def normalize_phone(phone: Optional[str]) -> str:
    """Return the normalized number or raise ``InvalidPhoneNumberError``."""
    result = validate_phone_number(phone)
    if not result.is_valid:
        raise InvalidPhoneNumberError(result.error or "unknown")
    return result.formatted_number


def is_brazilian_mobile(phone: Optional[str]) -> bool:
    return validate_phone_number(phone).is_valid


def format_phone_for_display(phone: str) -> str:
    """Format as +55 (11) 99999-9999. Anything else is returned untouched."""
    cleaned = _digits(phone)
    if cleaned.startswith(BRAZIL_COUNTRY_CODE) and len(cleaned) == 13:
        return f"+55 ({cleaned[2:4]}) {cleaned[4:9]}-{cleaned[9:13]}"
    return phone


def mask_phone(phone: Optional[str]) -> str:
    """Mask a phone for log lines, keeping only the last four digits."""
    if not phone:
        return "***"
    cleaned = _digits(phone)
    if len(cleaned) <= 4:
        return "***"
    return f"***{cleaned[-4:]}"


def extract_area_code(phone: str) -> Optional[str]:
    cleaned = _digits(phone)
    if cleaned.startswith(BRAZIL_COUNTRY_CODE) and len(cleaned) >= 4:
        return cleaned[2:4]
    if cleaned.startswith("0") and len(cleaned) >= 3:
        return cleaned[1:3]
    if len(cleaned) >= 2:
        return cleaned[:2]
    return None
