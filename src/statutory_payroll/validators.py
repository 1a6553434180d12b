"""Format checks for Kenyan statutory identifiers."""

from __future__ import annotations

import re

KRA_PIN_PATTERN = re.compile(r"^[AP]\d{9}[A-Z]$")
NATIONAL_ID_PATTERN = re.compile(r"^\d{7,8}$")
NSSF_NUMBER_PATTERN = re.compile(r"^\d{9,10}$")


def validate_kra_pin(pin: str) -> bool:
    """KRA PIN: A or P, nine digits, one letter (case-insensitive)."""
    return bool(KRA_PIN_PATTERN.match(pin.strip().upper()))


def validate_national_id(national_id: str) -> bool:
    return bool(NATIONAL_ID_PATTERN.match(national_id.strip()))


def validate_nssf_number(number: str) -> bool:
    return bool(NSSF_NUMBER_PATTERN.match(number.strip()))
