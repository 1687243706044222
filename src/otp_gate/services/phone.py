"""Input validation for contacts, subjects and codes."""

from __future__ import annotations

import re

from otp_gate.services.codes import CODE_LENGTH
from otp_gate.services.errors import InvalidInputError

MAX_SUBJECT_LENGTH = 255
E164_PATTERN = re.compile(r"\+[1-9]\d{7,14}")
_SEPARATORS = re.compile(r"[\s\-().]")
_CODE_PATTERN = re.compile(rf"[0-9]{{{CODE_LENGTH}}}")


def normalize_phone(raw: str | None) -> str:
    """Normalize a user-supplied phone number to E.164.

    Accepts a leading ``+``, an international ``00`` prefix, or bare
    international digits, with spaces, dashes, dots and parentheses ignored.

    Raises:
        InvalidInputError: If the value cannot be an E.164 number
    """
    value = _SEPARATORS.sub("", (raw or "").strip())
    if value.startswith("+"):
        digits = value[1:]
    elif value.startswith("00"):
        digits = value[2:]
    else:
        digits = value
    if not digits.isascii() or not digits.isdigit():
        raise InvalidInputError("Invalid phone number")
    normalized = f"+{digits}"
    if not E164_PATTERN.fullmatch(normalized):
        raise InvalidInputError("Invalid phone number")
    return normalized


def validate_subject_id(raw: str | None) -> str:
    """Return the trimmed subject id or raise InvalidInputError."""
    value = (raw or "").strip()
    if not value:
        raise InvalidInputError("cart_id is required")
    if len(value) > MAX_SUBJECT_LENGTH:
        raise InvalidInputError("cart_id is too long")
    return value


def validate_code(raw: str | None) -> str:
    """Return the trimmed code if it is exactly six ASCII digits."""
    value = (raw or "").strip()
    if not _CODE_PATTERN.fullmatch(value):
        raise InvalidInputError("code must be 6 digits")
    return value
