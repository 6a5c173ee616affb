"""
Phone number normalization and validation

Turns whatever the user typed into an E.164 number. ``phonenumbers`` is the
primary validator; when it rejects the number a looser digit-count check
(8-15 digits) is applied, so numbers from ranges the metadata does not know
yet are still accepted.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

import phonenumbers
from phonenumbers import NumberParseException, PhoneNumberFormat

from ..gateway.error_codes import PhoneValidationError

logger = logging.getLogger(__name__)

DEFAULT_COUNTRY_PREFIX = "+254"
DEFAULT_REGION = "KE"

MIN_HEURISTIC_DIGITS = 9
FALLBACK_MIN_DIGITS = 8
FALLBACK_MAX_DIGITS = 15

_NON_DIALABLE_RE = re.compile(r"[^\d+]")


@dataclass(frozen=True)
class CanonicalPhone:
    """A validated phone number"""

    e164: str
    """E.164 form, e.g. +254723278526"""

    international: str
    """Human readable international form, e.g. +254 723 278526"""

    country_code: str
    """Calling code without the plus, e.g. 254"""

    country: str
    """ISO region code or "Unknown" """

    national_number: str
    raw: str
    """Input after cleanup and prefix heuristics"""

    source: str
    """Validator that accepted the number: "phonenumbers" or "digits" """

    def to_dict(self) -> dict[str, Any]:
        return {
            "formatted": self.e164,
            "international": self.international,
            "countryCode": self.country_code,
            "country": self.country,
            "nationalNumber": self.national_number,
            "rawNumber": self.raw,
            "source": self.source,
        }


def clean_phone_input(raw: str) -> str:
    """Keep digits and a single leading plus"""
    text = str(raw).strip()
    cleaned = _NON_DIALABLE_RE.sub("", text)
    if not cleaned:
        return ""
    leading_plus = cleaned.startswith("+")
    digits = cleaned.replace("+", "")
    return f"+{digits}" if leading_plus else digits


def apply_locale_heuristics(cleaned: str, country_prefix: str = DEFAULT_COUNTRY_PREFIX) -> str:
    """
    Rewrite local number forms into international ones

    - ``0723278526`` -> ``+254723278526`` (trunk prefix replaced)
    - ``254723278526`` -> ``+254723278526`` (plus added to long digit strings)
    """
    if cleaned.startswith("0") and len(cleaned) >= MIN_HEURISTIC_DIGITS:
        return country_prefix + cleaned[1:]
    if not cleaned.startswith("+") and len(cleaned) >= MIN_HEURISTIC_DIGITS:
        return "+" + cleaned
    return cleaned


def _parse_valid(number: str, region: str | None) -> phonenumbers.PhoneNumber | None:
    try:
        parsed = phonenumbers.parse(number, region)
    except NumberParseException:
        return None
    return parsed if phonenumbers.is_valid_number(parsed) else None


def _from_parsed(parsed: phonenumbers.PhoneNumber, raw: str) -> CanonicalPhone:
    return CanonicalPhone(
        e164=phonenumbers.format_number(parsed, PhoneNumberFormat.E164),
        international=phonenumbers.format_number(parsed, PhoneNumberFormat.INTERNATIONAL),
        country_code=str(parsed.country_code),
        country=phonenumbers.region_code_for_number(parsed) or "Unknown",
        national_number=str(parsed.national_number),
        raw=raw,
        source="phonenumbers",
    )


def normalize_phone(
    raw: str,
    country_prefix: str = DEFAULT_COUNTRY_PREFIX,
    default_region: str = DEFAULT_REGION,
) -> CanonicalPhone:
    """
    Normalize a user-supplied phone number

    Args:
        raw: Phone number as typed (spaces, dashes, brackets allowed)
        country_prefix: Prefix replacing a leading trunk ``0``
        default_region: Region used to read bare national numbers

    Returns:
        CanonicalPhone

    Raises:
        PhoneValidationError: If neither validator accepts the number
    """
    if raw is None or not str(raw).strip():
        raise PhoneValidationError("Phone number is required")

    cleaned = clean_phone_input(raw)
    if not cleaned.lstrip("+"):
        raise PhoneValidationError()

    candidate = apply_locale_heuristics(cleaned, country_prefix)

    parsed = _parse_valid(candidate, None if candidate.startswith("+") else default_region)
    if parsed is None and not cleaned.startswith("+"):
        # Bare national number such as 723278526
        parsed = _parse_valid(cleaned, default_region)
    if parsed is not None:
        return _from_parsed(parsed, candidate)

    digits = candidate.lstrip("+")
    if FALLBACK_MIN_DIGITS <= len(digits) <= FALLBACK_MAX_DIGITS:
        logger.debug(f"Accepting ...{digits[-4:]} on digit count only")
        e164 = f"+{digits}"
        return CanonicalPhone(
            e164=e164,
            international=e164,
            country_code="",
            country="Unknown",
            national_number=digits,
            raw=candidate,
            source="digits",
        )

    raise PhoneValidationError()


def phone_last4(phone: str) -> str:
    """Last 4 digits of a phone number for safe logging"""
    digits = "".join(filter(str.isdigit, phone or ""))
    return digits[-4:]
