"""Pairing code generation, phone normalization and the in-memory registry"""

from __future__ import annotations

from .codes import (
    PAIRING_CODE_ALPHABET,
    PAIRING_CODE_LENGTH,
    format_display_code,
    generate_pairing_code,
    normalize_code,
    validate_pairing_code,
)
from .phone import CanonicalPhone, normalize_phone
from .registry import PairingRecord, PairingRegistry, RecordStatus

__all__ = [
    "PAIRING_CODE_ALPHABET",
    "PAIRING_CODE_LENGTH",
    "CanonicalPhone",
    "PairingRecord",
    "PairingRegistry",
    "RecordStatus",
    "format_display_code",
    "generate_pairing_code",
    "normalize_code",
    "normalize_phone",
    "validate_pairing_code",
]
