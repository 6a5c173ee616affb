"""
Pairing code generation

Generates 8-character pairing codes using a safe alphabet and formats them
for display as ``XXXX-XXXX``.

Codes come from ``secrets`` so they are not predictable, but 8 characters of a
32-symbol alphabet (~40 bits, less after the letter/digit filter) is not meant
to be a secret credential. The letter/digit filter is a readability rule only.
"""
from __future__ import annotations

import secrets

# Safe alphabet excluding confusable characters: I, O, 0, 1
PAIRING_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
PAIRING_CODE_LENGTH = 8
DISPLAY_SEPARATOR = "-"

MIN_LETTERS = 2
MIN_DIGITS = 2
MAX_DRAW_ATTEMPTS = 1000


def _draw(length: int) -> str:
    return "".join(secrets.choice(PAIRING_CODE_ALPHABET) for _ in range(length))


def has_balanced_classes(code: str) -> bool:
    """Check the code mixes at least MIN_LETTERS letters and MIN_DIGITS digits"""
    letters = sum(1 for c in code if c.isalpha())
    digits = sum(1 for c in code if c.isdigit())
    return letters >= MIN_LETTERS and digits >= MIN_DIGITS


def generate_pairing_code(length: int = PAIRING_CODE_LENGTH) -> str:
    """
    Generate a pairing code

    Draws are repeated until the code has at least two letters and two
    digits, so codes never read as plain words or plain numbers.

    Args:
        length: Code length (default: 8)

    Returns:
        Pairing code (e.g., "A7JKPC29")

    Raises:
        RuntimeError: If no balanced code was drawn in MAX_DRAW_ATTEMPTS tries
    """
    if length < MIN_LETTERS + MIN_DIGITS:
        raise ValueError(f"Code length must be at least {MIN_LETTERS + MIN_DIGITS}")

    for _ in range(MAX_DRAW_ATTEMPTS):
        code = _draw(length)
        if has_balanced_classes(code):
            return code

    raise RuntimeError(f"Could not draw a balanced pairing code in {MAX_DRAW_ATTEMPTS} attempts")


def format_display_code(code: str) -> str:
    """
    Insert a separator at the midpoint of a code

    ``"A7JKPC29"`` becomes ``"A7JK-PC29"``. Codes of odd or zero length are
    split at ``len // 2`` and returned unchanged when empty.
    """
    if not code:
        return code
    middle = len(code) // 2
    return f"{code[:middle]}{DISPLAY_SEPARATOR}{code[middle:]}"


def normalize_code(code_or_display: str) -> str:
    """Strip separators and whitespace and uppercase a user-supplied code"""
    return "".join(c for c in code_or_display.upper() if c.isalnum())


def validate_pairing_code(code: str) -> bool:
    """
    Validate pairing code format

    Args:
        code: Code to validate (raw form, no separator)

    Returns:
        True if valid
    """
    if not code or len(code) != PAIRING_CODE_LENGTH:
        return False

    return all(c in PAIRING_CODE_ALPHABET for c in code)
