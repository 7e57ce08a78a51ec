"""
core/cpf.py -- Validation of the Brazilian individual taxpayer id (CPF).

A CPF is 11 digits: nine base digits followed by two check digits. Each check
digit is a weighted mod-11 checksum:

  first:  sum(d[i] * (10 - i) for i in 0..8), r = (sum * 10) % 11, r in {10, 11} -> 0
  second: sum(d[i] * (11 - i) for i in 0..9), same reduction

Sequences of one repeated digit ("00000000000", "11111111111", ...) pass the
arithmetic but are not issued, so they are rejected explicitly.

Input may carry the usual mask ("123.456.789-09"); everything that is not a
digit is stripped before validation. Callers store the normalized form.

Layer rule: core/ is the kernel. No imports from api/ or auth/.
"""

from __future__ import annotations

import re

_NON_DIGIT_RE = re.compile(r"\D")

CPF_LENGTH = 11


def normalize_cpf(value: str) -> str:
    """Return only the digits of ``value``."""
    return _NON_DIGIT_RE.sub("", value)


def _check_digit(digits: str) -> int:
    # Weights run from len(digits) + 1 down to 2.
    weight = len(digits) + 1
    total = sum(int(d) * (weight - i) for i, d in enumerate(digits))
    remainder = (total * 10) % 11
    return 0 if remainder in (10, 11) else remainder


def compute_check_digits(base: str) -> str:
    """Return the two check digits for a 9-digit CPF base.

    Raises ValueError if ``base`` is not exactly nine digits.
    """
    if len(base) != 9 or not base.isdigit():
        raise ValueError("CPF base must be exactly 9 digits")
    first = _check_digit(base)
    second = _check_digit(base + str(first))
    return f"{first}{second}"


def is_valid_cpf(value: str) -> bool:
    """Return True when ``value`` is a checksum-valid CPF (mask allowed)."""
    cpf = normalize_cpf(value)
    if len(cpf) != CPF_LENGTH:
        return False
    if cpf == cpf[0] * CPF_LENGTH:
        return False
    return cpf[9:] == compute_check_digits(cpf[:9])
