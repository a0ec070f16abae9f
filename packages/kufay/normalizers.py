"""Locale-aware amount normalization for mobile-money notifications.

Providers disagree on what ``"."`` means inside an amount:

- Wallet providers (personal and business) write ``"15.500F"``: the dot is a
  thousands separator and amounts are whole francs.
- Aggregator SMS gateways write ``"5000.00 FCFA"`` or ``"12,500.00F"``: the dot
  starts a fractional part that carries no value (the currency has no
  sub-unit), and commas are thousands separators.

:func:`normalize_amount` never raises; text that does not reduce to a run of
digits yields ``None``.
"""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from .models import ProviderTag

# Longest tokens first so "FCFA" is not consumed as "F" + "CFA".
_CURRENCY_RE = re.compile(r"fcfa|cfa|xof|f", re.IGNORECASE)
_SPACE_RE = re.compile(r"\s+")
_DIGITS_RE = re.compile(r"[0-9]+")


def strip_currency(raw: str) -> str:
    """Remove currency tokens and all whitespace (including NBSP separators)."""

    return _SPACE_RE.sub("", _CURRENCY_RE.sub("", raw))


def _integer_part(s: str, provider: ProviderTag) -> str:
    if provider.is_aggregator:
        # Fractional digits are discarded entirely, never rounded.
        head = s.split(".", 1)[0]
        return head.replace(",", "")
    return s.replace(".", "").replace(",", "")


def normalize_amount(raw: str | None, provider: ProviderTag) -> Decimal | None:
    """Convert a matched amount substring to a canonical whole-franc value.

    Examples
    --------
    >>> normalize_amount("15.500F", ProviderTag.PERSONAL_WALLET)
    Decimal('15500')
    >>> normalize_amount("1234.56F", ProviderTag.AGGREGATOR_A)
    Decimal('1234')
    """

    if raw is None:
        return None
    s = strip_currency(raw)
    if not s:
        return None
    digits = _integer_part(s, provider)
    if not _DIGITS_RE.fullmatch(digits):
        return None
    try:
        return Decimal(int(digits))
    except (InvalidOperation, ValueError):
        return None


__all__ = ["normalize_amount", "strip_currency"]
