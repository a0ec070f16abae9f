"""Field extraction: amount and counterparty cascades with a positional guard.

Each tier of a cascade is a :class:`~kufay.rules.PatternRule`. A tier searches
only the part of the body that precedes the first of its section markers
("Nouveau solde", "Frais", ...), so a fee or a running balance printed after
the transaction amount can never be captured in its place. The first tier
whose match normalizes to a number wins; a tier that misses passes control to
the next one.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from decimal import Decimal

from .counterparty import format_counterparty, needs_formatting
from .logging_setup import get_logger
from .models import FieldExtraction, MessageTemplate, ProviderTag
from .normalizers import normalize_amount
from .providers import nfc
from .rules import PatternRule, RuleSet, resolve_rule_set

_logger = get_logger("kufay.extraction")

# Trailing punctuation left over by free-text label captures.
_LABEL_TRIM = " \t\r\n,;:-"

_REFERENCE_RE = re.compile(
    r"(?:\bRef\b|\bTrans(?:action)?\s*Id\b)\s*[:.]?\s*"
    r"([A-Za-z0-9](?:[A-Za-z0-9.\-]*[A-Za-z0-9])?)",
    re.IGNORECASE,
)


def find_section_boundary(body: str, markers: Sequence[str]) -> int:
    """Return the offset of the earliest section marker, or ``len(body)``.

    Matching is case-insensitive. Text at or after the returned offset is out
    of bounds for amount extraction.

    >>> find_section_boundary("Vous avez envoyé 1.234F. Frais: 10F", ["Frais"])
    25
    >>> find_section_boundary("Vous avez envoyé 1.234F", ["Frais"])
    23
    """

    best = len(body)
    for marker in markers:
        if not marker:
            continue
        m = re.search(re.escape(marker), body, re.IGNORECASE)
        if m is not None and m.start() < best:
            best = m.start()
    return best


def _search(rule: PatternRule, body: str) -> str | None:
    boundary = find_section_boundary(body, rule.section_markers)
    # A marker is never empty, so a boundary at the end means none was found
    if rule.requires_marker and boundary == len(body):
        return None
    window = body[:boundary]
    if rule.select == "last":
        found = None
        for found in rule.pattern.finditer(window):
            pass
        m = found
    else:
        m = rule.pattern.search(window)
    if m is None:
        return None
    value = (m.group(1) or "").strip()
    return value or None


def extract_amount(
    provider: ProviderTag,
    tiers: Sequence[PatternRule],
    body: str,
) -> tuple[str | None, Decimal | None]:
    """Run an amount cascade; return ``(raw_text, value)`` of the winning tier."""

    for rule in tiers:
        text = _search(rule, body)
        if text is None:
            continue
        value = normalize_amount(text, provider)
        if value is None:
            _logger.debug("Tier %s matched %r but it did not normalize", rule.name, text)
            continue
        return text, value
    return None, None


def extract_counterparty(tiers: Sequence[PatternRule], body: str) -> str | None:
    """Run a counterparty cascade; labels with digits or masks are redacted."""

    for rule in tiers:
        raw = _search(rule, body)
        if raw is None:
            continue
        label = raw.strip(_LABEL_TRIM)
        if label and needs_formatting(label):
            label = format_counterparty(label).strip(_LABEL_TRIM)
        if label:
            return label
    return None


def extract_fields(
    provider: ProviderTag,
    template: MessageTemplate,
    body: str | None,
    rules: RuleSet | None = None,
    known_amount: Decimal | None = None,
) -> FieldExtraction:
    """Extract amount and counterparty from ``body`` for a matched template.

    ``known_amount`` is the amount already stored for the record (repair only);
    it is returned when every amount tier misses. Unknown providers yield an
    all-absent result.
    """

    if provider is ProviderTag.UNKNOWN or not body:
        return FieldExtraction(amount=known_amount)

    rs = rules or resolve_rule_set()
    text = nfc(body)
    field_rules = rs.field_rules(provider, template)

    amount_text, amount = extract_amount(provider, field_rules.amount, text)
    if amount is None:
        _logger.debug("No amount for %s/%s", provider.value, template.value)
        amount = known_amount

    counterparty = extract_counterparty(
        (*field_rules.counterparty, *rs.counterparty_fallback), text
    )
    return FieldExtraction(amount_text=amount_text, amount=amount, counterparty=counterparty)


def extract_reference(body: str | None) -> str | None:
    """Return the provider transaction reference carried by ``body``, if any.

    >>> extract_reference("Vous avez recu 5000F de Awa. Ref: MP2301.1234.A12345.")
    'MP2301.1234.A12345'
    """

    if not body:
        return None
    m = _REFERENCE_RE.search(nfc(body))
    return m.group(1) if m else None


__all__ = [
    "find_section_boundary",
    "extract_reference",
    "extract_amount",
    "extract_counterparty",
    "extract_fields",
]
