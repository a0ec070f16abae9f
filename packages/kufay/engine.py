"""Single-notification extraction pipeline.

``extract_transaction`` composes the pure stages in order: provider
classification, template matching, field extraction (with amount
normalization and counterparty redaction) and direction classification. It
never raises for malformed notification text; absent fields are ``None``.
"""

from __future__ import annotations

from .extraction import extract_fields
from .logging_setup import get_logger
from .models import ExtractedTransaction, MessageTemplate, ProviderTag, RawNotification
from .providers import classify_direction, classify_provider, currency_label, nfc
from .rules import RuleSet, resolve_rule_set
from .templates import match_template

_logger = get_logger("kufay.engine")


def _unknown_result() -> ExtractedTransaction:
    return ExtractedTransaction(
        amount=None,
        amount_raw_text=None,
        currency_label=None,
        counterparty_label=None,
        is_incoming=False,
        provider_tag=ProviderTag.UNKNOWN,
        template_id=MessageTemplate.UNRECOGNIZED,
        is_recognized_pattern=False,
        display_tag=None,
    )


def extract_transaction(raw: RawNotification, rules: RuleSet | None = None) -> ExtractedTransaction:
    """Derive an :class:`ExtractedTransaction` from one raw notification.

    Deterministic: the same ``raw`` and rule table always yield an equal result.
    """

    title = nfc(raw.title or "")
    body = nfc(raw.body or "")

    provider = classify_provider(raw.sender_id, title)
    if provider is ProviderTag.UNKNOWN:
        _logger.debug("Unknown provider for sender %r", raw.sender_id)
        return _unknown_result()

    rs = rules or resolve_rule_set()
    template = match_template(provider, title, body, rs)
    fields = extract_fields(provider, template, body, rs)
    direction = classify_direction(provider, title, body)

    if template is MessageTemplate.UNRECOGNIZED:
        _logger.debug("Unrecognized %s notification (title=%r)", provider.value, title)

    return ExtractedTransaction(
        amount=fields.amount,
        amount_raw_text=fields.amount_text,
        currency_label=currency_label(provider),
        counterparty_label=fields.counterparty,
        is_incoming=direction.is_incoming,
        provider_tag=provider,
        template_id=template,
        is_recognized_pattern=template is not MessageTemplate.UNRECOGNIZED,
        display_tag=direction.display_tag,
    )


__all__ = ["extract_transaction"]
