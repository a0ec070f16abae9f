"""Provider and direction classification.

Both classifiers are total, pure functions over ``(sender_id, title, body)``.
All keyword tests are case-insensitive (``str.casefold``).
"""

from __future__ import annotations

import unicodedata

from .models import Direction, ProviderTag

PERSONAL_WALLET_SENDER = "com.wave.personal"
BUSINESS_WALLET_SENDER = "com.wave.business"
AGGREGATOR_SENDER = "com.google.android.apps.messaging"

KNOWN_SENDERS: frozenset[str] = frozenset(
    {PERSONAL_WALLET_SENDER, BUSINESS_WALLET_SENDER, AGGREGATOR_SENDER}
)

# Brand keywords carried by aggregator titles; mutually exclusive in practice.
AGGREGATOR_A_KEYWORD = "OrangeMoney"
AGGREGATOR_B_KEYWORD = "Mixx by Yas"
AGGREGATOR_KEYWORDS: tuple[str, ...] = (AGGREGATOR_A_KEYWORD, AGGREGATOR_B_KEYWORD)

CURRENCY_LABEL = "Franc CFA"

DISPLAY_TAGS: dict[ProviderTag, str] = {
    ProviderTag.PERSONAL_WALLET: "WAVE_PERSONAL",
    ProviderTag.BUSINESS_WALLET: "WAVE_BUSINESS",
    ProviderTag.AGGREGATOR_A: "ORANGE_MONEY",
    ProviderTag.AGGREGATOR_B: "MIXX",
}


def contains_ci(text: str | None, needle: str) -> bool:
    """Case-insensitive substring test tolerant of ``None`` haystacks.

    Both sides are NFC-normalized so decomposed accents still match.
    """

    if not text:
        return False
    return nfc(needle).casefold() in nfc(text).casefold()


def nfc(text: str) -> str:
    return unicodedata.normalize("NFC", text)


def classify_provider(sender_id: str | None, title: str | None) -> ProviderTag:
    """Map a ``(sender_id, title)`` pair to its :class:`ProviderTag`.

    The two wallet variants share a sender; a personal-wallet notification whose
    title mentions "business" belongs to the business wallet. The aggregator
    channel is split by brand keyword in the title; neither keyword means
    ``UNKNOWN``.
    """

    sender = (sender_id or "").strip()
    if sender == PERSONAL_WALLET_SENDER:
        if contains_ci(title, "business"):
            return ProviderTag.BUSINESS_WALLET
        return ProviderTag.PERSONAL_WALLET
    if sender == BUSINESS_WALLET_SENDER:
        return ProviderTag.BUSINESS_WALLET
    if sender == AGGREGATOR_SENDER:
        if contains_ci(title, AGGREGATOR_A_KEYWORD):
            return ProviderTag.AGGREGATOR_A
        if contains_ci(title, AGGREGATOR_B_KEYWORD):
            return ProviderTag.AGGREGATOR_B
    return ProviderTag.UNKNOWN


def currency_label(provider: ProviderTag) -> str | None:
    return None if provider is ProviderTag.UNKNOWN else CURRENCY_LABEL


def classify_direction(provider: ProviderTag, title: str | None, body: str | None) -> Direction:
    """Derive the incoming/outgoing flag and display tag for a notification.

    Rules by provider:
    - personal wallet: body mentions "avez reçu" or "You received";
    - business wallet: body mentions "votre encaissement de" or "reçu";
    - aggregators: body mentions "recu" or "reçu" (SMS gateways drop accents).
    """

    if provider is ProviderTag.PERSONAL_WALLET:
        incoming = contains_ci(body, "avez reçu") or contains_ci(body, "You received")
    elif provider is ProviderTag.BUSINESS_WALLET:
        incoming = contains_ci(body, "votre encaissement de") or contains_ci(body, "reçu")
    elif provider.is_aggregator:
        incoming = contains_ci(body, "recu") or contains_ci(body, "reçu")
    else:
        incoming = False
    return Direction(is_incoming=incoming, display_tag=DISPLAY_TAGS.get(provider))


__all__ = [
    "PERSONAL_WALLET_SENDER",
    "BUSINESS_WALLET_SENDER",
    "AGGREGATOR_SENDER",
    "KNOWN_SENDERS",
    "AGGREGATOR_KEYWORDS",
    "CURRENCY_LABEL",
    "DISPLAY_TAGS",
    "contains_ci",
    "nfc",
    "classify_provider",
    "classify_direction",
    "currency_label",
]
