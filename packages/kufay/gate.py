"""Listener-side allow-list for captured notifications."""

from __future__ import annotations

from .providers import (
    AGGREGATOR_KEYWORDS,
    AGGREGATOR_SENDER,
    KNOWN_SENDERS,
    contains_ci,
)

# Airtime top-ups and counter summaries share the aggregator channel but are
# not money movements.
AIRTIME_PHRASES: tuple[str, ...] = (
    "credit telephonique",
    "TXN Id:RC",
    "#123#",
    "detail des compteurs",
)


def rejection_reason(sender_id: str | None, title: str | None, body: str | None) -> str | None:
    """Return why a notification is dropped, or ``None`` when it is accepted."""

    sender = (sender_id or "").strip()
    if sender not in KNOWN_SENDERS:
        return "unknown sender"
    if sender == AGGREGATOR_SENDER:
        if not any(contains_ci(title, kw) for kw in AGGREGATOR_KEYWORDS):
            return "aggregator title without brand keyword"
        if any(contains_ci(body, phrase) for phrase in AIRTIME_PHRASES):
            return "airtime or counter notice"
    return None


def accepts_notification(sender_id: str | None, title: str | None, body: str | None) -> bool:
    return rejection_reason(sender_id, title, body) is None


__all__ = ["AIRTIME_PHRASES", "accepts_notification", "rejection_reason"]
