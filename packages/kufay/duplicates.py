"""Duplicate guard for captured notifications.

Providers frequently post the same notification twice (an SMS and its
delivery echo, or a re-post after the listener reconnects). Before a new
record is stored, the caller asks this module whether an equivalent one is
already persisted:

- ``is_duplicate_by_reference``: same provider tag and same transaction
  reference, regardless of timing. Used for the provider whose bodies carry a
  unique reference (``AGGREGATOR_B``).
- ``is_duplicate``: same provider tag and same amount within ``window_ms`` of
  the notification timestamp (both directions, bounds inclusive).

Trashed records count: a re-posted notification must not resurrect a record
the user deleted.
"""

from __future__ import annotations

import os
from decimal import Decimal

from db.models.notifications import KfNotification
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .models import ProviderTag

DEFAULT_WINDOW_MS: int = 3000

# Providers whose bodies carry a unique transaction reference.
REFERENCE_PROVIDERS: frozenset[ProviderTag] = frozenset({ProviderTag.AGGREGATOR_B})


def resolve_window_ms(window_ms: int | None = None) -> int:
    """Return the duplicate window (explicit value, env override, default)."""

    if window_ms is None:
        raw = os.getenv("KUFAY_DUPLICATE_WINDOW_MS")
        if raw is None or not raw.strip():
            return DEFAULT_WINDOW_MS
        try:
            window_ms = int(raw.strip())
        except ValueError as exc:
            raise ValueError(
                f"KUFAY_DUPLICATE_WINDOW_MS must be an integer, got {raw!r}"
            ) from exc
    if window_ms < 0:
        raise ValueError(f"duplicate window must be >= 0 ms, got {window_ms}")
    return window_ms


def is_duplicate(
    session: Session,
    *,
    provider: ProviderTag,
    amount: Decimal | None,
    received_at_ms: int,
    window_ms: int | None = None,
) -> bool:
    """Whether a record with the same provider and amount exists in the window."""

    if amount is None:
        return False
    window = resolve_window_ms(window_ms)
    stmt = (
        select(func.count())
        .select_from(KfNotification)
        .where(
            KfNotification.provider_tag == provider.value,
            KfNotification.amount == amount,
            KfNotification.received_at_ms >= received_at_ms - window,
            KfNotification.received_at_ms <= received_at_ms + window,
        )
    )
    return (session.execute(stmt).scalar_one() or 0) > 0


def is_duplicate_by_reference(
    session: Session,
    *,
    provider: ProviderTag,
    reference: str | None,
) -> bool:
    """Whether a record with the same provider and transaction reference exists."""

    if not reference:
        return False
    stmt = (
        select(func.count())
        .select_from(KfNotification)
        .where(
            KfNotification.provider_tag == provider.value,
            KfNotification.reference == reference,
        )
    )
    return (session.execute(stmt).scalar_one() or 0) > 0


def check_duplicate(
    session: Session,
    *,
    provider: ProviderTag,
    amount: Decimal | None,
    received_at_ms: int,
    reference: str | None = None,
    window_ms: int | None = None,
) -> str | None:
    """Apply the full guard; return the matching rule name or ``None``.

    The reference check runs first for providers that carry references; the
    amount/time check applies to every provider.
    """

    if provider in REFERENCE_PROVIDERS and is_duplicate_by_reference(
        session, provider=provider, reference=reference
    ):
        return "reference"
    if is_duplicate(
        session,
        provider=provider,
        amount=amount,
        received_at_ms=received_at_ms,
        window_ms=window_ms,
    ):
        return "amount_window"
    return None


__all__ = [
    "DEFAULT_WINDOW_MS",
    "REFERENCE_PROVIDERS",
    "resolve_window_ms",
    "is_duplicate",
    "is_duplicate_by_reference",
    "check_duplicate",
]
