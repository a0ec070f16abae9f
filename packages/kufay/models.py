"""Data models for the notification extraction engine.

Domain records are frozen ``dataclass`` instances: the engine is a set of pure
functions and never mutates what it receives or returns. The pydantic models at
the bottom of this module validate JSON inputs (notification exports) at the
edge before they are converted to domain records.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Closed sets
# ---------------------------------------------------------------------------


class ProviderTag(StrEnum):
    """Notification source, recomputed from ``(sender_id, title)`` on demand."""

    PERSONAL_WALLET = "personal_wallet"
    BUSINESS_WALLET = "business_wallet"
    AGGREGATOR_A = "aggregator_a"
    AGGREGATOR_B = "aggregator_b"
    UNKNOWN = "unknown"

    @property
    def is_wallet(self) -> bool:
        return self in (ProviderTag.PERSONAL_WALLET, ProviderTag.BUSINESS_WALLET)

    @property
    def is_aggregator(self) -> bool:
        return self in (ProviderTag.AGGREGATOR_A, ProviderTag.AGGREGATOR_B)


class MessageTemplate(StrEnum):
    """Recognized message shapes. Not every provider uses every template."""

    PAYMENT_MADE = "payment_made"
    TRANSFER_SENT = "transfer_sent"
    TRANSFER_RECEIVED = "transfer_received"
    ZERO_FEE_RECEIPT = "zero_fee_receipt"
    REMOTE_PAYMENT_RECEIVED = "remote_payment_received"
    BALANCE_ONLY = "balance_only"
    UNRECOGNIZED = "unrecognized"


# Templates each provider can resolve to (``UNRECOGNIZED`` is always allowed).
PROVIDER_TEMPLATES: dict[ProviderTag, frozenset[MessageTemplate]] = {
    ProviderTag.PERSONAL_WALLET: frozenset(
        {
            MessageTemplate.PAYMENT_MADE,
            MessageTemplate.TRANSFER_SENT,
            MessageTemplate.TRANSFER_RECEIVED,
            MessageTemplate.UNRECOGNIZED,
        }
    ),
    ProviderTag.BUSINESS_WALLET: frozenset(
        {
            MessageTemplate.TRANSFER_SENT,
            MessageTemplate.ZERO_FEE_RECEIPT,
            MessageTemplate.REMOTE_PAYMENT_RECEIVED,
            MessageTemplate.UNRECOGNIZED,
        }
    ),
    ProviderTag.AGGREGATOR_A: frozenset(
        {
            MessageTemplate.TRANSFER_SENT,
            MessageTemplate.PAYMENT_MADE,
            MessageTemplate.TRANSFER_RECEIVED,
            MessageTemplate.BALANCE_ONLY,
            MessageTemplate.UNRECOGNIZED,
        }
    ),
    ProviderTag.AGGREGATOR_B: frozenset(
        {
            MessageTemplate.TRANSFER_SENT,
            MessageTemplate.PAYMENT_MADE,
            MessageTemplate.TRANSFER_RECEIVED,
            MessageTemplate.BALANCE_ONLY,
            MessageTemplate.UNRECOGNIZED,
        }
    ),
    ProviderTag.UNKNOWN: frozenset({MessageTemplate.UNRECOGNIZED}),
}


# ---------------------------------------------------------------------------
# Engine input/output
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class RawNotification:
    """A captured notification as handed over by the OS listener."""

    sender_id: str
    title: str
    body: str
    received_at_ms: int


@dataclass(frozen=True, slots=True)
class FieldExtraction:
    """Result of the field extractor for one body text.

    Every field may be ``None``; absence is a valid outcome, not an error.
    """

    amount_text: str | None = None
    amount: Decimal | None = None
    counterparty: str | None = None


@dataclass(frozen=True, slots=True)
class Direction:
    is_incoming: bool
    display_tag: str | None


@dataclass(frozen=True, slots=True)
class ExtractedTransaction:
    """Structured financial event derived from a single notification.

    ``amount`` is never negative; ``currency_label`` is ``"Franc CFA"`` for the
    four known providers and ``None`` otherwise. ``is_recognized_pattern`` is
    ``False`` exactly when ``template_id`` is ``UNRECOGNIZED``.
    """

    amount: Decimal | None
    amount_raw_text: str | None
    currency_label: str | None
    counterparty_label: str | None
    is_incoming: bool
    provider_tag: ProviderTag
    template_id: MessageTemplate
    is_recognized_pattern: bool
    display_tag: str | None = None


# ---------------------------------------------------------------------------
# Repair contract
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class StoredRecord:
    """Minimal view of a persisted notification used by the repair pass."""

    id: int
    sender_id: str
    title: str
    body: str
    amount: Decimal | None
    amount_text: str | None = None


@dataclass(frozen=True, slots=True)
class RepairUpdate:
    """A targeted amount correction for one persisted record."""

    id: int
    old_amount: Decimal | None
    new_amount: Decimal
    new_amount_text: str | None


# ---------------------------------------------------------------------------
# DTOs for JSON Lines notification exports
# ---------------------------------------------------------------------------


class RawNotificationIn(BaseModel):
    """Validated model of one exported notification (camelCase on the wire)."""

    model_config = ConfigDict(strict=True, extra="ignore", populate_by_name=True)

    sender_id: str = Field(alias="senderId", min_length=1)
    title: str = ""
    body: str = ""
    received_at_ms: int = Field(alias="receivedAtMillis", ge=0)

    def to_domain(self) -> RawNotification:
        return RawNotification(
            sender_id=self.sender_id,
            title=self.title,
            body=self.body,
            received_at_ms=self.received_at_ms,
        )


__all__ = [
    "ProviderTag",
    "MessageTemplate",
    "PROVIDER_TEMPLATES",
    "RawNotification",
    "FieldExtraction",
    "Direction",
    "ExtractedTransaction",
    "StoredRecord",
    "RepairUpdate",
    "RawNotificationIn",
]
