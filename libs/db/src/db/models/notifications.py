from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


# ---------------------------
# Core: kf_notifications
# ---------------------------


class KfNotification(Base):
    __tablename__ = "kf_notifications"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    # Raw capture, never rewritten after insert.
    sender_id: Mapped[str] = mapped_column(String, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    body: Mapped[str] = mapped_column(Text, nullable=False, server_default=text("''"))
    received_at_ms: Mapped[int] = mapped_column(BigInteger, nullable=False)

    # Extracted fields. Only ``amount``/``amount_text`` are touched by repairs.
    amount: Mapped[Decimal | None] = mapped_column(Numeric(18, 2), nullable=True)
    amount_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    currency_label: Mapped[str | None] = mapped_column(String, nullable=True)
    counterparty_label: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_incoming: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false")
    )
    provider_tag: Mapped[str] = mapped_column(String, nullable=False)
    template_id: Mapped[str] = mapped_column(String, nullable=False)
    is_recognized: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false")
    )
    display_tag: Mapped[str | None] = mapped_column(String, nullable=True)
    # Provider transaction reference ("Ref: ...") when the body carries one.
    reference: Mapped[str | None] = mapped_column(String, nullable=True)

    # Lifecycle
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default=text("false"))
    is_deleted: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default=text("false")
    )
    # Epoch ms after which a trashed record may be purged.
    deletion_at_ms: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=text("CURRENT_TIMESTAMP")
    )

    __table_args__ = (
        CheckConstraint(
            (
                "provider_tag in ('personal_wallet','business_wallet',"
                "'aggregator_a','aggregator_b','unknown')"
            ),
            name="ck_kf_notif_provider_tag",
        ),
        CheckConstraint(
            "amount IS NULL OR amount >= 0",
            name="ck_kf_notif_amount_non_negative",
        ),
        Index("ix_kf_notif_provider_received", "provider_tag", "received_at_ms"),
        Index("ix_kf_notif_provider_reference", "provider_tag", "reference"),
    )


__all__ = [
    "Base",
    "KfNotification",
]
