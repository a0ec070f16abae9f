# ruff: noqa: I001
"""Persistence integration for kufay.

Functions here write captured notifications and their extracted fields to the
shared database owned by ``libs/db``. They rely on the SQLAlchemy ORM model
``db.models.notifications.KfNotification`` and a session provided by
``db.client``. Commits are left to the caller (``session_scope``).

Scope:
- Insert a new record per accepted notification (unread, not deleted).
- Read every stored record for the repair pass and apply targeted amount
  updates.
- Trash lifecycle: soft delete with a purge date, restore, purge.
- Read flag and incoming totals for summaries.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import delete, func, select, update
from sqlalchemy.orm import Session

from db.models.notifications import KfNotification
from .logging_setup import get_logger
from .models import ExtractedTransaction, RawNotification, RepairUpdate, StoredRecord
from .repair import plan_repair
from .rules import RuleSet

_logger = get_logger("kufay.persistence")

DAY_MS: int = 24 * 60 * 60 * 1000
DEFAULT_RETENTION_DAYS: int = 30


def _now() -> datetime:
    return datetime.now(UTC)


def save_transaction(
    session: Session,
    raw: RawNotification,
    extracted: ExtractedTransaction,
    *,
    reference: str | None = None,
) -> int:
    """Insert one record and return its new identity (flushes, no commit)."""

    now = _now()
    row = KfNotification(
        sender_id=raw.sender_id,
        title=raw.title or "",
        body=raw.body or "",
        received_at_ms=raw.received_at_ms,
        amount=extracted.amount,
        amount_text=extracted.amount_raw_text,
        currency_label=extracted.currency_label,
        counterparty_label=extracted.counterparty_label,
        is_incoming=extracted.is_incoming,
        provider_tag=extracted.provider_tag.value,
        template_id=extracted.template_id.value,
        is_recognized=extracted.is_recognized_pattern,
        display_tag=extracted.display_tag,
        reference=reference,
        is_read=False,
        is_deleted=False,
        deletion_at_ms=None,
        created_at=now,
        updated_at=now,
    )
    session.add(row)
    session.flush()
    return int(row.id)


def get_notification(session: Session, notification_id: int) -> KfNotification | None:
    return session.get(KfNotification, notification_id)


def _to_stored(row: KfNotification) -> StoredRecord:
    return StoredRecord(
        id=int(row.id),
        sender_id=row.sender_id,
        title=row.title,
        body=row.body,
        amount=row.amount,
        amount_text=row.amount_text,
    )


def load_repair_candidates(session: Session) -> list[StoredRecord]:
    """Return every stored record (trashed included) in identity order."""

    rows = session.execute(select(KfNotification).order_by(KfNotification.id)).scalars()
    return [_to_stored(r) for r in rows]


def apply_repairs(session: Session, updates: Iterable[RepairUpdate]) -> int:
    """Apply targeted amount updates; return the number of rows changed.

    Only ``amount``, ``amount_text`` and ``updated_at`` are written.
    """

    changed = 0
    now = _now()
    for u in updates:
        result = session.execute(
            update(KfNotification)
            .where(KfNotification.id == u.id)
            .values(amount=u.new_amount, amount_text=u.new_amount_text, updated_at=now)
        )
        changed += int(result.rowcount or 0)
    if changed:
        _logger.info("Applied %d amount repair(s)", changed)
    return changed


def move_to_trash(
    session: Session,
    notification_id: int,
    now_ms: int,
    retention_days: int = DEFAULT_RETENTION_DAYS,
) -> bool:
    """Soft-delete a record; it becomes purgeable ``retention_days`` after ``now_ms``."""

    if retention_days < 0:
        raise ValueError(f"retention_days must be >= 0, got {retention_days}")
    result = session.execute(
        update(KfNotification)
        .where(KfNotification.id == notification_id)
        .values(
            is_deleted=True,
            deletion_at_ms=now_ms + retention_days * DAY_MS,
            updated_at=_now(),
        )
    )
    return bool(result.rowcount)


def restore_from_trash(
    session: Session,
    notification_id: int,
    rules: RuleSet | None = None,
) -> bool:
    """Undo a soft delete and re-run the amount repair for that record."""

    row = session.get(KfNotification, notification_id)
    if row is None:
        return False
    row.is_deleted = False
    row.deletion_at_ms = None
    row.updated_at = _now()
    session.flush()

    fix = plan_repair(_to_stored(row), rules)
    if fix is not None:
        _logger.info(
            "Restored record %s with repaired amount %s -> %s",
            fix.id,
            fix.old_amount,
            fix.new_amount,
        )
        apply_repairs(session, [fix])
    return True


def purge_expired(session: Session, now_ms: int) -> int:
    """Permanently delete trashed records whose purge date has passed."""

    result = session.execute(
        delete(KfNotification).where(
            KfNotification.is_deleted.is_(True),
            KfNotification.deletion_at_ms.is_not(None),
            KfNotification.deletion_at_ms <= now_ms,
        )
    )
    purged = int(result.rowcount or 0)
    if purged:
        _logger.info("Purged %d expired record(s) from trash", purged)
    return purged


def mark_as_read(session: Session, notification_id: int, is_read: bool = True) -> bool:
    result = session.execute(
        update(KfNotification)
        .where(KfNotification.id == notification_id)
        .values(is_read=is_read, updated_at=_now())
    )
    return bool(result.rowcount)


def total_incoming_amount(
    session: Session,
    *,
    start_ms: int | None = None,
    end_ms: int | None = None,
) -> Decimal:
    """Sum of incoming amounts over live records, optionally within a time range."""

    stmt = select(func.coalesce(func.sum(KfNotification.amount), 0)).where(
        KfNotification.is_incoming.is_(True),
        KfNotification.is_deleted.is_(False),
    )
    if start_ms is not None:
        stmt = stmt.where(KfNotification.received_at_ms >= start_ms)
    if end_ms is not None:
        stmt = stmt.where(KfNotification.received_at_ms <= end_ms)
    total = session.execute(stmt).scalar_one()
    return Decimal(str(total))


def incoming_totals_by_tag(session: Session) -> dict[str, Decimal]:
    """Incoming totals over live records grouped by display tag."""

    tag = func.coalesce(KfNotification.display_tag, KfNotification.provider_tag)
    stmt = (
        select(tag, func.sum(KfNotification.amount))
        .where(
            KfNotification.is_incoming.is_(True),
            KfNotification.is_deleted.is_(False),
            KfNotification.amount.is_not(None),
        )
        .group_by(tag)
        .order_by(tag)
    )
    return {str(k): Decimal(str(v)) for k, v in session.execute(stmt).all()}


__all__ = [
    "DAY_MS",
    "DEFAULT_RETENTION_DAYS",
    "save_transaction",
    "get_notification",
    "load_repair_candidates",
    "apply_repairs",
    "move_to_trash",
    "restore_from_trash",
    "purge_expired",
    "mark_as_read",
    "total_incoming_amount",
    "incoming_totals_by_tag",
]
