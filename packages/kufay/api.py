"""Public API and orchestration for the ``kufay`` package.

The extraction engine itself is pure (``kufay.engine``); this module wires it
to the listener gate, the duplicate guard and persistence:

- :func:`ingest_notification` handles one notification inside a caller-owned
  session (gate, extract, duplicate guard, insert).
- :func:`ingest_notifications` runs a batch in one transaction.
- :func:`run_repair` re-extracts amounts for stored records and applies the
  corrections.

Callers serialize :func:`run_repair` invocations against each other; each
batch commits in a single transaction.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import StrEnum

from sqlalchemy.orm import Session

from .duplicates import check_duplicate, resolve_window_ms
from .engine import extract_transaction
from .extraction import extract_reference
from .gate import rejection_reason
from .logging_setup import get_logger
from .models import ExtractedTransaction, RawNotification, RepairUpdate
from .persistence import apply_repairs, load_repair_candidates, save_transaction
from .repair import plan_repairs
from .rules import RuleSet, resolve_rule_set

_logger = get_logger("kufay.api")


class IngestStatus(StrEnum):
    SAVED = "saved"
    DUPLICATE = "duplicate"
    FILTERED = "filtered"


@dataclass(frozen=True, slots=True)
class IngestResult:
    status: IngestStatus
    notification_id: int | None = None
    extracted: ExtractedTransaction | None = None
    reason: str | None = None


@dataclass(slots=True)
class IngestSummary:
    saved: int = 0
    duplicates: int = 0
    filtered: int = 0
    results: list[IngestResult] = field(default_factory=list)

    @property
    def total(self) -> int:
        return self.saved + self.duplicates + self.filtered

    def add(self, result: IngestResult) -> None:
        self.results.append(result)
        if result.status is IngestStatus.SAVED:
            self.saved += 1
        elif result.status is IngestStatus.DUPLICATE:
            self.duplicates += 1
        else:
            self.filtered += 1


def ingest_notification(
    session: Session,
    raw: RawNotification,
    rules: RuleSet | None = None,
    window_ms: int | None = None,
) -> IngestResult:
    """Gate, extract, de-duplicate and store one notification (no commit)."""

    reason = rejection_reason(raw.sender_id, raw.title, raw.body)
    if reason is not None:
        _logger.debug("Filtered notification from %r: %s", raw.sender_id, reason)
        return IngestResult(status=IngestStatus.FILTERED, reason=reason)

    extracted = extract_transaction(raw, rules)
    reference = extract_reference(raw.body)
    matched = check_duplicate(
        session,
        provider=extracted.provider_tag,
        amount=extracted.amount,
        received_at_ms=raw.received_at_ms,
        reference=reference,
        window_ms=window_ms,
    )
    if matched is not None:
        _logger.info(
            "Duplicate %s notification ignored (%s, amount=%s)",
            extracted.provider_tag.value,
            matched,
            extracted.amount,
        )
        return IngestResult(
            status=IngestStatus.DUPLICATE, extracted=extracted, reason=matched
        )

    new_id = save_transaction(session, raw, extracted, reference=reference)
    return IngestResult(status=IngestStatus.SAVED, notification_id=new_id, extracted=extracted)


def ingest_notifications(
    raw_items: Iterable[RawNotification],
    *,
    database_url: str | None = None,
    rules: RuleSet | None = None,
    window_ms: int | None = None,
) -> IngestSummary:
    """Ingest a batch in arrival order within a single transaction."""

    from db.client import session_scope

    rs = rules or resolve_rule_set()
    window = resolve_window_ms(window_ms)
    summary = IngestSummary()
    with session_scope(database_url=database_url) as session:
        for raw in raw_items:
            summary.add(ingest_notification(session, raw, rs, window))
    _logger.info(
        "Ingested %d notification(s): %d saved, %d duplicate, %d filtered",
        summary.total,
        summary.saved,
        summary.duplicates,
        summary.filtered,
    )
    return summary


def run_repair(
    *,
    database_url: str | None = None,
    rules: RuleSet | None = None,
    dry_run: bool = False,
) -> list[RepairUpdate]:
    """Plan (and unless ``dry_run``, apply) amount repairs for stored records."""

    from db.client import session_scope

    rs = rules or resolve_rule_set()
    with session_scope(database_url=database_url) as session:
        updates = plan_repairs(load_repair_candidates(session), rs)
        if updates and not dry_run:
            apply_repairs(session, updates)
    return updates


__all__ = [
    "IngestStatus",
    "IngestResult",
    "IngestSummary",
    "ingest_notification",
    "ingest_notifications",
    "run_repair",
]
