"""Batch amount repair for previously persisted notifications.

The repair pass re-runs template matching and field extraction with the
current rule table against each stored body. When the fresh amount is present
and differs from the stored one, a :class:`RepairUpdate` is planned. Only the
amount (and its raw text) is ever rewritten; a second pass over the repaired
records plans nothing.
"""

from __future__ import annotations

from collections.abc import Collection, Iterable

from .extraction import extract_fields
from .logging_setup import get_logger
from .models import ProviderTag, RepairUpdate, StoredRecord
from .providers import classify_provider
from .rules import RuleSet, resolve_rule_set
from .templates import match_template

_logger = get_logger("kufay.repair")

# Aggregator gateways are the family with a history of mis-parsed amounts.
DEFAULT_REPAIR_PROVIDERS: frozenset[ProviderTag] = frozenset(
    {ProviderTag.AGGREGATOR_A, ProviderTag.AGGREGATOR_B}
)


def plan_repair(
    record: StoredRecord,
    rules: RuleSet | None = None,
    providers: Collection[ProviderTag] = DEFAULT_REPAIR_PROVIDERS,
) -> RepairUpdate | None:
    """Return the correction for one record, or ``None`` when it is up to date."""

    provider = classify_provider(record.sender_id, record.title)
    if provider not in providers:
        return None
    rs = rules or resolve_rule_set()
    template = match_template(provider, record.title, record.body, rs)
    fields = extract_fields(provider, template, record.body, rs, known_amount=record.amount)
    new_amount = fields.amount
    if new_amount is None or new_amount == record.amount:
        return None
    return RepairUpdate(
        id=record.id,
        old_amount=record.amount,
        new_amount=new_amount,
        new_amount_text=fields.amount_text,
    )


def plan_repairs(
    records: Iterable[StoredRecord],
    rules: RuleSet | None = None,
    providers: Collection[ProviderTag] = DEFAULT_REPAIR_PROVIDERS,
) -> list[RepairUpdate]:
    """Plan amount corrections for every record whose stored amount is stale."""

    rs = rules or resolve_rule_set()
    updates: list[RepairUpdate] = []
    for record in records:
        update = plan_repair(record, rs, providers)
        if update is not None:
            _logger.info(
                "Repair planned for record %s: %s -> %s",
                update.id,
                update.old_amount,
                update.new_amount,
            )
            updates.append(update)
    return updates


__all__ = ["DEFAULT_REPAIR_PROVIDERS", "plan_repair", "plan_repairs"]
