"""kufay: structured transactions from mobile-money notifications.

The pure extraction engine (provider classification, template matching, field
extraction, amount normalization, counterparty redaction and the repair
planner) is importable without a database. Storage-backed orchestration lives
in ``kufay.api`` and ``kufay.persistence``.
"""

from __future__ import annotations

from .counterparty import format_counterparty
from .engine import extract_transaction
from .extraction import extract_fields, extract_reference, find_section_boundary
from .gate import accepts_notification
from .models import (
    Direction,
    ExtractedTransaction,
    FieldExtraction,
    MessageTemplate,
    ProviderTag,
    RawNotification,
    RepairUpdate,
    StoredRecord,
)
from .normalizers import normalize_amount
from .providers import classify_direction, classify_provider
from .repair import plan_repairs
from .rules import RuleSet, default_rule_set, load_rule_set
from .templates import match_template

__all__ = [
    "Direction",
    "ExtractedTransaction",
    "FieldExtraction",
    "MessageTemplate",
    "ProviderTag",
    "RawNotification",
    "RepairUpdate",
    "RuleSet",
    "StoredRecord",
    "accepts_notification",
    "classify_direction",
    "classify_provider",
    "default_rule_set",
    "extract_fields",
    "extract_reference",
    "extract_transaction",
    "find_section_boundary",
    "format_counterparty",
    "load_rule_set",
    "match_template",
    "normalize_amount",
    "plan_repairs",
]
