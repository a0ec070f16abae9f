"""Declarative rule tables for template matching and field extraction.

A rule table is data, not code: an ordered list of template predicates per
provider, and an ordered cascade of amount and counterparty patterns per
``(provider, template)``. Tables are described by pydantic models (so they can
be shipped as JSON and swapped without a redeploy) and compiled once into the
immutable :class:`RuleSet` consumed by the matcher and the extractor.

Resolution order for the active table:

1. an explicit path passed to :func:`resolve_rule_set`;
2. the ``KUFAY_RULES_PATH`` environment variable;
3. the built-in default table (:data:`DEFAULT_RULES`).

Regex conventions: group 1 of every pattern is the captured value; patterns
are compiled with ``re.IGNORECASE`` only when ``ignore_case`` is set.
"""

from __future__ import annotations

import json
import os
import re
from collections.abc import Mapping
from dataclasses import dataclass
from functools import lru_cache
from os import PathLike
from pathlib import Path
from types import MappingProxyType
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .logging_setup import get_logger
from .models import PROVIDER_TEMPLATES, MessageTemplate, ProviderTag

_logger = get_logger("kufay.rules")

# Bump only when the JSON shape of a rule table changes.
SCHEMA_VERSION: int = 1

# ---------------------------------------------------------------------------
# File schema (pydantic)
# ---------------------------------------------------------------------------


class TemplateRuleSpec(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    template: MessageTemplate
    keywords: list[str] = Field(min_length=1)
    scope: Literal["title", "body"] = "title"

    @field_validator("keywords")
    @classmethod
    def _keywords_non_empty(cls, v: list[str]) -> list[str]:
        items = [k for k in v if k.strip()]
        if not items:
            raise ValueError("keywords must contain at least one non-empty phrase")
        return items


class PatternSpec(BaseModel):
    """One tier of an extraction cascade."""

    model_config = ConfigDict(extra="forbid")

    name: str
    pattern: str
    ignore_case: bool = False
    select: Literal["first", "last"] = "first"
    section_markers: list[str] = Field(default_factory=list)
    requires_marker: bool = False

    @field_validator("pattern")
    @classmethod
    def _pattern_compiles(cls, v: str) -> str:
        try:
            compiled = re.compile(v)
        except re.error as exc:
            raise ValueError(f"invalid regular expression {v!r}: {exc}") from exc
        if compiled.groups < 1:
            raise ValueError(f"pattern {v!r} must define a capturing group")
        return v

    @model_validator(mode="after")
    def _marker_requirement(self) -> PatternSpec:
        if self.requires_marker and not self.section_markers:
            raise ValueError(f"{self.name}: requires_marker needs section_markers")
        return self


class FieldRulesSpec(BaseModel):
    model_config = ConfigDict(extra="forbid")

    provider: ProviderTag
    template: MessageTemplate
    amount: list[PatternSpec] = Field(default_factory=list)
    counterparty: list[PatternSpec] = Field(default_factory=list)


class RuleSetFile(BaseModel):
    """Top-level schema for a rule table JSON file."""

    model_config = ConfigDict(extra="forbid")

    schema_version: int
    version: str
    templates: dict[ProviderTag, list[TemplateRuleSpec]]
    fields: list[FieldRulesSpec]
    counterparty_fallback: list[PatternSpec] = Field(default_factory=list)

    @field_validator("schema_version")
    @classmethod
    def _supported_schema(cls, v: int) -> int:
        if v != SCHEMA_VERSION:
            raise ValueError(f"unsupported schema_version {v}; expected {SCHEMA_VERSION}")
        return v

    @model_validator(mode="after")
    def _templates_allowed_for_provider(self) -> RuleSetFile:
        for provider, rules in self.templates.items():
            allowed = PROVIDER_TEMPLATES[provider]
            for rule in rules:
                if rule.template not in allowed:
                    raise ValueError(
                        f"template {rule.template.value!r} is not valid for provider "
                        f"{provider.value!r}"
                    )
        seen: set[tuple[ProviderTag, MessageTemplate]] = set()
        for fr in self.fields:
            if fr.template not in PROVIDER_TEMPLATES[fr.provider]:
                raise ValueError(
                    f"field rules for {fr.provider.value}/{fr.template.value}: "
                    "template is not valid for provider"
                )
            key = (fr.provider, fr.template)
            if key in seen:
                raise ValueError(f"duplicate field rules for {fr.provider.value}/{fr.template.value}")
            seen.add(key)
        return self


# ---------------------------------------------------------------------------
# Compiled, immutable rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class TemplateRule:
    template: MessageTemplate
    keywords: tuple[str, ...]
    scope: Literal["title", "body"] = "title"


@dataclass(frozen=True, slots=True)
class PatternRule:
    name: str
    pattern: re.Pattern[str]
    select: Literal["first", "last"] = "first"
    section_markers: tuple[str, ...] = ()
    requires_marker: bool = False


@dataclass(frozen=True, slots=True)
class FieldRules:
    amount: tuple[PatternRule, ...] = ()
    counterparty: tuple[PatternRule, ...] = ()


_EMPTY_FIELD_RULES = FieldRules()


@dataclass(frozen=True, slots=True)
class RuleSet:
    version: str
    templates: Mapping[ProviderTag, tuple[TemplateRule, ...]]
    fields: Mapping[tuple[ProviderTag, MessageTemplate], FieldRules]
    counterparty_fallback: tuple[PatternRule, ...] = ()

    def template_rules(self, provider: ProviderTag) -> tuple[TemplateRule, ...]:
        return self.templates.get(provider, ())

    def field_rules(self, provider: ProviderTag, template: MessageTemplate) -> FieldRules:
        return self.fields.get((provider, template), _EMPTY_FIELD_RULES)


def _compile_pattern(spec: PatternSpec) -> PatternRule:
    flags = re.IGNORECASE if spec.ignore_case else 0
    return PatternRule(
        name=spec.name,
        pattern=re.compile(spec.pattern, flags),
        select=spec.select,
        section_markers=tuple(spec.section_markers),
        requires_marker=spec.requires_marker,
    )


def compile_rule_set(spec: RuleSetFile) -> RuleSet:
    """Compile a validated rule table into an immutable :class:`RuleSet`."""

    templates = {
        provider: tuple(
            TemplateRule(template=r.template, keywords=tuple(r.keywords), scope=r.scope)
            for r in rules
        )
        for provider, rules in spec.templates.items()
    }
    fields = {
        (fr.provider, fr.template): FieldRules(
            amount=tuple(_compile_pattern(p) for p in fr.amount),
            counterparty=tuple(_compile_pattern(p) for p in fr.counterparty),
        )
        for fr in spec.fields
    }
    return RuleSet(
        version=spec.version,
        templates=MappingProxyType(templates),
        fields=MappingProxyType(fields),
        counterparty_fallback=tuple(_compile_pattern(p) for p in spec.counterparty_fallback),
    )


# ---------------------------------------------------------------------------
# Default rule table
# ---------------------------------------------------------------------------

# Section markers: amounts are only searched before the first marker found.
WALLET_MARKERS: list[str] = ["Nouveau solde", "New balance", "Solde Wave", "Frais", "Fees"]
# Zero-fee and remote receipts mention "frais" ahead of the amount.
RECEIPT_MARKERS: list[str] = ["Nouveau solde", "New balance", "Solde Wave"]
AGGREGATOR_MARKERS: list[str] = ["Nouveau solde", "Votre solde", "Solde:", "New balance", "Frais"]

# Wallet amounts: "15.500F", "15 500 F" (NBSP separators), dot as thousands separator.
_WALLET_NUM = r"\d+(?:[.,\u00a0\u202f]\d{3})*"
_WALLET_AMT = _WALLET_NUM + r"\s?F"
# Aggregator amounts: "12,500.00", comma thousands, optional fractional part.
_AGG_NUM = r"\d+(?:[,\u00a0\u202f]\d{3})*(?:\.\d+)?"
_AGG_CUR = r"\s*(?:FCFA|CFA|XOF|F)"
# Ends a free-text label: a reference token, a sentence stop, or end of text.
_LABEL_END = r"\s*(?:\bRef\b|\.(?:\s|$)|$)"
# Aggregator labels also stop before a trailing status verb or a date.
_AGG_LABEL_END = r"(?:\s+(?:effectu[ée]e?|r[ée]ussie?|le\s+\d)|" + _LABEL_END + ")"


def _p(name: str, pattern: str, **kw: Any) -> dict[str, Any]:
    return {"name": name, "pattern": pattern, **kw}


_WALLET_TRANSFER_SENT: dict[str, Any] = {
    "amount": [
        _p("sent_specific", r"Vous avez envoyé\s+(" + _WALLET_AMT + ")",
           section_markers=WALLET_MARKERS),
        _p("sent_loose", r"(?:Vous avez envoyé|envoyé)\s+(" + _WALLET_AMT + ")",
           section_markers=WALLET_MARKERS),
        _p("sent_en", r"You sent\s+(" + _WALLET_AMT + ")", ignore_case=True,
           section_markers=WALLET_MARKERS),
    ],
    "counterparty": [
        _p("sent_to", r"envoyé\s+" + _WALLET_AMT + r"\s+(?:à|a|A)\s+([^.]+)",
           section_markers=WALLET_MARKERS),
        _p("sent_to_en", r"\bTo\s+([^(.\n]+)", section_markers=WALLET_MARKERS),
        _p("sent_to_upper", r"\bA\s+([^0-9\s().;:]+(?:\s+[^0-9\s().;:]+)*)",
           section_markers=WALLET_MARKERS),
    ],
}

_WALLET_UNRECOGNIZED: dict[str, Any] = {
    "amount": [
        _p("franc_amount", r"(" + _WALLET_AMT + ")", section_markers=WALLET_MARKERS),
        _p("any_number", r"(\d+(?:[.,]\d+)*)", section_markers=WALLET_MARKERS),
    ],
    "counterparty": [],
}

_AGG_TEMPLATES: list[dict[str, Any]] = [
    {
        "template": "transfer_received",
        "scope": "body",
        "keywords": [
            "recu un transfert",
            "reçu un transfert",
            "avez recu",
            "avez reçu",
            "recu de",
            "reçu de",
        ],
    },
    {
        "template": "payment_made",
        "scope": "body",
        "keywords": ["paiement", "avez paye", "avez payé"],
    },
    {
        "template": "transfer_sent",
        "scope": "body",
        "keywords": ["avez envoye", "avez envoyé", "transfert de", "transfert vers"],
    },
    {"template": "balance_only", "scope": "body", "keywords": ["solde"]},
]

_AGG_GENERIC_AMOUNT: list[dict[str, Any]] = [
    _p("currency_amount", r"(" + _AGG_NUM + ")" + _AGG_CUR, ignore_case=True,
       section_markers=AGGREGATOR_MARKERS),
    _p("any_number", r"(" + _AGG_NUM + ")", section_markers=AGGREGATOR_MARKERS),
]


def _aggregator_fields(provider: str) -> list[dict[str, Any]]:
    return [
        {
            "provider": provider,
            "template": "transfer_received",
            "amount": [
                _p("received_transfer",
                   r"re[çc]u un transfert de\s+(" + _AGG_NUM + ")" + _AGG_CUR,
                   ignore_case=True, section_markers=AGGREGATOR_MARKERS),
                _p("received",
                   r"re[çc]u\s+(?:un\s+\w+\s+de\s+)?(" + _AGG_NUM + ")" + _AGG_CUR,
                   ignore_case=True, section_markers=AGGREGATOR_MARKERS),
                _p("received_before_verb",
                   r"(" + _AGG_NUM + ")" + _AGG_CUR + r"\s+re[çc]u\s+d[eu]\b",
                   ignore_case=True, section_markers=AGGREGATOR_MARKERS),
                *_AGG_GENERIC_AMOUNT,
            ],
            "counterparty": [
                _p("from_after_amount",
                   r"(?<=\d)\s*(?:FCFA|CFA|XOF|F)\s+d[eu]\s+(.+?)" + _AGG_LABEL_END,
                   ignore_case=True, section_markers=AGGREGATOR_MARKERS),
                _p("received_from",
                   r"re[çc]u\s+d[eu]\s+(.+?)" + _AGG_LABEL_END,
                   ignore_case=True, section_markers=AGGREGATOR_MARKERS),
                _p("from",
                   r"\bd[eu]\s+(?!\d+(?:[.,]\d+)*\s*(?:FCFA|CFA|XOF|F)\b)([^.]+?)"
                   + _AGG_LABEL_END,
                   ignore_case=True, section_markers=AGGREGATOR_MARKERS),
            ],
        },
        {
            "provider": provider,
            "template": "transfer_sent",
            "amount": [
                _p("sent",
                   r"envoy[ée]\s+(?:un transfert de\s+)?(" + _AGG_NUM + ")" + _AGG_CUR,
                   ignore_case=True, section_markers=AGGREGATOR_MARKERS),
                _p("transfer_of",
                   r"transfert de\s+(" + _AGG_NUM + ")" + _AGG_CUR,
                   ignore_case=True, section_markers=AGGREGATOR_MARKERS),
                *_AGG_GENERIC_AMOUNT,
            ],
            "counterparty": [
                _p("to_after_amount",
                   r"(?<=\d)\s*(?:FCFA|CFA|XOF|F)\s+(?:au|à|a|vers)\s+(.+?)" + _AGG_LABEL_END,
                   ignore_case=True, section_markers=AGGREGATOR_MARKERS),
                _p("to",
                   r"\b(?:au|à|vers)\s+([^.]+?)" + _AGG_LABEL_END,
                   ignore_case=True, section_markers=AGGREGATOR_MARKERS),
            ],
        },
        {
            "provider": provider,
            "template": "payment_made",
            "amount": [
                _p("paid",
                   r"pay[ée]\s+(" + _AGG_NUM + ")" + _AGG_CUR,
                   ignore_case=True, section_markers=AGGREGATOR_MARKERS),
                _p("payment_of",
                   r"paiement de\s+(" + _AGG_NUM + ")" + _AGG_CUR,
                   ignore_case=True, section_markers=AGGREGATOR_MARKERS),
                *_AGG_GENERIC_AMOUNT,
            ],
            "counterparty": [
                _p("merchant_after_amount",
                   r"(?<=\d)\s*(?:FCFA|CFA|XOF|F)\s+(?:au|à|a|chez)\s+(.+?)" + _AGG_LABEL_END,
                   ignore_case=True, section_markers=AGGREGATOR_MARKERS),
            ],
        },
        {
            "provider": provider,
            "template": "unrecognized",
            "amount": list(_AGG_GENERIC_AMOUNT),
            "counterparty": [],
        },
    ]


DEFAULT_RULES: dict[str, Any] = {
    "schema_version": SCHEMA_VERSION,
    "version": "2025.2",
    "templates": {
        "personal_wallet": [
            {"template": "payment_made", "keywords": ["Paiement réussi", "Payment successful"]},
            {
                "template": "transfer_sent",
                "keywords": ["Transfert réussi", "Transfert envoyé", "Transfer sent"],
            },
            {"template": "transfer_received", "keywords": ["Transfert reçu", "Transfer received"]},
            # English bodies under a title the table does not know.
            {"template": "transfer_received", "scope": "body", "keywords": ["You received"]},
            {"template": "transfer_sent", "scope": "body", "keywords": ["You sent"]},
            {"template": "payment_made", "scope": "body", "keywords": ["You have paid"]},
        ],
        "business_wallet": [
            {"template": "transfer_sent", "keywords": ["Transfert envoyé"]},
            {"template": "zero_fee_receipt", "keywords": ["Zéro frais"]},
            # Body tier: only consulted when no title rule matched.
            {
                "template": "zero_fee_receipt",
                "scope": "body",
                "keywords": ["sur votre encaissement de"],
            },
            {
                "template": "remote_payment_received",
                "scope": "body",
                "keywords": ["À DISTANCE reçu", "A DISTANCE reçu"],
            },
        ],
        "aggregator_a": _AGG_TEMPLATES,
        "aggregator_b": _AGG_TEMPLATES,
    },
    "fields": [
        {
            "provider": "personal_wallet",
            "template": "payment_made",
            "amount": [
                _p("paid_before_recipient",
                   r"(?:Vous avez payé|payé)\s+(" + _WALLET_AMT + r")(?=\s+à)",
                   section_markers=WALLET_MARKERS),
                _p("paid", r"(?:Vous avez payé|payé)\s+(" + _WALLET_AMT + ")",
                   section_markers=WALLET_MARKERS),
                _p("paid_en", r"You have paid\s+(" + _WALLET_AMT + ")", ignore_case=True,
                   section_markers=WALLET_MARKERS),
                _p("last_before_balance", r"(" + _WALLET_NUM + r"F?)", select="last",
                   section_markers=["Solde Wave"], requires_marker=True),
            ],
            "counterparty": [
                _p("paid_to", r"payé\s+" + _WALLET_AMT + r"\s+à\s+([^.]+)",
                   section_markers=WALLET_MARKERS),
                _p("to", r"\sà\s+([^.]+)", section_markers=WALLET_MARKERS),
                _p("paid_at_en", r"\bat\s+([^.\n]+)", section_markers=WALLET_MARKERS),
            ],
        },
        {"provider": "personal_wallet", "template": "transfer_sent", **_WALLET_TRANSFER_SENT},
        {
            "provider": "personal_wallet",
            "template": "transfer_received",
            "amount": [
                _p("received_specific", r"Vous avez reçu\s+(" + _WALLET_AMT + ")",
                   section_markers=WALLET_MARKERS),
                _p("received_loose", r"reçu\s+(" + _WALLET_AMT + ")",
                   section_markers=WALLET_MARKERS),
                _p("received_en", r"You received\s+(" + _WALLET_AMT + ")", ignore_case=True,
                   section_markers=WALLET_MARKERS),
            ],
            "counterparty": [
                _p("received_from", r"reçu\s+" + _WALLET_AMT + r"\s+de\s+([^.]+)",
                   ignore_case=True, section_markers=WALLET_MARKERS),
                _p("from_en", r"\bFrom\s+([^(.\n]+)", section_markers=WALLET_MARKERS),
                _p("from", r"\b[dD]e\s+([^.]+)", section_markers=WALLET_MARKERS),
            ],
        },
        {"provider": "personal_wallet", "template": "unrecognized", **_WALLET_UNRECOGNIZED},
        {"provider": "business_wallet", "template": "transfer_sent", **_WALLET_TRANSFER_SENT},
        {
            "provider": "business_wallet",
            "template": "zero_fee_receipt",
            "amount": [
                _p("collection_of", r"encaissement de\s+(" + _WALLET_NUM + r"\s?F?)",
                   ignore_case=True, section_markers=RECEIPT_MARKERS),
            ],
            "counterparty": [
                _p("collected_from",
                   r"encaissement de\s+" + _WALLET_NUM + r"\s?F?\s+de\s+(.+?)"
                   r"(?:\s+le\s+\d|\.(?:\s|$)|$)",
                   ignore_case=True, section_markers=RECEIPT_MARKERS),
            ],
        },
        {
            "provider": "business_wallet",
            "template": "remote_payment_received",
            "amount": [
                _p("remote_paid", r"a payé\s+(" + _WALLET_NUM + r"\s?F?)",
                   ignore_case=True, section_markers=RECEIPT_MARKERS),
            ],
            "counterparty": [
                _p("remote_payer", r"DISTANCE re[çc]u\s*:\s*(.+?)\s+a payé",
                   ignore_case=True, section_markers=RECEIPT_MARKERS),
            ],
        },
        {"provider": "business_wallet", "template": "unrecognized", **_WALLET_UNRECOGNIZED},
        *_aggregator_fields("aggregator_a"),
        *_aggregator_fields("aggregator_b"),
    ],
    # "de"/"à" followed by a capitalized phrase, anywhere in the body.
    "counterparty_fallback": [
        _p("capitalized_after_preposition",
           r"(?:\bde|\bà|\bA)\s+([A-ZÀ-Ý][\w'’-]*(?:\s+[A-ZÀ-Ý][\w'’-]*)*)"),
    ],
}


# ---------------------------------------------------------------------------
# Loading and resolution
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def default_rule_set() -> RuleSet:
    """Return the compiled built-in rule table (built once per process)."""

    return compile_rule_set(RuleSetFile.model_validate(DEFAULT_RULES))


def parse_rule_set(data: Mapping[str, Any]) -> RuleSet:
    """Validate and compile an in-memory rule table.

    Raises ``ValueError`` (pydantic's ``ValidationError``) on schema errors.
    """

    return compile_rule_set(RuleSetFile.model_validate(dict(data)))


@lru_cache(maxsize=8)
def _load_rule_set_cached(path: str) -> RuleSet:
    p = Path(path)
    try:
        raw = json.loads(p.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ValueError(f"rule table not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise ValueError(f"rule table is not valid JSON: {path}: {exc}") from exc
    try:
        rules = parse_rule_set(raw)
    except ValidationError as exc:
        raise ValueError(f"invalid rule table {path}: {exc}") from exc
    _logger.info("Loaded rule table %s (version %s)", path, rules.version)
    return rules


def load_rule_set(path: str | PathLike[str]) -> RuleSet:
    """Load, validate and compile a rule table JSON file."""

    return _load_rule_set_cached(os.fspath(Path(path).expanduser().resolve()))


def resolve_rule_set(path: str | PathLike[str] | None = None) -> RuleSet:
    """Return the active rule table (explicit path, env override, or default)."""

    if path is not None:
        return load_rule_set(path)
    env_path = os.getenv("KUFAY_RULES_PATH")
    if env_path and env_path.strip():
        return load_rule_set(env_path.strip())
    return default_rule_set()


def dump_default_rules() -> str:
    """Serialize the built-in rule table as JSON (a starting point for edits)."""

    spec = RuleSetFile.model_validate(DEFAULT_RULES)
    return json.dumps(spec.model_dump(mode="json"), indent=2, ensure_ascii=False)


def clear_rule_cache() -> None:
    default_rule_set.cache_clear()
    _load_rule_set_cached.cache_clear()


__all__ = [
    "SCHEMA_VERSION",
    "TemplateRuleSpec",
    "PatternSpec",
    "FieldRulesSpec",
    "RuleSetFile",
    "TemplateRule",
    "PatternRule",
    "FieldRules",
    "RuleSet",
    "DEFAULT_RULES",
    "WALLET_MARKERS",
    "AGGREGATOR_MARKERS",
    "compile_rule_set",
    "default_rule_set",
    "parse_rule_set",
    "load_rule_set",
    "resolve_rule_set",
    "dump_default_rules",
    "clear_rule_cache",
]
