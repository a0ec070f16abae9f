from __future__ import annotations

import copy
import json
from pathlib import Path

import pytest

from kufay.models import MessageTemplate, ProviderTag
from kufay.rules import (
    DEFAULT_RULES,
    default_rule_set,
    dump_default_rules,
    load_rule_set,
    parse_rule_set,
    resolve_rule_set,
)
from kufay.templates import match_template


def _write(tmp_path: Path, data: dict, name: str = "rules.json") -> Path:
    path = tmp_path / name
    path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
    return path


def test_default_rule_set_is_built_once():
    assert default_rule_set() is default_rule_set()
    assert resolve_rule_set() is default_rule_set()


def test_dumped_default_rules_load_back(tmp_path: Path):
    data = json.loads(dump_default_rules())
    assert data["schema_version"] == 1
    assert data["version"] == "2025.2"

    rules = load_rule_set(_write(tmp_path, data))
    assert rules.version == "2025.2"
    assert len(rules.template_rules(ProviderTag.PERSONAL_WALLET)) == len(
        default_rule_set().template_rules(ProviderTag.PERSONAL_WALLET)
    )


def test_field_rules_for_unlisted_template_are_empty():
    fr = default_rule_set().field_rules(ProviderTag.AGGREGATOR_A, MessageTemplate.BALANCE_ONLY)
    assert not fr.amount
    assert not fr.counterparty


def test_bad_regex_is_rejected():
    data = copy.deepcopy(DEFAULT_RULES)
    data["counterparty_fallback"] = [{"name": "broken", "pattern": "([a-z"}]
    with pytest.raises(ValueError):
        parse_rule_set(data)


def test_pattern_without_capture_group_is_rejected():
    data = copy.deepcopy(DEFAULT_RULES)
    data["counterparty_fallback"] = [{"name": "no_group", "pattern": r"\d+"}]
    with pytest.raises(ValueError):
        parse_rule_set(data)


def test_template_not_valid_for_provider_is_rejected():
    data = copy.deepcopy(DEFAULT_RULES)
    data["templates"]["personal_wallet"].append(
        {"template": "zero_fee_receipt", "keywords": ["Zéro frais"]}
    )
    with pytest.raises(ValueError):
        parse_rule_set(data)


def test_unsupported_schema_version_is_rejected():
    data = copy.deepcopy(DEFAULT_RULES)
    data["schema_version"] = 2
    with pytest.raises(ValueError):
        parse_rule_set(data)


def test_missing_or_malformed_file_raises_value_error(tmp_path: Path):
    with pytest.raises(ValueError, match="not found"):
        load_rule_set(tmp_path / "missing.json")

    bad = tmp_path / "bad.json"
    bad.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError, match="not valid JSON"):
        load_rule_set(bad)


def test_custom_title_rule_changes_matching(tmp_path: Path):
    data = copy.deepcopy(DEFAULT_RULES)
    data["version"] = "custom-1"
    data["templates"]["personal_wallet"].insert(
        0, {"template": "transfer_received", "keywords": ["Cadeau reçu"]}
    )
    rules = parse_rule_set(data)

    assert match_template(ProviderTag.PERSONAL_WALLET, "Cadeau reçu", "") is (
        MessageTemplate.UNRECOGNIZED
    )
    assert match_template(ProviderTag.PERSONAL_WALLET, "Cadeau reçu", "", rules) is (
        MessageTemplate.TRANSFER_RECEIVED
    )


def test_env_override_selects_rule_file(tmp_path: Path, monkeypatch):
    data = copy.deepcopy(DEFAULT_RULES)
    data["version"] = "from-env"
    path = _write(tmp_path, data)

    monkeypatch.setenv("KUFAY_RULES_PATH", str(path))
    assert resolve_rule_set().version == "from-env"
    # An explicit path still wins over the environment
    other = copy.deepcopy(DEFAULT_RULES)
    other["version"] = "explicit"
    assert resolve_rule_set(_write(tmp_path, other, "other.json")).version == "explicit"
