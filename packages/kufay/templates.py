"""Template matching: ordered keyword predicates per provider."""

from __future__ import annotations

from .models import MessageTemplate, ProviderTag
from .providers import contains_ci
from .rules import RuleSet, TemplateRule, resolve_rule_set


def _rule_matches(rule: TemplateRule, title: str, body: str) -> bool:
    haystack = title if rule.scope == "title" else body
    return any(contains_ci(haystack, kw) for kw in rule.keywords)


def match_template(
    provider: ProviderTag,
    title: str | None,
    body: str | None,
    rules: RuleSet | None = None,
) -> MessageTemplate:
    """Return the first template whose predicate matches, else ``UNRECOGNIZED``.

    Title-scoped rules are evaluated before body-scoped ones regardless of their
    position in the table, so a body phrase never overrides a title match.
    """

    rs = rules or resolve_rule_set()
    title_s = title or ""
    body_s = body or ""
    table = rs.template_rules(provider)
    for scope in ("title", "body"):
        for rule in table:
            if rule.scope == scope and _rule_matches(rule, title_s, body_s):
                return rule.template
    return MessageTemplate.UNRECOGNIZED


__all__ = ["match_template"]
