"""Counterparty label cleanup: redaction of masked or raw phone numbers.

Providers partially mask phone numbers (``"77*****23"``), spell them out in
full (``"781234567 Diallo"``), or wrap them in parentheses after a name
(``"Fofana Cisse (78****79)"``). All variants are rendered in one redacted
form, ``"XX star YY"`` (first two and last two digits), keeping any attached
human name.

Rules, first match wins:

1. Parenthesized content: the text before ``"("`` is the name. Masked or bare
   (9+ digit) content becomes ``"<name>, XX star YY"``. When the name itself
   is the number and the parentheses hold a name, the two swap roles.
   Otherwise the parenthetical is dropped.
2. Asterisks: leading digits before the first ``*`` and trailing digits after
   the last ``*`` of the leading token become ``"XX star YY"`` followed by any
   name. Without clean digit runs, each ``*`` is spelled ``"star"``.
3. A leading run of 7+ digits becomes ``"XX star YY"`` followed by the rest.
4. Anything else is returned unchanged (trimmed).

``x``/``X`` masks between digits (``"77xxxxxxx23"``) are treated as asterisks.
"""

from __future__ import annotations

import re

_X_MASK_RE = re.compile(r"(?<=\d)[xX]{2,}(?=\d)")
_LEADING_DIGITS_RE = re.compile(r"^(\d+)\*+")
_TRAILING_DIGITS_RE = re.compile(r"\*+(\d+)$")
_BARE_PHONE_RE = re.compile(r"^\d{9,}$")
_LEADING_NUMBER_RE = re.compile(r"^(\d{7,})(.*)$", re.DOTALL)


def _redact(first_digits: str, last_digits: str) -> str:
    return f"{first_digits[:2]} star {last_digits[-2:]}"


def _collapse(s: str) -> str:
    return " ".join(s.split())


def _join_name(name: str, redacted: str) -> str:
    return f"{name}, {redacted}" if name else redacted


def _looks_like_number(token: str) -> bool:
    return "*" in token or bool(_LEADING_NUMBER_RE.match(token))


def _format_masked(text: str) -> str:
    token, _, tail = text.partition(" ")
    name_part = f" {_collapse(tail)}" if tail.strip() else ""
    first = _LEADING_DIGITS_RE.search(token)
    last = _TRAILING_DIGITS_RE.search(token)
    if first and last:
        return f"{_redact(first.group(1), last.group(1))}{name_part}"
    return _collapse(text.replace("*", " star "))


def _format_leading_number(text: str) -> str:
    m = _LEADING_NUMBER_RE.match(text)
    if m is None:
        return text
    number, rest = m.group(1), _collapse(m.group(2))
    return f"{_redact(number, number)}{' ' + rest if rest else ''}"


def _format_unparenthesized(text: str) -> str:
    if "*" in text:
        return _format_masked(text)
    if _LEADING_NUMBER_RE.match(text):
        return _format_leading_number(text)
    return text


def _format_parenthesized(text: str) -> str:
    before, _, after = text.partition("(")
    name = _collapse(before)
    content = _collapse(after.replace(")", ""))

    if "*" in content:
        first = _LEADING_DIGITS_RE.search(content)
        last = _TRAILING_DIGITS_RE.search(content)
        if first and last:
            return _join_name(name, _redact(first.group(1), last.group(1)))
    elif _BARE_PHONE_RE.match(content):
        return _join_name(name, _redact(content, content))

    if content and name and _looks_like_number(name):
        return _join_name(content, _format_unparenthesized(name))
    return name


def format_counterparty(label: str) -> str:
    """Return a display-safe counterparty label (see module docstring)."""

    text = _X_MASK_RE.sub("*", label.strip())
    if "(" in text:
        return _format_parenthesized(text)
    return _format_unparenthesized(text)


def needs_formatting(label: str) -> bool:
    """Whether a raw label carries digits, masks or parentheses."""

    return any(ch.isdigit() for ch in label) or "*" in label or "(" in label


__all__ = ["format_counterparty", "needs_formatting"]
