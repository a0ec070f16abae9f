"""Ingest utilities shared by CLI commands.

Currently exposes a single helper to load raw notifications from a JSON Lines
export (one object per line with ``senderId``, ``title``, ``body`` and
``receivedAtMillis``). Blank lines are skipped; any malformed line aborts the
load with a ``ValueError`` naming the line.
"""

from __future__ import annotations

import json
from os import PathLike
from pathlib import Path

from pydantic import ValidationError

from ..models import RawNotification, RawNotificationIn


def load_notifications_from_jsonl(path: str | PathLike[str]) -> list[RawNotification]:
    """Read and validate a JSON Lines notification export."""

    p = Path(path)
    items: list[RawNotification] = []
    with p.open(encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                payload = json.loads(line)
            except json.JSONDecodeError as exc:
                raise ValueError(f"{p}:{lineno}: invalid JSON: {exc.msg}") from exc
            try:
                items.append(RawNotificationIn.model_validate(payload).to_domain())
            except ValidationError as exc:
                raise ValueError(f"{p}:{lineno}: invalid notification: {exc}") from exc
    return items


__all__ = ["load_notifications_from_jsonl"]
