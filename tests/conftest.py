"""Pytest configuration for test isolation.

The engine and the CLI read their configuration from the environment
(``KUFAY_RULES_PATH``, ``KUFAY_DUPLICATE_WINDOW_MS``, ``DATABASE_URL``) and
cache the compiled rule table per process. When tests run in the same
interpreter, a variable or cached table left behind by one test would change
the behavior of the next one.

To keep tests hermetic, an autouse fixture clears those variables and the rule
cache for each test, and cached database engines are disposed afterwards.
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

# Make sure the workspace `packages/` and `libs/db/src` dirs are on sys.path so
# `kufay` and `db` are importable without an install; the repo root makes
# `tests.helpers` importable.
_ROOT = Path(__file__).resolve().parents[1]
_PATHS = [_ROOT / "packages", _ROOT / "libs" / "db" / "src", _ROOT]
sys.path[:0] = [str(p) for p in _PATHS if str(p) not in sys.path]

_ENV_VARS = (
    "DATABASE_URL",
    "KUFAY_RULES_PATH",
    "KUFAY_DUPLICATE_WINDOW_MS",
    "KUFAY_LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    """Drop environment-driven configuration and cached state around each test.

    The working directory moves to the test's temporary directory so a
    developer's ``.env`` is never picked up by the CLI.
    """

    from db.client import dispose_engines
    from kufay.rules import clear_rule_cache

    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    clear_rule_cache()
    yield
    clear_rule_cache()
    dispose_engines()
