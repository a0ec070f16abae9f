from __future__ import annotations

import logging

import pytest

from kufay.logging_setup import _parse_level, get_logger


@pytest.mark.parametrize(
    ("level", "expected"),
    [
        (logging.DEBUG, logging.DEBUG),
        ("warning", logging.WARNING),
        (" 40 ", 40),
        ("NOT_A_LEVEL", logging.INFO),
    ],
)
def test_parse_level(level, expected):
    assert _parse_level(level) == expected


def test_level_falls_back_to_environment(monkeypatch):
    monkeypatch.setenv("KUFAY_LOG_LEVEL", "debug")
    assert _parse_level(None) == logging.DEBUG
    monkeypatch.delenv("KUFAY_LOG_LEVEL")
    assert _parse_level(None) == logging.INFO


def test_get_logger_returns_child_of_package_logger():
    logger = get_logger("kufay.extraction")
    assert logger.name == "kufay.extraction"
    assert logging.getLogger("kufay").handlers
