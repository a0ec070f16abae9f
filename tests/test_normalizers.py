from __future__ import annotations

from decimal import Decimal

import pytest

from kufay.models import ProviderTag
from kufay.normalizers import normalize_amount, strip_currency

WALLET = ProviderTag.PERSONAL_WALLET
AGG = ProviderTag.AGGREGATOR_A


def test_aggregator_truncates_fraction_while_wallet_treats_dot_as_thousands():
    assert normalize_amount("1234.56F", AGG) == Decimal(1234)
    assert normalize_amount("1234.56F", WALLET) == Decimal(123456)


@pytest.mark.parametrize(
    ("raw", "provider", "expected"),
    [
        ("15.500F", WALLET, Decimal(15500)),
        ("15.500F", ProviderTag.BUSINESS_WALLET, Decimal(15500)),
        ("1.234.567F", WALLET, Decimal(1234567)),
        ("5 000 F", WALLET, Decimal(5000)),
        ("5 000F", WALLET, Decimal(5000)),
        ("25000", WALLET, Decimal(25000)),
        ("5000.00", AGG, Decimal(5000)),
        ("12,500.00 FCFA", AGG, Decimal(12500)),
        ("12,500", ProviderTag.AGGREGATOR_B, Decimal(12500)),
        ("5000XOF", AGG, Decimal(5000)),
        ("750 CFA", AGG, Decimal(750)),
        ("99.99", AGG, Decimal(99)),
    ],
)
def test_normalize_amount(raw, provider, expected):
    assert normalize_amount(raw, provider) == expected


@pytest.mark.parametrize("raw", [None, "", "F", "abc", "-500F", "12a4"])
def test_unparsable_text_is_absent_not_an_error(raw):
    assert normalize_amount(raw, AGG) is None
    assert normalize_amount(raw, WALLET) is None


def test_strip_currency_removes_tokens_and_whitespace():
    assert strip_currency(" 12 500 FCFA ") == "12500"
    assert strip_currency("5000xof") == "5000"
