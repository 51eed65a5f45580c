import math

import pytest

from flowi_ledger.errors import InvalidRate, ValidationError
from flowi_ledger.models import Currency, MonetaryAmount
from flowi_ledger.services import currency


def test_same_currency_is_identity_without_rate():
    assert currency.convert(12.5, 'USD', 'USD', None) == 12.5
    assert currency.convert(900, Currency.VES, 'ves', None) == 900


def test_usd_to_ves_multiplies_and_back_divides():
    assert currency.convert(10, 'USD', 'VES', 36.5) == pytest.approx(365.0)
    assert currency.convert(365, 'VES', 'USD', 36.5) == pytest.approx(10.0)


@pytest.mark.parametrize('amount', [0.01, 1, 123.45, 99999.99])
@pytest.mark.parametrize('rate', [0.5, 36.5, 4012.33])
def test_round_trip_returns_original_amount(amount, rate):
    there = currency.convert(amount, 'USD', 'VES', rate)
    back = currency.convert(there, 'VES', 'USD', rate)
    assert back == pytest.approx(amount)


@pytest.mark.parametrize('bad_rate', [0, -1, -0.01, math.nan, math.inf, None, True, 'abc'])
def test_invalid_rate_rejected(bad_rate):
    with pytest.raises(InvalidRate):
        currency.convert(10, 'USD', 'VES', bad_rate)


def test_numeric_string_rate_accepted():
    assert currency.validate_rate('36.5') == 36.5


def test_unknown_currency_is_a_validation_error():
    with pytest.raises(ValidationError) as exc:
        currency.convert(10, 'USD', 'EUR', 36.5)
    assert exc.value.field == 'currency'


def test_format_currency_usd_and_ves():
    assert currency.format_currency(1234.56, 'USD') == '$1,234.56'
    assert currency.format_currency(1234.56, 'VES') == 'Bs. 1.234,56'
    assert currency.format_currency(-5, 'USD') == '-$5.00'
    assert currency.format_currency(0, 'VES') == 'Bs. 0,00'


def test_round_money_half_up():
    assert currency.round_money(2.675) == 2.68
    assert currency.round_money(1.005) == 1.01


def test_currency_symbol():
    assert currency.currency_symbol('usd') == '$'
    assert currency.currency_symbol('VES') == 'Bs.'


def test_local_price_prefers_explicit_ves_price():
    assert currency.local_price(10, 36.5) == pytest.approx(365.0)
    assert currency.local_price(10, 36.5, price_ves=400) == 400
    assert currency.local_price(10, None, price_ves=400) == 400


def test_local_price_without_rate_fails():
    with pytest.raises(InvalidRate):
        currency.local_price(10, None)


def test_monetary_amount_keeps_its_currency():
    price = MonetaryAmount(12.5, Currency.VES)

    assert price.to_dict() == {'amount': 12.5, 'currency': 'VES'}
    with pytest.raises(Exception):
        price.amount = 1
