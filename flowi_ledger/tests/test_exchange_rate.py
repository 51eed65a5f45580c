import dataclasses
import os

import pytest

from flowi_ledger.errors import InvalidRate
from flowi_ledger.repositories import SettingsRepository
from flowi_ledger.services import ExchangeRateManager

from conftest import utc


def test_starts_without_rate():
    manager = ExchangeRateManager()
    assert manager.get_current_rate() is None
    assert manager.current_value() is None
    assert manager.get_history() == []


def test_set_rate_replaces_current_and_keeps_history():
    manager = ExchangeRateManager()
    manager.set_rate(30, now=utc(2024, 1, 1))
    rate = manager.set_rate('36.5', source='bcv', now=utc(2024, 1, 2))

    assert rate.usd_to_local == 36.5
    assert rate.source == 'bcv'
    assert rate.captured_at.startswith('2024-01-02')
    assert manager.get_current_rate() == rate
    assert [r.usd_to_local for r in manager.get_history()] == [30.0]


def test_rates_are_immutable():
    manager = ExchangeRateManager()
    rate = manager.set_rate(36.5)
    with pytest.raises(dataclasses.FrozenInstanceError):
        rate.usd_to_local = 1


@pytest.mark.parametrize('bad', [0, -3, float('nan'), float('inf'), None, 'x', False])
def test_invalid_rate_keeps_previous_and_notifies_nobody(bad):
    manager = ExchangeRateManager()
    manager.set_rate(36.5)
    received = []
    manager.subscribe(received.append)

    with pytest.raises(InvalidRate):
        manager.set_rate(bad)

    assert manager.get_current_rate().usd_to_local == 36.5
    assert received == []


def test_subscribers_notified_in_order():
    manager = ExchangeRateManager()
    calls = []
    manager.subscribe(lambda rate: calls.append(('a', rate.usd_to_local)))
    manager.subscribe(lambda rate: calls.append(('b', rate.usd_to_local)))

    manager.set_rate(40)

    assert calls == [('a', 40.0), ('b', 40.0)]


def test_unsubscribe_stops_notifications():
    manager = ExchangeRateManager()
    received = []
    unsubscribe = manager.subscribe(received.append)
    manager.set_rate(10)
    unsubscribe()
    manager.set_rate(20)

    assert [r.usd_to_local for r in received] == [10.0]


def test_failing_subscriber_does_not_block_others():
    manager = ExchangeRateManager()
    received = []

    def broken(rate):
        raise RuntimeError('boom')

    manager.subscribe(broken)
    manager.subscribe(received.append)
    manager.set_rate(36.5)

    assert len(received) == 1


def test_convert_uses_current_rate_unless_explicit():
    manager = ExchangeRateManager()
    with pytest.raises(InvalidRate):
        manager.convert(10, 'USD', 'VES')
    assert manager.convert(10, 'USD', 'USD') == 10

    manager.set_rate(36.5)
    assert manager.convert(10, 'USD', 'VES') == pytest.approx(365.0)
    assert manager.convert(10, 'USD', 'VES', rate=40) == pytest.approx(400.0)


def test_rate_persists_across_managers(tmp_path):
    repo = SettingsRepository(str(tmp_path))
    first = ExchangeRateManager(repo)
    first.set_rate(30)
    first.set_rate(36.5)

    second = ExchangeRateManager(SettingsRepository(str(tmp_path)))
    assert second.get_current_rate().usd_to_local == 36.5
    assert [r.usd_to_local for r in second.get_history()] == [30.0]


def test_history_is_bounded(monkeypatch):
    monkeypatch.setattr(ExchangeRateManager, 'MAX_HISTORY', 3)
    manager = ExchangeRateManager()
    for value in range(1, 7):
        manager.set_rate(value)

    assert [r.usd_to_local for r in manager.get_history()] == [5.0, 4.0, 3.0]


def test_corrupt_settings_start_without_rate(tmp_path):
    path = os.path.join(str(tmp_path), 'settings.json')
    with open(path, 'w', encoding='utf-8') as f:
        f.write('{not json')

    manager = ExchangeRateManager(SettingsRepository(str(tmp_path)))

    assert manager.get_current_rate() is None
    assert manager.last_error is not None
    assert any(name.startswith('settings.json.corrupt-') for name in os.listdir(str(tmp_path)))
