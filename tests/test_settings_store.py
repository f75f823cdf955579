import asyncio

import pytest

from zetabracket.errors import SettingsStoreFailure
from zetabracket.l2_services.settings_store import SETTINGS_KEY, SettingsProvider, settings_from_hash
from zetabracket.models.intent import RiskSettings

from conftest import FakeRedis

def _triple(s: RiskSettings):
    return (s.leverage_multiplier, s.take_profit_percentage, s.stop_loss_percentage)

def test_fetch_empty_store_gives_defaults():
    s = asyncio.run(SettingsProvider(FakeRedis()).fetch())
    assert _triple(s) == (8, 0.0018, 0.022)

def test_fetch_unreachable_store_gives_defaults():
    s = asyncio.run(SettingsProvider(FakeRedis(fail=True)).fetch())
    assert _triple(s) == (8, 0.0018, 0.022)

def test_fetch_parses_stored_values():
    r = FakeRedis({SETTINGS_KEY: {"leverageMultiplier": "5", "takeProfitPercentage": "0.003"}})
    s = asyncio.run(SettingsProvider(r).fetch())
    assert _triple(s) == (5.0, 0.003, 0.022)

@pytest.mark.parametrize("raw", ["0", "abc", "nan", "", None])
def test_bad_values_fall_back(raw):
    s = settings_from_hash({"leverageMultiplier": raw})
    assert s.leverage_multiplier == 8.0

def test_update_round_trip():
    r = FakeRedis()
    sp = SettingsProvider(r)
    s = asyncio.run(sp.update({"leverageMultiplier": 3, "stop_loss_percentage": 0.05}))
    assert _triple(s) == (3.0, 0.0018, 0.05)
    assert r.data[SETTINGS_KEY] == {"leverageMultiplier": "3", "stopLossPercentage": "0.05"}
    assert _triple(asyncio.run(sp.fetch())) == (3.0, 0.0018, 0.05)

def test_update_from_model():
    sp = SettingsProvider(FakeRedis())
    s = asyncio.run(sp.update(RiskSettings(leverage_multiplier=2)))
    assert s.leverage_multiplier == 2.0

def test_update_unknown_key():
    with pytest.raises(KeyError):
        asyncio.run(SettingsProvider(FakeRedis()).update({"maxDrawdown": 1}))

def test_update_write_failure():
    with pytest.raises(SettingsStoreFailure):
        asyncio.run(SettingsProvider(FakeRedis(fail=True)).update({"leverageMultiplier": 3}))

def test_close():
    r = FakeRedis()
    asyncio.run(SettingsProvider(r).close())
    assert r.closed
