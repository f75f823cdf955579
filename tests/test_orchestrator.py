import asyncio

import pytest

from zetabracket.errors import OrderBookUnavailable, SubmissionFailed
from zetabracket.l2_services.settings_store import SETTINGS_KEY
from zetabracket.models.intent import TradeIntent
from zetabracket.orders.orchestrator import open_position_with_tpsl

from conftest import FakeExchange, FakeRedis, make_session

def test_open_long_with_limit_tp():
    ex = FakeExchange(bid=99, ask=101, balance=1000, bits=[0])
    s = make_session(ex)
    txid = asyncio.run(open_position_with_tpsl(s, TradeIntent(direction="long")))
    assert txid == "sig-1"
    main, tp, sl = ex.sent[0].instructions
    assert main.params["side"] == "bid"
    assert main.params["price"] == 101005050
    assert main.params["size"] == 79200
    assert tp.kind == "place_perp_order"
    assert tp.params["reduce_only"] is True
    assert sl.kind == "place_trigger_order"
    assert sl.params["trigger_order_bit"] == 1
    assert sl.params["trigger_direction"] == "lte"
    assert ex.sent[0].priority_fee_micro_lamports == 1001
    assert ex.fees == [1001]

def test_open_short_uses_stored_settings():
    r = FakeRedis({SETTINGS_KEY: {"leverageMultiplier": "2"}})
    ex = FakeExchange(bid=100, ask=100.5, balance=1000)
    s = make_session(ex, redis=r)
    asyncio.run(open_position_with_tpsl(s, TradeIntent(direction="short", market="SOL")))
    main, tp, sl = ex.sent[0].instructions
    assert main.params["side"] == "ask"
    assert main.params["size"] == 20000
    assert tp.params["side"] == "bid"
    assert sl.params["trigger_direction"] == "gte"

def test_trigger_tp_mode_takes_two_slots():
    ex = FakeExchange(bits=[0])
    s = make_session(ex, env={"TAKE_PROFIT_MODE": "trigger"})
    asyncio.run(open_position_with_tpsl(s, TradeIntent(direction="long")))
    _, tp, sl = ex.sent[0].instructions
    assert tp.kind == "place_trigger_order"
    assert tp.params["trigger_order_bit"] == 1
    assert sl.params["trigger_order_bit"] == 2

def test_failed_submission_releases_slots():
    ex = FakeExchange(bits=[0], fail_sends=-1)
    sleeps = []
    s = make_session(ex, env={"SUBMIT_MAX_ATTEMPTS": "2", "SUBMIT_RETRY_DELAY_MS": "250"}, sleeps=sleeps)
    with pytest.raises(SubmissionFailed):
        asyncio.run(open_position_with_tpsl(s, TradeIntent(direction="long")))
    assert len(ex.sent) == 2
    assert sleeps == [0.25]
    assert s.slots.in_use == {0}

def test_crossed_book_places_nothing():
    ex = FakeExchange(bid=102, ask=101)
    with pytest.raises(OrderBookUnavailable):
        asyncio.run(open_position_with_tpsl(make_session(ex), TradeIntent(direction="long")))
    assert ex.sent == []
