from __future__ import annotations
import itertools
from typing import Any, Dict, Iterable, List, Optional

import pytest

from zetabracket.domain.types import Blockhash
from zetabracket.errors import FeedFailure
from zetabracket.models.intent import BookTop, Position, PricingPlan


class FakeRPC:
    def __init__(self, name: str = "rpc1", fail: bool = False):
        self.name = name
        self.fail = fail
        self.calls = 0
        self._heights = itertools.count(1000)
        self.closed = False

    async def get_latest_blockhash(self, commitment: str = "finalized") -> Blockhash:
        self.calls += 1
        if self.fail:
            raise ConnectionError(f"{self.name} unreachable")
        h = next(self._heights)
        return Blockhash(blockhash=f"{self.name}-hash-{h}", last_valid_block_height=h)

    async def close(self):
        self.closed = True


class FakeExchange:
    def __init__(self, bid: Optional[float] = 99.0, ask: Optional[float] = 101.0, balance: float = 1000.0,
                 bits: Iterable[int] = (), positions: Optional[List[Position]] = None, fail_sends: int = 0):
        self.book = BookTop(best_bid=bid, best_ask=ask)
        self.balance = balance
        self.bits = list(bits)
        self.positions = positions or []
        self.fail_sends = fail_sends
        self.sent: List[Any] = []
        self.sent_via: List[str] = []
        self.fees: List[int] = []
        self.cancelled: List[str] = []
        self.refreshes = 0
        self.query_error: Optional[Exception] = None
        self.closed = False

    async def refresh_state(self):
        if self.query_error:
            raise self.query_error
        self.refreshes += 1

    def account_balance(self) -> float:
        return self.balance

    async def fetch_orderbook(self, market: str) -> BookTop:
        return self.book

    def trigger_order_bits(self):
        return list(self.bits)

    def set_priority_fee(self, fee: int):
        self.fees.append(fee)

    async def process_transaction(self, tx, options, rpc) -> str:
        self.sent.append(tx)
        self.sent_via.append(rpc.name)
        if self.fail_sends != 0:
            self.fail_sends -= 1
            raise RuntimeError("Blockhash not found")
        return f"sig-{len(self.sent)}"

    async def get_positions(self, market: str) -> List[Position]:
        return [p for p in self.positions if p.market == market]

    async def cancel_all_orders(self, market: str):
        if self.query_error:
            raise self.query_error
        self.cancelled.append(market)
        return None

    async def close(self):
        self.closed = True


class FakeRedis:
    def __init__(self, data: Optional[Dict[str, Dict[str, str]]] = None, fail: bool = False):
        self.data = data if data is not None else {}
        self.fail = fail
        self.closed = False

    async def hgetall(self, key: str) -> Dict[str, str]:
        if self.fail:
            raise ConnectionError("Connection refused")
        return dict(self.data.get(key, {}))

    async def hset(self, key: str, mapping: Dict[str, str]):
        if self.fail:
            raise ConnectionError("Connection refused")
        self.data.setdefault(key, {}).update(mapping)
        return len(mapping)

    async def aclose(self):
        self.closed = True


class FakeFeed:
    def __init__(self, levels: Optional[Dict[str, float]] = None, fail: bool = False):
        self._levels = levels if levels is not None else {"medium": 500.0, "high": 1001.0}
        self.fail = fail
        self.levels: Dict[str, float] = {}
        self.loads = 0
        self.closed = False

    async def load(self):
        self.loads += 1
        if self.fail:
            raise FeedFailure("helius down")
        self.levels = dict(self._levels)
        return self.levels

    def fee_for(self, level):
        if level not in self.levels:
            raise FeedFailure(f"priority level {level!r} not in feed")
        return self.levels[level]

    async def close(self):
        self.closed = True


BASE_ENV = {
    "RPC_ENDPOINT_1": "https://rpc.example",
    "KEYPAIR_FILE_PATH": "/tmp/id.json",
    "HELIUS_RPC": "https://helius.example/?api-key=x",
}


@pytest.fixture
def base_env() -> Dict[str, str]:
    return dict(BASE_ENV)


def make_plan(side="bid") -> PricingPlan:
    return PricingPlan(
        side=side, current_price=101.0, adjusted_price=101.00505, position_size=79.2, native_lot_size=79200,
        native_price=101005050, take_profit_price=101.2, take_profit_trigger=101.1,
        stop_loss_price=98.8, stop_loss_trigger=99.0,
    )


def make_session(exchange=None, env=None, redis=None, feed=None, sleeps=None):
    """TradingSession wired to fakes, without touching the network or a keypair file."""
    from zetabracket.exchange.router import ConnectionRouter
    from zetabracket.l2_services.config import load_config
    from zetabracket.l2_services.fee_oracle import FeeOracle
    from zetabracket.l2_services.settings_store import SettingsProvider
    from zetabracket.orders.submitter import TransactionSubmitter
    from zetabracket.services.session import TradingSession

    cfg = load_config(env={**BASE_ENV, **(env or {})})
    exchange = exchange or FakeExchange()
    router = ConnectionRouter([FakeRPC()])
    fees = FeeOracle(feed or FakeFeed(), level="high", on_fee=exchange.set_priority_fee)
    if sleeps is None:
        sleeps = []

    async def fake_sleep(s):
        sleeps.append(s)

    submitter = TransactionSubmitter(exchange, router, fee_source=lambda: fees.current_fee, sleep=fake_sleep)
    return TradingSession(config=cfg, router=router, wallet=None, exchange=exchange, fees=fees,
                          settings=SettingsProvider(redis or FakeRedis()), submitter=submitter)
