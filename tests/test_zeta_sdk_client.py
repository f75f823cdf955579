import asyncio
from types import SimpleNamespace

import pytest
from solders.compute_budget import set_compute_unit_price
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction
from zetamarkets_py.types import Asset, Network

from zetabracket.domain.types import SendOptions, Transaction
from zetabracket.errors import ConfigurationFailure
from zetabracket.exchange.client import load_exchange_factory
from zetabracket.exchange.zeta import sdk_client
from zetabracket.exchange.zeta.instructions import build_bundle
from zetabracket.exchange.zeta.sdk_client import (
    ZetaSdkClient, align, asset_for, perp_order_args, set_bits, trigger_order_address, trigger_order_args,
)
from zetabracket.l2_services.config import DEFAULT_EXCHANGE_CLIENT_FACTORY

from conftest import make_plan

COMPUTE_BUDGET = Pubkey.from_string("ComputeBudget111111111111111111111111111111")

def _bundle_tx(fee=None):
    tx = Transaction.from_bundle(build_bundle("long", "SOL", make_plan(), sl_slot=3))
    tx.priority_fee_micro_lamports = fee
    return tx

def _client(**client_attrs):
    return ZetaSdkClient(SimpleNamespace(**client_attrs), Keypair(), Network.MAINNET)

def test_align_and_bits():
    assert align(101005050, 100) == 101005000
    assert align(79250, 100) == 79200
    assert align(42, 1) == 42
    assert set_bits(0b1011) == [0, 1, 3]
    assert set_bits(0) == []

def test_asset_for():
    assert asset_for("sol") is Asset.SOL
    with pytest.raises(ConfigurationFailure):
        asset_for("DOGEFOOD")

def test_perp_args_for_tp_leg():
    tx = _bundle_tx()
    args = perp_order_args(tx.instructions[1].params, tick_size=100, min_lot_size=100)
    assert args["reduce_only"] is True
    assert args["side"].kind == "Ask"
    assert args["price"] == 101200000
    assert args["size"] == 79200
    assert args["order_type"].kind == "Limit"

def test_perp_args_for_entry_aligns_price():
    args = perp_order_args(_bundle_tx().instructions[0].params, tick_size=100, min_lot_size=100)
    assert args["reduce_only"] is False
    assert args["side"].kind == "Bid"
    assert args["price"] == 101005000

def test_trigger_args_for_sl_leg():
    args = trigger_order_args(_bundle_tx().instructions[2].params, tick_size=100, min_lot_size=100)
    assert args["trigger_order_bit"] == 3
    assert args["trigger_direction"].kind == "LessThanOrEqual"
    assert args["trigger_price"] == 99000000
    assert args["order_price"] == 98800000
    assert args["trigger_ts"] == 0
    assert args["reduce_only"] is True
    assert args["tag"] == "SDK"

def test_trigger_order_address_per_bit():
    program, margin = Pubkey.new_unique(), Pubkey.new_unique()
    a0 = trigger_order_address(program, margin, 0)
    assert a0 == trigger_order_address(program, margin, 0)
    assert a0 != trigger_order_address(program, margin, 1)

def test_instructions_prepend_fee_and_open_orders_init():
    zc = _client(_init_open_orders_ix=lambda asset: f"init-{asset.name}")
    zc.encode = lambda ins: ins.kind
    zc._missing_open_orders = {Asset.SOL}
    ixs = zc.instructions_for(_bundle_tx(fee=2500))
    assert ixs[0].program_id == COMPUTE_BUDGET
    assert ixs[0] == set_compute_unit_price(2500)
    assert ixs[1:] == ["init-SOL", "place_perp_order", "place_perp_order", "place_trigger_order"]

def test_instructions_without_fee():
    zc = _client()
    zc.encode = lambda ins: ins.kind
    assert zc.instructions_for(_bundle_tx(fee=0)) == [
        "place_perp_order", "place_perp_order", "place_trigger_order"]

class SendRecorder:
    name = "rpc2"

    def __init__(self):
        self.raw = None

    async def send_transaction(self, raw, options):
        self.raw = raw
        return "5ig"

def test_process_transaction_signs_with_stamped_blockhash():
    zc = _client()
    program = Pubkey.new_unique()
    zc.encode = lambda ins: Instruction(program, ins.kind.encode(), [])
    tx = _bundle_tx(fee=1000)
    bh = Hash.new_unique()
    tx.recent_blockhash = str(bh)
    rpc = SendRecorder()
    assert asyncio.run(zc.process_transaction(tx, SendOptions(), rpc)) == "5ig"
    sent = VersionedTransaction.from_bytes(rpc.raw)
    assert sent.message.recent_blockhash == bh
    assert sent.message.account_keys[0] == zc.wallet.pubkey()

def test_process_transaction_requires_blockhash():
    with pytest.raises(ValueError):
        asyncio.run(_client().process_transaction(_bundle_tx(), SendOptions(), SendRecorder()))

class Book:
    def __init__(self, *prices):
        self.prices = prices

    def _get_l2(self, depth, clock_ts=0):
        return [SimpleNamespace(price=p, size=1.0) for p in self.prices[:depth]]

def test_fetch_orderbook_top():
    async def load_bids_and_asks():
        return Book(99.5, 99.0), Book()

    market = SimpleNamespace(load_bids_and_asks=load_bids_and_asks)
    zc = _client(exchange=SimpleNamespace(markets={Asset.SOL: market}))
    top = asyncio.run(zc.fetch_orderbook("SOL"))
    assert top.best_bid == 99.5
    assert top.best_ask is None

def test_unloaded_market():
    zc = _client(exchange=SimpleNamespace(markets={}))
    with pytest.raises(ConfigurationFailure):
        asyncio.run(zc.fetch_orderbook("SOL"))

def _ledger(size, cost):
    return SimpleNamespace(position=SimpleNamespace(size=size, cost_of_trades=cost))

def test_account_state_views():
    zc = _client()
    ledgers = [_ledger(0, 0) for _ in Asset]
    ledgers[Asset.SOL.to_index()] = _ledger(2500, 250_000_000)
    zc._account = SimpleNamespace(balance=1_000_000_000, trigger_order_bits=0b101, product_ledgers=ledgers)
    assert zc.account_balance() == 1000.0
    assert zc.trigger_order_bits() == [0, 2]
    [pos] = asyncio.run(zc.get_positions("SOL"))
    assert (pos.market, pos.size, pos.cost_of_trades) == ("SOL", 2.5, 250.0)
    assert asyncio.run(zc.get_positions("BTC")) == []

def test_default_factory_is_the_sdk_client():
    assert load_exchange_factory(DEFAULT_EXCHANGE_CLIENT_FACTORY) is sdk_client.load_zeta_client
