"""
ExchangeClient backed by the zetamarkets_py SDK.

The SDK `Client` supplies market/account state and the program account
addresses. Order instructions are encoded here from `OrderInstruction` params,
so the reduce-only TP leg and the trigger legs land in the same transaction as
the entry. Signing uses the session keypair; sending goes through the
`SolanaRPC` endpoint that served the transaction's blockhash.
"""
from __future__ import annotations
import logging, time
from typing import Any, Dict, List, Optional, Set

from anchorpy import Wallet
from solana.rpc.commitment import Confirmed, Finalized
from solana.rpc.types import TxOpts
from solders.compute_budget import set_compute_unit_price
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.pubkey import Pubkey
from solders.transaction import VersionedTransaction
from zetamarkets_py import constants, utils
from zetamarkets_py.client import Client
from zetamarkets_py.risk import Position as ZetaPosition
from zetamarkets_py.types import Asset, Network, OrderType, Side
from zetamarkets_py.zeta_client.accounts.cross_margin_account import CrossMarginAccount
from zetamarkets_py.zeta_client.instructions import place_perp_order_v5, place_trigger_order
from zetamarkets_py.zeta_client.types import trigger_direction

from zetabracket.domain.types import SendOptions, Transaction
from zetabracket.errors import ConfigurationFailure, QueryFailure
from zetabracket.exchange.rpc import SolanaRPC
from zetabracket.exchange.zeta.instructions import DEFAULT_ORDER_TAG
from zetabracket.l2_services.config import AppConfig
from zetabracket.models.intent import BookTop, OrderInstruction, Position
from zetabracket.orders.slots import MAX_TRIGGER_ORDERS

log = logging.getLogger("zetabracket.zeta")

_SIDES = {"bid": Side.Bid, "ask": Side.Ask}
_TRIGGER_DIRECTIONS = {
    "gte": trigger_direction.GreaterThanOrEqual(),
    "lte": trigger_direction.LessThanOrEqual(),
}

def asset_for(market: str) -> Asset:
    try:
        return Asset(market.upper())
    except ValueError as e:
        raise ConfigurationFailure(f"unknown Zeta market {market!r}") from e

def align(native: int, step: int) -> int:
    """Floor a native amount onto the market's tick or lot grid."""
    if step <= 1:
        return int(native)
    return (int(native) // step) * step

def set_bits(bits: int, width: int = MAX_TRIGGER_ORDERS) -> List[int]:
    return [i for i in range(width) if (bits >> i) & 1]

def trigger_order_address(program_id: Pubkey, margin_account: Pubkey, bit: int) -> Pubkey:
    return Pubkey.find_program_address([b"trigger-order", bytes(margin_account), bytes([bit])], program_id)[0]

def perp_order_args(params: Dict[str, Any], tick_size: int, min_lot_size: int) -> Dict[str, Any]:
    return {
        "price": align(params["price"], tick_size),
        "size": align(params["size"], min_lot_size),
        "side": _SIDES[params["side"]].to_program_type(),
        "order_type": OrderType.Limit.to_program_type(),
        "reduce_only": bool(params.get("reduce_only", False)),
        "client_order_id": None,
        "tag": DEFAULT_ORDER_TAG,
        "tif_offset": None,
        "asset": asset_for(params["asset"]).to_program_type(),
        "self_trade_behavior": None,
    }

def trigger_order_args(params: Dict[str, Any], tick_size: int, min_lot_size: int) -> Dict[str, Any]:
    return {
        "trigger_order_bit": int(params["trigger_order_bit"]),
        "order_price": align(params["order_price"], tick_size),
        "trigger_price": int(params["trigger_price"]),
        "trigger_direction": _TRIGGER_DIRECTIONS[params["trigger_direction"]],
        "trigger_ts": int(params.get("trigger_ts", 0)),
        "size": align(params["size"], min_lot_size),
        "side": _SIDES[params["side"]].to_program_type(),
        "order_type": OrderType.Limit.to_program_type(),
        "reduce_only": bool(params.get("reduce_only", True)),
        "tag": params.get("tag", DEFAULT_ORDER_TAG),
        "asset": asset_for(params["asset"]).to_program_type(),
    }

def _best_price(book) -> Optional[float]:
    if book is None:
        return None
    # the SDK's default clock_ts is frozen at import time
    levels = book._get_l2(1, clock_ts=int(time.time()))
    return levels[0].price if levels else None


class ZetaSdkClient:
    def __init__(self, client: Client, wallet: Keypair, network: Network):
        self.client = client
        self.wallet = wallet
        self.network = network
        self.priority_fee = 0
        self._account: Optional[CrossMarginAccount] = None
        self._missing_open_orders: Set[Asset] = set()

    def _market(self, asset: Asset):
        market = self.client.exchange.markets.get(asset)
        if market is None:
            raise ConfigurationFailure(f"market {asset.name} is not loaded into the Zeta client")
        return market

    def _require_account(self) -> CrossMarginAccount:
        if self._account is None:
            raise QueryFailure("margin account state not loaded; call refresh_state() first")
        return self._account

    async def refresh_state(self) -> None:
        c = self.client
        acct = await CrossMarginAccount.fetch(c.connection, c._margin_account_address,
                                              program_id=c.exchange.program_id)
        if acct is None:
            raise QueryFailure(f"margin account {c._margin_account_address} not found")
        self._account = acct
        missing = set()
        for asset in c.exchange.assets:
            if not await c._check_open_orders_account_exists(asset):
                missing.add(asset)
        self._missing_open_orders = missing

    def account_balance(self) -> float:
        return utils.convert_fixed_int_to_decimal(self._require_account().balance)

    def trigger_order_bits(self) -> List[int]:
        return set_bits(self._require_account().trigger_order_bits)

    def set_priority_fee(self, fee_micro_lamports: int) -> None:
        self.priority_fee = int(fee_micro_lamports)

    async def fetch_orderbook(self, market: str) -> BookTop:
        bids, asks = await self._market(asset_for(market)).load_bids_and_asks()
        return BookTop(best_bid=_best_price(bids), best_ask=_best_price(asks))

    async def get_positions(self, market: str) -> List[Position]:
        asset = asset_for(market)
        pos = ZetaPosition.from_margin_account(self._require_account(), asset.to_index())
        if pos.size == 0:
            return []
        return [Position(market=asset.name, size=pos.size, cost_of_trades=pos.cost_of_trades)]

    async def cancel_all_orders(self, market: str) -> Any:
        return await self.client.cancel_orders_for_market(asset_for(market), priority_fee=self.priority_fee)

    def _place_order_accounts(self, asset: Asset, side: Side) -> Dict[str, Any]:
        c, ex = self.client, self.client.exchange
        m = self._market(asset)
        ms = m._market_state
        return {
            "authority": c.provider.wallet.public_key,
            "place_order_accounts": {
                "state": ex._state_address,
                "pricing": ex._pricing_address,
                "margin_account": c._margin_account_address,
                "dex_program": constants.MATCHING_ENGINE_PID[self.network],
                "serum_authority": ex._serum_authority_address,
                "open_orders": c._open_orders_addresses[asset],
                "market_accounts": {
                    "market": m.address,
                    "request_queue": ms.request_queue,
                    "event_queue": ms.event_queue,
                    "bids": ms.bids,
                    "asks": ms.asks,
                    "coin_vault": ms.base_vault,
                    "pc_vault": ms.quote_vault,
                    "order_payer_token_account": (
                        m._quote_zeta_vault_address if side == Side.Bid else m._base_zeta_vault_address
                    ),
                    "coin_wallet": m._base_zeta_vault_address,
                    "pc_wallet": m._quote_zeta_vault_address,
                },
                "oracle": constants.PYTH_PRICE_FEEDS[self.network][asset],
                "oracle_backup_feed": ex.pricing.oracle_backup_feeds[asset.to_index()],
                "oracle_backup_program": constants.CHAINLINK_PID,
                "market_mint": ms.quote_mint if side == Side.Bid else ms.base_mint,
                "mint_authority": ex._mint_authority_address,
                "perp_sync_queue": ex.pricing.perp_sync_queues[asset.to_index()],
            },
        }

    def _trigger_accounts(self, asset: Asset, bit: int) -> Dict[str, Pubkey]:
        c, ex = self.client, self.client.exchange
        return {
            "state": ex._state_address,
            "open_orders": c._open_orders_addresses[asset],
            "authority": c.provider.wallet.public_key,
            "margin_account": c._margin_account_address,
            "pricing": ex._pricing_address,
            "trigger_order": trigger_order_address(ex.program_id, c._margin_account_address, bit),
            "dex_program": constants.MATCHING_ENGINE_PID[self.network],
            "market": self._market(asset).address,
        }

    def encode(self, ins: OrderInstruction) -> Instruction:
        p = ins.params
        asset = asset_for(p["asset"])
        state = self.client.exchange.state
        tick = utils.get_fixed_tick_size(state, asset)
        lot = utils.get_fixed_min_lot_size(state, asset)
        program_id = self.client.exchange.program_id
        if ins.kind == "place_perp_order":
            return place_perp_order_v5(perp_order_args(p, tick, lot),
                                       self._place_order_accounts(asset, _SIDES[p["side"]]), program_id)
        return place_trigger_order(trigger_order_args(p, tick, lot),
                                   self._trigger_accounts(asset, int(p["trigger_order_bit"])), program_id)

    def instructions_for(self, tx: Transaction) -> List[Instruction]:
        fee = tx.priority_fee_micro_lamports if tx.priority_fee_micro_lamports is not None else self.priority_fee
        ixs: List[Instruction] = []
        if fee > 0:
            ixs.append(set_compute_unit_price(int(fee)))
        seen: Set[Asset] = set()
        for ins in tx.instructions:
            asset = asset_for(ins.params["asset"])
            if asset in self._missing_open_orders and asset not in seen:
                log.info("no open orders account for %s, creating one", asset.name)
                ixs.append(self.client._init_open_orders_ix(asset))
            seen.add(asset)
        ixs.extend(self.encode(ins) for ins in tx.instructions)
        return ixs

    async def process_transaction(self, tx: Transaction, options: SendOptions, rpc: SolanaRPC) -> str:
        if not tx.recent_blockhash:
            raise ValueError("transaction is not stamped with a blockhash")
        msg = MessageV0.try_compile(
            self.wallet.pubkey(),
            self.instructions_for(tx),
            constants.ZETA_LUT[self.network],
            Hash.from_string(tx.recent_blockhash),
        )
        signed = VersionedTransaction(msg, [self.wallet])
        return await rpc.send_transaction(bytes(signed), options)

    async def close(self) -> None:
        await self.client.connection.close()


async def load_zeta_client(config: AppConfig, rpc: SolanaRPC, wallet: Keypair) -> ZetaSdkClient:
    """Default EXCHANGE_CLIENT_FACTORY: SDK client bound to the primary endpoint."""
    network = Network(config.ZETA_NETWORK)
    asset = asset_for(config.ACTIVE_MARKET)
    client = await Client.load(
        endpoint=rpc.url,
        ws_endpoint=rpc.ws_url,
        commitment=Confirmed,
        wallet=Wallet(wallet),
        assets=[asset],
        tx_opts=TxOpts(skip_preflight=True, preflight_commitment=Finalized),
        network=network,
    )
    log.info("zeta client loaded (network=%s, market=%s, wallet=%s)", network.value, asset.name, wallet.pubkey())
    return ZetaSdkClient(client, wallet, network)
