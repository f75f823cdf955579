from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from zetabracket.exchange.client import ExchangeClient, ExchangeFactory
from zetabracket.exchange.router import ConnectionRouter
from zetabracket.exchange.rpc import SolanaRPC
from zetabracket.l2_services.config import AppConfig, load_keypair
from zetabracket.l2_services.fee_oracle import FeeOracle, HeliusFeeFeed
from zetabracket.l2_services.settings_store import SettingsProvider
from zetabracket.orders.slots import TriggerSlotAllocator
from zetabracket.orders.submitter import TransactionSubmitter
from zetabracket.util.backoff import RetryPolicy

log = logging.getLogger("zetabracket.session")

@dataclass
class TradingSession:
    """Everything one trading process talks to, passed explicitly to each operation."""
    config: AppConfig
    router: ConnectionRouter
    wallet: Any
    exchange: ExchangeClient
    fees: FeeOracle
    settings: SettingsProvider
    submitter: TransactionSubmitter
    slots: TriggerSlotAllocator = field(default_factory=TriggerSlotAllocator)

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(kind=self.config.SUBMIT_BACKOFF, delay_ms=self.config.SUBMIT_RETRY_DELAY_MS)

    async def close(self) -> None:
        await self.fees.close()
        await self.settings.close()
        await self.exchange.close()
        await self.router.close()

async def open_session(config: AppConfig, exchange_factory: ExchangeFactory,
                       fee_feed: Optional[HeliusFeeFeed] = None,
                       settings: Optional[SettingsProvider] = None) -> TradingSession:
    endpoints = [
        SolanaRPC(url, ws_url=ws, name=f"rpc{i}")
        for i, (url, ws) in enumerate(config.rpc_endpoints(), start=1)
    ]
    router = ConnectionRouter(endpoints, policy=config.RPC_ROUTING)
    exchange = None
    fees = None
    try:
        wallet = load_keypair(config.KEYPAIR_FILE_PATH)
        # state reads use the primary; sends go through the endpoint the submitter picks
        exchange = await exchange_factory(config, router.primary, wallet)

        fees = FeeOracle(
            fee_feed or HeliusFeeFeed(config.HELIUS_RPC),
            level=config.PRIORITY_LEVEL,
            multiplier=config.PRIORITY_FEE_MULTIPLIER,
            initial_fee=config.PRIORITY_FEE_INITIAL,
            poll_ms=config.PRIORITY_FEE_POLL_MS,
            on_fee=exchange.set_priority_fee,
        )
        await fees.setup()
        await fees.refresh()
    except Exception:
        log.exception("Error initializing trading session")
        if fees is not None:
            await fees.close()
        if exchange is not None:
            await exchange.close()
        await router.close()
        raise

    if settings is None:
        settings = SettingsProvider.from_params(config.REDIS_HOST, config.REDIS_PORT, config.REDIS_PASSWORD)
    submitter = TransactionSubmitter(exchange, router, fee_source=lambda: fees.current_fee)
    log.info("trading session initialized (%d rpc endpoint(s), routing=%s)", len(endpoints), config.RPC_ROUTING)
    return TradingSession(config=config, router=router, wallet=wallet, exchange=exchange,
                          fees=fees, settings=settings, submitter=submitter)
