from __future__ import annotations
import importlib
from typing import Any, Awaitable, Callable, Iterable, List, Protocol, TYPE_CHECKING

from zetabracket.domain.types import SendOptions, Transaction
from zetabracket.errors import ConfigurationFailure
from zetabracket.models.intent import BookTop, Position

if TYPE_CHECKING:
    from solders.keypair import Keypair
    from zetabracket.exchange.rpc import SolanaRPC
    from zetabracket.l2_services.config import AppConfig


class ExchangeClient(Protocol):
    """What the trading pipeline needs from the Zeta SDK binding."""

    async def refresh_state(self) -> None:
        ...

    def account_balance(self) -> float:
        ...

    async def fetch_orderbook(self, market: str) -> BookTop:
        """Forced (uncached) top of book."""
        ...

    def trigger_order_bits(self) -> Iterable[int]:
        ...

    def set_priority_fee(self, fee_micro_lamports: int) -> None:
        ...

    async def process_transaction(self, tx: Transaction, options: SendOptions, rpc: "SolanaRPC") -> str:
        """Sign tx and send it through `rpc`, the endpoint that supplied its blockhash."""
        ...

    async def get_positions(self, market: str) -> List[Position]:
        ...

    async def cancel_all_orders(self, market: str) -> Any:
        ...

    async def close(self) -> None:
        ...


ExchangeFactory = Callable[["AppConfig", "SolanaRPC", "Keypair"], Awaitable[ExchangeClient]]


def load_exchange_factory(ref: str | None) -> ExchangeFactory:
    """Resolve "package.module:callable" into the exchange client factory."""
    if not ref or ":" not in ref:
        raise ConfigurationFailure(f"EXCHANGE_CLIENT_FACTORY must look like 'module:callable', got {ref!r}")
    mod_name, attr = ref.split(":", 1)
    try:
        mod = importlib.import_module(mod_name)
        factory = getattr(mod, attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationFailure(f"cannot load exchange client factory {ref!r}: {e}") from e
    if not callable(factory):
        raise ConfigurationFailure(f"exchange client factory {ref!r} is not callable")
    return factory
