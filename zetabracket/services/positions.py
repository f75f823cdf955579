from __future__ import annotations
import logging
from typing import Any, Optional

from zetabracket.errors import QueryFailure
from zetabracket.models.intent import Position
from zetabracket.services.session import TradingSession

log = logging.getLogger("zetabracket.positions")

async def get_position(session: TradingSession, market: str) -> Optional[Position]:
    try:
        await session.exchange.refresh_state()
        positions = await session.exchange.get_positions(market)
    except Exception as e:
        log.error("Error getting position for market %s: %s", market, e)
        raise QueryFailure(str(e)) from e
    return positions[0] if positions else None

async def cancel_all_orders(session: TradingSession, market: str) -> Any:
    try:
        result = await session.exchange.cancel_all_orders(market)
    except Exception as e:
        log.error("Error cancelling all orders for market %s: %s", market, e)
        raise QueryFailure(str(e)) from e
    log.info("Cancelled all orders for market %s", market)
    return result
